"""Role-based permission predicates.

All predicates take the caller's profile (None when unauthenticated) and
answer False rather than raising for anonymous callers.
"""

from shopfloor.models import Profile, Role, role_level


def has_permission(profile: Profile | None, required_role: Role | str) -> bool:
    """True iff the caller's role is at or above `required_role`."""
    if profile is None:
        return False
    return profile.level >= role_level(required_role)


def can_manage_department(profile: Profile | None, department: str) -> bool:
    """Directors and deputy directors manage every department.

    Supervisors and team leads manage the departments assigned to them.
    """
    if profile is None:
        return False
    match profile.parsed_role:
        case Role.DIRECTOR | Role.DEPUTY_DIRECTOR:
            return True
        case Role.SUPERVISOR:
            return department in (profile.supervised_departments or [])
        case Role.TEAM_LEAD:
            return department in (profile.managed_departments or [])
        case _:
            return False


def can_manage_user(
    profile: Profile | None,
    caller_id: str | None,
    target_id: str | None,
    target_role: Role | str | None,
) -> bool:
    """True iff the caller strictly outranks the target and is not the target."""
    if profile is None or caller_id is None or not target_id:
        return False
    if target_id == caller_id:
        return False
    return profile.level > role_level(target_role)
