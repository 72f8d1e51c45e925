"""Role hierarchy for factory staff.

Roles are totally ordered; a higher role satisfies every requirement of the
roles below it.

    AGENT < TEAM_LEAD < SUPERVISOR < DEPUTY_DIRECTOR < DIRECTOR

The enum values are the role strings stored by the backend.
"""

from enum import Enum


class Role(str, Enum):
    AGENT = "Agent"
    TEAM_LEAD = "Chef d'équipe"
    SUPERVISOR = "Superviseur"
    DEPUTY_DIRECTOR = "Sous-directeur"
    DIRECTOR = "Directeur"

    @property
    def level(self) -> int:
        return ROLE_LEVELS[self]

    @classmethod
    def parse(cls, value: "str | Role | None") -> "Role | None":
        """Return the matching role, or None for an unknown role string."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


ROLE_LEVELS: dict[Role, int] = {
    Role.AGENT: 1,
    Role.TEAM_LEAD: 2,
    Role.SUPERVISOR: 3,
    Role.DEPUTY_DIRECTOR: 4,
    Role.DIRECTOR: 5,
}


def role_level(role: "str | Role | None") -> int:
    """Hierarchy level of a role; 0 for missing or unknown roles."""
    parsed = Role.parse(role)
    return ROLE_LEVELS[parsed] if parsed is not None else 0
