"""Profile model for factory staff."""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict

from .identity import Identity
from .role import Role, role_level


class Profile(BaseModel):
    """The per-identity profile row.

    Profiles are created on first sign-in with the lowest role and the
    needs-setup flag set, then completed through the setup flow.
    Remote columns this model does not know about are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    full_name: str | None = None
    role: str = Role.AGENT.value
    work_type: str | None = None
    shift: str | None = None
    department: str | None = None
    production_line: str | None = None
    needs_setup: bool = False
    supervised_departments: list[str] | None = None
    managed_departments: list[str] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def parsed_role(self) -> Role | None:
        """The role as a Role, or None if the backend sent an unknown value."""
        return Role.parse(self.role)

    @property
    def level(self) -> int:
        return role_level(self.role)

    @classmethod
    def default_for(cls, identity: Identity) -> Profile:
        """Build the default profile for an identity that has none yet."""
        now = datetime.now(timezone.utc)
        email = identity.email or ""
        # "jean.dupont@x" -> "jean dupont"; only the first dot is replaced.
        full_name = email.split("@")[0].replace(".", " ", 1) or None
        return cls(
            id=identity.id,
            email=identity.email,
            full_name=full_name,
            role=Role.AGENT.value,
            work_type="shift",
            shift="Shift A",
            department="INR",
            production_line="Line 1",
            needs_setup=True,
            created_at=now,
            updated_at=now,
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible row for the backend and the local cache."""
        return self.model_dump(mode="json", exclude_none=True)


class ProfileUpdate(BaseModel):
    """A partial profile update. Only fields that were set are sent."""

    model_config = ConfigDict(extra="allow")

    full_name: str | None = None
    role: str | None = None
    work_type: str | None = None
    shift: str | None = None
    department: str | None = None
    production_line: str | None = None
    needs_setup: bool | None = None
    supervised_departments: list[str] | None = None
    managed_departments: list[str] | None = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)
