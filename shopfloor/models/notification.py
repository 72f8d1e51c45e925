from __future__ import annotations
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Notification(BaseModel):
    """A notification row pushed to a single user or to everyone with a role."""

    model_config = ConfigDict(extra="allow")

    id: str | int
    title: str | None = None
    message: str | None = None
    type: str = "info"
    read: bool = False
    time: str | None = None
    target_user_id: str | None = None
    target_role: str | None = None
    created_at: datetime | None = None

    def is_for(self, user_id: str, role: str | None) -> bool:
        """Whether this notification targets the given user or their role."""
        if self.target_user_id is not None and self.target_user_id == user_id:
            return True
        return role is not None and self.target_role == role
