"""Identity and auth session models issued by the auth subsystem."""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict


class Identity(BaseModel):
    """An authenticated user reference (the auth subsystem's user)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None


class AuthSession(BaseModel):
    """A live token pair bound to an identity."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    expires_at: int | None = None  # epoch seconds
    user: Identity

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> AuthSession:
        """Build a session from an auth token endpoint response.

        Fills in expires_at from expires_in when the server omits it.
        """
        session = cls.model_validate(data)
        if session.expires_at is None and session.expires_in is not None:
            expires = datetime.now(timezone.utc) + timedelta(
                seconds=session.expires_in
            )
            session = session.model_copy(update={"expires_at": int(expires.timestamp())})
        return session

    def expires_at_datetime(self) -> datetime | None:
        if self.expires_at is None:
            return None
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)

    def needs_refresh(self, margin: timedelta = timedelta(minutes=5)) -> bool:
        """Check if the access token is expired or expires within `margin`.

        Returns False when the expiration is unknown.
        """
        expires_at = self.expires_at_datetime()
        if expires_at is None:
            return False
        return expires_at <= datetime.now(timezone.utc) + margin
