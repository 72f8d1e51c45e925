"""Result and envelope models shared by the backend facade and the session."""

from __future__ import annotations
from typing import Any

from pydantic import BaseModel, ConfigDict

from .identity import Identity
from .profile import Profile


class RemoteResponse(BaseModel):
    """Envelope returned by edge functions: `{success, data?, message?}`."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    data: Any = None
    message: str | None = None


class AuthResult(BaseModel):
    """Outcome of a session operation.

    UI code branches on `success` and shows `error`, which is always a
    localized message and never a raw backend error.
    """

    success: bool
    profile: Profile | None = None
    user: Identity | None = None
    error: str | None = None

    @classmethod
    def ok(
        cls, profile: Profile | None = None, user: Identity | None = None
    ) -> AuthResult:
        return cls(success=True, profile=profile, user=user)

    @classmethod
    def failed(cls, error: str) -> AuthResult:
        return cls(success=False, error=error)
