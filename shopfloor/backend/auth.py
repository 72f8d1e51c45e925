"""Auth subsystem operations (sign-in, token refresh, user management)."""

import logging
from enum import Enum
from typing import Any, Callable

import jwt
from pydantic import ValidationError

from shopfloor.models import AuthSession, Identity
from shopfloor.storage import TokenStore
from .client import BackendClient
from .errors import AuthRejection, RemoteRejection

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"


AuthListener = Callable[[AuthEvent, AuthSession | None], None]

# Error codes meaning the stored session can no longer be used.
REVOKED_SESSION_CODES = frozenset(
    {
        "refresh_token_not_found",
        "refresh_token_already_used",
        "invalid_grant",
        "session_not_found",
        "session_expired",
        "user_not_found",
        "bad_jwt",
    }
)


def is_revocation(error: RemoteRejection) -> bool:
    """Whether `error` means the session was revoked, as opposed to a
    transient refusal such as rate limiting.
    """
    if error.status_code not in (400, 401, 403):
        return False
    return error.code in REVOKED_SESSION_CODES or error.status_code in (401, 403)


def claims_from_token(token: str) -> dict[str, Any]:
    """Read the claims of an access token without verifying its signature.

    The backend verifies tokens; the client only needs `exp` and `sub` to
    decide when to refresh. Returns an empty dict for malformed tokens.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.warning(f"Could not decode access token claims: {e}")
        return {}


class AuthApi:
    """Client for the auth subsystem.

    Keeps the token store in sync with the server and notifies listeners of
    auth lifecycle events in the order they happen.
    """

    def __init__(self, client: BackendClient, token_store: TokenStore):
        self.client = client
        self.token_store = token_store
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        logger.debug(f"Auth event: {event.value}")
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception(f"Error in auth listener for {event.value}")

    def _session_from(self, data: Any) -> AuthSession:
        try:
            return AuthSession.from_token_response(data)
        except ValidationError as e:
            logger.error(f"Malformed token response: {e}")
            raise AuthRejection("Malformed token response", code="invalid_response") from e

    async def _post(
        self,
        path: str,
        json: dict[str, Any],
        params: dict[str, str] | None = None,
        authenticated: bool = False,
    ) -> Any:
        return await self.client.request(
            "POST",
            f"{AUTH_PATH}{path}",
            params=params,
            json=json,
            authenticated=authenticated,
            error_cls=AuthRejection,
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = await self._post(
            "/token",
            json={"email": email, "password": password},
            params={"grant_type": "password"},
        )
        session = self._session_from(data)
        self.token_store.save(session)
        logger.info(f"Signed in user id={session.user.id}")
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(
        self, email: str, password: str, user_data: dict[str, Any] | None = None
    ) -> Identity:
        """Register a new account.

        When email confirmation is disabled the server also returns a session,
        in which case the new user is signed in.
        """
        data = await self._post(
            "/signup",
            json={"email": email, "password": password, "data": user_data or {}},
        )
        if data.get("access_token"):
            session = self._session_from(data)
            self.token_store.save(session)
            self._emit(AuthEvent.SIGNED_IN, session)
            return session.user
        return Identity.model_validate(data.get("user", data))

    async def sign_out(self) -> None:
        """Revoke the session on the server and forget it locally.

        The local session is dropped even if the server call fails; the
        failure is then re-raised.
        """
        try:
            if self.token_store.access_token():
                await self._post("/logout", json={}, authenticated=True)
        finally:
            self.token_store.clear()
            self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self) -> AuthSession | None:
        """Restore the stored session.

        An expired session is refreshed. A session that is still valid is
        checked against the server, so a deleted or revoked user is not
        restored.

        Returns:
            The live session, or None if there is none or it was revoked.

        Raises:
            BackendError: If the server could not be reached or the check
                failed for a transient reason; the stored session is kept.
        """
        session = self.token_store.load()
        if session is None:
            return None

        if session.expires_at is None:
            exp = claims_from_token(session.access_token).get("exp")
            if isinstance(exp, (int, float)):
                session = session.model_copy(update={"expires_at": int(exp)})
                self.token_store.save(session)

        if session.needs_refresh():
            if not session.refresh_token:
                self._drop_session("Stored session expired and cannot be refreshed")
                return None
            logger.info("Stored access token expired or about to expire, refreshing")
            try:
                return await self.refresh_session()
            except AuthRejection as e:
                if self.token_store.load() is None:
                    logger.warning(f"Could not restore session: {e.message}")
                    return None
                raise

        try:
            user = await self.get_user()
        except AuthRejection as e:
            if self.token_store.load() is None:
                return None
            if is_revocation(e):
                self._drop_session(f"Stored session rejected: {e.message}")
                return None
            raise
        if user != session.user:
            session = session.model_copy(update={"user": user})
            self.token_store.save(session)
        return session

    async def refresh_session(self) -> AuthSession:
        """Exchange the refresh token for a new session.

        Only a rejection that revokes the refresh token drops the local
        session; rate limiting and other transient failures keep it.

        Raises:
            AuthRejection: If there is no session to refresh, the refresh
                token was revoked, or the server refused the refresh.
            NetworkError: If the server could not be reached.
        """
        current = self.token_store.load()
        if current is None or not current.refresh_token:
            raise AuthRejection("Auth session missing", code="session_missing")

        try:
            data = await self._post(
                "/token",
                json={"refresh_token": current.refresh_token},
                params={"grant_type": "refresh_token"},
            )
        except AuthRejection as e:
            if is_revocation(e):
                self._drop_session(
                    f"Refresh token rejected, dropping session: "
                    f"status_code={e.status_code}, code={e.code}, message={e.message}"
                )
            else:
                logger.warning(
                    f"Refresh failed, keeping session: "
                    f"status_code={e.status_code}, code={e.code}, message={e.message}"
                )
            raise

        session = self._session_from(data)
        self.token_store.save(session)
        self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    def _drop_session(self, reason: str) -> None:
        logger.warning(reason)
        self.token_store.clear()
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_user(self) -> Identity:
        """Fetch the current user from the server.

        A user that no longer exists ends the session.
        """
        try:
            data = await self.client.request(
                "GET", f"{AUTH_PATH}/user", error_cls=AuthRejection
            )
        except RemoteRejection as e:
            if e.status_code == 404 or e.code == "user_not_found":
                logger.warning("Current user no longer exists, dropping session")
                self.token_store.clear()
                self._emit(AuthEvent.USER_DELETED, None)
            raise
        return Identity.model_validate(data)

    async def update_user(self, attributes: dict[str, Any]) -> Identity:
        """Update the current user (e.g. `{"password": ...}`)."""
        data = await self.client.request(
            "PUT", f"{AUTH_PATH}/user", json=attributes, error_cls=AuthRejection
        )
        user = Identity.model_validate(data)
        session = self.token_store.load()
        if session is not None:
            session = session.model_copy(update={"user": user})
            self.token_store.save(session)
        self._emit(AuthEvent.USER_UPDATED, session)
        return user

    async def reset_password_for_email(
        self, email: str, redirect_to: str | None = None
    ) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._post("/recover", json={"email": email}, params=params)
