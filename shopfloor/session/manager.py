"""Session and auth state for the signed-in user.

The SessionManager is the single source of truth for who is signed in, with
what profile and what permissions. It reconciles local state with the auth
subsystem and keeps a local cache of the profile for fast reads.

Stale async work is discarded through a session epoch: every clear and every
new sign-in advances the epoch; a profile load captures the epoch when it
starts and drops its result if the epoch has moved on by the time it
completes. This is what keeps a sign-out that races a pending sign-in load
from being undone by the load.
"""

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Any, Iterable, Mapping

from shopfloor.backend import (
    AuthApi,
    AuthEvent,
    BackendError,
    ChangeEvent,
    Database,
    RealtimeSubscriptions,
    RecordNotFound,
    Subscription,
)
from shopfloor.config.settings import (
    DEFAULT_TOKEN_REFRESH_INTERVAL,
    PRESERVED_LOCAL_KEYS,
)
from shopfloor.models import (
    AuthResult,
    AuthSession,
    Identity,
    Notification,
    Profile,
    ProfileUpdate,
    Role,
)
from shopfloor.storage import LocalStore
from .error_messages import AUTH_FAILURE_MESSAGES, AuthFailure, auth_error_message
from .events import EventRegistry, Listener, SessionEvent
from .permissions import can_manage_department, can_manage_user, has_permission
from .routing import Navigator, Page, guard_page

logger = logging.getLogger(__name__)

USER_ID_KEY = "user_id"
USER_EMAIL_KEY = "user_email"
USER_ROLE_KEY = "user_role"
USER_PROFILE_KEY = "user_profile"


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class NotAuthenticatedError(RuntimeError):
    """An operation that needs a signed-in user was called without one."""


class StaleSessionError(Exception):
    """The session changed while an operation was in flight."""


class SessionManager:
    def __init__(
        self,
        auth: AuthApi,
        database: Database,
        realtime: RealtimeSubscriptions,
        store: LocalStore,
        navigator: Navigator,
        events: EventRegistry | None = None,
        token_refresh_interval: float = DEFAULT_TOKEN_REFRESH_INTERVAL,
        preserved_keys: Iterable[str] = PRESERVED_LOCAL_KEYS,
        reset_password_url: str | None = None,
    ):
        self.auth = auth
        self.database = database
        self.realtime = realtime
        self.store = store
        self.navigator = navigator
        self.events = events or EventRegistry()
        self.token_refresh_interval = token_refresh_interval
        self.preserved_keys = tuple(preserved_keys)
        self.reset_password_url = reset_password_url

        self._user: Identity | None = None
        self._profile: Profile | None = None
        self._state = SessionState.UNAUTHENTICATED
        self._epoch = 0
        self._initialized = False
        self._unsubscribe_auth = None
        self._refresh_task: asyncio.Task | None = None
        self._auth_tasks: set[asyncio.Task] = set()

    # Getters

    @property
    def user(self) -> Identity | None:
        return self._user

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def role(self) -> str | None:
        return self._profile.role if self._profile else None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    @property
    def needs_setup(self) -> bool:
        return self._profile is not None and self._profile.needs_setup is True

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # Events

    def add_listener(self, event: SessionEvent | str, listener: Listener) -> None:
        self.events.add_listener(event, listener)

    def remove_listener(self, event: SessionEvent | str, listener: Listener) -> None:
        self.events.remove_listener(event, listener)

    # Lifecycle

    async def initialize(self) -> AuthResult:
        """Restore an existing session and start listening for auth changes.

        Safe to call more than once; only the first successful call does any
        work. A failed call (e.g. network failure while loading the profile)
        leaves the manager uninitialized so the caller may retry.
        """
        if self._initialized:
            return AuthResult.ok(profile=self._profile, user=self._user)

        try:
            session = await self.auth.get_session()
            if session is not None:
                epoch = self._begin_authentication(session.user)
                try:
                    await self._load_profile(session.user, epoch)
                except BackendError:
                    self._abandon(epoch)
                    raise
        except StaleSessionError:
            logger.info("Session changed during initialization")
        except BackendError as e:
            logger.error(f"Auth initialization error: {e.message}")
            return AuthResult.failed(auth_error_message(e))

        self._listen_for_auth_changes()
        self._initialized = True
        if self.is_authenticated:
            self._start_token_refresh()
        return AuthResult.ok(profile=self._profile, user=self._user)

    async def close(self) -> None:
        """Tear down for the owning context: no navigation, no remote calls."""
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        self._stop_token_refresh()
        for task in list(self._auth_tasks):
            task.cancel()
        self._auth_tasks.clear()
        await self.realtime.unsubscribe_all()
        self._initialized = False

    # Auth state changes

    def _listen_for_auth_changes(self) -> None:
        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.auth.on_auth_state_change(
                self._on_auth_state_change
            )

    def _on_auth_state_change(
        self, event: AuthEvent, session: AuthSession | None
    ) -> None:
        task = asyncio.get_running_loop().create_task(
            self.handle_auth_change(event, session)
        )
        self._auth_tasks.add(task)
        task.add_done_callback(self._auth_tasks.discard)

    async def handle_auth_change(
        self, event: AuthEvent, session: AuthSession | None
    ) -> None:
        """Reduce an auth lifecycle event to a profile load or a clear."""
        logger.info(f"Auth state changed: {event.value}")
        match event:
            case AuthEvent.SIGNED_IN | AuthEvent.USER_UPDATED:
                if session is None:
                    return
                await self._reload_for(event, session.user)
            case AuthEvent.SIGNED_OUT | AuthEvent.USER_DELETED:
                await self._clear_user_data()
                self.navigator.redirect_to_login()
            case AuthEvent.TOKEN_REFRESHED:
                pass

    async def _reload_for(self, event: AuthEvent, user: Identity) -> None:
        same_user = self._user is not None and self._user.id == user.id
        already_active = same_user and self._state is not SessionState.UNAUTHENTICATED
        if event is AuthEvent.SIGNED_IN and already_active:
            # Already loading or loaded, e.g. by login().
            return

        if same_user and self._state is SessionState.AUTHENTICATED:
            self._user = user
            epoch = self._epoch
        else:
            epoch = self._begin_authentication(user)

        try:
            await self._load_profile(user, epoch)
        except StaleSessionError:
            logger.info(f"Discarded profile load for user id={user.id}: session changed")
        except BackendError as e:
            logger.error(f"Error loading user profile: {e.message}")
            self._abandon(epoch)

    # Profile loading

    def _begin_authentication(self, user: Identity) -> int:
        self._epoch += 1
        self._user = user
        self._profile = None
        self._state = SessionState.AUTHENTICATING
        return self._epoch

    def _check_epoch(self, epoch: int) -> None:
        if epoch != self._epoch:
            raise StaleSessionError()

    def _abandon(self, epoch: int) -> None:
        """Give up on a sign-in whose profile could not be loaded."""
        if epoch == self._epoch and self._state is SessionState.AUTHENTICATING:
            self._user = None
            self._profile = None
            self._state = SessionState.UNAUTHENTICATED

    async def _load_profile(self, user: Identity, epoch: int) -> Profile:
        """Fetch the user's profile, creating the default one if it is missing.

        Nothing is published until the realtime channels are open, so a load
        that fails part way leaves the previous state in place.

        Raises:
            StaleSessionError: If the session changed while loading.
            BackendError: If the profile could not be fetched or created, or
                the realtime channels could not be opened.
        """
        try:
            profile = await self.database.get_profile(user.id)
        except RecordNotFound:
            self._check_epoch(epoch)
            logger.info(f"No profile for user id={user.id}, creating default")
            profile = await self.database.create_profile(Profile.default_for(user))
        self._check_epoch(epoch)

        await self._subscribe_to_user_updates(user.id, epoch)

        was_authenticated = self._state is SessionState.AUTHENTICATED
        self._profile = profile
        self._state = SessionState.AUTHENTICATED
        self._cache_profile(profile)

        if was_authenticated:
            self.events.dispatch(SessionEvent.PROFILE_UPDATED, profile)
        else:
            self.events.dispatch(SessionEvent.SIGNED_IN, profile)
        return profile

    def _cache_profile(self, profile: Profile) -> None:
        user = self._user
        self.store.set_many(
            {
                USER_ID_KEY: profile.id if user is None else user.id,
                USER_EMAIL_KEY: profile.email if user is None else user.email,
                USER_ROLE_KEY: profile.role,
                USER_PROFILE_KEY: profile.to_row(),
            }
        )

    def cached_profile(self) -> Profile | None:
        """The profile from the local cache, without a remote call."""
        row = self.store.get(USER_PROFILE_KEY)
        return Profile.model_validate(row) if row else None

    # Realtime

    async def _subscribe_to_user_updates(self, user_id: str, epoch: int) -> None:
        subscriptions = []
        try:
            subscriptions.append(
                await self.realtime.subscribe(
                    "profiles",
                    "UPDATE",
                    partial(self._on_profile_change, epoch),
                    row_filter=f"id=eq.{user_id}",
                )
            )
            subscriptions.append(
                await self.realtime.subscribe(
                    "notifications", "INSERT", partial(self._on_notification, epoch)
                )
            )
        except BackendError:
            await self._release_all(subscriptions)
            raise
        if epoch != self._epoch:
            # A sign-out raced the subscription: drop the channels just opened.
            await self._release_all(subscriptions)
            raise StaleSessionError()

    async def _release_all(self, subscriptions: list[Subscription]) -> None:
        for subscription in subscriptions:
            await self.realtime.release(subscription)

    def _on_profile_change(self, epoch: int, change: ChangeEvent) -> None:
        if epoch != self._epoch or self._user is None:
            return
        if change.new.get("id") != self._user.id:
            return
        profile = Profile.model_validate(change.new)
        self._profile = profile
        self._cache_profile(profile)
        self.events.dispatch(SessionEvent.PROFILE_UPDATED, profile)

    def _on_notification(self, epoch: int, change: ChangeEvent) -> None:
        if epoch != self._epoch or self._user is None:
            return
        notification = Notification.model_validate(change.new)
        if notification.is_for(self._user.id, self.role):
            self.events.dispatch(SessionEvent.NEW_NOTIFICATION, notification)

    # Operations

    async def login(self, email: str, password: str) -> AuthResult:
        """Sign in with email and password and load the profile.

        Never raises for expected failures; the result carries a localized
        error message instead. Starts listening for auth changes if
        `initialize()` has not, so a revoked session still signs the user out.
        """
        self._listen_for_auth_changes()
        try:
            session = await self.auth.sign_in_with_password(email.strip(), password)
        except BackendError as e:
            logger.error(f"Login error: {e.message}")
            return AuthResult.failed(auth_error_message(e))

        epoch = self._begin_authentication(session.user)
        try:
            profile = await self._load_profile(session.user, epoch)
        except StaleSessionError:
            logger.info("Login superseded by a later auth event")
            return AuthResult.failed(
                AUTH_FAILURE_MESSAGES[AuthFailure.SESSION_MISSING]
            )
        except BackendError as e:
            logger.error(f"Login error while loading profile: {e.message}")
            self._abandon(epoch)
            return AuthResult.failed(auth_error_message(e))

        self._start_token_refresh()
        return AuthResult.ok(profile=profile, user=session.user)

    async def signup(
        self, email: str, password: str, user_data: Mapping[str, Any] | None = None
    ) -> AuthResult:
        try:
            user = await self.auth.sign_up(email.strip(), password, dict(user_data or {}))
        except BackendError as e:
            logger.error(f"Signup error: {e.message}")
            return AuthResult.failed(auth_error_message(e))
        return AuthResult.ok(user=user)

    async def logout(self) -> None:
        """Sign out, clear local user state and go to the login page.

        The local teardown happens even if the server-side revoke fails.
        """
        # A refresh completing after the revoke would store a new token.
        self._stop_token_refresh()
        try:
            await self.auth.sign_out()
        except BackendError as e:
            logger.error(f"Logout error: {e.message}")
        await self._clear_user_data()
        self.navigator.redirect_to_login()

    async def update_profile(
        self, updates: ProfileUpdate | Mapping[str, Any]
    ) -> AuthResult:
        """Apply a partial update to the current user's profile.

        Raises:
            NotAuthenticatedError: If nobody is signed in.
        """
        if self._user is None or self._state is not SessionState.AUTHENTICATED:
            raise NotAuthenticatedError("No user logged in")

        patch = updates.to_patch() if isinstance(updates, ProfileUpdate) else dict(updates)
        epoch = self._epoch
        try:
            profile = await self.database.update_profile(self._user.id, patch)
        except BackendError as e:
            logger.error(f"Profile update error: {e.message}")
            return AuthResult.failed(auth_error_message(e))

        if epoch != self._epoch:
            return AuthResult.failed(AUTH_FAILURE_MESSAGES[AuthFailure.SESSION_MISSING])
        self._profile = profile
        self._cache_profile(profile)
        self.events.dispatch(SessionEvent.PROFILE_UPDATED, profile)
        return AuthResult.ok(profile=profile, user=self._user)

    async def change_password(self, new_password: str) -> AuthResult:
        if not self.is_authenticated:
            return AuthResult.failed(AUTH_FAILURE_MESSAGES[AuthFailure.SESSION_MISSING])
        try:
            await self.auth.update_user({"password": new_password})
        except BackendError as e:
            logger.error(f"Password change error: {e.message}")
            return AuthResult.failed(auth_error_message(e))
        return AuthResult.ok()

    async def reset_password(self, email: str) -> AuthResult:
        try:
            await self.auth.reset_password_for_email(
                email.strip(), redirect_to=self.reset_password_url
            )
        except BackendError as e:
            logger.error(f"Password reset error: {e.message}")
            return AuthResult.failed(auth_error_message(e))
        return AuthResult.ok()

    async def _clear_user_data(self) -> None:
        had_user = self._user is not None
        self._epoch += 1
        self._user = None
        self._profile = None
        self._state = SessionState.UNAUTHENTICATED
        self._stop_token_refresh()
        self.store.clear_user_scope(keep=self.preserved_keys)
        self.navigator.clear_scratch()
        await self.realtime.unsubscribe_all()
        if had_user:
            self.events.dispatch(SessionEvent.SIGNED_OUT, None)

    # Token refresh

    def _start_token_refresh(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(
                self._refresh_periodically()
            )

    def _stop_token_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def _refresh_periodically(self) -> None:
        while True:
            await asyncio.sleep(self.token_refresh_interval)
            try:
                await self.auth.refresh_session()
            except BackendError as e:
                logger.warning(f"Session refresh failed: {e.message}")

    # Permissions

    def has_permission(self, required_role: Role | str) -> bool:
        return has_permission(self._profile, required_role)

    def can_manage_department(self, department: str) -> bool:
        return can_manage_department(self._profile, department)

    def can_manage_user(self, target_id: str | None, target_role: Role | str | None) -> bool:
        caller_id = self._user.id if self._user is not None else None
        return can_manage_user(self._profile, caller_id, target_id, target_role)

    # Routing

    def redirect_to_dashboard(self) -> None:
        self.navigator.redirect_to_dashboard(self._profile)

    def enforce_page_access(self) -> Page | None:
        """Redirect away from the current page if the user may not view it.

        Returns:
            The page redirected to, or None if access is allowed.
        """
        target = guard_page(self.navigator.current_page, self._profile)
        if target is None:
            return None
        if target is Page.LOGIN:
            self.navigator.redirect_to_login()
        else:
            self.navigator.go_to(target)
        return target
