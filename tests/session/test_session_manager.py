import asyncio
import dataclasses
from datetime import datetime, timezone

import httpx
import pytest

from shopfloor.backend import AuthEvent, AuthRejection
from shopfloor.context import SessionContext, build_session_context
from shopfloor.models import ProfileUpdate, Role
from shopfloor.session import NotAuthenticatedError, Navigator, Page, SessionEvent, SessionState
from tests._factories import TEST_CONFIG

EMAIL = "jean.dupont@usine.test"
PASSWORD = "secret123"


def make_context(
    fake_backend, fake_realtime, page: Page = Page.INDEX, transport=None, **config_update
) -> SessionContext:
    config = dataclasses.replace(TEST_CONFIG, **config_update)
    return build_session_context(
        config,
        navigator=Navigator(page),
        http_transport=transport or fake_backend.transport(),
        realtime_transport=fake_realtime,
    )


def record_events(ctx: SessionContext) -> list[tuple[SessionEvent, object]]:
    events = []
    for event in SessionEvent:
        ctx.session.add_listener(
            event, lambda data, event=event: events.append((event, data))
        )
    return events


async def settle() -> None:
    """Let scheduled auth-event tasks run to completion."""
    for _ in range(20):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_first_login_creates_default_profile(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    events = record_events(ctx)

    result = await ctx.session.login(f"  {EMAIL} ", PASSWORD)

    assert result.success is True
    assert result.error is None
    profile = result.profile
    assert profile.id == user_id
    assert profile.role == Role.AGENT.value
    assert profile.needs_setup is True
    assert profile.full_name == "jean dupont"
    assert profile.shift == "Shift A"
    assert fake_backend.profile_inserts == 1
    assert ctx.session.state is SessionState.AUTHENTICATED
    assert ctx.session.needs_setup is True
    assert ctx.store.get("user_id") == user_id
    assert ctx.store.get("user_email") == EMAIL
    assert ctx.store.get("user_role") == "Agent"
    assert ctx.session.cached_profile() == ctx.session.profile
    assert events == [(SessionEvent.SIGNED_IN, profile)]
    await ctx.close()


@pytest.mark.asyncio
async def test_second_login_reuses_created_profile(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)

    first = await ctx.session.login(EMAIL, PASSWORD)
    await ctx.session.logout()
    second = await ctx.session.login(EMAIL, PASSWORD)

    assert second.success is True
    assert second.profile.id == first.profile.id
    assert fake_backend.profile_inserts == 1
    await ctx.close()


@pytest.mark.asyncio
async def test_login_loads_existing_profile(fake_backend, fake_realtime, profile_factory):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    fake_backend.add_profile(
        profile_factory.with_role(Role.SUPERVISOR, id=user_id).to_row()
    )
    ctx = make_context(fake_backend, fake_realtime)

    result = await ctx.session.login(EMAIL, PASSWORD)

    assert result.profile.role == Role.SUPERVISOR.value
    assert ctx.session.role == "Superviseur"
    assert fake_backend.profile_inserts == 0
    assert ctx.session.has_permission(Role.TEAM_LEAD) is True
    assert ctx.session.has_permission(Role.DIRECTOR) is False
    await ctx.close()


@pytest.mark.asyncio
async def test_login_with_bad_password_returns_localized_error(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)

    result = await ctx.session.login(EMAIL, "wrong")

    assert result.success is False
    assert result.error == "Email ou mot de passe incorrect"
    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.session.user is None
    await ctx.close()


@pytest.mark.asyncio
async def test_login_network_failure_returns_localized_error(fake_backend, fake_realtime):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    ctx = make_context(fake_backend, fake_realtime, transport=httpx.MockTransport(handler))

    result = await ctx.session.login(EMAIL, PASSWORD)

    assert result.success is False
    assert result.error == "Erreur réseau. Vérifiez votre connexion"
    await ctx.close()


@pytest.mark.asyncio
async def test_logout_clears_user_state_and_subscriptions(
    fake_backend, fake_realtime, notification_factory
):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.AGENT)
    ctx.store.set_many({"language": "fr", "theme": "dark", "user_preferences": {"x": 1}})
    await ctx.session.login(EMAIL, PASSWORD)
    assert len(fake_realtime.open_channels) == 2
    events = record_events(ctx)

    await ctx.session.logout()

    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.session.user is None
    assert ctx.session.profile is None
    assert [key for key in ctx.store.keys() if key.startswith("user_")] == []
    assert ctx.store.get("language") == "fr"
    assert ctx.store.get("theme") == "dark"
    assert ctx.config.auth_storage_key not in ctx.store
    assert fake_realtime.open_channels == []
    assert ctx.realtime.active_keys == []
    assert ctx.navigator.current_page is Page.LOGIN
    assert events == [(SessionEvent.SIGNED_OUT, None)]

    notification = notification_factory.make({"target_user_id": user_id})
    fake_realtime.emit(
        "notifications", "INSERT", notification.model_dump(mode="json"), include_released=True
    )
    assert events == [(SessionEvent.SIGNED_OUT, None)]
    await ctx.close()


@pytest.mark.asyncio
async def test_logout_clears_locally_when_revoke_fails(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    fake_backend.fail_logout = True
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.login(EMAIL, PASSWORD)

    await ctx.session.logout()

    assert ctx.session.is_authenticated is False
    assert ctx.store.get("user_profile") is None
    assert ctx.navigator.current_page is Page.LOGIN
    await ctx.close()


@pytest.mark.asyncio
async def test_sign_out_during_pending_sign_in_load_wins(
    fake_backend, fake_realtime, profile_factory
):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    fake_backend.add_profile(profile_factory.make({"id": user_id}).to_row())
    ctx = make_context(fake_backend, fake_realtime)
    auth_session = await ctx.auth.sign_in_with_password(EMAIL, PASSWORD)
    events = record_events(ctx)
    fake_backend.profile_gate = asyncio.Event()

    sign_in = asyncio.create_task(
        ctx.session.handle_auth_change(AuthEvent.SIGNED_IN, auth_session)
    )
    await asyncio.wait_for(fake_backend.profile_requested.wait(), timeout=1)
    assert ctx.session.state is SessionState.AUTHENTICATING

    await ctx.session.handle_auth_change(AuthEvent.SIGNED_OUT, None)
    fake_backend.profile_gate.set()
    await sign_in

    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.session.profile is None
    assert ctx.session.user is None
    assert ctx.store.get("user_profile") is None
    assert ctx.store.get("user_id") is None
    assert fake_realtime.open_channels == []
    assert SessionEvent.SIGNED_IN not in [event for event, _ in events]
    await ctx.close()


@pytest.mark.asyncio
async def test_sign_out_during_pending_create_skips_create(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    auth_session = await ctx.auth.sign_in_with_password(EMAIL, PASSWORD)
    fake_backend.profile_gate = asyncio.Event()

    sign_in = asyncio.create_task(
        ctx.session.handle_auth_change(AuthEvent.SIGNED_IN, auth_session)
    )
    await asyncio.wait_for(fake_backend.profile_requested.wait(), timeout=1)
    await ctx.session.handle_auth_change(AuthEvent.SIGNED_OUT, None)
    fake_backend.profile_gate.set()
    await sign_in

    assert fake_backend.profile_inserts == 0
    assert ctx.session.state is SessionState.UNAUTHENTICATED
    await ctx.close()


@pytest.mark.asyncio
async def test_update_profile_round_trip(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.login(EMAIL, PASSWORD)
    events = record_events(ctx)

    result = await ctx.session.update_profile(
        ProfileUpdate(shift="Shift B", needs_setup=False)
    )

    assert result.success is True
    assert result.profile.shift == "Shift B"
    assert ctx.session.needs_setup is False
    assert ctx.store.get("user_profile")["shift"] == "Shift B"
    assert events == [(SessionEvent.PROFILE_UPDATED, result.profile)]

    reloaded = await ctx.database.get_profile(user_id)
    assert reloaded.shift == "Shift B"
    assert reloaded.needs_setup is False
    await ctx.close()


@pytest.mark.asyncio
async def test_update_profile_accepts_mapping(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.login(EMAIL, PASSWORD)

    await ctx.session.update_profile({"department": "Assemblage"})

    assert (await ctx.database.get_profile(user_id)).department == "Assemblage"
    await ctx.close()


@pytest.mark.asyncio
async def test_update_profile_requires_authentication(fake_backend, fake_realtime):
    ctx = make_context(fake_backend, fake_realtime)
    with pytest.raises(NotAuthenticatedError):
        await ctx.session.update_profile({"shift": "Shift B"})
    await ctx.close()


@pytest.mark.asyncio
async def test_initialize_restores_stored_session(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.auth.sign_in_with_password(EMAIL, PASSWORD)

    result = await ctx.session.initialize()
    request_count = len(fake_backend.requests)
    again = await ctx.session.initialize()

    assert result.success is True
    assert result.profile.id == user_id
    assert ctx.session.is_initialized is True
    assert ctx.session.is_authenticated is True
    assert again.profile == result.profile
    assert len(fake_backend.requests) == request_count
    await ctx.close()


@pytest.mark.asyncio
async def test_initialize_without_session(fake_backend, fake_realtime):
    ctx = make_context(fake_backend, fake_realtime)

    result = await ctx.session.initialize()

    assert result.success is True
    assert result.profile is None
    assert ctx.session.is_initialized is True
    assert ctx.session.is_authenticated is False
    assert fake_backend.requests == []
    await ctx.close()


@pytest.mark.asyncio
async def test_initialize_network_failure_can_be_retried(
    fake_backend, fake_realtime, auth_session_factory
):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    ctx = make_context(fake_backend, fake_realtime, transport=httpx.MockTransport(handler))
    expired = int(datetime.now(timezone.utc).timestamp()) - 60
    ctx.auth.token_store.save(auth_session_factory.make({"expires_at": expired}))

    result = await ctx.session.initialize()

    assert result.success is False
    assert result.error == "Erreur réseau. Vérifiez votre connexion"
    assert ctx.session.is_initialized is False
    await ctx.close()


@pytest.mark.asyncio
async def test_login_after_initialize_loads_profile_once(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.initialize()
    events = record_events(ctx)

    await ctx.session.login(EMAIL, PASSWORD)
    await settle()

    profile_reads = [
        r for r in fake_backend.requests
        if r.url.path == "/rest/v1/profiles" and r.method == "GET"
    ]
    assert len(profile_reads) == 1
    assert [event for event, _ in events] == [SessionEvent.SIGNED_IN]
    await ctx.close()


@pytest.mark.asyncio
async def test_revoked_session_signs_out(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.AGENT)
    await ctx.session.initialize()
    await ctx.session.login(EMAIL, PASSWORD)
    await settle()
    fake_backend.refresh_tokens.clear()

    with pytest.raises(AuthRejection):
        await ctx.auth.refresh_session()
    await settle()

    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.navigator.current_page is Page.LOGIN
    assert fake_realtime.open_channels == []
    await ctx.close()


@pytest.mark.asyncio
async def test_profile_change_pushed_by_backend(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    result = await ctx.session.login(EMAIL, PASSWORD)
    events = record_events(ctx)
    channel = next(c for c in fake_realtime.open_channels if c.table == "profiles")
    assert channel.row_filter == f"id=eq.{user_id}"

    row = {**result.profile.to_row(), "role": Role.TEAM_LEAD.value, "needs_setup": False}
    fake_realtime.emit("profiles", "UPDATE", row)

    assert ctx.session.role == "Chef d'équipe"
    assert ctx.store.get("user_role") == "Chef d'équipe"
    assert [event for event, _ in events] == [SessionEvent.PROFILE_UPDATED]
    await ctx.close()


@pytest.mark.asyncio
async def test_notifications_for_user_or_role_are_forwarded(
    fake_backend, fake_realtime, notification_factory
):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.login(EMAIL, PASSWORD)
    received = []
    ctx.session.add_listener(SessionEvent.NEW_NOTIFICATION, received.append)

    for update in (
        {"id": 1, "target_user_id": user_id},
        {"id": 2, "target_user_id": "someone-else"},
        {"id": 3, "target_user_id": None, "target_role": "Agent"},
        {"id": 4, "target_user_id": None, "target_role": "Directeur"},
    ):
        notification = notification_factory.make(update)
        fake_realtime.emit("notifications", "INSERT", notification.model_dump(mode="json"))

    assert [n.id for n in received] == [1, 3]
    await ctx.close()


@pytest.mark.asyncio
async def test_token_refresh_runs_until_logout(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, token_refresh_interval=0.01)

    def refresh_count() -> int:
        return sum(
            1 for r in fake_backend.requests
            if r.url.params.get("grant_type") == "refresh_token"
        )

    await ctx.session.login(EMAIL, PASSWORD)
    await asyncio.sleep(0.05)
    assert refresh_count() >= 1

    await ctx.session.logout()
    after_logout = refresh_count()
    await asyncio.sleep(0.05)
    assert refresh_count() == after_logout
    await ctx.close()


@pytest.mark.asyncio
async def test_token_refresh_failure_is_not_fatal(fake_backend, fake_realtime):
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("grant_type") == "refresh_token":
            calls.append(request)
            raise httpx.ConnectError("offline", request=request)
        return await fake_backend.handler(request)

    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(
        fake_backend,
        fake_realtime,
        transport=httpx.MockTransport(handler),
        token_refresh_interval=0.01,
    )
    await ctx.session.login(EMAIL, PASSWORD)
    await asyncio.sleep(0.1)

    assert len(calls) >= 2
    assert ctx.session.is_authenticated is True
    await ctx.close()


@pytest.mark.asyncio
async def test_malformed_refresh_response_is_not_fatal(fake_backend, fake_realtime):
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("grant_type") == "refresh_token":
            calls.append(request)
            return httpx.Response(200, json={"access_token": "missing-user"})
        return await fake_backend.handler(request)

    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(
        fake_backend,
        fake_realtime,
        transport=httpx.MockTransport(handler),
        token_refresh_interval=0.01,
    )
    await ctx.session.login(EMAIL, PASSWORD)
    await asyncio.sleep(0.1)

    assert len(calls) >= 2
    assert ctx.session.is_authenticated is True
    await ctx.close()


@pytest.mark.asyncio
async def test_rate_limited_refresh_keeps_user_signed_in(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(
        fake_backend, fake_realtime, page=Page.AGENT, token_refresh_interval=0.01
    )
    await ctx.session.initialize()
    await ctx.session.login(EMAIL, PASSWORD)
    fake_backend.refresh_failure = (
        429,
        {"error_code": "over_request_rate_limit", "msg": "Request rate limit reached"},
    )

    await asyncio.sleep(0.05)
    await settle()

    refreshes = [
        r for r in fake_backend.requests
        if r.url.params.get("grant_type") == "refresh_token"
    ]
    assert len(refreshes) >= 2
    assert ctx.session.is_authenticated is True
    assert ctx.auth.token_store.load() is not None
    assert ctx.navigator.current_page is Page.AGENT
    await ctx.close()


@pytest.mark.asyncio
async def test_revoked_refresh_signs_out_without_initialize(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(
        fake_backend, fake_realtime, page=Page.AGENT, token_refresh_interval=0.01
    )
    await ctx.session.login(EMAIL, PASSWORD)
    fake_backend.refresh_tokens.clear()

    await asyncio.sleep(0.05)
    await settle()

    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.auth.token_store.load() is None
    assert ctx.navigator.current_page is Page.LOGIN
    assert fake_realtime.open_channels == []
    await ctx.close()


@pytest.mark.asyncio
async def test_login_realtime_failure_returns_localized_error(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    fake_realtime.fail_subscribe = True
    ctx = make_context(fake_backend, fake_realtime)
    events = record_events(ctx)

    result = await ctx.session.login(EMAIL, PASSWORD)
    await settle()

    assert result.success is False
    assert result.error == "Erreur réseau. Vérifiez votre connexion"
    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.session.profile is None
    assert ctx.store.get("user_profile") is None
    assert ctx.realtime.active_keys == []
    assert events == []
    await ctx.close()


@pytest.mark.asyncio
async def test_initialize_realtime_failure_can_be_retried(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.auth.sign_in_with_password(EMAIL, PASSWORD)
    fake_realtime.fail_subscribe = True

    failed = await ctx.session.initialize()

    assert failed.success is False
    assert failed.error == "Erreur réseau. Vérifiez votre connexion"
    assert ctx.session.is_initialized is False
    assert ctx.session.state is SessionState.UNAUTHENTICATED

    fake_realtime.fail_subscribe = False
    restored = await ctx.session.initialize()

    assert restored.success is True
    assert ctx.session.is_authenticated is True
    assert len(fake_realtime.open_channels) == 2
    await ctx.close()


@pytest.mark.asyncio
async def test_initialize_for_deleted_user_is_unauthenticated(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.AGENT)
    await ctx.auth.sign_in_with_password(EMAIL, PASSWORD)
    del fake_backend.users[EMAIL]

    result = await ctx.session.initialize()

    assert result.success is True
    assert result.profile is None
    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.session.user is None
    assert ctx.config.auth_storage_key not in ctx.store
    assert fake_realtime.open_channels == []
    await ctx.close()


@pytest.mark.asyncio
async def test_deleted_user_is_signed_out(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.AGENT)
    await ctx.session.login(EMAIL, PASSWORD)
    events = record_events(ctx)
    del fake_backend.users[EMAIL]

    await ctx.session.initialize()
    await settle()

    assert ctx.session.state is SessionState.UNAUTHENTICATED
    assert ctx.navigator.current_page is Page.LOGIN
    assert fake_realtime.open_channels == []
    assert events == [(SessionEvent.SIGNED_OUT, None)]
    await ctx.close()


@pytest.mark.asyncio
async def test_signup(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)

    created = await ctx.session.signup("nouveau@usine.test", PASSWORD, {"full_name": "N"})
    duplicate = await ctx.session.signup(EMAIL, PASSWORD)

    assert created.success is True
    assert created.user.email == "nouveau@usine.test"
    assert duplicate.success is False
    assert duplicate.error == "Cet email est déjà utilisé"
    await ctx.close()


@pytest.mark.asyncio
async def test_change_password(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)

    anonymous = await ctx.session.change_password("nouveau123")
    await ctx.session.login(EMAIL, PASSWORD)
    changed = await ctx.session.change_password("nouveau123")

    assert anonymous.success is False
    assert anonymous.error == "Session expirée. Veuillez vous reconnecter"
    assert changed.success is True
    assert fake_backend.users[EMAIL]["password"] == "nouveau123"
    await ctx.close()


@pytest.mark.asyncio
async def test_reset_password_redirects_to_reset_page(fake_backend, fake_realtime):
    ctx = make_context(
        fake_backend, fake_realtime, public_app_base_url="https://app.usine.test/"
    )

    result = await ctx.session.reset_password(f" {EMAIL}")

    assert result.success is True
    assert fake_backend.recover_requests == [
        (EMAIL, "https://app.usine.test/reset-password.html")
    ]
    await ctx.close()


@pytest.mark.asyncio
async def test_enforce_page_access(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.DIRECTEUR)

    assert ctx.session.enforce_page_access() is Page.LOGIN
    assert ctx.navigator.pop_return_to() == "/directeur.html"

    await ctx.session.login(EMAIL, PASSWORD)
    await ctx.session.update_profile({"needs_setup": False})
    ctx.navigator.go_to(Page.DIRECTEUR)

    assert ctx.session.enforce_page_access() is Page.AGENT
    assert ctx.navigator.current_page is Page.AGENT
    assert ctx.session.enforce_page_access() is None
    await ctx.close()


@pytest.mark.asyncio
async def test_can_manage_user_uses_current_identity(fake_backend, fake_realtime):
    user_id = fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime)
    await ctx.session.login(EMAIL, PASSWORD)
    await ctx.session.update_profile(
        {"role": Role.SUPERVISOR.value, "supervised_departments": ["INR"]}
    )

    assert ctx.session.can_manage_user(user_id, Role.AGENT) is False
    assert ctx.session.can_manage_user("user-99", Role.AGENT) is True
    assert ctx.session.can_manage_department("INR") is True
    assert ctx.session.can_manage_department("Peinture") is False
    await ctx.close()


@pytest.mark.asyncio
async def test_close_releases_without_navigating(fake_backend, fake_realtime):
    fake_backend.add_user(EMAIL, PASSWORD)
    ctx = make_context(fake_backend, fake_realtime, page=Page.AGENT)
    await ctx.session.initialize()
    await ctx.session.login(EMAIL, PASSWORD)

    await ctx.close()

    assert fake_realtime.open_channels == []
    assert fake_realtime.closed is True
    assert ctx.navigator.current_page is Page.AGENT
    assert ctx.session.is_initialized is False
