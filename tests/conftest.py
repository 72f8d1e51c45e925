import os

import pytest

os.environ.setdefault("ENV", "dev")

from shopfloor.config import env_loader  # noqa: F401, E402

from tests._factories import (  # noqa: E402
    AuthSessionFactory,
    FakeBackend,
    FakeRealtimeTransport,
    IdentityFactory,
    NotificationFactory,
    ProfileFactory,
)


class AccidentalNetworkAccessError(Exception):
    """Raised when a unit test accidentally tries to reach a real backend."""

    pass


def _raise_network_access_error(*args, **kwargs):
    """Raise an error when real network access is attempted in unit tests."""
    raise AccidentalNetworkAccessError(
        "Unit test attempted to reach the real backend! "
        "Pass an httpx.MockTransport (see tests._factories.FakeBackend) and a "
        "FakeRealtimeTransport, or mark this test as @pytest.mark.integration."
    )


@pytest.fixture(autouse=True)
def prevent_network_access_in_unit_tests(request, monkeypatch):
    """Prevent accidental network access in unit tests.

    Applies to every test not marked `integration` or `e2e`: real HTTP
    transports and the realtime websocket client fail fast with a clear error.
    """
    markers = [marker.name for marker in request.node.iter_markers()]
    if "e2e" in markers or "integration" in markers:
        yield
        return

    monkeypatch.setattr(
        "httpx.AsyncHTTPTransport.handle_async_request", _raise_network_access_error
    )
    monkeypatch.setattr(
        "shopfloor.backend.realtime.AsyncRealtimeClient", _raise_network_access_error
    )
    yield


@pytest.fixture(scope="session")
def identity_factory() -> IdentityFactory:
    return IdentityFactory()


@pytest.fixture(scope="session")
def auth_session_factory() -> AuthSessionFactory:
    return AuthSessionFactory()


@pytest.fixture(scope="session")
def profile_factory() -> ProfileFactory:
    return ProfileFactory()


@pytest.fixture(scope="session")
def notification_factory() -> NotificationFactory:
    return NotificationFactory()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_realtime() -> FakeRealtimeTransport:
    return FakeRealtimeTransport()
