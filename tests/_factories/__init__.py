from .profile import (
    IdentityFactory,
    AuthSessionFactory,
    ProfileFactory,
    NotificationFactory,
)
from .fakes import FakeBackend, FakeRealtimeTransport, TEST_CONFIG

__all__ = [
    "IdentityFactory",
    "AuthSessionFactory",
    "ProfileFactory",
    "NotificationFactory",
    "FakeBackend",
    "FakeRealtimeTransport",
    "TEST_CONFIG",
]
