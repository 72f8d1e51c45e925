"""Facade over the backend-as-a-service: auth, tables, edge functions, realtime."""

from .client import BackendClient
from .auth import AuthApi, AuthEvent, claims_from_token, is_revocation
from .database import Database, Table
from .functions import Functions, EDGE_FUNCTIONS
from .realtime import (
    ChangeEvent,
    ChannelTransport,
    RealtimeSubscriptions,
    RealtimeTransport,
    Subscription,
)
from .errors import (
    BackendError,
    ErrorKind,
    NetworkError,
    RemoteRejection,
    AuthRejection,
    RecordNotFound,
)

__all__ = [
    "BackendClient",
    "AuthApi",
    "AuthEvent",
    "claims_from_token",
    "is_revocation",
    "Database",
    "Table",
    "Functions",
    "EDGE_FUNCTIONS",
    "ChangeEvent",
    "ChannelTransport",
    "RealtimeSubscriptions",
    "RealtimeTransport",
    "Subscription",
    "BackendError",
    "ErrorKind",
    "NetworkError",
    "RemoteRejection",
    "AuthRejection",
    "RecordNotFound",
]
