"""Normalized failures raised by the backend facade."""

from enum import Enum

# PostgREST code for "single row requested, zero rows returned".
NO_ROWS_CODE = "PGRST116"


class ErrorKind(str, Enum):
    NETWORK = "network"
    REJECTED = "rejected"
    AUTH = "auth"
    NOT_FOUND = "not_found"


class BackendError(Exception):
    """A failed call to the backend.

    Attributes:
        kind: What kind of failure this is.
        message: The backend's message, or an HTTP-status-derived fallback.
        status_code: HTTP status, if a response was received.
        code: Backend error code (e.g. "PGRST116", "invalid_credentials").
    """

    kind = ErrorKind.REJECTED

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code}, code={self.code!r})"
        )


class NetworkError(BackendError):
    """No response was received."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str = "Network request failed"):
        super().__init__(message)


class RemoteRejection(BackendError):
    """The backend answered with a non-2xx status."""

    kind = ErrorKind.REJECTED


class AuthRejection(RemoteRejection):
    """The auth subsystem refused the operation."""

    kind = ErrorKind.AUTH


class RecordNotFound(RemoteRejection):
    """A single-row fetch matched no row."""

    kind = ErrorKind.NOT_FOUND
