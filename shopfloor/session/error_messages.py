"""Localized user-facing messages for auth failures."""

from enum import Enum

from shopfloor.backend import BackendError, NetworkError

GENERIC_ERROR_MESSAGE = "Une erreur est survenue"


class AuthFailure(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    ALREADY_REGISTERED = "already_registered"
    WEAK_PASSWORD = "weak_password"
    NETWORK = "network"
    SESSION_MISSING = "session_missing"
    RATE_LIMITED = "rate_limited"


AUTH_FAILURE_MESSAGES: dict[AuthFailure, str] = {
    AuthFailure.INVALID_CREDENTIALS: "Email ou mot de passe incorrect",
    AuthFailure.EMAIL_NOT_CONFIRMED: "Veuillez confirmer votre email avant de vous connecter",
    AuthFailure.ALREADY_REGISTERED: "Cet email est déjà utilisé",
    AuthFailure.WEAK_PASSWORD: "Le mot de passe doit contenir au moins 6 caractères",
    AuthFailure.NETWORK: "Erreur réseau. Vérifiez votre connexion",
    AuthFailure.SESSION_MISSING: "Session expirée. Veuillez vous reconnecter",
    AuthFailure.RATE_LIMITED: "Trop de tentatives. Veuillez réessayer plus tard",
}

# Raw auth server messages and error codes, across server versions.
_FAILURES_BY_MESSAGE: dict[str, AuthFailure] = {
    "Invalid login credentials": AuthFailure.INVALID_CREDENTIALS,
    "Email not confirmed": AuthFailure.EMAIL_NOT_CONFIRMED,
    "User already registered": AuthFailure.ALREADY_REGISTERED,
    "Weak password": AuthFailure.WEAK_PASSWORD,
    "Network request failed": AuthFailure.NETWORK,
    "Auth session missing": AuthFailure.SESSION_MISSING,
    "Auth session missing!": AuthFailure.SESSION_MISSING,
    "Email rate limit exceeded": AuthFailure.RATE_LIMITED,
}

_FAILURES_BY_CODE: dict[str, AuthFailure] = {
    "invalid_credentials": AuthFailure.INVALID_CREDENTIALS,
    "invalid_grant": AuthFailure.INVALID_CREDENTIALS,
    "email_not_confirmed": AuthFailure.EMAIL_NOT_CONFIRMED,
    "user_already_exists": AuthFailure.ALREADY_REGISTERED,
    "email_exists": AuthFailure.ALREADY_REGISTERED,
    "weak_password": AuthFailure.WEAK_PASSWORD,
    "session_missing": AuthFailure.SESSION_MISSING,
    "session_not_found": AuthFailure.SESSION_MISSING,
    "over_email_send_rate_limit": AuthFailure.RATE_LIMITED,
    "over_request_rate_limit": AuthFailure.RATE_LIMITED,
}


def classify_auth_error(error: Exception) -> AuthFailure | None:
    """Map an error to a known auth failure cause, or None if unknown."""
    if isinstance(error, NetworkError):
        return AuthFailure.NETWORK
    message = error.message if isinstance(error, BackendError) else str(error)
    if message in _FAILURES_BY_MESSAGE:
        return _FAILURES_BY_MESSAGE[message]
    code = error.code if isinstance(error, BackendError) else None
    # "invalid_grant" also covers revoked refresh tokens, so the message wins.
    if code is not None and code in _FAILURES_BY_CODE:
        return _FAILURES_BY_CODE[code]
    return None


def auth_error_message(error: Exception) -> str:
    """The localized message for an auth failure.

    Unknown causes fall back to the raw message, or a generic one.
    """
    failure = classify_auth_error(error)
    if failure is not None:
        return AUTH_FAILURE_MESSAGES[failure]
    message = error.message if isinstance(error, BackendError) else str(error)
    return message or GENERIC_ERROR_MESSAGE
