from .role import Role, ROLE_LEVELS, role_level
from .identity import Identity, AuthSession
from .profile import Profile, ProfileUpdate
from .notification import Notification
from .responses import RemoteResponse, AuthResult


__all__ = [
    "Role",
    "ROLE_LEVELS",
    "role_level",
    "Identity",
    "AuthSession",
    "Profile",
    "ProfileUpdate",
    "Notification",
    "RemoteResponse",
    "AuthResult",
]
