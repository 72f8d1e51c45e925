from .local_store import LocalStore, USER_KEY_PREFIX
from .token_store import TokenStore

__all__ = ["LocalStore", "TokenStore", "USER_KEY_PREFIX"]
