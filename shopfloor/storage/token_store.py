"""Persistence of the auth session in the local store."""

import logging

from pydantic import ValidationError

from shopfloor.models import AuthSession
from .local_store import LocalStore

logger = logging.getLogger(__name__)


class TokenStore:
    """Reads and writes the current auth session under a single storage key."""

    def __init__(self, store: LocalStore, storage_key: str):
        self.store = store
        self.storage_key = storage_key

    def load(self) -> AuthSession | None:
        raw = self.store.get(self.storage_key)
        if raw is None:
            return None
        try:
            return AuthSession.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed stored auth session: {e}")
            self.store.remove(self.storage_key)
            return None

    def save(self, session: AuthSession) -> None:
        self.store.set(self.storage_key, session.model_dump(mode="json"))

    def clear(self) -> None:
        self.store.remove(self.storage_key)

    def access_token(self) -> str | None:
        session = self.load()
        return session.access_token if session else None
