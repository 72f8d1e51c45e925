"""Local persisted key/value store.

Holds cached user state, the auth token and UI preferences between runs. It
is a cache only: the backend is the source of truth for everything in it.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

USER_KEY_PREFIX = "user_"


class LocalStore:
    """A JSON-file backed key/value store.

    With no path the store lives in memory only. Every write is flushed to
    disk immediately.
    """

    def __init__(self, path: Path | None = None):
        self.path = path
        self._data: dict[str, Any] = {}
        if path is not None and path.exists():
            self._data = self._read(path)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                f"Ignoring unreadable local store at {path}: "
                f"exception_type={type(e).__name__}, error={e}"
            )
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring local store at {path}: not a JSON object")
            return {}
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def set_many(self, values: dict[str, Any]) -> None:
        self._data.update(values)
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def clear(self) -> None:
        self._data.clear()
        self._flush()

    def clear_user_scope(self, keep: Iterable[str] = ()) -> list[str]:
        """Remove every user-prefixed key except those in `keep`.

        Returns:
            The keys that were removed.
        """
        keep = set(keep)
        removed = [
            key
            for key in self._data
            if key.startswith(USER_KEY_PREFIX) and key not in keep
        ]
        for key in removed:
            del self._data[key]
        if removed:
            self._flush()
        logger.debug(f"Cleared user-scoped keys: {removed}")
        return removed
