"""Publish/subscribe registry for session events.

Contract:
    - Dispatch is synchronous and runs listeners in registration order.
    - Registering the same listener twice for an event is a no-op.
    - A listener that raises is logged and skipped; the remaining listeners
      still run and the exception never reaches the dispatcher.
"""

import logging
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    PROFILE_UPDATED = "profileUpdated"
    NEW_NOTIFICATION = "newNotification"
    SIGNED_IN = "signedIn"
    SIGNED_OUT = "signedOut"


Listener = Callable[[Any], None]


class EventRegistry:
    def __init__(self) -> None:
        self._listeners: dict[SessionEvent, list[Listener]] = {}

    def add_listener(self, event: SessionEvent | str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(SessionEvent(event), [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_listener(self, event: SessionEvent | str, listener: Listener) -> None:
        listeners = self._listeners.get(SessionEvent(event), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: SessionEvent | str) -> int:
        return len(self._listeners.get(SessionEvent(event), []))

    def dispatch(self, event: SessionEvent | str, data: Any = None) -> None:
        event = SessionEvent(event)
        # Copy so listeners may unregister themselves while being called.
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(data)
            except Exception:
                logger.exception(f"Error in {event.value} listener")
