"""Real-time row change subscriptions."""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

from realtime import AsyncRealtimeClient

from .errors import BackendError, NetworkError

logger = logging.getLogger(__name__)

ChangeEventType = Literal["INSERT", "UPDATE", "DELETE", "*"]


@dataclass(frozen=True)
class ChangeEvent:
    """A row change delivered by the backend."""

    table: str
    event_type: str
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], table: str, event_type: str
    ) -> ChangeEvent:
        """Normalize a postgres-changes payload.

        Accepts both the wire shape (`{"data": {"record": ..., "old_record": ...}}`)
        and the flattened shape (`{"new": ..., "old": ...}`).
        """
        data = payload.get("data") or payload
        new = data.get("record") or data.get("new") or {}
        old = data.get("old_record") or data.get("old") or {}
        return cls(
            table=data.get("table", table),
            event_type=data.get("type") or data.get("eventType") or event_type,
            new=new,
            old=old,
        )


ChangeCallback = Callable[[ChangeEvent], None]


class RealtimeTransport(Protocol):
    """Opens and closes postgres-changes channels."""

    async def subscribe(
        self,
        table: str,
        event: ChangeEventType,
        row_filter: str | None,
        callback: ChangeCallback,
    ) -> Any: ...

    async def release(self, handle: Any) -> None: ...

    async def close(self) -> None: ...


class ChannelTransport:
    """Realtime transport over the backend's websocket channels.

    Connects lazily on the first subscription.
    """

    def __init__(self, url: str, api_key: str):
        self.url = url
        self.api_key = api_key
        self._client: AsyncRealtimeClient | None = None

    async def _connected(self) -> AsyncRealtimeClient:
        if self._client is None:
            client = AsyncRealtimeClient(self.url, self.api_key)
            await client.connect()
            self._client = client
            logger.info(f"Connected to realtime at {self.url}")
        return self._client

    async def subscribe(
        self,
        table: str,
        event: ChangeEventType,
        row_filter: str | None,
        callback: ChangeCallback,
    ) -> Any:
        client = await self._connected()
        channel = client.channel(f"{table}-changes")

        def on_change(payload: dict[str, Any]) -> None:
            callback(ChangeEvent.from_payload(payload, table, event))

        channel.on_postgres_changes(
            event, callback=on_change, table=table, schema="public", filter=row_filter
        )
        await channel.subscribe()
        return channel

    async def release(self, handle: Any) -> None:
        if self._client is not None:
            await self._client.remove_channel(handle)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


@dataclass
class Subscription:
    table: str
    event: str
    callback: ChangeCallback
    handle: Any = None
    active: bool = True

    def deliver(self, change: ChangeEvent) -> None:
        # Changes can still arrive after release while the channel closes.
        if not self.active:
            return
        try:
            self.callback(change)
        except Exception:
            logger.exception(f"Error in {self.table}-{self.event} change handler")


class RealtimeSubscriptions:
    """Registry of live subscriptions keyed by (table, event type).

    Subscribing again with the same key releases the previous subscription
    first, so handlers never accumulate.
    """

    def __init__(self, transport: RealtimeTransport):
        self.transport = transport
        self._subscriptions: dict[tuple[str, str], Subscription] = {}

    @property
    def active_keys(self) -> list[tuple[str, str]]:
        return list(self._subscriptions)

    async def subscribe(
        self,
        table: str,
        event: ChangeEventType,
        callback: ChangeCallback,
        row_filter: str | None = None,
    ) -> Subscription:
        """Open a channel for `table`/`event` changes.

        Raises:
            NetworkError: If the transport could not open the channel.
        """
        key = (table, event)
        if key in self._subscriptions:
            await self.unsubscribe(table, event)

        subscription = Subscription(table=table, event=event, callback=callback)
        try:
            subscription.handle = await self.transport.subscribe(
                table, event, row_filter, subscription.deliver
            )
        except BackendError:
            raise
        except Exception as e:
            logger.error(
                f"Realtime subscription failed: table={table}, event={event}, "
                f"exception_type={type(e).__name__}, error={e}"
            )
            raise NetworkError(f"Realtime subscription failed: {e}") from e
        self._subscriptions[key] = subscription
        logger.debug(f"Subscribed to {table}-{event} (filter={row_filter})")
        return subscription

    async def unsubscribe(self, table: str, event: str) -> None:
        subscription = self._subscriptions.pop((table, event), None)
        if subscription is None:
            return
        subscription.active = False
        await self.transport.release(subscription.handle)

    async def release(self, subscription: Subscription) -> None:
        """Release `subscription` if it is still the live one for its key."""
        key = (subscription.table, subscription.event)
        if self._subscriptions.get(key) is subscription:
            await self.unsubscribe(*key)
        else:
            subscription.active = False

    async def unsubscribe_all(self) -> None:
        """Release every subscription.

        All handlers are deactivated before any channel is released; a failing
        release is logged and the rest are still released.
        """
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.active = False
        for subscription in subscriptions:
            try:
                await self.transport.release(subscription.handle)
            except Exception:
                logger.exception(
                    f"Failed to release {subscription.table}-{subscription.event} channel"
                )
