"""
Inbound message fan-out.

Every subscriber gets its own queue, so one slow consumer never
reorders or drops frames for another. Subscriptions outlive reconnects.
"""

import asyncio
from typing import Optional, Union

from .exceptions import TransportError


class _ConnectionLost:
    """Queue marker for a dropped connection."""

    def __init__(self, reason: str) -> None:
        self.reason = reason


class MessageSubscription:
    """
    Async iterator over raw inbound frames.

    Yields frames in wire order. A connection loss is raised once as
    TransportError; iteration can continue afterwards with frames from
    the next connection.
    """

    def __init__(self, stream: "MessageStream") -> None:
        self._stream = stream
        self._queue: asyncio.Queue[Union[str, _ConnectionLost]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, item: Union[str, _ConnectionLost]) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def get(self) -> str:
        """
        Wait for the next inbound frame.

        Raises:
            TransportError: If the connection dropped or the subscription is closed.
        """
        if self._closed:
            raise TransportError("Subscription is closed")
        item = await self._queue.get()
        if isinstance(item, _ConnectionLost):
            raise TransportError(f"Connection lost: {item.reason}")
        return item

    def close(self) -> None:
        """Stop receiving frames."""
        if self._closed:
            return
        self._closed = True
        self._stream._remove(self)

    def __aiter__(self) -> "MessageSubscription":
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        return await self.get()

    def __enter__(self) -> "MessageSubscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MessageStream:
    """Distributes inbound frames to all live subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: list[MessageSubscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> MessageSubscription:
        """Create a new subscription starting at the next frame."""
        subscription = MessageSubscription(self)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, raw: str) -> None:
        """Deliver one inbound frame to every subscriber."""
        for subscription in list(self._subscriptions):
            subscription._put(raw)

    def connection_lost(self, reason: Optional[str] = None) -> None:
        """Signal every subscriber that the connection dropped."""
        marker = _ConnectionLost(reason or "connection closed")
        for subscription in list(self._subscriptions):
            subscription._put(marker)

    def _remove(self, subscription: MessageSubscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
