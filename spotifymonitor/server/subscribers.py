"""Push subscribers and the registry tracking them."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterator

from aiohttp import web

from spotifymonitor.errors import SubscriberDeliveryFailed

logger = logging.getLogger(__name__)


class Subscriber:
    """A WebSocket connection receiving snapshots."""

    _websocket: web.WebSocketResponse
    _subscriber_id: str
    _logger: logging.Logger

    def __init__(self, websocket: web.WebSocketResponse, remote: str | None = None) -> None:
        """
        Initialize a subscriber for a prepared WebSocket.

        Args:
            websocket: The server side of the WebSocket connection.
            remote: Remote address, for logging only.
        """
        self._websocket = websocket
        self._subscriber_id = uuid.uuid4().hex
        self._remote = remote
        self._logger = logger.getChild(self._subscriber_id[:8])

    @property
    def subscriber_id(self) -> str:
        """Unique identifier of this connection."""
        return self._subscriber_id

    @property
    def remote(self) -> str | None:
        """Remote address of the connection, if known."""
        return self._remote

    @property
    def closed(self) -> bool:
        """Whether the underlying WebSocket is closed."""
        return self._websocket.closed

    async def send(self, payload: str) -> None:
        """
        Send one serialized snapshot.

        Raises:
            SubscriberDeliveryFailed: If the message could not be sent.
        """
        if self._websocket.closed:
            raise SubscriberDeliveryFailed(f"Subscriber {self._subscriber_id} is closed")
        try:
            await self._websocket.send_str(payload)
        except (ConnectionError, RuntimeError) as err:
            raise SubscriberDeliveryFailed(
                f"Cannot send to subscriber {self._subscriber_id}: {err}"
            ) from err

    async def close(self) -> None:
        """Close the WebSocket, if still open."""
        if self._websocket.closed:
            return
        try:
            await self._websocket.close()
        except (ConnectionError, RuntimeError) as err:
            self._logger.debug("Error closing websocket: %s", err)

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"Subscriber(id={self._subscriber_id!r}, remote={self._remote!r})"


class SubscriberRegistry:
    """
    The set of connected push subscribers.

    Safe to add, remove and iterate from concurrent tasks and threads.
    Iteration works on a copy, so subscribers can be removed while a
    broadcast is walking over them.
    """

    _lock: threading.Lock
    _subscribers: dict[str, Subscriber]

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._lock = threading.Lock()
        self._subscribers = {}

    def add(self, subscriber: Subscriber) -> None:
        """Register a newly connected subscriber."""
        with self._lock:
            self._subscribers[subscriber.subscriber_id] = subscriber
            count = len(self._subscribers)
        logger.info("Subscriber %s connected (%d connected)", subscriber.subscriber_id, count)

    def remove(self, subscriber: Subscriber) -> bool:
        """
        Unregister a subscriber.

        Returns True only for the call that actually removed it, so callers
        racing to drop the same subscriber can tell who owns the cleanup.
        """
        with self._lock:
            removed = self._subscribers.pop(subscriber.subscriber_id, None) is not None
            count = len(self._subscribers)
        if removed:
            logger.info(
                "Subscriber %s removed (%d connected)", subscriber.subscriber_id, count
            )
        return removed

    def snapshot(self) -> list[Subscriber]:
        """Return the currently registered subscribers."""
        with self._lock:
            return list(self._subscribers.values())

    def __contains__(self, subscriber: object) -> bool:
        """Whether subscriber is registered."""
        if not isinstance(subscriber, Subscriber):
            return False
        with self._lock:
            return subscriber.subscriber_id in self._subscribers

    def __len__(self) -> int:
        """Number of registered subscribers."""
        with self._lock:
            return len(self._subscribers)

    def __iter__(self) -> Iterator[Subscriber]:
        """Iterate over a copy of the registered subscribers."""
        return iter(self.snapshot())
