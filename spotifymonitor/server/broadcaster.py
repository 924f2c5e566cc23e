"""Push fresh snapshots to subscribers and the webhook while music plays."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from spotifymonitor.errors import (
    SerializationFailed,
    SubscriberDeliveryFailed,
    WebhookDeliveryFailed,
)
from spotifymonitor.models.snapshot import Snapshot

from .snapshot import SnapshotBuilder
from .state import StateCache
from .subscribers import Subscriber, SubscriberRegistry
from .webhook import WebhookSink

logger = logging.getLogger(__name__)


def serialize_snapshot(snapshot: Snapshot) -> str:
    """
    Serialize a snapshot to JSON.

    Raises:
        SerializationFailed: If the snapshot cannot be serialized.
    """
    try:
        return snapshot.to_json()
    except (TypeError, ValueError) as err:
        raise SerializationFailed(f"Cannot serialize snapshot: {err}") from err


class Broadcaster:
    """
    Delivers one snapshot per tick while the cached record is playing.

    Delivery is best effort: a subscriber that fails once is dropped. The
    webhook is posted in the background so it never holds back subscribers;
    a failing webhook is only logged.
    """

    _cache: StateCache
    _builder: SnapshotBuilder
    _registry: SubscriberRegistry
    _webhook: WebhookSink | None
    _interval: float
    _stop_event: asyncio.Event
    _reports: set[asyncio.Task[None]]
    """Webhook deliveries in flight, at most one."""

    def __init__(
        self,
        cache: StateCache,
        builder: SnapshotBuilder,
        registry: SubscriberRegistry,
        webhook: WebhookSink | None = None,
        *,
        interval: float = 1.0,
    ) -> None:
        """
        Initialize the broadcaster.

        Args:
            cache: Cache holding the playback record.
            builder: Builder turning the record into a snapshot.
            registry: Subscribers to push to.
            webhook: Optional webhook receiving the same snapshots.
            interval: Seconds between ticks.
        """
        self._cache = cache
        self._builder = builder
        self._registry = registry
        self._webhook = webhook
        self._interval = interval
        self._stop_event = asyncio.Event()
        self._reports = set()

    async def tick(self) -> Snapshot | None:
        """
        Run one broadcast cycle.

        Returns the delivered snapshot, or None if nothing was delivered.
        """
        entry = self._cache.read()
        if entry is None or not entry.record.playing:
            return None

        snapshot = await self._builder.build(entry)
        if snapshot is None:
            return None
        try:
            payload = serialize_snapshot(snapshot)
        except SerializationFailed as err:
            logger.error("Skipping broadcast: %s", err)
            return None

        if self._webhook is not None:
            self._schedule_report(self._webhook, payload)
        deliveries = [self._deliver(subscriber, payload) for subscriber in self._registry]
        if deliveries:
            await asyncio.gather(*deliveries)
        return snapshot

    async def _deliver(self, subscriber: Subscriber, payload: str) -> None:
        """Send payload to one subscriber, dropping it on failure."""
        try:
            await subscriber.send(payload)
        except SubscriberDeliveryFailed as err:
            logger.warning("Error sending message to subscriber: %s", err)
            await self.drop(subscriber)

    async def drop(self, subscriber: Subscriber) -> bool:
        """
        Remove a subscriber and close its connection.

        Only the call that removes the subscriber closes it; returns whether
        this call did.
        """
        if not self._registry.remove(subscriber):
            return False
        await subscriber.close()
        return True

    def _schedule_report(self, webhook: WebhookSink, payload: str) -> None:
        """Start a webhook delivery in the background unless one is still running."""
        if self._reports:
            logger.debug("Previous webhook delivery still running, skipping this tick")
            return
        task = asyncio.get_running_loop().create_task(self._report(webhook, payload))
        self._reports.add(task)
        task.add_done_callback(self._reports.discard)

    async def _report(self, webhook: WebhookSink, payload: str) -> None:
        try:
            await webhook.deliver(payload)
        except WebhookDeliveryFailed as err:
            logger.warning("Error sending POST request: %s", err)

    async def run(self) -> None:
        """Broadcast every interval until stop() is called."""
        self._stop_event.clear()
        logger.info("Broadcaster started (interval %.1fs)", self._interval)
        try:
            while not self._stop_event.is_set():
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Unexpected error during broadcast")
                with suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
        finally:
            logger.info("Broadcaster stopped")

    def stop(self) -> None:
        """Ask the broadcast loop to end after the current tick."""
        self._stop_event.set()

    @property
    def reporting(self) -> bool:
        """Whether a webhook delivery is in flight."""
        return bool(self._reports)

    async def close(self) -> None:
        """Cancel webhook deliveries still in flight."""
        reports = list(self._reports)
        for task in reports:
            task.cancel()
        if reports:
            await asyncio.gather(*reports, return_exceptions=True)
