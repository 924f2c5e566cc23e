"""Periodically query the playback source and refresh the state cache."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from spotifymonitor.errors import UpstreamQueryFailed
from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.models.types import PollerState

from .spotify import PlaybackSource
from .state import StateCache

logger = logging.getLogger(__name__)


class Poller:
    """
    Keeps the state cache fresh.

    Every interval the upstream is queried. A successful answer replaces the
    cached record; a failure leaves the previous record visible to readers and
    delays the next query by the backoff.
    """

    _source: PlaybackSource
    _cache: StateCache
    _interval: float
    _backoff: float
    _state: PollerState
    _stop_event: asyncio.Event

    def __init__(
        self,
        source: PlaybackSource,
        cache: StateCache,
        *,
        interval: float = 5.0,
        backoff: float = 5.0,
    ) -> None:
        """
        Initialize the poller.

        Args:
            source: Upstream to query.
            cache: Cache receiving the records.
            interval: Seconds between successful queries.
            backoff: Seconds to wait after a failed query.
        """
        self._source = source
        self._cache = cache
        self._interval = interval
        self._backoff = backoff
        self._state = PollerState.STOPPED
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> PollerState:
        """Current state of the polling loop."""
        return self._state

    def _set_state(self, state: PollerState) -> None:
        if state is not self._state:
            logger.debug("Poller state %s -> %s", self._state.value, state.value)
            self._state = state

    async def poll_once(self) -> float:
        """
        Query the upstream once and update the cache on success.

        Returns the number of seconds to wait before the next query.
        """
        self._set_state(PollerState.QUERYING)
        try:
            record = await self._source.get_current_playback()
        except UpstreamQueryFailed as err:
            delay = max(self._backoff, err.retry_after or 0.0)
            logger.warning("Error getting playback state: %s (retrying in %.1fs)", err, delay)
            self._set_state(PollerState.BACKOFF)
            return delay
        except Exception:
            logger.exception("Unexpected error getting playback state")
            self._set_state(PollerState.BACKOFF)
            return self._backoff

        if record is None:
            record = PlaybackRecord.idle()
        self._cache.write(record)
        self._set_state(PollerState.IDLE)
        return self._interval

    async def run(self) -> None:
        """Poll until stop() is called."""
        self._stop_event.clear()
        self._set_state(PollerState.IDLE)
        logger.info("Poller started (interval %.1fs, backoff %.1fs)", self._interval, self._backoff)
        try:
            while not self._stop_event.is_set():
                delay = await self.poll_once()
                with suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                if self._state is PollerState.BACKOFF:
                    self._set_state(PollerState.IDLE)
        finally:
            self._set_state(PollerState.STOPPED)
            logger.info("Poller stopped")

    def stop(self) -> None:
        """Ask the polling loop to end after the current query."""
        self._stop_event.set()
