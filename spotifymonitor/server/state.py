"""The state cache: latest playback record shared between poller and readers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import NamedTuple

from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.util import monotonic_ms

logger = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    """A cached record and the time it was acquired."""

    record: PlaybackRecord
    acquired_at_ms: int
    """Monotonic process clock (ms) at which the record was written."""


class StateCache:
    """
    Holds the most recent playback record under mutual exclusion.

    One writer (the poller) replaces the record, many readers (the broadcaster
    and HTTP handlers) copy it out. Critical sections only swap or copy a
    reference; no I/O happens while the lock is held. A threading lock is used
    so the cache can also be read from worker threads.
    """

    _lock: threading.Lock
    _entry: CacheEntry | None
    _clock: Callable[[], int]

    def __init__(self, clock: Callable[[], int] = monotonic_ms) -> None:
        """
        Initialize an empty cache.

        Args:
            clock: Millisecond clock used to stamp acquisitions. Must be monotonic.
        """
        self._lock = threading.Lock()
        self._entry = None
        self._clock = clock

    @property
    def clock(self) -> Callable[[], int]:
        """The millisecond clock stamping acquisitions."""
        return self._clock

    def write(self, record: PlaybackRecord) -> PlaybackRecord:
        """
        Replace the cached record, stamping it with the current time.

        Returns the stamped record as it is now visible to readers.
        """
        with self._lock:
            acquired_at_ms = self._clock()
            stamped = replace(record, acquired_at_ms=acquired_at_ms)
            self._entry = CacheEntry(stamped, acquired_at_ms)
        logger.debug("Cached playback record: playing=%s track=%r", stamped.playing, stamped.track)
        return stamped

    def read(self) -> CacheEntry | None:
        """Return the cached record, or None if nothing was ever written."""
        with self._lock:
            return self._entry

    @property
    def has_record(self) -> bool:
        """Whether a record was ever written."""
        return self.read() is not None
