"""Build renderable snapshots from the cached playback record."""

from __future__ import annotations

import asyncio
import logging
import time

from spotifymonitor.artwork import ArtworkResolver
from spotifymonitor.errors import ArtworkError
from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.models.snapshot import Snapshot
from spotifymonitor.palette import Palette, default_palette, palette_from_image
from spotifymonitor.util import format_duration, format_rgb

from .state import CacheEntry, StateCache

logger = logging.getLogger(__name__)


def extrapolate_progress(progress_ms: int, duration_ms: int, elapsed_ms: int) -> int:
    """
    Estimate the playback position after elapsed_ms without asking upstream.

    The result never exceeds the duration. Negative elapsed time (a clock
    stepping backwards) counts as zero.
    """
    return min(progress_ms + max(0, elapsed_ms), duration_ms)


def progress_percent(progress_ms: int, duration_ms: int) -> float:
    """Progress in percent of the duration, 0.0 for tracks without duration."""
    if duration_ms <= 0:
        return 0.0
    return progress_ms / duration_ms * 100


def build_snapshot(
    record: PlaybackRecord,
    palette: Palette,
    now_ms: int,
    wall_time: float | None = None,
) -> Snapshot:
    """
    Compute the snapshot of record at now_ms.

    Args:
        record: Cached record, stamped with its acquisition time.
        palette: Colors derived from the record's artwork.
        now_ms: Current reading of the clock that stamped the record.
        wall_time: Wall clock seconds for the snapshot timestamp, defaults to now.
    """
    progress_ms = extrapolate_progress(
        record.progress_ms, record.duration_ms, now_ms - record.acquired_at_ms
    )
    remaining_ms = max(0, record.duration_ms - progress_ms)
    percent = progress_percent(progress_ms, record.duration_ms)
    progress_color = palette.progress
    return Snapshot(
        timestamp=int(time.time() if wall_time is None else wall_time),
        playback_state=record.playing,
        track=record.track,
        album=record.album,
        artist=record.artist,
        endpoint=record.endpoint,
        progress_pct=percent,
        progress_pct_str=f"{percent:.2f}%",
        progress_ms=progress_ms,
        duration_ms=record.duration_ms,
        remaining_ms=remaining_ms,
        progress_str=format_duration(progress_ms),
        duration_str=format_duration(record.duration_ms),
        remaining_str=format_duration(remaining_ms),
        album_art_url=record.artwork_url,
        album_art_color_rgb=format_rgb(palette.dominant),
        text_color_rgb=format_rgb(palette.text),
        progress_color_rgb=format_rgb(progress_color),
        album_art_color=palette.dominant.rgb,
        text_color=palette.text.rgb,
        progress_color=progress_color.rgb,
        album_art_colors=tuple(color.rgb for color in palette.extracted),
    )


class SnapshotBuilder:
    """
    Turns the cached record into a snapshot.

    The record is copied out of the cache first; artwork resolution and color
    extraction happen afterwards, without holding the cache lock.
    """

    def __init__(
        self,
        cache: StateCache,
        resolver: ArtworkResolver | None,
        *,
        accent: bool = True,
    ) -> None:
        """
        Initialize the builder.

        Args:
            cache: Cache holding the playback record.
            resolver: Artwork resolver, None to always use the default palette.
            accent: Whether to pick the progress color from the harmonic palette.
        """
        self._cache = cache
        self._resolver = resolver
        self._accent = accent

    async def palette_for(self, record: PlaybackRecord) -> Palette:
        """Return the palette for the record's artwork, or the default palette."""
        if not record.artwork_url or self._resolver is None:
            return default_palette(accent=self._accent)
        try:
            image = await self._resolver.resolve(record.artwork_url)
        except ArtworkError as err:
            logger.warning("Using default colors, artwork unavailable: %s", err)
            return default_palette(accent=self._accent)
        palette = await asyncio.to_thread(palette_from_image, image, accent=self._accent)
        logger.debug(
            "Colors extracted for %s: dominant=%s text=%s progress=%s",
            record.artwork_url,
            palette.dominant.rgb,
            palette.text.rgb,
            palette.progress.rgb,
        )
        return palette

    async def build(self, entry: CacheEntry | None = None) -> Snapshot | None:
        """
        Build a snapshot of the cached record.

        Args:
            entry: Cache entry to build from, read from the cache when omitted.

        Returns None when no record was ever cached.
        """
        if entry is None:
            entry = self._cache.read()
        if entry is None:
            return None
        palette = await self.palette_for(entry.record)
        return build_snapshot(entry.record, palette, self._cache.clock())
