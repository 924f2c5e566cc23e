"""
The renderable playback snapshot.

A snapshot is computed from the cached playback record at one instant. It is
the single mapping between playback state and the JSON pushed to WebSocket
subscribers and the webhook sink.
"""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.mixins.orjson import DataClassORJSONMixin

RGBTriple = tuple[int, int, int]


@dataclass(frozen=True)
class Snapshot(DataClassORJSONMixin):
    """Fully computed playback state at one instant."""

    timestamp: int
    """Wall clock time the snapshot was built (seconds since epoch)."""
    playback_state: bool
    """Whether playback is active."""
    track: str
    album: str
    artist: str
    endpoint: str
    """API endpoint of the playback context."""
    progress_pct: float
    """Extrapolated progress in percent of the duration."""
    progress_pct_str: str
    """progress_pct with two decimals and a percent sign, e.g. "30.00%"."""
    progress_ms: int
    """Extrapolated playback position."""
    duration_ms: int
    remaining_ms: int
    progress_str: str
    """progress_ms as M:SS."""
    duration_str: str
    remaining_str: str
    album_art_url: str
    album_art_color_rgb: str
    """Dominant artwork color as "r,g,b"."""
    text_color_rgb: str
    """Text color as "r,g,b"."""
    progress_color_rgb: str
    """Progress bar color as "r,g,b"."""
    album_art_color: RGBTriple
    text_color: RGBTriple
    progress_color: RGBTriple
    album_art_colors: tuple[RGBTriple, ...] = ()
    """All colors extracted from the artwork, most frequent first."""
