"""The raw playback record held by the state cache."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlaybackRecord:
    """
    Upstream truth about the current playback, as of one successful poll.

    The state cache replaces records wholesale and never mutates them.
    """

    playing: bool
    """Whether playback is active."""
    track: str = ""
    """Name of the current track."""
    album: str = ""
    """Name of the album the track belongs to."""
    artist: str = ""
    """Name of the first credited artist."""
    artwork_url: str = ""
    """URL of the largest album image, empty if there is none."""
    progress_ms: int = 0
    """Playback position when the record was acquired."""
    duration_ms: int = 0
    """Total duration of the track, 0 if unknown."""
    endpoint: str = ""
    """API endpoint of the playback context (album, playlist, ...), if any."""
    acquired_at_ms: int = 0
    """Monotonic process clock (ms) at acquisition, stamped by the state cache."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if self.progress_ms < 0:
            raise ValueError(f"progress_ms must not be negative, got {self.progress_ms}")
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must not be negative, got {self.duration_ms}")

    @classmethod
    def idle(cls) -> PlaybackRecord:
        """Record reported when the upstream says nothing is playing."""
        return cls(playing=False)
