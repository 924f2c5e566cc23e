"""Utility functions for spotifymonitor."""

from __future__ import annotations

import time


def monotonic_ms() -> int:
    """Return the monotonic process clock in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def format_duration(ms: int) -> str:
    """
    Format a non-negative millisecond value as ``M:SS``.

    Minutes are not wrapped into hours, so 75 minutes renders as ``75:00``.
    """
    if ms < 0:
        raise ValueError(f"ms must not be negative, got {ms}")
    return f"{ms // 60000}:{(ms // 1000) % 60:02d}"


def format_rgb(color: tuple[int, ...]) -> str:
    """Format the first three channels of a color as ``"r,g,b"``."""
    return ",".join(str(channel) for channel in color[:3])
