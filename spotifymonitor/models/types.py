"""Models for enum and value types used by spotifymonitor."""

from enum import Enum
from typing import NamedTuple


class Color(NamedTuple):
    """An 8-bit RGBA color."""

    r: int
    g: int
    b: int
    a: int = 255

    @property
    def rgb(self) -> tuple[int, int, int]:
        """The color channels without alpha."""
        return (self.r, self.g, self.b)


BLACK = Color(0, 0, 0)
WHITE = Color(255, 255, 255)

# Used when a track has no artwork or the artwork cannot be resolved
DEFAULT_DOMINANT_COLOR = Color(248, 236, 235)


class PollerState(Enum):
    """Enum for Poller States."""

    IDLE = "idle"
    """Waiting for the next tick."""
    QUERYING = "querying"
    """An upstream query is in flight."""
    BACKOFF = "backoff"
    """The last query failed, waiting before the next attempt."""
    STOPPED = "stopped"
    """The poller is not running."""


class HarmonyType(Enum):
    """Hue relationships used to derive palette colors from the dominant color."""

    TRIADIC = "triadic"
    ANALOGOUS = "analogous"
    COMPLEMENTARY = "complementary"
