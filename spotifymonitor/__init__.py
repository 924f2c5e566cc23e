"""Spotify now-playing monitor with artwork-derived colors."""

from .config import Config
from .server.server import SpotifyMonitorServer

__version__ = "0.1.0"

__all__ = [
    "Config",
    "SpotifyMonitorServer",
    "__version__",
]
