"""Public interface for the monitor server package."""

from .broadcaster import Broadcaster, serialize_snapshot
from .poller import Poller
from .server import SpotifyMonitorServer
from .snapshot import SnapshotBuilder, build_snapshot, extrapolate_progress
from .spotify import PlaybackSource, SpotifyPlaybackSource, static_token_provider
from .state import CacheEntry, StateCache
from .subscribers import Subscriber, SubscriberRegistry
from .webhook import WebhookSink

__all__ = [
    "Broadcaster",
    "CacheEntry",
    "PlaybackSource",
    "Poller",
    "SnapshotBuilder",
    "SpotifyMonitorServer",
    "SpotifyPlaybackSource",
    "StateCache",
    "Subscriber",
    "SubscriberRegistry",
    "WebhookSink",
    "build_snapshot",
    "extrapolate_progress",
    "serialize_snapshot",
    "static_token_provider",
]
