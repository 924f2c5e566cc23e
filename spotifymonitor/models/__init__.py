"""Models for spotifymonitor."""

from __future__ import annotations

__all__ = [
    "BLACK",
    "DEFAULT_DOMINANT_COLOR",
    "WHITE",
    "Color",
    "CurrentlyPlaying",
    "HarmonyType",
    "PlaybackRecord",
    "PollerState",
    "RGBTriple",
    "Snapshot",
    "playback",
    "snapshot",
    "spotify",
    "types",
]

from . import playback, snapshot, spotify, types
from .playback import PlaybackRecord
from .snapshot import RGBTriple, Snapshot
from .spotify import CurrentlyPlaying
from .types import BLACK, DEFAULT_DOMINANT_COLOR, WHITE, Color, HarmonyType, PollerState
