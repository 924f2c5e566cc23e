"""HTML rendering of the now-playing page."""

from __future__ import annotations

from functools import cache

from jinja2 import Environment, PackageLoader

from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.models.snapshot import Snapshot
from spotifymonitor.palette import default_palette

from .snapshot import build_snapshot

TEMPLATE_NAME = "player.html"
IDLE_TITLE = "Nothing playing"
PLAYING_TITLE = "Now playing"


@cache
def _environment() -> Environment:
    return Environment(loader=PackageLoader("spotifymonitor"), autoescape=True)


def render_player(snapshot: Snapshot, ws_url: str) -> str:
    """Render the player page for a snapshot."""
    title = (snapshot.track or PLAYING_TITLE) if snapshot.playback_state else IDLE_TITLE
    template = _environment().get_template(TEMPLATE_NAME)
    return template.render(title=title, snapshot=snapshot, ws_url=ws_url)


def render_placeholder(ws_url: str, *, accent: bool = True) -> str:
    """Render the player page before any playback state is known."""
    snapshot = build_snapshot(
        PlaybackRecord.idle(), default_palette(accent=accent), now_ms=0, wall_time=0
    )
    return render_player(snapshot, ws_url)
