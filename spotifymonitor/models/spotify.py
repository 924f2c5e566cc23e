"""
Response models for the Spotify Web API "currently playing" endpoint.

Only the fields the monitor reports are modelled; everything else in the
response is ignored on deserialization.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from mashumaro.mixins.orjson import DataClassORJSONMixin

from .playback import PlaybackRecord


@dataclass
class SpotifyImage(DataClassORJSONMixin):
    """An album image in one size."""

    url: str
    height: int | None = None
    width: int | None = None


@dataclass
class SpotifyArtist(DataClassORJSONMixin):
    """A simplified artist object."""

    name: str = ""


@dataclass
class SpotifyAlbum(DataClassORJSONMixin):
    """A simplified album object."""

    name: str = ""
    images: list[SpotifyImage] = field(default_factory=list)
    """Album images, widest first."""


@dataclass
class SpotifyItem(DataClassORJSONMixin):
    """The currently playing track (or episode)."""

    name: str = ""
    duration_ms: int = 0
    album: SpotifyAlbum | None = None
    """Missing for podcast episodes."""
    artists: list[SpotifyArtist] = field(default_factory=list)


@dataclass
class SpotifyContext(DataClassORJSONMixin):
    """The context (album, playlist, artist) playback was started from."""

    href: str | None = None
    """Web API endpoint of the context."""
    type: str | None = None
    uri: str | None = None


@dataclass
class CurrentlyPlaying(DataClassORJSONMixin):
    """Response body of GET /v1/me/player/currently-playing."""

    is_playing: bool = False
    progress_ms: int | None = None
    item: SpotifyItem | None = None
    context: SpotifyContext | None = None
    timestamp: int | None = None
    """Upstream timestamp of the data (ms since epoch)."""
    currently_playing_type: str | None = None

    @property
    def artwork_url(self) -> str:
        """URL of the first (widest) album image, empty if none."""
        if self.item is None or self.item.album is None or not self.item.album.images:
            return ""
        return self.item.album.images[0].url

    def to_record(self) -> PlaybackRecord:
        """Flatten this response into a PlaybackRecord (acquisition time not stamped)."""
        item = self.item or SpotifyItem()
        duration_ms = max(0, item.duration_ms)
        progress_ms = max(0, self.progress_ms or 0)
        return PlaybackRecord(
            playing=self.is_playing,
            track=item.name,
            album=item.album.name if item.album is not None else "",
            artist=item.artists[0].name if item.artists else "",
            artwork_url=self.artwork_url,
            progress_ms=progress_ms,
            duration_ms=duration_ms,
            endpoint=(self.context.href or "") if self.context is not None else "",
        )
