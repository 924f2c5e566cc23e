"""Upstream playback source backed by the Spotify Web API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from aiohttp import ClientError, ClientSession, hdrs
from mashumaro.exceptions import InvalidFieldValue, MissingField

from spotifymonitor.errors import UpstreamQueryFailed
from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.models.spotify import CurrentlyPlaying

logger = logging.getLogger(__name__)

SPOTIFY_API = "https://api.spotify.com/v1"
CURRENTLY_PLAYING_PATH = "/me/player/currently-playing"

TokenProvider = Callable[[], Awaitable[str]]
"""Returns a valid bearer token. Obtaining and refreshing it is up to the provider."""


class PlaybackSource(Protocol):
    """Anything that can report the current playback."""

    async def get_current_playback(self) -> PlaybackRecord | None:
        """
        Query the current playback.

        Returns None when nothing is playing.

        Raises:
            UpstreamQueryFailed: If the query failed.
        """


def static_token_provider(token: str) -> TokenProvider:
    """Return a TokenProvider that always hands out the same token."""

    async def _provide() -> str:
        return token

    return _provide


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class SpotifyPlaybackSource:
    """Queries GET /me/player/currently-playing for the authorized user."""

    def __init__(
        self,
        session: ClientSession,
        token_provider: TokenProvider,
        *,
        api_url: str = SPOTIFY_API,
    ) -> None:
        """
        Initialize the source.

        Args:
            session: aiohttp session for the query. Timeouts are taken from the session.
            token_provider: Coroutine function returning the bearer token.
            api_url: Base URL of the Web API, overridable for tests.
        """
        self._session = session
        self._token_provider = token_provider
        self._url = api_url.rstrip("/") + CURRENTLY_PLAYING_PATH

    async def get_current_playback(self) -> PlaybackRecord | None:
        """Query the current playback, None when nothing is playing."""
        token = await self._token_provider()
        headers = {hdrs.AUTHORIZATION: f"Bearer {token}"}
        try:
            async with self._session.get(self._url, headers=headers) as resp:
                if resp.status == 204:
                    return None
                if resp.status != 200:
                    body = await resp.text()
                    raise UpstreamQueryFailed(
                        f"Spotify returned HTTP {resp.status}: {body[:200]}",
                        retry_after=_parse_retry_after(resp.headers.get(hdrs.RETRY_AFTER)),
                    )
                body = await resp.text()
        except (ClientError, TimeoutError) as err:
            raise UpstreamQueryFailed(f"Spotify query failed: {err}") from err

        if not body.strip():
            return None
        try:
            playing = CurrentlyPlaying.from_json(body)
        except (ValueError, MissingField, InvalidFieldValue) as err:
            raise UpstreamQueryFailed(f"Unexpected Spotify response: {err}") from err
        record = playing.to_record()
        logger.debug("Spotify reports playing=%s track=%r", record.playing, record.track)
        return record
