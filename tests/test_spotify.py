from __future__ import annotations

import socket
from typing import Any

import orjson
import pytest
from aiohttp import ClientSession, web

from spotifymonitor.errors import UpstreamQueryFailed
from spotifymonitor.models.spotify import CurrentlyPlaying
from spotifymonitor.server.spotify import (
    CURRENTLY_PLAYING_PATH,
    SpotifyPlaybackSource,
    static_token_provider,
)

CURRENTLY_PLAYING = {
    "timestamp": 1_700_000_000_000,
    "progress_ms": 50_000,
    "is_playing": True,
    "currently_playing_type": "track",
    "context": {
        "type": "album",
        "href": "https://api.spotify.com/v1/albums/4aawyAB9vmqN3uQ7FjRGTy",
        "uri": "spotify:album:4aawyAB9vmqN3uQ7FjRGTy",
        "external_urls": {"spotify": "https://open.spotify.com/album/4aawyAB9vmqN3uQ7FjRGTy"},
    },
    "item": {
        "name": "Song Title",
        "duration_ms": 200_000,
        "explicit": False,
        "album": {
            "name": "Album Title",
            "images": [
                {"url": "https://i.scdn.co/image/large", "height": 640, "width": 640},
                {"url": "https://i.scdn.co/image/small", "height": 64, "width": 64},
            ],
        },
        "artists": [{"name": "First Artist"}, {"name": "Second Artist"}],
    },
}


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class FakeSpotify:
    """Answers the currently-playing query with a configurable response."""

    def __init__(self) -> None:
        self.status = 200
        self.body: Any = CURRENTLY_PLAYING
        self.headers: dict[str, str] = {}
        self.authorization: str | None = None
        self.runner: web.AppRunner | None = None
        self.api_url = ""

    async def _currently_playing(self, request: web.Request) -> web.Response:
        self.authorization = request.headers.get("Authorization")
        if isinstance(self.body, (dict, list)):
            body = orjson.dumps(self.body)
        else:
            body = self.body
        return web.Response(
            status=self.status, body=body, headers=self.headers, content_type="application/json"
        )

    async def start(self) -> None:
        app = web.Application()
        app.router.add_get(f"/v1{CURRENTLY_PLAYING_PATH}", self._currently_playing)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        port = _get_free_port()
        await web.TCPSite(self.runner, "127.0.0.1", port).start()
        self.api_url = f"http://127.0.0.1:{port}/v1"

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()


def test_response_flattening() -> None:
    record = CurrentlyPlaying.from_json(orjson.dumps(CURRENTLY_PLAYING)).to_record()

    assert record.playing is True
    assert record.track == "Song Title"
    assert record.album == "Album Title"
    assert record.artist == "First Artist"
    assert record.artwork_url == "https://i.scdn.co/image/large"
    assert record.progress_ms == 50_000
    assert record.duration_ms == 200_000
    assert record.endpoint == "https://api.spotify.com/v1/albums/4aawyAB9vmqN3uQ7FjRGTy"


def test_sparse_response() -> None:
    record = CurrentlyPlaying.from_json('{"is_playing": false, "item": null}').to_record()

    assert record.playing is False
    assert record.track == ""
    assert record.artwork_url == ""
    assert record.endpoint == ""
    assert record.duration_ms == 0


@pytest.mark.asyncio
async def test_query_current_playback() -> None:
    spotify = FakeSpotify()
    await spotify.start()
    try:
        async with ClientSession() as session:
            source = SpotifyPlaybackSource(
                session, static_token_provider("secret"), api_url=spotify.api_url
            )
            record = await source.get_current_playback()
    finally:
        await spotify.stop()

    assert spotify.authorization == "Bearer secret"
    assert record is not None
    assert record.track == "Song Title"
    assert record.acquired_at_ms == 0


@pytest.mark.asyncio
async def test_nothing_playing() -> None:
    spotify = FakeSpotify()
    spotify.status = 204
    spotify.body = b""
    await spotify.start()
    try:
        async with ClientSession() as session:
            source = SpotifyPlaybackSource(
                session, static_token_provider("secret"), api_url=spotify.api_url
            )
            assert await source.get_current_playback() is None
    finally:
        await spotify.stop()


@pytest.mark.asyncio
async def test_rate_limited() -> None:
    spotify = FakeSpotify()
    spotify.status = 429
    spotify.body = {"error": {"status": 429, "message": "API rate limit exceeded"}}
    spotify.headers = {"Retry-After": "7"}
    await spotify.start()
    try:
        async with ClientSession() as session:
            source = SpotifyPlaybackSource(
                session, static_token_provider("secret"), api_url=spotify.api_url
            )
            with pytest.raises(UpstreamQueryFailed) as exc_info:
                await source.get_current_playback()
    finally:
        await spotify.stop()

    assert exc_info.value.retry_after == 7.0
    assert "429" in str(exc_info.value)


@pytest.mark.asyncio
async def test_unauthorized() -> None:
    spotify = FakeSpotify()
    spotify.status = 401
    spotify.body = {"error": {"status": 401, "message": "Invalid access token"}}
    await spotify.start()
    try:
        async with ClientSession() as session:
            source = SpotifyPlaybackSource(
                session, static_token_provider("expired"), api_url=spotify.api_url
            )
            with pytest.raises(UpstreamQueryFailed) as exc_info:
                await source.get_current_playback()
    finally:
        await spotify.stop()

    assert exc_info.value.retry_after is None


@pytest.mark.asyncio
async def test_malformed_body() -> None:
    spotify = FakeSpotify()
    spotify.body = b"{not json"
    await spotify.start()
    try:
        async with ClientSession() as session:
            source = SpotifyPlaybackSource(
                session, static_token_provider("secret"), api_url=spotify.api_url
            )
            with pytest.raises(UpstreamQueryFailed):
                await source.get_current_playback()
    finally:
        await spotify.stop()


@pytest.mark.asyncio
async def test_unreachable_upstream() -> None:
    async with ClientSession() as session:
        source = SpotifyPlaybackSource(
            session,
            static_token_provider("secret"),
            api_url=f"http://127.0.0.1:{_get_free_port()}/v1",
        )
        with pytest.raises(UpstreamQueryFailed):
            await source.get_current_playback()
