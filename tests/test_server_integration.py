from __future__ import annotations

import asyncio
import socket
from pathlib import Path

import orjson
import pytest
from aiohttp import ClientSession, WSMsgType

from spotifymonitor.config import Config
from spotifymonitor.errors import UpstreamQueryFailed
from spotifymonitor.models.playback import PlaybackRecord
from spotifymonitor.server.server import SpotifyMonitorServer


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class StaticSource:
    async def get_current_playback(self) -> PlaybackRecord | None:
        return PlaybackRecord(
            playing=True,
            track="Integration Song",
            album="Integration Album",
            artist="Integration Band",
            progress_ms=10_000,
            duration_ms=200_000,
        )


class FailingSource:
    async def get_current_playback(self) -> PlaybackRecord | None:
        raise UpstreamQueryFailed("upstream down")


def _config(port: int, cache_dir: Path) -> Config:
    return Config(
        http_port=port,
        http_host="127.0.0.1",
        image_cache_dir=cache_dir,
        poll_interval=0.05,
        poll_backoff=0.05,
        broadcast_interval=0.05,
    )


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


async def _drain(ws) -> WSMsgType:
    msg = await ws.receive()
    while msg.type == WSMsgType.TEXT:
        msg = await ws.receive()
    return msg.type


@pytest.mark.asyncio
async def test_websocket_receives_snapshots(tmp_path: Path) -> None:
    loop = asyncio.get_running_loop()
    port = _get_free_port()
    server = SpotifyMonitorServer(loop, _config(port, tmp_path), StaticSource())
    await server.start_server()

    try:
        for path in SpotifyMonitorServer.WS_PATHS:
            async with ClientSession() as session, session.ws_connect(
                f"ws://127.0.0.1:{port}{path}"
            ) as ws:
                msg = await asyncio.wait_for(ws.receive(), timeout=5)
                assert msg.type == WSMsgType.TEXT
                data = orjson.loads(msg.data)
                assert data["track"] == "Integration Song"
                assert data["artist"] == "Integration Band"
                assert data["playback_state"] is True
                assert data["duration_str"] == "3:20"
            await _wait_for(lambda: len(server.registry) == 0)
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_render_page(tmp_path: Path) -> None:
    loop = asyncio.get_running_loop()
    port = _get_free_port()
    server = SpotifyMonitorServer(loop, _config(port, tmp_path), StaticSource())
    await server.start_server()

    try:
        await _wait_for(lambda: server.cache.has_record)
        async with ClientSession() as session:
            for path in SpotifyMonitorServer.RENDER_PATHS:
                async with session.get(f"http://127.0.0.1:{port}{path}") as resp:
                    assert resp.status == 200
                    assert resp.content_type == "text/html"
                    page = await resp.text()
                assert "Integration Song" in page
                assert "Integration Band" in page
                assert f'new WebSocket("ws://localhost:{port}/ws")' in page
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_placeholder_before_first_successful_poll(tmp_path: Path) -> None:
    loop = asyncio.get_running_loop()
    port = _get_free_port()
    server = SpotifyMonitorServer(loop, _config(port, tmp_path), FailingSource())
    await server.start_server()

    try:
        async with ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{port}/") as resp:
                assert resp.status == 200
                page = await resp.text()
    finally:
        await server.close()

    assert "<title>Nothing playing</title>" in page
    assert not server.cache.has_record


@pytest.mark.asyncio
async def test_start_twice_and_close(tmp_path: Path) -> None:
    loop = asyncio.get_running_loop()
    port = _get_free_port()
    server = SpotifyMonitorServer(loop, _config(port, tmp_path), StaticSource())
    await server.start_server()
    await server.start_server()

    async with ClientSession() as session:
        ws = await session.ws_connect(f"ws://127.0.0.1:{port}/ws")
        await _wait_for(lambda: len(server.registry) == 1)
        # Keep reading so the client answers the close handshake
        drain = asyncio.create_task(_drain(ws))
        await server.close()
        msg_type = await asyncio.wait_for(drain, timeout=5)
        assert msg_type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED)
        await _wait_for(lambda: len(server.registry) == 0)
        await ws.close()
