"""Command line entry point: run the monitor until interrupted."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from contextlib import suppress

from aiohttp import ClientSession, ClientTimeout

from spotifymonitor.config import Config
from spotifymonitor.server.server import SpotifyMonitorServer
from spotifymonitor.server.spotify import SpotifyPlaybackSource, static_token_provider

logger = logging.getLogger(__name__)


async def run(config: Config) -> None:
    """Serve until SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    if not config.spotify_access_token:
        logger.warning("SPOTIFY_ACCESS_TOKEN is not set, upstream queries will be rejected")

    async with ClientSession(timeout=ClientTimeout(total=config.http_timeout)) as session:
        source = SpotifyPlaybackSource(
            session, static_token_provider(config.spotify_access_token)
        )
        server = SpotifyMonitorServer(loop, config, source, client_session=session)
        await server.start_server()
        try:
            await stop_event.wait()
        finally:
            logger.info("Shutting down")
            await server.close()


def main() -> None:
    """Parse arguments, configure logging and run the monitor."""
    parser = argparse.ArgumentParser(description="Spotify now-playing monitor")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--env-file", default=".env", help="dotenv file to read settings from (default: .env)"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s: %(name)s: %(message)s",
    )
    config = Config.from_env(args.env_file)
    with suppress(KeyboardInterrupt):
        asyncio.run(run(config))


if __name__ == "__main__":
    main()
