"""Monitor server: render and push endpoints plus the polling and broadcast tasks."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from aiohttp import ClientTimeout, WSMsgType, web
from aiohttp.client import ClientSession

from spotifymonitor.artwork import ArtworkResolver
from spotifymonitor.config import Config

from .broadcaster import Broadcaster
from .poller import Poller
from .render import render_placeholder, render_player
from .snapshot import SnapshotBuilder
from .spotify import PlaybackSource
from .state import StateCache
from .subscribers import Subscriber, SubscriberRegistry
from .webhook import WebhookSink

logger = logging.getLogger(__name__)

# Prefix used when the monitor sits behind a reverse proxy
ROUTE_PREFIX = "/_spotifymonitor"


class SpotifyMonitorServer:
    """Serves the now-playing page and pushes snapshots to connected clients."""

    RENDER_PATHS = ("/", f"{ROUTE_PREFIX}/")
    WS_PATHS = ("/ws", f"{ROUTE_PREFIX}/ws")

    _loop: asyncio.AbstractEventLoop
    _config: Config
    _client_session: ClientSession
    """The client session used for upstream, artwork and webhook requests."""
    _owns_session: bool
    """Whether this server instance owns the client session."""
    _cache: StateCache
    """Latest playback record, shared by all tasks."""
    _registry: SubscriberRegistry
    _builder: SnapshotBuilder
    _poller: Poller
    _broadcaster: Broadcaster
    _tasks: list[asyncio.Task[None]]
    """Polling and broadcast tasks, while running."""
    _app: web.Application | None
    _app_runner: web.AppRunner | None
    _tcp_site: web.TCPSite | None

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        config: Config,
        source: PlaybackSource,
        client_session: ClientSession | None = None,
        cache: StateCache | None = None,
    ) -> None:
        """
        Initialize a new monitor server.

        Args:
            loop: The asyncio event loop to use for asynchronous operations.
            config: Runtime settings.
            source: Upstream queried for the current playback.
            client_session: Optional ClientSession for outgoing requests.
                If None, a new session will be created with the configured timeout.
            cache: Optional state cache, a new one is created when omitted.
        """
        self._loop = loop
        self._config = config
        if client_session is None:
            self._client_session = ClientSession(
                timeout=ClientTimeout(total=config.http_timeout)
            )
            self._owns_session = True
        else:
            self._client_session = client_session
            self._owns_session = False
        self._cache = cache if cache is not None else StateCache()
        self._registry = SubscriberRegistry()
        self._builder = SnapshotBuilder(
            self._cache,
            ArtworkResolver(self._client_session, config.image_cache_dir),
            accent=config.accent_color,
        )
        self._poller = Poller(
            source,
            self._cache,
            interval=config.poll_interval,
            backoff=config.poll_backoff,
        )
        webhook = (
            WebhookSink(self._client_session, config.report_url) if config.report_url else None
        )
        self._broadcaster = Broadcaster(
            self._cache,
            self._builder,
            self._registry,
            webhook,
            interval=config.broadcast_interval,
        )
        self._tasks = []
        self._app = None
        self._app_runner = None
        self._tcp_site = None
        logger.debug("SpotifyMonitorServer initialized (webhook=%s)", config.report_url)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """Read-only access to the event loop used by this server."""
        return self._loop

    @property
    def cache(self) -> StateCache:
        """The state cache shared by all tasks."""
        return self._cache

    @property
    def registry(self) -> SubscriberRegistry:
        """Currently connected push subscribers."""
        return self._registry

    @property
    def poller(self) -> Poller:
        """The polling task driver."""
        return self._poller

    @property
    def broadcaster(self) -> Broadcaster:
        """The broadcast task driver."""
        return self._broadcaster

    def _create_web_application(self) -> web.Application:
        """
        Create and configure the aiohttp web application.

        Returns:
            Configured aiohttp web.Application instance.
        """
        app = web.Application()
        for path in self.RENDER_PATHS:
            app.router.add_get(path, self.on_render)
        for path in self.WS_PATHS:
            app.router.add_get(path, self.on_subscriber_connect)
        return app

    async def on_render(self, request: web.Request) -> web.Response:
        """Render the now-playing page from the latest snapshot."""
        ws_url = self._config.effective_ws_url
        snapshot = await self._builder.build()
        if snapshot is None:
            body = render_placeholder(ws_url, accent=self._config.accent_color)
        else:
            body = render_player(snapshot, ws_url)
        return web.Response(text=body, content_type="text/html")

    async def on_subscriber_connect(self, request: web.Request) -> web.StreamResponse:
        """Handle an incoming WebSocket connection from a push subscriber."""
        logger.debug("Incoming subscriber connection from %s", request.remote)
        websocket = web.WebSocketResponse(heartbeat=55)
        try:
            async with asyncio.timeout(10):
                await websocket.prepare(request)
        except TimeoutError:
            logger.warning("Timeout preparing websocket for %s", request.remote)
            raise

        subscriber = Subscriber(websocket, request.remote)
        self._registry.add(subscriber)
        try:
            # Inbound messages are only read to notice the disconnect
            async for msg in websocket:
                if msg.type == WSMsgType.ERROR:
                    logger.debug(
                        "Subscriber %s connection error: %s",
                        subscriber.subscriber_id,
                        websocket.exception(),
                    )
                    break
        finally:
            self._registry.remove(subscriber)
            await subscriber.close()
        return websocket

    async def start_server(self, port: int | None = None, host: str | None = None) -> None:
        """
        Start the HTTP server and the polling and broadcast tasks.

        :param port: The TCP port to bind to, defaults to the configured port.
        :param host: The IP address to listen on, defaults to the configured host.
        """
        if self._app is not None:
            logger.warning("Server is already running")
            return

        port = self._config.http_port if port is None else port
        host = self._config.http_host if host is None else host
        logger.info("Starting monitor server on port %d", port)
        self._app = self._create_web_application()
        self._app_runner = web.AppRunner(self._app)
        await self._app_runner.setup()

        try:
            self._tcp_site = web.TCPSite(
                self._app_runner,
                host=host if host != "0.0.0.0" else None,
                port=port,
            )
            await self._tcp_site.start()
        except OSError as e:
            logger.error("Failed to start server on %s:%d: %s", host, port, e)
            await self._app_runner.cleanup()
            self._app_runner = None
            self._tcp_site = None
            await self._app.shutdown()
            self._app = None
            raise
        logger.info("Monitor server started successfully on %s:%d", host, port)

        self._tasks = [
            self._loop.create_task(self._poller.run()),
            self._loop.create_task(self._broadcaster.run()),
        ]

    async def stop_server(self) -> None:
        """Stop the HTTP server."""
        if self._tcp_site:
            await self._tcp_site.stop()
            self._tcp_site = None
            logger.debug("TCP site stopped")

        if self._app_runner:
            await self._app_runner.cleanup()
            self._app_runner = None
            logger.debug("App runner cleaned up")

        if self._app:
            await self._app.shutdown()
            self._app = None

    async def close(self) -> None:
        """Close the server and cleanup resources."""
        self._poller.stop()
        self._broadcaster.stop()
        for task in self._tasks:
            try:
                async with asyncio.timeout(5.0):
                    await task
            except TimeoutError:
                logger.debug("Background task did not stop in time, cancelling it")
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._tasks = []
        await self._broadcaster.close()

        # Close subscriber sockets so their handlers return before the site stops
        subscribers = self._registry.snapshot()
        if subscribers:
            results = await asyncio.gather(
                *(subscriber.close() for subscriber in subscribers), return_exceptions=True
            )
            for subscriber, result in zip(subscribers, results, strict=True):
                if isinstance(result, Exception):
                    logger.warning(
                        "Error closing subscriber %s: %s", subscriber.subscriber_id, result
                    )

        await self.stop_server()
        if self._owns_session and not self._client_session.closed:
            await self._client_session.close()
            logger.debug("Closed internal client session")
