"""Outbound webhook receiving every broadcast snapshot."""

from __future__ import annotations

import logging

from aiohttp import ClientError, ClientSession, hdrs

from spotifymonitor.errors import WebhookDeliveryFailed

logger = logging.getLogger(__name__)


class WebhookSink:
    """POSTs serialized snapshots to a fixed URL, without retries."""

    def __init__(self, session: ClientSession, url: str) -> None:
        """
        Initialize the sink.

        Args:
            session: aiohttp session for the request. Timeouts are taken from the session.
            url: URL receiving the snapshots.
        """
        self._session = session
        self._url = url

    @property
    def url(self) -> str:
        """URL receiving the snapshots."""
        return self._url

    async def deliver(self, payload: str) -> None:
        """
        POST one serialized snapshot.

        Raises:
            WebhookDeliveryFailed: If the request failed or was rejected.
        """
        try:
            async with self._session.post(
                self._url,
                data=payload.encode(),
                headers={hdrs.CONTENT_TYPE: "application/json"},
            ) as resp:
                if resp.status >= 400:
                    raise WebhookDeliveryFailed(
                        f"Webhook {self._url} returned HTTP {resp.status}"
                    )
        except (ClientError, TimeoutError) as err:
            raise WebhookDeliveryFailed(f"Cannot POST to webhook {self._url}: {err}") from err
        logger.debug("Current status reported to %s", self._url)
