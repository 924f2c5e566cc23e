"""Process configuration read from the environment (and an optional .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_HTTP_PORT = 8080
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_IMAGE_CACHE_DIR = "image_cache"

# Upstream is queried every POLL_INTERVAL, subscribers are pushed every BROADCAST_INTERVAL
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_POLL_BACKOFF = 5.0
DEFAULT_BROADCAST_INTERVAL = 1.0
DEFAULT_HTTP_TIMEOUT = 10.0

_TRUE_VALUES = ("1", "true", "yes", "on")


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as err:
        raise ValueError(f"{name} must be a number, got {value!r}") from err


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as err:
        raise ValueError(f"{name} must be an integer, got {value!r}") from err


@dataclass(frozen=True)
class Config:
    """Runtime settings for a monitor process."""

    http_port: int = DEFAULT_HTTP_PORT
    """Port the render and push endpoints listen on."""
    http_host: str = DEFAULT_HTTP_HOST
    """Address the HTTP server binds to."""
    ws_url: str = ""
    """WebSocket URL handed to the rendered page for (re)connecting."""
    image_cache_dir: Path = Path(DEFAULT_IMAGE_CACHE_DIR)
    """Directory holding downloaded artwork, keyed by URL path."""
    report_url: str | None = None
    """Webhook URL receiving every broadcast snapshot, None disables the sink."""
    spotify_access_token: str = ""
    """Bearer token used for the currently-playing query."""
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_backoff: float = DEFAULT_POLL_BACKOFF
    broadcast_interval: float = DEFAULT_BROADCAST_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    """Total timeout in seconds for every outbound request."""
    accent_color: bool = True
    """Pick the progress color from the harmonic palette instead of the text color."""

    def __post_init__(self) -> None:
        """Validate field values."""
        if not 0 < self.http_port < 65536:
            raise ValueError(f"http_port must be a valid TCP port, got {self.http_port}")
        for name in ("poll_interval", "poll_backoff", "broadcast_interval", "http_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def effective_ws_url(self) -> str:
        """WebSocket URL for the page, derived from the port when not configured."""
        return self.ws_url or f"ws://localhost:{self.http_port}/ws"

    @classmethod
    def from_env(cls, env_file: str | Path | None = ".env") -> Config:
        """
        Build a Config from environment variables.

        Variables already present in the environment take precedence over the
        values in env_file.
        """
        if env_file is not None:
            load_dotenv(env_file)
        report_url = os.getenv("REPORT_URL", "").strip()
        return cls(
            http_port=_get_int("HTTP_PORT", DEFAULT_HTTP_PORT),
            http_host=os.getenv("HTTP_HOST", DEFAULT_HTTP_HOST),
            ws_url=os.getenv("WS_URL", "").strip(),
            image_cache_dir=Path(os.getenv("IMAGE_CACHE_DIR") or DEFAULT_IMAGE_CACHE_DIR),
            report_url=report_url or None,
            spotify_access_token=os.getenv("SPOTIFY_ACCESS_TOKEN", "").strip(),
            poll_interval=_get_float("POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            poll_backoff=_get_float("POLL_BACKOFF", DEFAULT_POLL_BACKOFF),
            broadcast_interval=_get_float("BROADCAST_INTERVAL", DEFAULT_BROADCAST_INTERVAL),
            http_timeout=_get_float("HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            accent_color=os.getenv("ACCENT_COLOR", "1").strip().lower() in _TRUE_VALUES,
        )
