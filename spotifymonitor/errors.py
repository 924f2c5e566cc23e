"""Exceptions raised by spotifymonitor."""

from __future__ import annotations


class SpotifyMonitorError(Exception):
    """Base class for all spotifymonitor errors."""


class UpstreamQueryFailed(SpotifyMonitorError):
    """The "currently playing" query failed; the cached state is left as is."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        """
        Initialize the error.

        Args:
            message: Human-readable description of the failure.
            retry_after: Seconds the upstream asked us to wait, if it said so.
        """
        super().__init__(message)
        self.retry_after = retry_after


class ArtworkError(SpotifyMonitorError):
    """Artwork could not be resolved; callers fall back to the default palette."""


class ArtworkFetchFailed(ArtworkError):
    """The artwork could not be downloaded or stored."""


class ArtworkNotAnImage(ArtworkError):
    """The artwork URL does not report an image content type."""


class ArtworkDecodeFailed(ArtworkError):
    """The artwork bytes could not be decoded into pixels."""


class SubscriberDeliveryFailed(SpotifyMonitorError):
    """A push subscriber could not be sent a snapshot."""


class WebhookDeliveryFailed(SpotifyMonitorError):
    """The webhook sink rejected or did not receive a snapshot."""


class SerializationFailed(SpotifyMonitorError):
    """A snapshot could not be serialized to JSON."""
