"""Resolve artwork URLs to decoded images through a local file cache."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import re
import tempfile
from io import BytesIO
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientSession
from PIL import Image

from spotifymonitor.errors import ArtworkDecodeFailed, ArtworkFetchFailed, ArtworkNotAnImage

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def cache_key(url: str) -> str:
    """
    Derive the cache file name for an artwork URL.

    The key is the last path component of the URL, which is the image id on
    the Spotify CDN. URLs without a usable path component are keyed by their
    SHA-1 digest.
    """
    name = _UNSAFE_KEY_CHARS.sub("_", PurePosixPath(urlsplit(url).path).name)
    if name.strip("._"):
        return name
    return hashlib.sha1(url.encode()).hexdigest()  # noqa: S324


def decode_image(data: bytes) -> Image.Image:
    """
    Decode image bytes into a fully loaded RGB image.

    NOTE: This function is not async friendly.
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image.load()
            return image.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as err:
        raise ArtworkDecodeFailed(f"Cannot decode artwork: {err}") from err


class ArtworkResolver:
    """
    Downloads artwork once and serves it from disk afterwards.

    Artwork behind a given URL never changes upstream, so cached files have
    no expiry and are never revalidated.
    """

    _session: ClientSession
    """Session used for the type probe and the download."""
    _cache_dir: Path
    """Directory holding one file per artwork URL."""
    _pending: dict[str, asyncio.Task[Image.Image]]
    """Downloads in flight, by cache key. Concurrent resolutions share them."""

    def __init__(self, session: ClientSession, cache_dir: Path | str) -> None:
        """
        Initialize the resolver.

        Args:
            session: aiohttp session for outbound requests. Timeouts are taken
                from the session.
            cache_dir: Directory for cached artwork. Created on first download.
        """
        self._session = session
        self._cache_dir = Path(cache_dir)
        self._pending = {}

    @property
    def cache_dir(self) -> Path:
        """Directory holding the cached artwork."""
        return self._cache_dir

    def cache_path(self, url: str) -> Path:
        """Return the file the artwork behind url is cached in."""
        return self._cache_dir / cache_key(url)

    async def resolve(self, url: str) -> Image.Image:
        """
        Return the decoded artwork behind url.

        Raises:
            ArtworkNotAnImage: If the URL does not report an image content type.
            ArtworkFetchFailed: If the artwork cannot be downloaded.
            ArtworkDecodeFailed: If the artwork bytes are not a decodable image.
        """
        if not url:
            raise ArtworkFetchFailed("No artwork URL")

        path = self.cache_path(url)
        if path.is_file():
            logger.debug("Artwork cache hit for %s", url)
            return await asyncio.to_thread(self._load_cached, path)

        key = path.name
        task = self._pending.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._download(url, path))
            self._pending[key] = task

            def _done(t: asyncio.Task[Image.Image]) -> None:
                self._pending.pop(key, None)
                if not t.cancelled():
                    t.exception()

            task.add_done_callback(_done)
        return await asyncio.shield(task)

    @staticmethod
    def _load_cached(path: Path) -> Image.Image:
        try:
            data = path.read_bytes()
        except OSError as err:
            raise ArtworkFetchFailed(f"Cannot read cached artwork {path}: {err}") from err
        return decode_image(data)

    async def _download(self, url: str, path: Path) -> Image.Image:
        """Probe, fetch, decode and store the artwork behind url."""
        try:
            async with self._session.head(url, allow_redirects=True) as resp:
                if resp.status >= 400:
                    raise ArtworkFetchFailed(f"Artwork probe for {url} returned HTTP {resp.status}")
                content_type = resp.content_type
            if not content_type.startswith("image/"):
                raise ArtworkNotAnImage(f"Artwork {url} has content type {content_type!r}")

            async with self._session.get(url) as resp:
                resp.raise_for_status()
                data = await resp.read()
        except (ClientError, TimeoutError) as err:
            raise ArtworkFetchFailed(f"Cannot download artwork {url}: {err}") from err

        # Decode before storing, so the cache only ever holds valid images
        image = await asyncio.to_thread(decode_image, data)
        try:
            await asyncio.to_thread(self._store, path, data)
        except OSError as err:
            logger.warning("Cannot cache artwork %s in %s: %s", url, path, err)
        else:
            logger.debug("Artwork %s saved to %s", url, path)
        return image

    @staticmethod
    def _store(path: Path, data: bytes) -> None:
        """
        Write data to path atomically.

        NOTE: This method is not async friendly.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as tmp_file:
                tmp_file.write(data)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
