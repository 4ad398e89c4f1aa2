"""Feed archive fetcher for remote URLs and local paths."""

from __future__ import annotations

import asyncio
import hashlib
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from transit_feed_api.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 120
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0

ZIP_MAGIC = b"PK\x03\x04"


class FetchError(Exception):
    """Raised when a feed download fails after all retries."""


class InvalidZipError(Exception):
    """Raised when fetched content is not a ZIP archive."""


@dataclass(frozen=True)
class FetchedFeed:
    """Archive bytes with their SHA-256 digest."""

    data: bytes
    feed_hash: str


class FeedFetcher:
    """Fetches a feed archive from a remote URL or the local filesystem."""

    def __init__(
        self,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
    ) -> None:
        self.timeout_sec = timeout_sec
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    async def fetch(self, source_type: str, source: str) -> FetchedFeed:
        """Dispatch on source type ("remote" or "local").

        Raises:
            ValueError: If the source type is unknown.
        """
        if source_type == "remote":
            return await self.fetch_remote(source)
        if source_type == "local":
            return self.fetch_local(source)
        msg = f"Invalid source_type: {source_type}"
        raise ValueError(msg)

    async def fetch_remote(self, url: str) -> FetchedFeed:
        """Download a feed archive with retry + exponential backoff.

        Raises:
            FetchError: If all retries are exhausted.
            InvalidZipError: If the response body is not a ZIP.
        """
        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                logger.info(
                    "Fetching feed archive",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                )
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout_sec),
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url)
                    response.raise_for_status()
                    data = response.content
            except (httpx.HTTPStatusError, httpx.RequestError) as exc:
                last_error = exc
                if attempt < self.max_retries - 1:
                    delay = self.backoff_base ** (attempt + 1)
                    logger.warning(
                        "Fetch attempt failed, retrying",
                        attempt=attempt + 1,
                        delay_sec=delay,
                        error=str(exc),
                    )
                    await asyncio.sleep(delay)
                continue

            feed = _checked(data)
            logger.info("Feed archive downloaded", size_bytes=len(data), feed_hash=feed.feed_hash)
            return feed

        msg = f"Failed to fetch feed after {self.max_retries} attempts"
        raise FetchError(msg) from last_error

    def fetch_local(self, path: str | Path) -> FetchedFeed:
        """Read a feed archive from the local filesystem.

        Raises:
            FileNotFoundError: If the path does not exist.
            InvalidZipError: If the file is not a ZIP.
        """
        path = Path(path)
        if not path.is_file():
            msg = f"Local feed file not found: {path}"
            raise FileNotFoundError(msg)

        data = path.read_bytes()
        feed = _checked(data)
        logger.info(
            "Feed archive loaded from local file",
            path=str(path),
            size_bytes=len(data),
            feed_hash=feed.feed_hash,
        )
        return feed


def _checked(data: bytes) -> FetchedFeed:
    if data[:4] != ZIP_MAGIC or not zipfile.is_zipfile(io.BytesIO(data)):
        msg = "Fetched content is not a valid ZIP file"
        raise InvalidZipError(msg)
    return FetchedFeed(data=data, feed_hash=hashlib.sha256(data).hexdigest())
