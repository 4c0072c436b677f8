"""HTTP client for fetching the GeoIP database and its digest."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Self, TypeVar

import aiohttp
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_delay,
    wait_exponential,
)

from geoipsync import __version__
from geoipsync._utils import cleanup_temp_file, sync_dir
from geoipsync.errors import DownloadError, HTTPError, MissingContentLengthError

if TYPE_CHECKING:
    from datetime import timedelta

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 64 * 1024


def _is_retryable_error(exception: BaseException) -> bool:
    """Determine if an exception is retryable.

    Args:
        exception: The exception to check.

    Returns:
        True if the exception should trigger a retry.

    """
    if isinstance(exception, HTTPError):
        # Only 5xx (server) errors are retryable
        return exception.status_code >= 500
    if isinstance(exception, MissingContentLengthError):
        return False
    # Remaining DownloadErrors are retryable only when a transient network
    # issue caused them.
    if isinstance(exception, DownloadError):
        return isinstance(exception.__cause__, (aiohttp.ClientError, TimeoutError))
    # ConnectionError (not the broader OSError) so that disk full or
    # permission denied are not retried.
    return isinstance(exception, (aiohttp.ClientError, TimeoutError, ConnectionError))


class Client:
    """Async HTTP client for the remote GeoIP database.

    Every request is bounded by ``timeout`` (connect and socket read) and,
    when ``retry_for`` is set, retried with exponential backoff until that
    much time has passed.

    Example:
        async with Client(timeout=timedelta(minutes=1)) as client:
            digest = await client.get_digest(digest_url)
            size = await client.download(database_url, Path("GeoLite2-City.mmdb"))

    """

    def __init__(
        self,
        *,
        proxy: str | None = None,
        timeout: timedelta | None = None,
        retry_for: timedelta | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the client.

        Args:
            proxy: Proxy URL (http, https, or socks5).
            timeout: Connect and read timeout for each request.
            retry_for: Duration to retry failed requests.
            verbose: Enable verbose logging.

        """
        self._proxy = proxy
        self._timeout = timeout
        self._retry_for = retry_for
        self._verbose = verbose
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        headers = {"User-Agent": f"geoipsync/{__version__}"}
        timeout = aiohttp.ClientTimeout(total=None)
        if self._timeout:
            seconds = self._timeout.total_seconds()
            timeout = aiohttp.ClientTimeout(total=None, connect=seconds, sock_read=seconds)
        self._session = aiohttp.ClientSession(headers=headers, timeout=timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        if self._session:
            await self._session.close()
            self._session = None

    async def get_digest(self, url: str) -> str:
        """Fetch the published digest of the remote database.

        Args:
            url: URL of the text resource holding the digest.

        Returns:
            The digest with surrounding whitespace removed.

        Raises:
            HTTPError: If the server returns an error status.
            DownloadError: If the request fails or the body is empty.

        """
        return await self._with_retry(self._get_digest, url)

    async def download(self, url: str, destination: Path) -> int:
        """Stream the remote database to ``destination``.

        The body is written to a temporary file next to ``destination`` and
        renamed over it only once the whole body has arrived, so a failed or
        interrupted download never leaves a partial file at ``destination``.

        Args:
            url: URL of the database file.
            destination: Final path of the database file.

        Returns:
            Number of bytes written.

        Raises:
            HTTPError: If the server returns an error status.
            MissingContentLengthError: If the response has no Content-Length.
            DownloadError: If the transfer fails or is truncated.
            OSError: If the file cannot be written.

        """
        return await self._with_retry(self._download, url, destination)

    async def _with_retry(self, func: Callable[..., Awaitable[T]], *args: object) -> T:
        """Call ``func`` with the configured retry policy."""
        if not self._retry_for or self._retry_for.total_seconds() <= 0:
            return await func(*args)

        @retry(
            stop=stop_after_delay(self._retry_for.total_seconds()),
            wait=wait_exponential(multiplier=1, min=1, max=60),
            retry=retry_if_exception(_is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def _retry_wrapper() -> T:
            return await func(*args)

        return await _retry_wrapper()

    def _require_session(self) -> aiohttp.ClientSession:
        if not self._session:
            msg = "Client must be used as async context manager"
            raise RuntimeError(msg)
        return self._session

    async def _get_digest(self, url: str) -> str:
        """Fetch the digest without retry."""
        session = self._require_session()

        try:
            async with session.get(url, proxy=self._proxy) as response:
                body = await response.text(errors="replace")

                if response.status != 200:
                    raise HTTPError(
                        f"Unexpected HTTP status code from '{url}': {response.status}",
                        status_code=response.status,
                        body=body[:256],
                    )
        except (aiohttp.ClientError, TimeoutError) as e:
            msg = f"Failed to fetch digest from '{url}': {e}"
            raise DownloadError(msg) from e

        digest = body.strip()
        if not digest:
            msg = f"Empty digest returned from '{url}'"
            raise DownloadError(msg)

        if self._verbose:
            logger.info("Remote digest from %s: %s", url, digest)
        return digest

    async def _download(self, url: str, destination: Path) -> int:
        """Download without retry."""
        session = self._require_session()

        try:
            async with session.get(url, proxy=self._proxy) as response:
                if response.status != 200:
                    body = await response.text(errors="replace")
                    raise HTTPError(
                        f"Unexpected HTTP status code from '{url}': {response.status}",
                        status_code=response.status,
                        body=body[:256],
                    )

                total_size = response.content_length
                if total_size is None:
                    msg = f"Failed to get content length from '{url}'"
                    raise MissingContentLengthError(msg)

                downloaded = await _stream_to_file(response, destination, total_size)
        except (aiohttp.ClientError, TimeoutError) as e:
            msg = f"Failed to download '{url}': {e}"
            raise DownloadError(msg) from e

        if self._verbose:
            logger.info("Downloaded %d bytes from %s to %s", downloaded, url, destination)
        return downloaded


async def _stream_to_file(
    response: aiohttp.ClientResponse,
    destination: Path,
    total_size: int,
) -> int:
    """Write the response body to ``destination`` through a temp file.

    Args:
        response: Response whose body is streamed.
        destination: Final path of the file.
        total_size: Declared Content-Length of the body.

    Returns:
        Number of bytes written, capped at ``total_size``.

    """
    fd, temp_path = tempfile.mkstemp(
        suffix=".download",
        prefix=f"{destination.name}_",
        dir=destination.parent,
    )
    downloaded = 0
    try:
        with os.fdopen(fd, "wb") as f:
            if hasattr(os, "fchmod"):
                os.fchmod(f.fileno(), 0o644)
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                f.write(chunk)
                downloaded = min(downloaded + len(chunk), total_size)
            f.flush()
            os.fsync(f.fileno())

        if downloaded < total_size:
            msg = f"Download truncated: received {downloaded} of {total_size} bytes"
            raise DownloadError(msg)

        os.replace(temp_path, destination)
    except BaseException:
        cleanup_temp_file(temp_path)
        raise

    sync_dir(destination.parent)
    return downloaded
