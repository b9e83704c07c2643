"""URL-based byte source.

Reads image headers over HTTP/HTTPS, using ranged requests when the server
supports them and a buffered download otherwise. All requests of one source
share a single ``httpx.AsyncClient``, closed by :meth:`URLSource.release`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from imagemeta.config import config
from imagemeta.sources import ImageSource, ImageSourceError
from imagemeta.sources.memory import MemorySource

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger("imagemeta.sources")

# Statuses meaning "the server does not implement HEAD", not "missing".
_HEAD_UNSUPPORTED = {405, 501}
_MISSING = {404, 410}


class URLSource(ImageSource):
    """Source that reads from a URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        follow_redirects: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
        source_id: str | None = None,
    ) -> None:
        """Initialize the URL source.

        Args:
            url: The URL to read
            timeout: HTTP timeout in seconds (defaults to config)
            headers: Optional custom HTTP headers
            follow_redirects: Whether to follow HTTP redirects
            transport: Optional httpx transport, mainly for tests
            source_id: Optional identifier for this source
        """
        super().__init__(source_id=source_id or url)
        self.url = url
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.headers = dict(headers) if headers else {}
        self.follow_redirects = follow_redirects
        self._transport = transport
        self._head: httpx.Response | None = None
        self._http: httpx.AsyncClient | None = None
        self._ranges_ignored = False

        if "User-Agent" not in self.headers:
            self.headers["User-Agent"] = config.USER_AGENT

    def _client(self) -> httpx.AsyncClient:
        """Return the HTTP client shared by every request of this source."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=self.follow_redirects,
                headers=self.headers,
                transport=self._transport,
            )
        return self._http

    async def _fetch_head(self) -> httpx.Response:
        if self._head is not None:
            return self._head

        logger.debug("HEAD %s", self.url)
        try:
            response = await self._client().head(self.url)
        except httpx.RequestError as exc:
            raise ImageSourceError(
                f"Failed to reach {self.url}: {exc}", source_id=self.source_id
            ) from exc

        self._head = response
        return response

    async def exists(self) -> bool:
        """Check existence with a HEAD request.

        Servers that reject HEAD are assumed to serve the resource.
        """
        response = await self._fetch_head()
        if response.status_code in _MISSING:
            return False
        if response.status_code in _HEAD_UNSUPPORTED:
            return True
        if response.is_error:
            raise ImageSourceError(
                f"HTTP {response.status_code} for {self.url}",
                source_id=self.source_id,
            )
        return True

    async def supports_range_read(self) -> bool:
        """Check if the server advertised byte ranges and a length.

        Returns False once the server has answered a ranged request with
        the whole body.
        """
        if self._ranges_ignored:
            return False
        response = await self._fetch_head()
        if response.is_error:
            return False
        accept_ranges = response.headers.get("accept-ranges", "").lower()
        return "bytes" in accept_ranges and "content-length" in response.headers

    async def length(self) -> int:
        response = await self._fetch_head()
        value = response.headers.get("content-length")
        if value is None or not value.isdigit():
            raise ImageSourceError(
                f"Unknown content length for {self.url}", source_id=self.source_id
            )
        return int(value)

    async def get_range(self, start: int, end: int) -> bytes:
        """Fetch bytes ``[start, end)`` with a ranged GET.

        A server that ignores the ``Range`` header is read only up to
        ``end``, which must stay within ``MAX_DELEGATE_BYTES``.

        Raises:
            ImageSourceError: If the request fails or the cap is exceeded
        """
        if start < 0 or end < start:
            raise ImageSourceError(
                f"Invalid range [{start}, {end})", source_id=self.source_id
            )
        if end == start:
            return b""

        headers = {"Range": f"bytes={start}-{end - 1}"}
        try:
            async with self._client().stream(
                "GET", self.url, headers=headers
            ) as response:
                if response.status_code == 206:
                    return await _read_prefix(response, end - start)
                if response.status_code == 416:
                    return b""
                if response.status_code != 200:
                    raise ImageSourceError(
                        f"HTTP {response.status_code} for {self.url}",
                        source_id=self.source_id,
                    )

                # Range ignored: the body starts at offset 0.
                if not self._ranges_ignored:
                    logger.info("%s ignored the Range header", self.url)
                    self._ranges_ignored = True
                limit = config.MAX_DELEGATE_BYTES
                if end > limit:
                    raise ImageSourceError(
                        f"Reading {self.url} up to byte {end} exceeds {limit} bytes",
                        source_id=self.source_id,
                    )
                body = await _read_prefix(response, end)
                return body[start:end]
        except httpx.RequestError as exc:
            raise ImageSourceError(
                f"Failed to fetch {self.url}: {exc}", source_id=self.source_id
            ) from exc

    async def delegate(self) -> ImageSource:
        """Download the body into a :class:`MemorySource`.

        Raises:
            ImageSourceError: If the download fails or exceeds the size cap
        """
        limit = config.MAX_DELEGATE_BYTES
        logger.info("Downloading %s for header inspection", self.url)

        chunks: list[bytes] = []
        received = 0
        try:
            async with self._client().stream("GET", self.url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise ImageSourceError(
                            f"Response from {self.url} exceeds {limit} bytes",
                            source_id=self.source_id,
                        )
                    chunks.append(chunk)
        except httpx.HTTPStatusError as exc:
            raise ImageSourceError(
                f"HTTP {exc.response.status_code} for {self.url}",
                source_id=self.source_id,
            ) from exc
        except httpx.RequestError as exc:
            raise ImageSourceError(
                f"Failed to fetch {self.url}: {exc}", source_id=self.source_id
            ) from exc

        logger.debug("Downloaded %s bytes from %s", received, self.url)
        return MemorySource(b"".join(chunks), source_id=self.source_id)

    async def release(self) -> None:
        """Close the HTTP client and its pooled connections."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None


async def _read_prefix(response: httpx.Response, size: int) -> bytes:
    """Read at most ``size`` body bytes, then stop downloading."""
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer += chunk
        if len(buffer) >= size:
            break
    return bytes(buffer[:size])


__all__ = ["URLSource"]
