"""Stream-based byte source for inputs that cannot seek."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from typing import BinaryIO

import anyio

from imagemeta.config import config
from imagemeta.sources import ImageSource, ImageSourceError
from imagemeta.sources.memory import MemorySource

logger = logging.getLogger("imagemeta.sources")

_CHUNK_SIZE = 64 * 1024


class StreamSource(ImageSource):
    """Source wrapping a one-shot stream.

    Accepts a binary file object (pipes, sockets, upload bodies) or an
    async iterable of byte chunks. Streams never support ranged reads;
    resolution always goes through :meth:`delegate`, which drains the
    stream and can therefore only be called once.
    """

    def __init__(
        self,
        stream: BinaryIO | AsyncIterable[bytes],
        *,
        source_id: str | None = None,
    ) -> None:
        super().__init__(source_id=source_id or "<stream>")
        self._stream = stream
        self._consumed = False

    async def exists(self) -> bool:
        if self._consumed:
            return False
        return not getattr(self._stream, "closed", False)

    async def supports_range_read(self) -> bool:
        return False

    async def length(self) -> int:
        raise ImageSourceError(
            "Stream sources have no known length", source_id=self.source_id
        )

    async def get_range(self, start: int, end: int) -> bytes:
        raise ImageSourceError(
            "Stream sources do not support ranged reads", source_id=self.source_id
        )

    async def delegate(self) -> ImageSource:
        """Drain the stream into a :class:`MemorySource`.

        Raises:
            ImageSourceError: If the stream was already drained, fails to
                read, or exceeds the configured size cap
        """
        if self._consumed:
            raise ImageSourceError(
                "Stream has already been consumed", source_id=self.source_id
            )
        self._consumed = True

        try:
            if isinstance(self._stream, AsyncIterable):
                data = await self._drain_async(self._stream)
            else:
                data = await anyio.to_thread.run_sync(self._drain_sync, self._stream)
        except OSError as exc:
            raise ImageSourceError(
                f"Failed to read stream: {exc}", source_id=self.source_id
            ) from exc

        logger.debug("Buffered %s bytes from %s", len(data), self.source_id)
        return MemorySource(data, source_id=self.source_id)

    async def _drain_async(self, stream: AsyncIterable[bytes]) -> bytes:
        buffer = bytearray()
        async for chunk in stream:
            buffer.extend(chunk)
            self._check_size(len(buffer))
        return bytes(buffer)

    def _drain_sync(self, stream: BinaryIO) -> bytes:
        buffer = bytearray()
        while True:
            chunk = stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            buffer.extend(chunk)
            self._check_size(len(buffer))
        return bytes(buffer)

    def _check_size(self, size: int) -> None:
        if size > config.MAX_DELEGATE_BYTES:
            raise ImageSourceError(
                f"Stream exceeds {config.MAX_DELEGATE_BYTES} bytes",
                source_id=self.source_id,
            )


__all__ = ["StreamSource"]
