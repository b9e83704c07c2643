"""In-memory byte source."""

from __future__ import annotations

from imagemeta.sources import ImageSource, ImageSourceError


class MemorySource(ImageSource):
    """Source backed by a bytes buffer.

    Also serves as the delegate produced by sources that cannot seek.
    """

    def __init__(self, data: bytes, *, source_id: str | None = None) -> None:
        """Initialize the memory source.

        Args:
            data: Image bytes
            source_id: Optional identifier for this source
        """
        super().__init__(source_id=source_id or "<memory>")
        self._data: bytes | None = bytes(data)

    @property
    def released(self) -> bool:
        """Check if :meth:`release` has dropped the buffer."""
        return self._data is None

    def _buffer(self) -> bytes:
        if self._data is None:
            raise ImageSourceError(
                "Memory source has been released", source_id=self.source_id
            )
        return self._data

    async def exists(self) -> bool:
        return self._data is not None

    async def supports_range_read(self) -> bool:
        return True

    async def length(self) -> int:
        return len(self._buffer())

    async def get_range(self, start: int, end: int) -> bytes:
        if start < 0 or end < start:
            raise ImageSourceError(
                f"Invalid range [{start}, {end})", source_id=self.source_id
            )
        return self._buffer()[start:end]

    async def delegate(self) -> ImageSource:
        return MemorySource(self._buffer(), source_id=self.source_id)

    async def release(self) -> None:
        self._data = None


__all__ = ["MemorySource"]
