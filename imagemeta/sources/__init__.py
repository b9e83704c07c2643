"""Byte source base classes.

Sources give decoders access to the raw bytes of an image (file, memory,
HTTP, arbitrary streams) without committing to how those bytes are stored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Self


class ImageSource(ABC):
    """Abstract base class for byte sources.

    A source either supports ranged reads (``get_range`` at any offset) or
    it does not, in which case the resolver asks it for a fully
    materialized :meth:`delegate` and releases that delegate afterwards.
    Used as an async context manager, a source releases itself on exit.
    """

    def __init__(self, source_id: str | None = None) -> None:
        """Initialize the source.

        Args:
            source_id: Optional identifier used in logs and errors
        """
        self.source_id = source_id

    @abstractmethod
    async def exists(self) -> bool:
        """Check if the underlying data is present."""
        pass

    @abstractmethod
    async def supports_range_read(self) -> bool:
        """Check if :meth:`get_range` can be used at arbitrary offsets."""
        pass

    @abstractmethod
    async def length(self) -> int:
        """Return the total number of bytes.

        Raises:
            ImageSourceError: If the length is unknown or unreadable
        """
        pass

    @abstractmethod
    async def get_range(self, start: int, end: int) -> bytes:
        """Read the bytes in ``[start, end)``.

        Reads past the end are clamped, so the result may be shorter than
        requested.

        Raises:
            ImageSourceError: If the source cannot be read
        """
        pass

    @abstractmethod
    async def delegate(self) -> ImageSource:
        """Return a range-capable copy of this source's content.

        The caller owns the returned source and must :meth:`release` it.

        Raises:
            ImageSourceError: If the content cannot be materialized
        """
        pass

    async def release(self) -> None:
        """Free resources held by this source.

        Sources without resources keep this default.
        """
        return None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source_id!r})"


class ImageSourceError(Exception):
    """Exception raised when a byte source cannot be read."""

    def __init__(self, message: str, source_id: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message
            source_id: Identifier of the source that failed
        """
        super().__init__(message)
        self.source_id = source_id


__all__ = ["ImageSource", "ImageSourceError"]
