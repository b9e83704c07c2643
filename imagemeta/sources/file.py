"""File-based byte source.

Reads image headers from the local filesystem without loading whole files.
"""

from __future__ import annotations

import logging
from pathlib import Path

import anyio

from imagemeta.config import config
from imagemeta.sources import ImageSource, ImageSourceError
from imagemeta.sources.memory import MemorySource

logger = logging.getLogger("imagemeta.sources")


class FileSource(ImageSource):
    """Source that reads from a file on disk.

    Every read opens the file, seeks and closes it again, so the source
    holds no handle between calls and needs no release.
    """

    def __init__(
        self,
        file_path: Path | str,
        *,
        source_id: str | None = None,
    ) -> None:
        """Initialize the file source.

        Args:
            file_path: Path to the image file
            source_id: Optional identifier for this source
        """
        self.file_path = Path(file_path)
        super().__init__(source_id=source_id or str(self.file_path))

    async def exists(self) -> bool:
        """Check if the path exists and is a regular file."""
        return await anyio.Path(self.file_path).is_file()

    async def supports_range_read(self) -> bool:
        return True

    async def length(self) -> int:
        try:
            stat = await anyio.Path(self.file_path).stat()
        except OSError as exc:
            raise ImageSourceError(
                f"Failed to stat {self.file_path}: {exc}",
                source_id=self.source_id,
            ) from exc
        return stat.st_size

    async def get_range(self, start: int, end: int) -> bytes:
        if start < 0 or end < start:
            raise ImageSourceError(
                f"Invalid range [{start}, {end})", source_id=self.source_id
            )
        try:
            async with await anyio.open_file(self.file_path, "rb") as handle:
                await handle.seek(start)
                return await handle.read(end - start)
        except OSError as exc:
            raise ImageSourceError(
                f"Failed to read {self.file_path}: {exc}",
                source_id=self.source_id,
            ) from exc

    async def delegate(self) -> ImageSource:
        """Load the whole file into a :class:`MemorySource`."""
        size = await self.length()
        if size > config.MAX_DELEGATE_BYTES:
            raise ImageSourceError(
                f"File too large to buffer ({size} bytes): {self.file_path}",
                source_id=self.source_id,
            )
        logger.debug("Buffering %s bytes from %s", size, self.file_path)
        return MemorySource(await self.get_range(0, size), source_id=self.source_id)


__all__ = ["FileSource"]
