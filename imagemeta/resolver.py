"""Metadata resolver.

Coordinates the flow: Source → capability negotiation → Decoders
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import anyio

from imagemeta.models import ImageMetadata
from imagemeta.registry import get_default_registry
from imagemeta.sources import ImageSourceError
from imagemeta.sources.file import FileSource
from imagemeta.sources.memory import MemorySource
from imagemeta.sources.url import URLSource

if TYPE_CHECKING:
    from imagemeta.registry import DecoderRegistry
    from imagemeta.sources import ImageSource

logger = logging.getLogger("imagemeta.resolver")


class ResolutionError(Exception):
    """Base class for errors raised by :meth:`MetadataResolver.resolve`."""

    def __init__(self, message: str, source_id: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message
            source_id: Identifier of the source being resolved
        """
        super().__init__(message)
        self.source_id = source_id


class SourceNotFoundError(ResolutionError):
    """The source does not exist."""


class UnsupportedFormatError(ResolutionError):
    """No decoder recognised the source and extracted its metadata."""

    def __init__(
        self,
        message: str,
        source_id: str | None = None,
        failure_detail: BaseException | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Error message
            source_id: Identifier of the source being resolved
            failure_detail: Failure reported by the last decoder that
                claimed the source, or the source error that stopped the
                last decoder from reading it, if any
        """
        super().__init__(message, source_id=source_id)
        self.failure_detail = failure_detail


class MetadataResolver:
    """Resolves image metadata by trying each registered decoder in order.

    The resolver:
    1. Fails fast when the source does not exist
    2. Swaps in a buffered delegate when the source cannot seek
    3. Asks each decoder ``is_valid`` then ``parse``; the first successful
       result wins

    Example:
        resolver = MetadataResolver()
        metadata = await resolver.resolve(FileSource("photo.jpg"))
    """

    def __init__(self, registry: DecoderRegistry | None = None) -> None:
        """Initialize the resolver.

        Args:
            registry: Decoders to try; defaults to the process-wide registry,
                looked up on every call so later registrations apply
        """
        self._registry = registry

    @property
    def registry(self) -> DecoderRegistry:
        return self._registry if self._registry is not None else get_default_registry()

    async def resolve(self, source: ImageSource) -> ImageMetadata:
        """Resolve the metadata of ``source``.

        Args:
            source: Byte source to inspect

        Returns:
            The first successful ImageMetadata

        Raises:
            SourceNotFoundError: If the source does not exist
            UnsupportedFormatError: If no decoder produced a result
            ImageSourceError: If the source fails outside a decoder
        """
        if not await source.exists():
            raise SourceNotFoundError(
                f"Image source does not exist: {source.source_id}",
                source_id=source.source_id,
            )

        if not await source.supports_range_read():
            logger.debug("Source %s cannot seek, buffering delegate", source)
            delegate = await source.delegate()
            try:
                return await self.resolve(delegate)
            finally:
                await delegate.release()

        candidate = ImageMetadata.none

        for decoder in self.registry:
            try:
                valid = await decoder.is_valid(source)
            except ImageSourceError as exc:
                # Unreadable bytes count as this decoder's failure.
                logger.debug(
                    "Decoder %s could not read %s: %s", decoder.name, source, exc
                )
                candidate = ImageMetadata(failure_detail=exc)
                continue
            if not valid:
                logger.debug("Decoder %s does not recognise %s", decoder.name, source)
                continue

            candidate = await decoder.parse(source)
            if candidate.is_success:
                logger.debug(
                    "Decoder %s resolved %s: %sx%s %s",
                    decoder.name,
                    source,
                    candidate.width,
                    candidate.height,
                    candidate.mime_type,
                )
                return candidate

            logger.debug(
                "Decoder %s claimed %s but failed: %s",
                decoder.name,
                source,
                candidate.failure_detail,
            )

        # Only the last attempted decoder's failure is kept.
        detail = candidate.failure_detail
        message = f"Unsupported image format: {source.source_id}"
        if detail is not None:
            message = f"{message} ({detail})"
        logger.info(message)
        raise UnsupportedFormatError(
            message, source_id=source.source_id, failure_detail=detail
        ) from detail


_default_resolver = MetadataResolver()


async def resolve(source: ImageSource) -> ImageMetadata:
    """Resolve ``source`` with the process-wide registry."""
    return await _default_resolver.resolve(source)


async def resolve_from_path(path: str | Path) -> ImageMetadata:
    """Resolve the image file at ``path``."""
    return await resolve(FileSource(path))


async def resolve_from_bytes(data: bytes) -> ImageMetadata:
    """Resolve an image held in memory."""
    return await resolve(MemorySource(data))


async def resolve_from_url(url: str, **options: Any) -> ImageMetadata:
    """Resolve a remote image.

    Args:
        url: HTTP(S) URL of the image
        **options: Passed to :class:`~imagemeta.sources.url.URLSource`
    """
    async with URLSource(url, **options) as source:
        return await resolve(source)


def resolve_path_sync(path: str | Path) -> ImageMetadata:
    """Blocking variant of :func:`resolve_from_path` for synchronous callers."""
    return anyio.run(resolve_from_path, path)


__all__ = [
    "MetadataResolver",
    "ResolutionError",
    "SourceNotFoundError",
    "UnsupportedFormatError",
    "resolve",
    "resolve_from_bytes",
    "resolve_from_path",
    "resolve_from_url",
    "resolve_path_sync",
]
