"""Format decoder base classes.

Decoders recognise one container format and read its header to produce an
:class:`~imagemeta.models.ImageMetadata`. They never decode pixel data.
"""

from __future__ import annotations

import logging
import struct
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar

from imagemeta.models import ImageMetadata
from imagemeta.sources import ImageSourceError

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

logger = logging.getLogger("imagemeta.decoders")


class BaseDecoder(ABC):
    """Abstract base class for format decoders.

    Implementations must be stateless so one instance can serve every
    resolution. ``is_valid`` must return False rather than raise on
    malformed or short input; only an :class:`ImageSourceError` from the
    source itself may escape it. ``parse`` reports failures through
    ``ImageMetadata.failure_detail`` instead of raising.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique name of this decoder (the registry key)."""
        pass

    @abstractmethod
    async def is_valid(self, source: ImageSource) -> bool:
        """Check if the source looks like this decoder's format.

        Args:
            source: A range-capable byte source

        Returns:
            True if the leading bytes match the format signature
        """
        pass

    @abstractmethod
    async def parse(self, source: ImageSource) -> ImageMetadata:
        """Read the header and return the image metadata.

        Args:
            source: A range-capable byte source

        Returns:
            Metadata; on failure ``is_success`` is False and
            ``failure_detail`` holds the reason
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DecoderError(Exception):
    """Exception raised when an image header is malformed."""

    def __init__(self, message: str, decoder_name: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Error message
            decoder_name: Name of the decoder that failed
        """
        super().__init__(message)
        self.decoder_name = decoder_name


Signature = tuple[int, bytes]  # (offset, magic bytes)


class HeaderDecoder(BaseDecoder):
    """Base for decoders identified by fixed magic bytes.

    Subclasses declare ``decoder_name``, ``mime_type`` and either
    ``signatures`` (all must match) or ``alternatives`` (any must match),
    and implement :meth:`read_metadata`. Errors raised while reading are
    turned into a failed :class:`ImageMetadata`.
    """

    decoder_name: ClassVar[str]
    mime_type: ClassVar[str]
    signatures: ClassVar[Sequence[Signature]] = ()
    alternatives: ClassVar[Sequence[Signature]] = ()

    @property
    def name(self) -> str:
        return self.decoder_name

    @property
    def signature_size(self) -> int:
        """Number of leading bytes needed by :meth:`matches`."""
        declared = (*self.signatures, *self.alternatives)
        return max((offset + len(magic) for offset, magic in declared), default=0)

    def matches(self, header: bytes) -> bool:
        """Check the leading bytes against the declared signatures."""
        if not all(
            header[offset : offset + len(magic)] == magic
            for offset, magic in self.signatures
        ):
            return False
        if self.alternatives:
            return any(
                header[offset : offset + len(magic)] == magic
                for offset, magic in self.alternatives
            )
        return True

    async def is_valid(self, source: ImageSource) -> bool:
        """Match the leading bytes of ``source``.

        Raises:
            ImageSourceError: If the leading bytes cannot be read
        """
        header = await source.get_range(0, self.signature_size)
        if len(header) < self.signature_size:
            return False
        return self.matches(header)

    async def parse(self, source: ImageSource) -> ImageMetadata:
        try:
            return await self.read_metadata(source)
        except (
            DecoderError,
            ImageSourceError,
            IndexError,
            struct.error,
            ValueError,
        ) as exc:
            logger.debug("%s decoder failed on %s: %s", self.name, source, exc)
            return self.failure(exc)

    @abstractmethod
    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        """Extract metadata, raising on malformed headers.

        Raises:
            DecoderError: If the header is malformed
        """
        pass

    def failure(self, exc: BaseException) -> ImageMetadata:
        """Build the failed result reported for ``exc``."""
        return ImageMetadata(mime_type=self.mime_type, failure_detail=exc)

    def error(self, message: str) -> DecoderError:
        """Build a :class:`DecoderError` tagged with this decoder's name."""
        return DecoderError(message, decoder_name=self.name)

    async def read_exact(self, source: ImageSource, start: int, size: int) -> bytes:
        """Read exactly ``size`` bytes at ``start``.

        Raises:
            DecoderError: If the source ends early
        """
        data = await source.get_range(start, start + size)
        if len(data) < size:
            raise self.error(
                f"Truncated {self.name} header: wanted {size} bytes at {start}, "
                f"got {len(data)}"
            )
        return data


__all__ = [
    "BaseDecoder",
    "DecoderError",
    "HeaderDecoder",
    "Signature",
]
