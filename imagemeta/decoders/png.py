"""PNG header decoder."""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from imagemeta.decoders import HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class PngDecoder(HeaderDecoder):
    """Reads the IHDR chunk, which PNG requires to come first."""

    decoder_name = "png"
    mime_type = "image/png"
    signatures = ((0, PNG_SIGNATURE),)

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        # signature(8) + length(4) + type(4) + width(4) + height(4) + depth(1)
        header = await self.read_exact(source, 0, 25)
        if header[12:16] != b"IHDR":
            raise self.error("First chunk is not IHDR")

        width, height, bit_depth = struct.unpack_from(">IIB", header, 16)
        return ImageMetadata(
            width=width,
            height=height,
            bit_depth=bit_depth,
            mime_type=self.mime_type,
        )


__all__ = ["PNG_SIGNATURE", "PngDecoder"]
