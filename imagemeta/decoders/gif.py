"""GIF header decoder."""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from imagemeta.decoders import HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource


class GifDecoder(HeaderDecoder):
    """Reads the logical screen descriptor following the GIF signature."""

    decoder_name = "gif"
    mime_type = "image/gif"
    alternatives = ((0, b"GIF87a"), (0, b"GIF89a"))

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        header = await self.read_exact(source, 0, 11)
        width, height, packed = struct.unpack_from("<HHB", header, 6)
        # Bits 4-6 of the packed field hold the color resolution minus one.
        bit_depth = ((packed >> 4) & 0x07) + 1
        return ImageMetadata(
            width=width,
            height=height,
            bit_depth=bit_depth,
            mime_type=self.mime_type,
        )


__all__ = ["GifDecoder"]
