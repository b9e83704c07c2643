"""BMP header decoder."""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from imagemeta.decoders import HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

_FILE_HEADER_SIZE = 14
_CORE_HEADER_SIZE = 12  # OS/2 BITMAPCOREHEADER


class BmpDecoder(HeaderDecoder):
    """Reads the DIB header that follows the 14-byte file header.

    Handles the OS/2 core header (16-bit dimensions) and every
    BITMAPINFOHEADER variant (signed 32-bit dimensions; negative height
    marks a top-down bitmap).
    """

    decoder_name = "bmp"
    mime_type = "image/bmp"
    signatures = ((0, b"BM"),)

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        header = await self.read_exact(source, 0, _FILE_HEADER_SIZE + 4)
        (dib_size,) = struct.unpack_from("<I", header, _FILE_HEADER_SIZE)

        if dib_size == _CORE_HEADER_SIZE:
            dib = await self.read_exact(source, _FILE_HEADER_SIZE, dib_size)
            width, height, _planes, bit_count = struct.unpack_from("<HHHH", dib, 4)
        elif dib_size >= 40:
            dib = await self.read_exact(source, _FILE_HEADER_SIZE, 16)
            width, height, _planes, bit_count = struct.unpack_from("<iiHH", dib, 4)
        else:
            raise self.error(f"Unsupported DIB header size {dib_size}")

        return ImageMetadata(
            width=abs(width),
            height=abs(height),
            bit_depth=bit_count,
            mime_type=self.mime_type,
        )


__all__ = ["BmpDecoder"]
