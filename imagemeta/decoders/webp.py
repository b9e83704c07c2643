"""WebP header decoder."""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from imagemeta.decoders import HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

_VP8_START_CODE = b"\x9d\x01\x2a"
_VP8L_SIGNATURE = 0x2F


class WebpDecoder(HeaderDecoder):
    """Reads the first chunk of a RIFF/WEBP container.

    Simple lossy files start with ``VP8 ``, lossless ones with ``VP8L``
    and extended files (alpha, animation, metadata) with ``VP8X``, which
    carries the canvas size.
    """

    decoder_name = "webp"
    mime_type = "image/webp"
    signatures = ((0, b"RIFF"), (8, b"WEBP"))

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        # RIFF header(12) + chunk header(8) + up to 10 bytes of payload
        header = await self.read_exact(source, 0, 30)
        chunk = header[12:16]
        payload = header[20:]

        if chunk == b"VP8 ":
            if payload[3:6] != _VP8_START_CODE:
                raise self.error("Missing VP8 start code")
            width, height = struct.unpack_from("<HH", payload, 6)
            width &= 0x3FFF
            height &= 0x3FFF
        elif chunk == b"VP8L":
            if payload[0] != _VP8L_SIGNATURE:
                raise self.error("Missing VP8L signature byte")
            (bits,) = struct.unpack_from("<I", payload, 1)
            width = (bits & 0x3FFF) + 1
            height = ((bits >> 14) & 0x3FFF) + 1
        elif chunk == b"VP8X":
            width = int.from_bytes(payload[4:7], "little") + 1
            height = int.from_bytes(payload[7:10], "little") + 1
        else:
            raise self.error(f"Unknown WebP chunk {chunk!r}")

        return ImageMetadata(
            width=width,
            height=height,
            bit_depth=8,
            mime_type=self.mime_type,
        )


__all__ = ["WebpDecoder"]
