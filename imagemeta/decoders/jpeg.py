"""JPEG header decoder.

Walks the marker segments from SOI to the first start-of-frame segment,
picking up the EXIF orientation from APP1 on the way. Only segment headers
and the few payloads of interest are read; ``HEADER_SCAN_LIMIT`` bounds
those reads, not the offset the walk may reach.
"""

from __future__ import annotations

import logging
import struct
from typing import TYPE_CHECKING

from imagemeta.config import config
from imagemeta.decoders import HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

logger = logging.getLogger("imagemeta.decoders")

# Start-of-frame markers; DHT (C4), JPG (C8) and DAC (CC) share the range.
SOF_MARKERS = frozenset(
    {0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF}
)
# Markers without a length field.
_STANDALONE_MARKERS = frozenset({0x01, 0xD8, *range(0xD0, 0xD8)})
_APP1 = 0xE1
_SOS = 0xDA
_EOI = 0xD9

_EXIF_HEADER = b"Exif\x00\x00"
_ORIENTATION_TAG = 0x0112


def read_exif_orientation(payload: bytes) -> int:
    """Return the orientation stored in an APP1 EXIF payload.

    Returns 0 when the payload is not EXIF, has no orientation tag, or is
    too short to contain one.
    """
    if not payload.startswith(_EXIF_HEADER):
        return 0
    tiff = payload[len(_EXIF_HEADER) :]

    byte_order = tiff[:2]
    if byte_order == b"II":
        endian = "<"
    elif byte_order == b"MM":
        endian = ">"
    else:
        return 0

    try:
        (ifd_offset,) = struct.unpack_from(endian + "I", tiff, 4)
        (count,) = struct.unpack_from(endian + "H", tiff, ifd_offset)
        for index in range(count):
            entry = ifd_offset + 2 + index * 12
            (tag,) = struct.unpack_from(endian + "H", tiff, entry)
            if tag == _ORIENTATION_TAG:
                (value,) = struct.unpack_from(endian + "H", tiff, entry + 8)
                return value if 1 <= value <= 8 else 0
    except struct.error:
        logger.debug("Truncated EXIF block, ignoring orientation")
    return 0


class JpegDecoder(HeaderDecoder):
    """Decoder for JPEG/JFIF/EXIF files."""

    decoder_name = "jpeg"
    mime_type = "image/jpeg"
    signatures = ((0, b"\xff\xd8\xff"),)

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        total = await source.length()
        limit = config.HEADER_SCAN_LIMIT
        orientation = 0
        offset = 2
        scanned = 0

        while offset + 4 <= total:
            if scanned > limit:
                raise self.error(f"No start-of-frame marker within {limit} bytes read")
            marker_header = await self.read_exact(source, offset, 4)
            scanned += len(marker_header)
            if marker_header[0] != 0xFF:
                raise self.error(f"Expected marker at offset {offset}")

            marker = marker_header[1]
            if marker == 0xFF:
                # Fill byte before the actual marker.
                offset += 1
                continue
            if marker in _STANDALONE_MARKERS:
                offset += 2
                continue
            if marker in (_SOS, _EOI):
                break

            (segment_length,) = struct.unpack_from(">H", marker_header, 2)
            if segment_length < 2:
                raise self.error(f"Invalid segment length at offset {offset}")

            if marker == _APP1 and orientation == 0:
                segment_end = offset + 2 + segment_length
                payload = await source.get_range(offset + 4, segment_end)
                scanned += len(payload)
                orientation = read_exif_orientation(payload)
            elif marker in SOF_MARKERS:
                frame = await self.read_exact(source, offset + 4, 6)
                precision, height, width, components = struct.unpack(">BHHB", frame)
                if components == 0:
                    raise self.error("Frame header declares no components")
                return ImageMetadata(
                    width=width,
                    height=height,
                    bit_depth=precision,
                    mime_type=self.mime_type,
                    orientation=orientation,
                )

            offset += 2 + segment_length

        raise self.error("No start-of-frame marker before image data")


__all__ = ["JpegDecoder", "SOF_MARKERS", "read_exif_orientation"]
