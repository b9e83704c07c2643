"""HEIF/HEIC/AVIF header decoder.

HEIF files are ISO base media files: a ``ftyp`` box names the brands,
and the image properties live in ``meta/iprp/ipco``. The decoder reads the
``ftyp`` box, skips top-level boxes by their headers until ``meta``, loads
that box alone and reads the ``ispe`` (spatial extent), ``pixi`` (bits per
channel) and ``irot`` (rotation) properties.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator
from typing import TYPE_CHECKING

from imagemeta.config import config
from imagemeta.decoders import DecoderError, HeaderDecoder
from imagemeta.models import ImageMetadata

if TYPE_CHECKING:
    from imagemeta.sources import ImageSource

HEIC_BRANDS = frozenset(
    {b"heic", b"heix", b"heim", b"heis", b"hevc", b"hevx", b"hevm", b"hevs"}
)
AVIF_BRANDS = frozenset({b"avif", b"avis"})
HEIF_BRANDS = frozenset({b"mif1", b"mif2", b"msf1"}) | HEIC_BRANDS | AVIF_BRANDS

_MAX_FTYP_SIZE = 4096

# irot stores anti-clockwise quarter turns; map them to EXIF orientation.
_IROT_TO_ORIENTATION = {0: 1, 1: 8, 2: 3, 3: 6}


def _brands(ftyp: bytes) -> list[bytes]:
    """Return the major brand followed by the compatible brands."""
    compatible = [ftyp[i : i + 4] for i in range(16, len(ftyp) - 3, 4)]
    return [ftyp[8:12], *compatible]


def mime_type_for_brands(brands: list[bytes]) -> str:
    """Pick the mime type advertised by a ``ftyp`` brand list."""
    for brand in brands:
        if brand in AVIF_BRANDS:
            return "image/avif"
        if brand in HEIC_BRANDS:
            return "image/heic"
    return "image/heif"


def iter_boxes(data: bytes, start: int = 0) -> Iterator[tuple[bytes, bytes]]:
    """Yield ``(type, body)`` for each box in ``data[start:]``.

    Raises:
        DecoderError: If a box header is inconsistent with the data
    """
    offset = start
    while offset + 8 <= len(data):
        size, box_type = struct.unpack_from(">I4s", data, offset)
        header_size = 8
        if size == 1:
            (size,) = struct.unpack_from(">Q", data, offset + 8)
            header_size = 16
        elif size == 0:
            size = len(data) - offset

        if size < header_size or offset + size > len(data):
            raise DecoderError(
                f"Box {box_type!r} at {offset} has invalid size {size}",
                decoder_name="heif",
            )
        yield box_type, data[offset + header_size : offset + size]
        offset += size


def _find_child(data: bytes, box_type: bytes, start: int = 0) -> bytes:
    for child_type, body in iter_boxes(data, start):
        if child_type == box_type:
            return body
    raise DecoderError(f"Missing {box_type.decode()} box", decoder_name="heif")


class HeifDecoder(HeaderDecoder):
    """Decoder for HEIF-family images (HEIC, AVIF, generic HEIF)."""

    decoder_name = "heif"
    mime_type = "image/heif"
    signatures = ((4, b"ftyp"),)

    async def _read_ftyp(self, source: ImageSource) -> bytes | None:
        header = await source.get_range(0, 8)
        if len(header) < 8 or header[4:8] != b"ftyp":
            return None
        (size,) = struct.unpack_from(">I", header)
        if size < 16 or size > _MAX_FTYP_SIZE:
            return None
        ftyp = await source.get_range(0, size)
        return ftyp if len(ftyp) == size else None

    async def is_valid(self, source: ImageSource) -> bool:
        ftyp = await self._read_ftyp(source)
        if ftyp is None:
            return False
        return any(brand in HEIF_BRANDS for brand in _brands(ftyp))

    async def _read_meta(self, source: ImageSource, start: int) -> bytes:
        total = await source.length()
        offset = start
        while offset + 8 <= total:
            header = await self.read_exact(source, offset, 8)
            size, box_type = struct.unpack(">I4s", header)
            header_size = 8
            if size == 1:
                large_size = await self.read_exact(source, offset + 8, 8)
                (size,) = struct.unpack(">Q", large_size)
                header_size = 16
            elif size == 0:
                size = total - offset
            if size < header_size:
                raise self.error(f"Box {box_type!r} at {offset} has invalid size")

            if box_type == b"meta":
                if size > config.HEADER_SCAN_LIMIT:
                    raise self.error(f"meta box too large ({size} bytes)")
                return await self.read_exact(
                    source, offset + header_size, size - header_size
                )
            offset += size
        raise self.error("No meta box found")

    async def read_metadata(self, source: ImageSource) -> ImageMetadata:
        ftyp = await self._read_ftyp(source)
        if ftyp is None:
            raise self.error("Missing or oversized ftyp box")
        mime_type = mime_type_for_brands(_brands(ftyp))

        meta = await self._read_meta(source, len(ftyp))
        # meta is a full box: skip version and flags.
        iprp = _find_child(meta, b"iprp", 4)
        ipco = _find_child(iprp, b"ipco")

        width = height = bit_depth = orientation = 0
        for box_type, body in iter_boxes(ipco):
            if box_type == b"ispe":
                # Thumbnails carry their own ispe; the primary image is largest.
                item_width, item_height = struct.unpack_from(">II", body, 4)
                if item_width * item_height > width * height:
                    width, height = item_width, item_height
            elif box_type == b"pixi" and not bit_depth:
                if body[4] > 0:
                    bit_depth = body[5]
            elif box_type == b"irot" and not orientation:
                orientation = _IROT_TO_ORIENTATION[body[0] & 0x03]

        if not width or not height:
            raise self.error("No ispe property with a non-zero extent")

        return ImageMetadata(
            width=width,
            height=height,
            bit_depth=bit_depth,
            mime_type=mime_type,
            orientation=orientation,
        )


__all__ = [
    "AVIF_BRANDS",
    "HEIC_BRANDS",
    "HEIF_BRANDS",
    "HeifDecoder",
    "iter_boxes",
    "mime_type_for_brands",
]
