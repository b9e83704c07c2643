"""Tests for the metadata resolver."""

from __future__ import annotations

from collections.abc import AsyncIterator
from io import BytesIO
from pathlib import Path

import pytest
from image_fixtures import heif_bytes, pil_image_bytes, png_bytes_minimal

from imagemeta import resolver
from imagemeta.decoders import BaseDecoder, DecoderError
from imagemeta.models import ImageMetadata
from imagemeta.registry import DecoderRegistry, register_decoder
from imagemeta.resolver import (
    MetadataResolver,
    SourceNotFoundError,
    UnsupportedFormatError,
    resolve,
    resolve_from_bytes,
    resolve_from_path,
    resolve_path_sync,
)
from imagemeta.sources import ImageSource, ImageSourceError
from imagemeta.sources.memory import MemorySource
from imagemeta.sources.stream import StreamSource


class _ScriptedDecoder(BaseDecoder):
    """Decoder whose answers are fixed up front; records every call."""

    def __init__(
        self,
        name: str,
        *,
        valid: bool = True,
        result: ImageMetadata | None = None,
    ) -> None:
        self._name = name
        self.valid = valid
        self.result = result or ImageMetadata.none
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def is_valid(self, source: ImageSource) -> bool:
        self.calls.append("is_valid")
        return self.valid

    async def parse(self, source: ImageSource) -> ImageMetadata:
        self.calls.append("parse")
        return self.result


class _UnseekableSource(ImageSource):
    """Non-range source that counts delegate acquisitions and releases."""

    def __init__(self, data: bytes) -> None:
        super().__init__(source_id="unseekable")
        self.data = data
        self.delegates: list[MemorySource] = []
        self.released = 0

    async def exists(self) -> bool:
        return True

    async def supports_range_read(self) -> bool:
        return False

    async def length(self) -> int:
        raise ImageSourceError("no length")

    async def get_range(self, start: int, end: int) -> bytes:
        raise ImageSourceError("no ranges")

    async def delegate(self) -> ImageSource:
        outer = self

        class _Delegate(MemorySource):
            async def release(self) -> None:
                outer.released += 1
                await super().release()

        delegate = _Delegate(self.data, source_id="unseekable-delegate")
        self.delegates.append(delegate)
        return delegate


class _MissingSource(MemorySource):
    async def exists(self) -> bool:
        return False


class _UnreadableSource(MemorySource):
    """Range-capable source whose reads always fail, like an HTTP 500."""

    async def get_range(self, start: int, end: int) -> bytes:
        raise ImageSourceError("HTTP 500 on ranged read", source_id=self.source_id)


@pytest.mark.parametrize(
    ("data", "mime_type", "extension"),
    [
        (pil_image_bytes("JPEG"), "image/jpeg", "jpeg"),
        (pil_image_bytes("PNG"), "image/png", "png"),
        (pil_image_bytes("GIF"), "image/gif", "gif"),
        (pil_image_bytes("WEBP"), "image/webp", "webp"),
        (heif_bytes(64, 32), "image/heif", "heif"),
        (pil_image_bytes("BMP"), "image/bmp", "bmp"),
    ],
)
@pytest.mark.asyncio
async def test_resolves_every_builtin_format(
    data: bytes, mime_type: str, extension: str
) -> None:
    metadata = await resolve_from_bytes(data)

    assert metadata.is_success
    assert (metadata.width, metadata.height) == (64, 32)
    assert metadata.mime_type == mime_type
    assert metadata.extension_name == extension


@pytest.mark.asyncio
async def test_minimal_png_resolves_to_one_by_one(png_1x1: bytes) -> None:
    metadata = await resolve(MemorySource(png_1x1))

    assert metadata.width == 1
    assert metadata.height == 1
    assert metadata.mime_type == "image/png"
    assert metadata.is_success


@pytest.mark.asyncio
async def test_resolve_from_path(tmp_path: Path) -> None:
    image_path = tmp_path / "photo.jpg"
    image_path.write_bytes(pil_image_bytes("JPEG", (300, 200)))

    metadata = await resolve_from_path(image_path)

    assert (metadata.width, metadata.height) == (300, 200)
    assert metadata.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_missing_path_raises_source_not_found(tmp_path: Path) -> None:
    missing = tmp_path / "nope.png"

    with pytest.raises(SourceNotFoundError) as exc_info:
        await resolve_from_path(missing)

    assert exc_info.value.source_id == str(missing)


@pytest.mark.asyncio
async def test_missing_source_is_checked_before_anything_else() -> None:
    decoder = _ScriptedDecoder("spy")
    resolver_ = MetadataResolver(DecoderRegistry([decoder]))

    with pytest.raises(SourceNotFoundError):
        await resolver_.resolve(_MissingSource(b""))

    assert decoder.calls == []


@pytest.mark.asyncio
async def test_unknown_bytes_raise_unsupported_format() -> None:
    with pytest.raises(UnsupportedFormatError) as exc_info:
        await resolve_from_bytes(b"this is plain text, not an image")

    assert exc_info.value.failure_detail is None


@pytest.mark.asyncio
async def test_unsupported_format_carries_decoder_failure() -> None:
    truncated = png_bytes_minimal()[:20]

    with pytest.raises(UnsupportedFormatError) as exc_info:
        await resolve_from_bytes(truncated)

    detail = exc_info.value.failure_detail
    assert isinstance(detail, DecoderError)
    assert detail.decoder_name == "png"
    assert exc_info.value.__cause__ is detail


@pytest.mark.asyncio
async def test_read_failure_is_reported_as_failure_detail() -> None:
    with pytest.raises(UnsupportedFormatError) as exc_info:
        await resolve(_UnreadableSource(b"\xff\xd8\xff", source_id="unreadable"))

    detail = exc_info.value.failure_detail
    assert isinstance(detail, ImageSourceError)
    assert detail.source_id == "unreadable"
    assert exc_info.value.__cause__ is detail


@pytest.mark.asyncio
async def test_read_failure_in_one_decoder_does_not_stop_the_loop() -> None:
    class _FailingReadDecoder(_ScriptedDecoder):
        async def is_valid(self, source: ImageSource) -> bool:
            self.calls.append("is_valid")
            raise ImageSourceError("read failed")

    failing = _FailingReadDecoder("failing")
    working = _ScriptedDecoder("working", result=ImageMetadata(width=4, height=4))
    resolver_ = MetadataResolver(DecoderRegistry([failing, working]))

    metadata = await resolver_.resolve(MemorySource(b"x"))

    assert metadata.width == 4
    assert failing.calls == ["is_valid"]


@pytest.mark.asyncio
async def test_first_success_wins_and_stops_the_loop() -> None:
    first = _ScriptedDecoder("first", result=ImageMetadata(width=1, height=1))
    second = _ScriptedDecoder("second", result=ImageMetadata(width=2, height=2))
    resolver_ = MetadataResolver(DecoderRegistry([first, second]))

    metadata = await resolver_.resolve(MemorySource(b"x"))

    assert metadata == ImageMetadata(width=1, height=1)
    assert second.calls == []


@pytest.mark.asyncio
async def test_rejecting_decoders_are_skipped_without_parse() -> None:
    rejecting = _ScriptedDecoder("rejecting", valid=False)
    accepting = _ScriptedDecoder("accepting", result=ImageMetadata(width=5, height=5))
    resolver_ = MetadataResolver(DecoderRegistry([rejecting, accepting]))

    metadata = await resolver_.resolve(MemorySource(b"x"))

    assert metadata.width == 5
    assert rejecting.calls == ["is_valid"]
    assert accepting.calls == ["is_valid", "parse"]


@pytest.mark.asyncio
async def test_last_attempted_failure_is_reported() -> None:
    first_error = DecoderError("first")
    last_error = DecoderError("last")
    resolver_ = MetadataResolver(
        DecoderRegistry(
            [
                _ScriptedDecoder("a", result=ImageMetadata(failure_detail=first_error)),
                _ScriptedDecoder("b", result=ImageMetadata(failure_detail=last_error)),
                _ScriptedDecoder("c", valid=False),
            ]
        )
    )

    with pytest.raises(UnsupportedFormatError) as exc_info:
        await resolver_.resolve(MemorySource(b"x"))

    assert exc_info.value.failure_detail is last_error


@pytest.mark.asyncio
async def test_parse_failure_lets_later_decoder_succeed() -> None:
    failing = _ScriptedDecoder(
        "failing", result=ImageMetadata(failure_detail=DecoderError("false positive"))
    )
    working = _ScriptedDecoder("working", result=ImageMetadata(width=9, height=9))
    resolver_ = MetadataResolver(DecoderRegistry([failing, working]))

    metadata = await resolver_.resolve(MemorySource(b"x"))

    assert metadata.is_success
    assert metadata.failure_detail is None


@pytest.mark.asyncio
async def test_unseekable_source_is_delegated_and_released_once(
    png_1x1: bytes,
) -> None:
    source = _UnseekableSource(png_1x1)

    metadata = await resolve(source)

    assert metadata.is_success
    assert len(source.delegates) == 1
    assert source.released == 1
    assert source.delegates[0].released


@pytest.mark.asyncio
async def test_delegate_is_released_when_resolution_fails() -> None:
    source = _UnseekableSource(b"garbage bytes")

    with pytest.raises(UnsupportedFormatError):
        await resolve(source)

    assert len(source.delegates) == 1
    assert source.released == 1


@pytest.mark.asyncio
async def test_stream_source_resolves_through_delegate() -> None:
    data = pil_image_bytes("GIF", (12, 34))

    metadata = await resolve(StreamSource(BytesIO(data)))

    assert (metadata.width, metadata.height) == (12, 34)


@pytest.mark.asyncio
async def test_async_stream_source_resolves_through_delegate() -> None:
    data = pil_image_bytes("PNG", (8, 9))

    async def chunks() -> AsyncIterator[bytes]:
        for index in range(0, len(data), 7):
            yield data[index : index + 7]

    metadata = await resolve(StreamSource(chunks()))

    assert (metadata.width, metadata.height) == (8, 9)


@pytest.mark.asyncio
async def test_registered_override_is_used_in_original_slot(
    isolated_registry: DecoderRegistry, png_1x1: bytes
) -> None:
    fake = ImageMetadata(width=7, height=7, mime_type="image/png")
    override = _ScriptedDecoder("png", result=fake)

    register_decoder(override)
    metadata = await resolve(MemorySource(png_1x1))

    assert metadata == fake
    assert isolated_registry.names().index("png") == 1


@pytest.mark.asyncio
async def test_custom_decoder_extends_default_registry(
    isolated_registry: DecoderRegistry,
) -> None:
    custom = _ScriptedDecoder(
        "custom", result=ImageMetadata(width=3, height=3, mime_type="image/x-custom")
    )

    register_decoder(custom)
    metadata = await resolve_from_bytes(b"custom format payload")

    assert metadata.extension_name == "x-custom"
    assert isolated_registry.names()[-1] == "custom"


@pytest.mark.asyncio
async def test_private_registry_ignores_global_registrations(
    isolated_registry: DecoderRegistry, png_1x1: bytes
) -> None:
    private = MetadataResolver(DecoderRegistry([_ScriptedDecoder("only", valid=False)]))
    register_decoder(_ScriptedDecoder("global", result=ImageMetadata(width=1, height=1)))

    with pytest.raises(UnsupportedFormatError):
        await private.resolve(MemorySource(png_1x1))


def test_resolve_path_sync(tmp_path: Path) -> None:
    image_path = tmp_path / "image.bmp"
    image_path.write_bytes(pil_image_bytes("BMP", (5, 4)))

    metadata = resolve_path_sync(image_path)

    assert (metadata.width, metadata.height) == (5, 4)


def test_resolver_exports_error_hierarchy() -> None:
    assert issubclass(resolver.SourceNotFoundError, resolver.ResolutionError)
    assert issubclass(resolver.UnsupportedFormatError, resolver.ResolutionError)
