"""Decoder registry.

Holds the ordered set of format decoders the resolver tries. The module
level :data:`default_registry` is created on import with the built-in
decoders and shared by the whole process.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from imagemeta.decoders import BaseDecoder
from imagemeta.decoders.bmp import BmpDecoder
from imagemeta.decoders.gif import GifDecoder
from imagemeta.decoders.heif import HeifDecoder
from imagemeta.decoders.jpeg import JpegDecoder
from imagemeta.decoders.png import PngDecoder
from imagemeta.decoders.webp import WebpDecoder


class DecoderRegistry:
    """Ordered, name-keyed collection of decoders.

    Re-registering a name swaps the decoder in place: it keeps the position
    of the first registration under that name.

    The registry is not synchronized. Each traversal snapshots the names
    when it starts and looks decoders up as it reaches them, so a decoder
    overridden mid-traversal may be seen in its old or new form and a name
    added mid-traversal is only seen by later traversals. Register custom
    decoders at startup if that matters.
    """

    def __init__(self, decoders: Iterable[BaseDecoder] = ()) -> None:
        self._decoders: dict[str, BaseDecoder] = {}
        for decoder in decoders:
            self.register(decoder)

    def register(self, decoder: BaseDecoder) -> None:
        """Add a decoder, replacing any decoder with the same name."""
        # dict assignment to an existing key keeps its insertion position.
        self._decoders[decoder.name] = decoder

    def get(self, name: str) -> BaseDecoder | None:
        """Return the decoder registered under ``name``, if any."""
        return self._decoders.get(name)

    def names(self) -> list[str]:
        """Return the registered names in iteration order."""
        return list(self._decoders)

    def copy(self) -> DecoderRegistry:
        """Return an independent registry with the same decoders and order."""
        return DecoderRegistry(self._decoders.values())

    def __iter__(self) -> Iterator[BaseDecoder]:
        for name in list(self._decoders):
            decoder = self._decoders.get(name)
            if decoder is not None:
                yield decoder

    def __len__(self) -> int:
        return len(self._decoders)

    def __contains__(self, name: object) -> bool:
        return name in self._decoders

    def __repr__(self) -> str:
        return f"DecoderRegistry({self.names()!r})"


def _build_default_registry() -> DecoderRegistry:
    return DecoderRegistry(
        [
            JpegDecoder(),
            PngDecoder(),
            GifDecoder(),
            WebpDecoder(),
            HeifDecoder(),
            BmpDecoder(),
        ]
    )


default_registry = _build_default_registry()


def get_default_registry() -> DecoderRegistry:
    """Return the process-wide registry used when none is given."""
    return default_registry


def register_decoder(decoder: BaseDecoder) -> None:
    """Register a decoder in the process-wide registry.

    Not thread-safe; see :class:`DecoderRegistry`.
    """
    get_default_registry().register(decoder)


__all__ = [
    "DecoderRegistry",
    "default_registry",
    "get_default_registry",
    "register_decoder",
]
