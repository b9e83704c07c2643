"""Read image dimensions, bit depth, orientation and format from headers.

Example:
    from imagemeta import resolve_from_path

    metadata = await resolve_from_path("photo.jpg")
    print(metadata.width, metadata.height, metadata.extension_name)

Custom decoders implement :class:`BaseDecoder` and are added with
:func:`register_decoder`; re-registering a built-in name replaces it
without changing the order in which decoders are tried.
"""

from __future__ import annotations

__version__ = "0.1.0"

from imagemeta.decoders import BaseDecoder, DecoderError, HeaderDecoder
from imagemeta.models import ImageMetadata
from imagemeta.registry import (
    DecoderRegistry,
    default_registry,
    get_default_registry,
    register_decoder,
)
from imagemeta.resolver import (
    MetadataResolver,
    ResolutionError,
    SourceNotFoundError,
    UnsupportedFormatError,
    resolve,
    resolve_from_bytes,
    resolve_from_path,
    resolve_from_url,
    resolve_path_sync,
)
from imagemeta.sources import ImageSource, ImageSourceError
from imagemeta.sources.file import FileSource
from imagemeta.sources.memory import MemorySource
from imagemeta.sources.stream import StreamSource
from imagemeta.sources.url import URLSource

__all__ = [
    "__version__",
    # Model
    "ImageMetadata",
    # Decoders
    "BaseDecoder",
    "DecoderError",
    "HeaderDecoder",
    # Registry
    "DecoderRegistry",
    "default_registry",
    "get_default_registry",
    "register_decoder",
    # Resolver
    "MetadataResolver",
    "ResolutionError",
    "SourceNotFoundError",
    "UnsupportedFormatError",
    "resolve",
    "resolve_from_bytes",
    "resolve_from_path",
    "resolve_from_url",
    "resolve_path_sync",
    # Sources
    "FileSource",
    "ImageSource",
    "ImageSourceError",
    "MemorySource",
    "StreamSource",
    "URLSource",
]
