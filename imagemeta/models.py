"""Core data model returned by every resolution attempt."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar

MIME_PREFIX = "image/"
DEFAULT_MIME_TYPE = "image/png"

# EXIF orientation codes that transpose the image (width and height swap).
_TRANSPOSING_ORIENTATIONS = frozenset({5, 6, 7, 8})

# Keys accepted by ``ImageMetadata.from_dict`` besides the attribute names.
_KEY_ALIASES = {
    "bitDepth": "bit_depth",
    "mimeType": "mime_type",
}


@dataclass(frozen=True)
class ImageMetadata:
    """Header metadata of a single image.

    Instances are immutable. Equality and hashing ignore ``failure_detail``
    so two failed attempts with the same (zero) dimensions compare equal
    regardless of what went wrong.
    """

    width: int = 0
    height: int = 0
    bit_depth: int = 0
    mime_type: str = DEFAULT_MIME_TYPE
    orientation: int = 0
    failure_detail: BaseException | None = field(default=None, compare=False)

    none: ClassVar[ImageMetadata]

    @property
    def is_success(self) -> bool:
        """Check if this result describes a usable image."""
        return self.width > 0 and self.height > 0 and self.failure_detail is None

    @property
    def extension_name(self) -> str:
        """Return the bare format token, e.g. ``png`` for ``image/png``.

        Decoders must report mime types starting with ``image/``; anything
        else yields a meaningless token rather than an error.
        """
        return self.mime_type[len(MIME_PREFIX) :]

    @property
    def needs_rotation(self) -> bool:
        """Check if width and height must be swapped for display."""
        return self.orientation in _TRANSPOSING_ORIENTATIONS

    @property
    def display_size(self) -> tuple[int, int]:
        """Return ``(width, height)`` as the image should be laid out."""
        if self.needs_rotation:
            return self.height, self.width
        return self.width, self.height

    def copy_with(self, **changes: Any) -> ImageMetadata:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary suitable for JSON serialization."""
        return {
            "width": self.width,
            "height": self.height,
            "bit_depth": self.bit_depth,
            "mime_type": self.mime_type,
            "orientation": self.orientation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImageMetadata:
        """Rebuild metadata from a mapping produced by :meth:`to_dict`.

        Args:
            data: Mapping with width, height, bit_depth, mime_type and
                orientation. The camelCase spellings ``bitDepth`` and
                ``mimeType`` are accepted as well.

        Returns:
            A new ImageMetadata equal to the serialized one

        Raises:
            ValueError: If a key is missing or has the wrong type
        """
        values = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}

        kwargs: dict[str, Any] = {}
        for name in ("width", "height", "bit_depth", "orientation"):
            value = values.get(name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Expected integer for {name!r}, got {value!r}")
            kwargs[name] = value

        mime_type = values.get("mime_type")
        if not isinstance(mime_type, str):
            raise ValueError(f"Expected string for 'mime_type', got {mime_type!r}")
        kwargs["mime_type"] = mime_type

        return cls(**kwargs)


ImageMetadata.none = ImageMetadata()


__all__ = ["DEFAULT_MIME_TYPE", "MIME_PREFIX", "ImageMetadata"]
