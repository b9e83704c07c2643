"""CLI tool for imagemeta."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from imagemeta.config import config
from imagemeta.logging_config import configure_logging
from imagemeta.models import ImageMetadata
from imagemeta.resolver import (
    ResolutionError,
    resolve_from_path,
    resolve_from_url,
)
from imagemeta.sources import ImageSourceError


def is_url(target: str) -> bool:
    """Check if the target should be fetched over HTTP."""
    return target.startswith(("http://", "https://"))


async def inspect_target(target: str) -> ImageMetadata:
    """Resolve a single path or URL."""
    if is_url(target):
        return await resolve_from_url(target)
    return await resolve_from_path(target)


def format_metadata(target: str, metadata: ImageMetadata) -> str:
    """Render one line of human-readable output."""
    line = (
        f"{target}: {metadata.width}x{metadata.height} "
        f"{metadata.mime_type} depth={metadata.bit_depth}"
    )
    if metadata.orientation:
        line += f" orientation={metadata.orientation}"
    return line


async def inspect_targets(targets: list[str], *, as_json: bool = False) -> int:
    """Print metadata for every target and return the exit status."""
    status = 0
    for target in targets:
        try:
            metadata = await inspect_target(target)
        except (ResolutionError, ImageSourceError) as exc:
            status = 1
            if as_json:
                print(json.dumps({"target": target, "error": str(exc)}))
            else:
                print(f"{target}: error: {exc}", file=sys.stderr)
            continue

        if as_json:
            print(json.dumps({"target": target, **metadata.to_dict()}))
        else:
            print(format_metadata(target, metadata))
    return status


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Print image dimensions and format without decoding pixels."
    )
    parser.add_argument("targets", nargs="+", help="Image paths or http(s) URLs")
    parser.add_argument("--json", action="store_true", help="Emit JSON lines")
    parser.add_argument(
        "--debug", action="store_true", default=config.DEBUG, help="Verbose logging"
    )

    args = parser.parse_args(argv)
    configure_logging(debug=args.debug)

    sys.exit(asyncio.run(inspect_targets(args.targets, as_json=args.json)))


if __name__ == "__main__":
    main()
