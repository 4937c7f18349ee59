from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from .config import load_settings
from .exceptions import AssetCdnError
from .uploader import AssetUploader


def iter_asset_refs(source: Path, patterns: List[str]) -> Iterator[str]:
    """Yield ``/``-rooted references for every publishable file below ``source``.

    Paths with a component starting with ``.`` or ``_`` are skipped.
    """
    seen = set()
    for pattern in patterns:
        for item in sorted(source.rglob(pattern)):
            if not item.is_file():
                continue
            relative = item.relative_to(source)
            if any(part.startswith((".", "_")) for part in relative.parts):
                continue
            ref = "/" + relative.as_posix()
            if ref not in seen:
                seen.add(ref)
                yield ref


def sync(uploader: AssetUploader, args: argparse.Namespace) -> int:
    source = uploader.settings.source_dir
    mapping = {}
    for ref in iter_asset_refs(source, args.pattern or ["*"]):
        url = uploader.resolve(ref)
        mapping[ref] = url
        print(f"{ref} -> {url}")

    if args.delete_unused:
        deleted = uploader.delete_unused()
        print(f"Deleted {len(deleted)} unused object(s)")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(mapping, f, indent=2)
        print(f"Mapping saved to: {args.output}")
    return 0


def resolve(uploader: AssetUploader, args: argparse.Namespace) -> int:
    for ref in args.refs:
        print(uploader.resolve(ref))
    return 0


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Upload static assets under content-hash names and print their public URLs"
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML site config file (default: none)")
    parser.add_argument("--section", type=str, default="cloud_files", help="Config section holding the settings")
    parser.add_argument("--source", type=Path, default=None, help="Source directory references are rooted at")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Resolve every file in the source directory")
    sync_parser.add_argument(
        "--pattern",
        action="append",
        help="Glob pattern of files to upload, may be repeated (default: all files)",
    )
    sync_parser.add_argument("--output", type=Path, default=None, help="Write the ref -> URL mapping as JSON")
    sync_parser.add_argument(
        "--delete-unused",
        action="store_true",
        help="Afterwards delete remote objects under the upload prefix that were not resolved",
    )
    sync_parser.set_defaults(handler=sync)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve individual references")
    resolve_parser.add_argument("refs", nargs="+", help="References such as /i/logo.png")
    resolve_parser.set_defaults(handler=resolve)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.config, section=args.section)
        if args.source is not None:
            settings.source_dir = args.source.expanduser().resolve()
        with AssetUploader.from_settings(settings) as uploader:
            return args.handler(uploader, args)
    except AssetCdnError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
