"""Content hashing and object naming."""

from __future__ import annotations

import hashlib
from pathlib import Path

CHUNK_SIZE = 16384


def hash_file(path: Path, algorithm: str = "sha1", chunk_size: int = CHUNK_SIZE) -> str:
    """Return the hex digest of ``path``, read in fixed-size chunks."""
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def object_name(prefix: str, digest: str, source: Path | str) -> str:
    """Remote name for content ``digest``; the extension comes from the source file."""
    return f"{prefix}{digest}{Path(source).suffix}"
