"""Persistent manifest carried between build runs.

Records the digest of every hashed file together with its size and mtime, and
the object names known to exist remotely. Neither is required for correctness:
a missing or stale manifest only costs rehashing and existence checks.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_log = logging.getLogger(__name__)


class Manifest:
    def __init__(self, path: Path, container: str, upload_prefix: str, hash_algorithm: str):
        self.path = Path(path)
        self.container = container
        self.upload_prefix = upload_prefix
        self.hash_algorithm = hash_algorithm
        self.files: dict[str, dict] = {}
        self.objects: set[str] = set()
        self.dirty = False

    @classmethod
    def load(cls, path: Path, container: str, upload_prefix: str, hash_algorithm: str) -> "Manifest":
        """Load the manifest at ``path``, starting empty if it is absent, unreadable or for another target."""
        manifest = cls(path, container, upload_prefix, hash_algorithm)
        if not manifest.path.exists():
            return manifest
        try:
            with open(manifest.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            _log.warning(f"Ignoring unreadable manifest {manifest.path}: {e}")
            return manifest
        if not isinstance(data, dict):
            return manifest

        target = (data.get("container"), data.get("upload_prefix"), data.get("hash_algorithm"))
        if target != (container, upload_prefix, hash_algorithm):
            _log.info(f"Manifest {manifest.path} was written for another target; starting fresh")
            return manifest

        manifest.files = dict(data.get("files") or {})
        manifest.objects = set(data.get("objects") or [])
        return manifest

    def digest_for(self, path: Path, stat: os.stat_result) -> Optional[str]:
        """Return the recorded digest if ``path`` is unchanged since it was hashed."""
        entry = self.files.get(str(path))
        if entry and entry.get("size") == stat.st_size and entry.get("mtime_ns") == stat.st_mtime_ns:
            return entry.get("digest")
        return None

    def remember_digest(self, path: Path, stat: os.stat_result, digest: str) -> None:
        self.files[str(path)] = {"size": stat.st_size, "mtime_ns": stat.st_mtime_ns, "digest": digest}
        self.dirty = True

    def knows_object(self, name: str) -> bool:
        return name in self.objects

    def remember_object(self, name: str) -> None:
        if name not in self.objects:
            self.objects.add(name)
            self.dirty = True

    def forget_object(self, name: str) -> None:
        if name in self.objects:
            self.objects.discard(name)
            self.dirty = True

    def save(self) -> None:
        if not self.dirty:
            return
        data = {
            "container": self.container,
            "upload_prefix": self.upload_prefix,
            "hash_algorithm": self.hash_algorithm,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "files": self.files,
            "objects": sorted(self.objects),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)
        self.dirty = False
        _log.debug(f"Saved manifest to {self.path}")
