"""Content-addressed asset uploader.

Each referenced file is renamed to the hash of its contents and uploaded once.
Identical bytes under different paths share one remote object, so assets are
only ever downloaded once and never go stale in a cache.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from .config import Settings, resolve_credentials
from .exceptions import NotFoundError, StorageError, UploadError, ValidationError
from .hashing import hash_file, object_name
from .manifest import Manifest
from .storage import StorageBackend, create_storage_backend

_log = logging.getLogger(__name__)


class UploaderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    DISABLED = "disabled"
    READY = "ready"


@dataclass(frozen=True)
class AssetRecord:
    """A resolved asset: where it came from and where it is served."""

    path: Path
    digest: str
    object_name: str
    url: str


class AssetUploader:
    """Resolves ``/``-rooted asset references to public URLs.

    Create one instance per build run and pass it to whatever renders asset
    references. Results are cached for the lifetime of the instance, keyed both
    by local path and by remote object name.
    """

    def __init__(self, settings: Settings, backend: Optional[StorageBackend] = None):
        self.settings = settings
        self.backend = backend
        self.state = UploaderState.UNINITIALIZED
        self.url_prefix: Optional[str] = None
        self.manifest: Optional[Manifest] = None
        self._owns_backend = backend is None
        self._by_path: dict[Path, AssetRecord] = {}
        self._by_name: dict[str, AssetRecord] = {}
        self._lock = threading.RLock()
        self._name_locks: dict[str, threading.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Settings, backend: Optional[StorageBackend] = None) -> "AssetUploader":
        """Build an uploader and initialize it immediately, so failures surface here."""
        uploader = cls(settings, backend)
        uploader.initialize()
        return uploader

    @property
    def enabled(self) -> bool:
        return self.state is UploaderState.READY

    @property
    def records(self) -> list[AssetRecord]:
        with self._lock:
            return list(self._by_path.values())

    def initialize(self) -> None:
        """Validate settings and prepare the container. Safe to call repeatedly."""
        with self._lock:
            if self.state in (UploaderState.READY, UploaderState.DISABLED):
                return
            if not self.settings.enabled:
                self.state = UploaderState.DISABLED
                _log.info("Asset uploads disabled; references are passed through unchanged")
                return

            self.state = UploaderState.INITIALIZING
            backend = self.backend
            try:
                settings = resolve_credentials(self.settings)
                settings.validate()
                if backend is None:
                    backend = create_storage_backend(settings)

                container = settings.container
                if not backend.container_exists(container):
                    _log.info(f"Creating container {container}")
                    backend.create_container(container)
                    backend.make_container_public(container)

                if settings.cname:
                    url_prefix = settings.cname if settings.cname.endswith("/") else settings.cname + "/"
                else:
                    url_prefix = backend.delivery_url(container) + "/"

                manifest = None
                if settings.manifest_path is not None:
                    manifest = Manifest.load(
                        settings.manifest_path, container, settings.upload_prefix, settings.hash_algorithm
                    )
            except Exception:
                self.state = UploaderState.UNINITIALIZED
                if self._owns_backend and backend is not None:
                    backend.close()
                raise

            self.settings = settings
            self.backend = backend
            self.url_prefix = url_prefix
            self.manifest = manifest
            self.state = UploaderState.READY
            _log.info(f"Asset uploader ready: container={container}, url_prefix={url_prefix}")

    def resolve(self, ref: str) -> str:
        """Return the public URL for ``ref``, uploading its contents if needed.

        Raises:
            ValidationError: ``ref`` does not start with ``/`` or leaves the source directory
            NotFoundError: the referenced file does not exist or cannot be read
            UploadError: the remote store failed; nothing is cached for ``ref``
        """
        if self.state is UploaderState.UNINITIALIZED:
            self.initialize()
        if self.state is UploaderState.DISABLED:
            return ref

        path = self._local_path(ref)
        with self._lock:
            record = self._by_path.get(path)
        if record is not None:
            _log.debug(f"Cache hit for {ref}: {record.url}")
            return record.url

        if not path.is_file():
            raise NotFoundError(f"File {path} not found!", {"path": str(path)})

        try:
            digest = self._digest(path)
        except OSError as e:
            raise NotFoundError(f"File {path} could not be read: {e}", {"path": str(path)}) from e
        name = object_name(self.settings.upload_prefix, digest, path)

        with self._name_lock(name):
            with self._lock:
                existing = self._by_name.get(name)
                if existing is not None:
                    self._by_path[path] = AssetRecord(path, digest, name, existing.url)
                    _log.debug(f"{ref} has the same contents as {existing.path}")
                    return existing.url

            url = self.url_prefix + name
            try:
                self._upload(path, name, url)
            except StorageError as e:
                raise UploadError(
                    f"Could not upload {path} as {name}: {e.message}",
                    {"path": str(path), "object_name": name},
                ) from e

            record = AssetRecord(path, digest, name, url)
            with self._lock:
                self._by_path[path] = record
                self._by_name[name] = record
        return url

    def delete_unused(self) -> list[str]:
        """Delete remote objects under the upload prefix that this run never resolved.

        Best effort. Only call this after every page of the site has been
        rendered through this uploader; anything not resolved in this run is
        considered unused and deleted.

        Returns:
            Names of the deleted objects
        """
        if self.state is UploaderState.UNINITIALIZED:
            self.initialize()
        if self.state is UploaderState.DISABLED:
            return []

        container = self.settings.container
        with self._lock:
            used = {record.url for record in self._by_name.values()}

        deleted = []
        for name in list(self.backend.list_objects(container, self.settings.upload_prefix)):
            if self.url_prefix + name in used:
                continue
            _log.info(f"Deleting unused object {name}")
            self.backend.delete_object(container, name)
            if self.manifest is not None:
                self.manifest.forget_object(name)
            deleted.append(name)
        return deleted

    def close(self) -> None:
        if self.manifest is not None:
            self.manifest.save()
        if self._owns_backend and self.backend is not None:
            self.backend.close()

    def __enter__(self) -> "AssetUploader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _local_path(self, ref: str) -> Path:
        if not ref.startswith("/"):
            raise ValidationError(f"All URLs must begin with a /: {ref!r}", {"ref": ref})
        base = self.settings.source_dir
        path = Path(os.path.normpath(base.joinpath(*PurePosixPath(ref).parts[1:])))
        if path != base and base not in path.parents:
            raise ValidationError(f"{ref!r} points outside {base}", {"ref": ref})
        return path

    def _name_lock(self, name: str) -> threading.Lock:
        with self._lock:
            return self._name_locks.setdefault(name, threading.Lock())

    def _digest(self, path: Path) -> str:
        if self.manifest is None:
            return hash_file(path, self.settings.hash_algorithm)
        stat = path.stat()
        digest = self.manifest.digest_for(path, stat)
        if digest is None:
            digest = hash_file(path, self.settings.hash_algorithm)
            self.manifest.remember_digest(path, stat, digest)
        return digest

    def _exists_remotely(self, name: str) -> bool:
        if self.manifest is not None and self.manifest.knows_object(name):
            return True
        exists = self.backend.object_exists(self.settings.container, name)
        if exists and self.manifest is not None:
            self.manifest.remember_object(name)
        return exists

    def _upload(self, path: Path, name: str, url: str) -> None:
        container = self.settings.container
        force = self.settings.force_upload
        if force or not self._exists_remotely(name):
            _log.info(f"Uploading {name}")
            self.backend.write_object(container, name, path)
            if self.manifest is not None:
                self.manifest.remember_object(name)
        if force:
            self.backend.purge_object(container, name, url)
