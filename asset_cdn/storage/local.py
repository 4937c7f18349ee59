"""Local filesystem storage backend."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterator

from ..exceptions import StorageError
from .base import StorageBackend

_log = logging.getLogger(__name__)

PUBLIC_MARKER = ".public"


class LocalStorage(StorageBackend):
    """Local filesystem storage backend.

    Each container is a directory below ``root`` and objects are files inside
    it. Useful for preview builds that should not touch the network.
    """

    def __init__(self, root: Path):
        """Initialize local storage backend.

        Args:
            root: Directory holding one subdirectory per container
        """
        self.root = Path(root).expanduser().resolve()

    def _container_dir(self, container: str) -> Path:
        return self.root / container

    def _object_path(self, container: str, name: str) -> Path:
        base = self._container_dir(container).resolve()
        path = (base / name).resolve()
        if base != path and base not in path.parents:
            raise StorageError(f"Object name {name!r} escapes container {container!r}")
        return path

    def container_exists(self, container: str) -> bool:
        """Check whether the container directory exists.

        Args:
            container: Container name

        Returns:
            True if the directory exists, False otherwise
        """
        return self._container_dir(container).is_dir()

    def create_container(self, container: str) -> None:
        """Create the container directory.

        Args:
            container: Container name
        """
        try:
            self._container_dir(container).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create container {container}: {e}") from e
        _log.info(f"Created local container {self._container_dir(container)}")

    def make_container_public(self, container: str) -> None:
        """Mark the container as public with a marker file.

        Args:
            container: Container name
        """
        try:
            (self._container_dir(container) / PUBLIC_MARKER).touch()
        except OSError as e:
            raise StorageError(f"Could not publish container {container}: {e}") from e

    def delivery_url(self, container: str) -> str:
        """Return the container directory as a ``file://`` URI."""
        return self._container_dir(container).as_uri()

    def object_exists(self, container: str, name: str) -> bool:
        """Check whether an object file exists.

        Args:
            container: Container name
            name: Object key (relative path inside the container)

        Returns:
            True if the file exists, False otherwise
        """
        return self._object_path(container, name).is_file()

    def write_object(self, container: str, name: str, local_path: Path) -> None:
        """Copy a local file into the container.

        Args:
            container: Container name
            name: Object key (relative path inside the container)
            local_path: Path to local file to copy
        """
        target = self._object_path(container, name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, target)
        except OSError as e:
            raise StorageError(f"Local write failed for {name}: {e}") from e

    def purge_object(self, container: str, name: str, url: str) -> None:
        """No-op; local files are not edge cached."""
        _log.debug(f"No edge cache to purge for {url}")

    def list_objects(self, container: str, prefix: str = "") -> Iterator[str]:
        """List object keys below the container directory.

        Args:
            container: Container name
            prefix: Key prefix to filter on

        Returns:
            Iterator over matching keys in sorted order
        """
        base = self._container_dir(container)
        if not base.is_dir():
            return
        for item in sorted(base.rglob("*")):
            if not item.is_file() or item.name == PUBLIC_MARKER:
                continue
            key = item.relative_to(base).as_posix()
            if key.startswith(prefix):
                yield key

    def delete_object(self, container: str, name: str) -> None:
        """Delete an object file; a missing file is not an error.

        Args:
            container: Container name
            name: Object key to delete
        """
        try:
            self._object_path(container, name).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Local delete failed for {name}: {e}") from e
