"""Abstract base class for storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    A backend is any object store with a public delivery network exposing these
    nine operations. Failures are raised as ``StorageError``.
    """

    @abstractmethod
    def container_exists(self, container: str) -> bool:
        """Check whether a container/bucket exists.

        Args:
            container: Container name

        Returns:
            True if the container exists, False otherwise
        """

    @abstractmethod
    def create_container(self, container: str) -> None:
        """Create a container.

        Args:
            container: Container name
        """

    @abstractmethod
    def make_container_public(self, container: str) -> None:
        """Publish a container to the delivery network.

        Args:
            container: Container name
        """

    @abstractmethod
    def delivery_url(self, container: str) -> str:
        """Get the public delivery URL of a container, without a trailing slash.

        Args:
            container: Container name

        Returns:
            Base URL objects in the container are served from
        """

    @abstractmethod
    def object_exists(self, container: str, name: str) -> bool:
        """Check whether an object exists.

        Args:
            container: Container name
            name: Object key (e.g., "www/3f786850e387550fdab836ed7e6dc881de23001b.png")

        Returns:
            True if the object exists, False otherwise
        """

    @abstractmethod
    def write_object(self, container: str, name: str, local_path: Path) -> None:
        """Upload the full contents of a local file to an object.

        Args:
            container: Container name
            name: Object key
            local_path: Path to local file to upload
        """

    @abstractmethod
    def purge_object(self, container: str, name: str, url: str) -> None:
        """Invalidate edge-cached copies of an object.

        Args:
            container: Container name
            name: Object key
            url: Public URL the object is served from
        """

    @abstractmethod
    def list_objects(self, container: str, prefix: str = "") -> Iterator[str]:
        """List object keys starting with ``prefix``.

        Args:
            container: Container name
            prefix: Key prefix to filter on

        Returns:
            Iterator over matching object keys
        """

    @abstractmethod
    def delete_object(self, container: str, name: str) -> None:
        """Delete an object.

        Args:
            container: Container name
            name: Object key to delete
        """

    def close(self) -> None:
        """Release network resources held by the backend."""
