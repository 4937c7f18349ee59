from __future__ import annotations

from pathlib import Path

import pytest

from asset_cdn.config import Settings
from asset_cdn.exceptions import StorageError
from asset_cdn.storage.base import StorageBackend

DELIVERY_URL = "https://pub-test.r2.dev"


class RecordingStorage(StorageBackend):
    """In-memory backend that records every call made against it."""

    def __init__(self, containers=None, objects=None):
        self.containers = set(containers or [])
        self.public = set()
        self.objects: dict[str, bytes] = dict(objects or {})
        self.calls: list[tuple] = []
        self.fail_writes = False
        self.closed = False

    def names(self, op):
        return [call[1:] for call in self.calls if call[0] == op]

    def container_exists(self, container):
        self.calls.append(("container_exists", container))
        return container in self.containers

    def create_container(self, container):
        self.calls.append(("create_container", container))
        self.containers.add(container)

    def make_container_public(self, container):
        self.calls.append(("make_container_public", container))
        self.public.add(container)

    def delivery_url(self, container):
        self.calls.append(("delivery_url", container))
        return DELIVERY_URL

    def object_exists(self, container, name):
        self.calls.append(("object_exists", name))
        return name in self.objects

    def write_object(self, container, name, local_path):
        self.calls.append(("write_object", name))
        if self.fail_writes:
            raise StorageError("simulated outage")
        self.objects[name] = Path(local_path).read_bytes()

    def purge_object(self, container, name, url):
        self.calls.append(("purge_object", name, url))

    def list_objects(self, container, prefix=""):
        self.calls.append(("list_objects", prefix))
        return iter(sorted(name for name in self.objects if name.startswith(prefix)))

    def delete_object(self, container, name):
        self.calls.append(("delete_object", name))
        self.objects.pop(name, None)

    def close(self):
        self.closed = True


@pytest.fixture
def site(tmp_path):
    """A small source tree with two identical images and a stylesheet."""
    root = tmp_path / "site"
    (root / "i").mkdir(parents=True)
    (root / "css").mkdir()
    (root / "i" / "logo.png").write_bytes(b"\x89PNG logo bytes")
    (root / "i" / "logo-copy.png").write_bytes(b"\x89PNG logo bytes")
    (root / "css" / "style.css").write_text("body { color: red; }")
    return root


@pytest.fixture
def storage():
    return RecordingStorage(containers={"static"})


@pytest.fixture
def make_settings(site, tmp_path, monkeypatch):
    # Keep the developer's real credentials file out of the tests
    monkeypatch.setenv("ASSET_CDN_CREDENTIALS_FILE", str(tmp_path / "no-credentials"))

    def _make(**overrides):
        values = {
            "enabled": True,
            "username": "key-id",
            "api_key": "secret",
            "account_id": "acct",
            "container": "static",
            "source_dir": site,
        }
        values.update(overrides)
        return Settings(**values)

    return _make
