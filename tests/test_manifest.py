from __future__ import annotations

import json

import asset_cdn.uploader as uploader_module
from asset_cdn.manifest import Manifest
from asset_cdn.uploader import AssetUploader
from tests.conftest import RecordingStorage


def test_manifest_round_trip(tmp_path):
    path = tmp_path / "manifest.json"
    asset = tmp_path / "a.css"
    asset.write_text("a {}")
    stat = asset.stat()

    manifest = Manifest(path, "static", "www/", "sha1")
    manifest.remember_digest(asset, stat, "abc")
    manifest.remember_object("www/abc.css")
    manifest.save()

    loaded = Manifest.load(path, "static", "www/", "sha1")
    assert loaded.digest_for(asset, stat) == "abc"
    assert loaded.knows_object("www/abc.css")


def test_changed_file_invalidates_digest(tmp_path):
    asset = tmp_path / "a.css"
    asset.write_text("a {}")
    manifest = Manifest(tmp_path / "manifest.json", "static", "", "sha1")
    manifest.remember_digest(asset, asset.stat(), "abc")

    asset.write_text("a { color: blue; }")

    assert manifest.digest_for(asset, asset.stat()) is None


def test_manifest_for_other_target_starts_fresh(tmp_path):
    path = tmp_path / "manifest.json"
    manifest = Manifest(path, "static", "", "sha1")
    manifest.remember_object("abc.png")
    manifest.save()

    assert not Manifest.load(path, "other", "", "sha1").knows_object("abc.png")
    assert not Manifest.load(path, "static", "www/", "sha1").knows_object("abc.png")


def test_unreadable_manifest_starts_fresh(tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text("{not json")

    assert Manifest.load(path, "static", "", "sha1").objects == set()


def test_save_skips_clean_manifest(tmp_path):
    path = tmp_path / "manifest.json"
    Manifest(path, "static", "", "sha1").save()
    assert not path.exists()


def test_second_run_skips_hashing_and_existence_checks(make_settings, tmp_path, monkeypatch):
    manifest_path = tmp_path / "manifest.json"
    storage = RecordingStorage(containers={"static"})

    with AssetUploader.from_settings(make_settings(manifest_path=manifest_path), storage) as first_run:
        url = first_run.resolve("/i/logo.png")
    assert json.loads(manifest_path.read_text())["objects"]

    def _fail(*args, **kwargs):
        raise AssertionError("file should not be rehashed")

    monkeypatch.setattr(uploader_module, "hash_file", _fail)
    storage.calls.clear()
    with AssetUploader.from_settings(make_settings(manifest_path=manifest_path), storage) as second_run:
        assert second_run.resolve("/i/logo.png") == url

    assert storage.names("object_exists") == []
    assert storage.names("write_object") == []


def test_delete_unused_forgets_deleted_objects(make_settings, tmp_path):
    manifest_path = tmp_path / "manifest.json"
    storage = RecordingStorage(containers={"static"})

    with AssetUploader.from_settings(make_settings(manifest_path=manifest_path), storage) as first_run:
        first_run.resolve("/css/style.css")

    with AssetUploader.from_settings(make_settings(manifest_path=manifest_path), storage) as second_run:
        deleted = second_run.delete_unused()

    assert len(deleted) == 1
    assert json.loads(manifest_path.read_text())["objects"] == []


def test_saved_manifest_timestamp_is_utc_aware(tmp_path):
    path = tmp_path / "manifest.json"
    manifest = Manifest(path, "static", "", "sha1")
    manifest.remember_object("abc.png")
    manifest.save()

    assert json.loads(path.read_text())["updated_at"].endswith("+00:00")
