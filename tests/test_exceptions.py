"""Tests for the exception hierarchy."""

from asset_cdn.exceptions import (
    AssetCdnError,
    ConfigurationError,
    NotFoundError,
    StorageError,
    UploadError,
    ValidationError,
)


def test_base_error_carries_details():
    error = AssetCdnError("Test error", {"key": "value"})
    assert str(error) == "Test error"
    assert error.message == "Test error"
    assert error.details == {"key": "value"}


def test_details_default_to_empty():
    assert ConfigurationError("Config missing").details == {}


def test_every_error_derives_from_base():
    for cls in (ConfigurationError, ValidationError, NotFoundError, StorageError, UploadError):
        assert issubclass(cls, AssetCdnError)


def test_upload_error_is_a_storage_error():
    error = UploadError("Upload failed", {"object_name": "abc.png"})
    assert isinstance(error, StorageError)
    assert error.details == {"object_name": "abc.png"}
