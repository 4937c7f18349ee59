"""Content-addressed static asset uploads."""

from __future__ import annotations

from .config import Datacentre, Settings, load_settings
from .exceptions import (
    AssetCdnError,
    ConfigurationError,
    NotFoundError,
    StorageError,
    UploadError,
    ValidationError,
)
from .uploader import AssetRecord, AssetUploader, UploaderState

__all__ = [
    "AssetCdnError",
    "AssetRecord",
    "AssetUploader",
    "ConfigurationError",
    "Datacentre",
    "NotFoundError",
    "Settings",
    "StorageError",
    "UploadError",
    "UploaderState",
    "ValidationError",
    "load_settings",
]
