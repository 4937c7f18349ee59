"""Exception hierarchy for asset-cdn."""

from __future__ import annotations


class AssetCdnError(Exception):
    """Base exception for all asset-cdn errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(AssetCdnError):
    """Raised when configuration or credentials are invalid or missing."""
    pass


class ValidationError(AssetCdnError):
    """Raised when an asset reference is malformed."""
    pass


class NotFoundError(AssetCdnError):
    """Raised when a referenced local file does not exist."""
    pass


class StorageError(AssetCdnError):
    """Raised when a call against the remote store fails."""
    pass


class UploadError(StorageError):
    """Raised when resolving an asset fails on the remote side."""
    pass


__all__ = [
    "AssetCdnError",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "UploadError",
]
