"""Storage backend abstraction layer."""

from __future__ import annotations

from ..config import Settings
from ..exceptions import ConfigurationError
from .base import StorageBackend
from .cloudflare_r2 import CloudflareR2Storage
from .local import LocalStorage


def create_storage_backend(settings: Settings) -> StorageBackend:
    """Factory to create storage backend based on configuration.

    Args:
        settings: Resolved settings; credentials must already be filled in

    Returns:
        StorageBackend instance (CloudflareR2Storage or LocalStorage)
    """
    if settings.provider == "local":
        return LocalStorage(settings.local_root)

    if settings.provider == "cloudflare_r2":
        return CloudflareR2Storage({
            "account_id": settings.account_id,
            "access_key_id": settings.username,
            "secret_access_key": settings.api_key,
            "datacentre": settings.datacentre,
            "api_token": settings.cloudflare_api_token,
            "zone_id": settings.zone_id,
            "timeout": settings.timeout,
        })

    raise ConfigurationError(f"Unknown storage provider {settings.provider!r}.", {"provider": settings.provider})


__all__ = ["StorageBackend", "LocalStorage", "CloudflareR2Storage", "create_storage_backend"]
