"""Cloudflare R2 storage backend using S3-compatible API."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Iterator, Optional

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Datacentre
from ..exceptions import StorageError
from .base import StorageBackend

_log = logging.getLogger(__name__)

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
CACHE_CONTROL = "public, max-age=31536000, immutable"

_MISSING_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def endpoint_url(account_id: str, datacentre: Datacentre) -> str:
    """S3 endpoint for an account; ``uk`` maps to the EU jurisdiction."""
    if datacentre is Datacentre.UK:
        return f"https://{account_id}.eu.r2.cloudflarestorage.com"
    return f"https://{account_id}.r2.cloudflarestorage.com"


def _is_missing(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in _MISSING_CODES


class CloudflareR2Storage(StorageBackend):
    """Cloudflare R2 storage backend using boto3 S3 API.

    Cloudflare R2 is S3-compatible, so we use boto3 with a custom endpoint.
    Publishing a bucket, looking up its public domain and purging the edge cache
    are not part of the S3 API and go through the Cloudflare REST API instead.
    """

    def __init__(
        self,
        config: dict,
        client: Optional[Any] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize Cloudflare R2 storage backend.

        Args:
            config: Configuration dict with R2-specific settings:
                - account_id: str
                - access_key_id: str
                - secret_access_key: str
                - datacentre: Datacentre (us or uk)
                - api_token: Optional[str] (Cloudflare API token)
                - zone_id: Optional[str] (zone serving the public domain)
                - timeout: float (seconds)
            client: Pre-built S3 client, mainly for tests
            http_client: Pre-built httpx client, mainly for tests
        """
        self.account_id = config.get("account_id")
        self.access_key_id = config.get("access_key_id")
        self.secret_access_key = config.get("secret_access_key")
        self.datacentre = Datacentre.parse(config.get("datacentre"))
        self.api_token = config.get("api_token")
        self.zone_id = config.get("zone_id")
        self.timeout = float(config.get("timeout", 30.0))

        if client is None:
            client = boto3.client(
                service_name="s3",
                endpoint_url=endpoint_url(self.account_id, self.datacentre),
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name="auto",
                config=Config(
                    signature_version="s3v4",
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"max_attempts": 3, "mode": "standard"},
                ),
            )
        self.client = client
        self.http = http_client or httpx.Client(base_url=CLOUDFLARE_API_BASE, timeout=self.timeout)
        _log.info(f"Cloudflare R2 storage initialized: account={self.account_id}, datacentre={self.datacentre.value}")

    def _api(self, method: str, path: str, **kwargs) -> dict:
        """Call the Cloudflare REST API and return the ``result`` member."""
        if not self.api_token:
            raise StorageError(f"A Cloudflare API token is required for {method} {path}")
        headers = {"Authorization": f"Bearer {self.api_token}"}
        if self.datacentre is Datacentre.UK and "/r2/" in path:
            headers["cf-r2-jurisdiction"] = "eu"
        try:
            response = self.http.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            _log.error(f"Cloudflare API call {method} {path} failed: {e}")
            raise StorageError(f"Cloudflare API call failed: {e}") from e
        if not payload.get("success", False):
            raise StorageError(f"Cloudflare API call {method} {path} failed: {payload.get('errors')}")
        return payload.get("result") or {}

    def container_exists(self, container: str) -> bool:
        """Check whether an R2 bucket exists.

        Args:
            container: Bucket name

        Returns:
            True if HEAD succeeds, False on 404

        Raises:
            StorageError: If the check fails for any other reason
        """
        try:
            self.client.head_bucket(Bucket=container)
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageError(f"R2 bucket check failed for {container}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"R2 bucket check failed for {container}: {e}") from e

    def create_container(self, container: str) -> None:
        """Create an R2 bucket.

        Args:
            container: Bucket name

        Raises:
            StorageError: If bucket creation fails
        """
        try:
            self.client.create_bucket(Bucket=container)
        except (ClientError, BotoCoreError) as e:
            _log.error(f"R2 bucket creation failed for {container}: {e}")
            raise StorageError(f"R2 bucket creation failed: {e}") from e
        _log.info(f"Created R2 bucket {container}")

    def make_container_public(self, container: str) -> None:
        """Enable the bucket's managed ``r2.dev`` public domain."""
        self._api(
            "PUT",
            f"/accounts/{self.account_id}/r2/buckets/{container}/domains/managed",
            json={"enabled": True},
        )
        _log.info(f"Enabled public access for R2 bucket {container}")

    def delivery_url(self, container: str) -> str:
        """Get the public r2.dev URL of a bucket.

        Args:
            container: Bucket name

        Returns:
            https URL of the managed public domain, without a trailing slash

        Raises:
            StorageError: If the bucket has no enabled public domain
        """
        result = self._api("GET", f"/accounts/{self.account_id}/r2/buckets/{container}/domains/managed")
        domain = result.get("domain")
        if not domain or not result.get("enabled", False):
            raise StorageError(f"R2 bucket {container} has no public domain enabled")
        return f"https://{domain}"

    def object_exists(self, container: str, name: str) -> bool:
        """Check whether an object exists in R2.

        Args:
            container: Bucket name
            name: R2 object key

        Returns:
            True if HEAD succeeds, False on 404
        """
        try:
            self.client.head_object(Bucket=container, Key=name)
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageError(f"R2 existence check failed for {name}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"R2 existence check failed for {name}: {e}") from e

    def write_object(self, container: str, name: str, local_path: Path) -> None:
        """Upload a local file to R2 with long-lived cache headers.

        Args:
            container: Bucket name
            name: R2 object key (e.g., "www/3f786850e387550fdab836ed7e6dc881de23001b.png")
            local_path: Path to local file to upload

        Raises:
            StorageError: If the file cannot be read or the upload fails
        """
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        try:
            with open(local_path, "rb") as f:
                self.client.put_object(
                    Bucket=container,
                    Key=name,
                    Body=f,
                    ContentType=content_type,
                    CacheControl=CACHE_CONTROL,
                )
        except (ClientError, BotoCoreError) as e:
            _log.error(f"R2 upload failed for {local_path}: {e}")
            raise StorageError(f"R2 upload failed: {e}") from e
        except OSError as e:
            raise StorageError(f"Could not read {local_path}: {e}") from e

    def purge_object(self, container: str, name: str, url: str) -> None:
        """Purge an object URL from the Cloudflare edge cache.

        Skipped with a warning when no zone is configured.

        Args:
            container: Bucket name
            name: R2 object key
            url: Public URL to purge
        """
        if not self.zone_id:
            _log.warning(f"No zone_id configured; skipping edge purge of {url}")
            return
        self._api("POST", f"/zones/{self.zone_id}/purge_cache", json={"files": [url]})
        _log.info(f"Purged {url} from the edge cache")

    def list_objects(self, container: str, prefix: str = "") -> Iterator[str]:
        """List object keys in an R2 bucket, following continuation tokens.

        Args:
            container: Bucket name
            prefix: Key prefix to filter on

        Returns:
            Iterator over matching object keys
        """
        continuation_token = None
        while True:
            kwargs = {"Bucket": container, "Prefix": prefix}
            if continuation_token:
                kwargs["ContinuationToken"] = continuation_token
            try:
                response = self.client.list_objects_v2(**kwargs)
            except (ClientError, BotoCoreError) as e:
                raise StorageError(f"R2 listing failed for {container}: {e}") from e

            for obj in response.get("Contents", []):
                yield obj["Key"]

            if response.get("IsTruncated"):
                continuation_token = response.get("NextContinuationToken")
            else:
                break

    def delete_object(self, container: str, name: str) -> None:
        """Delete object from Cloudflare R2.

        Args:
            container: Bucket name
            name: R2 object key to delete

        Raises:
            StorageError: If deletion fails
        """
        try:
            self.client.delete_object(Bucket=container, Key=name)
        except (ClientError, BotoCoreError) as e:
            _log.error(f"R2 delete failed for {name}: {e}")
            raise StorageError(f"R2 delete failed: {e}") from e
        _log.info(f"Deleted from R2: {name}")

    def close(self) -> None:
        """Close the Cloudflare API HTTP client."""
        self.http.close()
