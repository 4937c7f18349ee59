from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

ENV_PREFIX = "ASSET_CDN_"
CREDENTIALS_FILENAME = "~/.asset-cdn"
HASH_ALGORITHMS = ("sha1", "sha256", "sha512", "blake2b", "sha3_256")
PROVIDERS = ("cloudflare_r2", "local")

_TRUTHY = {"1", "true", "yes", "on"}


class Datacentre(str, Enum):
    """Region selector for the remote store."""

    US = "us"
    UK = "uk"

    @classmethod
    def parse(cls, value: Any) -> "Datacentre":
        if value is None or value == "":
            return cls.US
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                "The datacentre must be either us or uk.",
                {"datacentre": str(value)},
            ) from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


@dataclass
class Settings:
    """Resolved configuration for one build run."""

    enabled: bool = False
    username: Optional[str] = None
    api_key: Optional[str] = None
    datacentre: Union[Datacentre, str] = Datacentre.US
    container: Optional[str] = None
    cname: Optional[str] = None
    upload_prefix: str = ""
    force_upload: bool = False

    provider: str = "cloudflare_r2"
    account_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None
    zone_id: Optional[str] = None
    source_dir: Path = field(default_factory=Path.cwd)
    local_root: Path = Path("_cdn")
    hash_algorithm: str = "sha1"
    manifest_path: Optional[Path] = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        self.enabled = _as_bool(self.enabled)
        self.force_upload = _as_bool(self.force_upload)
        self.upload_prefix = self.upload_prefix or ""
        self.provider = (self.provider or "cloudflare_r2").lower()
        self.hash_algorithm = (self.hash_algorithm or "sha1").lower()
        self.source_dir = Path(self.source_dir).expanduser().resolve()
        self.local_root = Path(self.local_root).expanduser()
        if self.manifest_path is not None:
            self.manifest_path = Path(self.manifest_path).expanduser()
        self.timeout = float(self.timeout)
        if self.timeout <= 0:
            self.timeout = 30.0

    @property
    def is_remote(self) -> bool:
        return self.provider != "local"

    @classmethod
    def from_mapping(
        cls,
        mapping: Optional[Mapping[str, Any]],
        env: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """Build settings from a config section, filling gaps from ``ASSET_CDN_*`` variables.

        Keys present in ``mapping`` win over the environment.
        """
        mapping = dict(mapping or {})
        env = os.environ if env is None else env
        values: dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            if name in mapping and mapping[name] is not None:
                values[name] = mapping[name]
                continue
            env_value = env.get(ENV_PREFIX + name.upper())
            if env_value not in (None, ""):
                values[name] = env_value
        return cls(**values)

    def validate(self) -> None:
        """Check the invariants an enabled configuration must satisfy."""
        if not self.enabled:
            return
        self.datacentre = Datacentre.parse(self.datacentre)
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown storage provider {self.provider!r}.",
                {"provider": self.provider},
            )
        if self.hash_algorithm not in HASH_ALGORITHMS:
            raise ConfigurationError(
                f"Unsupported hash algorithm {self.hash_algorithm!r}.",
                {"hash_algorithm": self.hash_algorithm},
            )
        if not self.container:
            raise ConfigurationError("You must specify a destination container.")
        if self.is_remote:
            if not self.username or not self.api_key:
                raise ConfigurationError("You must provide your storage username and API key.")
            if not self.account_id:
                raise ConfigurationError("You must provide your Cloudflare account id.")


def credentials_path(env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    return Path(env.get(ENV_PREFIX + "CREDENTIALS_FILE") or CREDENTIALS_FILENAME).expanduser()


def resolve_credentials(settings: Settings, path: Optional[Path] = None) -> Settings:
    """Fill missing credentials from the user's credentials file.

    The file is only read when ``username`` or ``api_key`` is missing, and only
    fills keys the settings leave empty. Returns a new ``Settings``.
    """
    if settings.username and settings.api_key:
        return settings
    path = path or credentials_path()
    if not path.exists():
        return settings
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read credentials file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Credentials file {path} must contain a mapping.")

    updates = {}
    for key in ("username", "api_key", "account_id", "cloudflare_api_token"):
        if not getattr(settings, key) and data.get(key):
            updates[key] = str(data[key])
    return replace(settings, **updates) if updates else settings


def load_settings(
    config_file: Optional[Path] = None,
    section: str = "cloud_files",
    env_file: Optional[Path] = None,
) -> Settings:
    """Load settings from a YAML site config section plus the environment."""
    if env_file is None:
        env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    mapping: dict[str, Any] = {}
    if config_file is not None:
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                document = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config file {config_file}: {e}") from e
        section_data = document.get(section) if isinstance(document, dict) else None
        if section_data is not None and not isinstance(section_data, dict):
            raise ConfigurationError(f"Config section {section!r} must be a mapping.")
        mapping = section_data or {}
        # source_dir is taken relative to the config file
        config_dir = Path(config_file).resolve().parent
        if mapping.get("source_dir") is not None:
            mapping["source_dir"] = config_dir / Path(mapping["source_dir"]).expanduser()
        elif not os.environ.get(ENV_PREFIX + "SOURCE_DIR"):
            mapping["source_dir"] = config_dir
    return Settings.from_mapping(mapping)
