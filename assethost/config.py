import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from assethost.lib.exceptions import ConfigurationError

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

TEN_YEARS = 10 * 365 * 24 * 60 * 60
ONE_YEAR = 365 * 24 * 60 * 60

_config_path_override: Path | None = None


def set_config_path(path: Path | str | None) -> None:
    """Force the config file location (used by the CLI ``-f`` option)."""
    global _config_path_override
    _config_path_override = Path(path) if path is not None else None


def get_config_path() -> Path:
    """Return the config file to load.

    ``assethost.{ASSETHOST_ENV}.yaml`` when ``ASSETHOST_ENV`` is set,
    ``assethost.yaml`` otherwise, both relative to the working directory.
    """
    if _config_path_override is not None:
        return _config_path_override

    env = os.environ.get("ASSETHOST_ENV", "").strip()
    if env:
        return Path.cwd() / f"assethost.{env}.yaml"
    return Path.cwd() / "assethost.yaml"


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ConfigurationError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


def load_config_file(config_path: Path) -> dict:
    """Load and parse a YAML config file with environment variable interpolation."""
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    load_dotenv(config_path.parent / ".env")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read config file {config_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    return interpolate_env_vars(data)


class GzipConfig(BaseModel):
    """Gzip variant configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    extensions: tuple[str, ...] = ("js", "css")
    prefix: str = "gz"

    @field_validator("extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(ext.strip().lstrip(".").lower() for ext in value.split(",") if ext.strip())
        return tuple(str(ext).lstrip(".").lower() for ext in value)


class RetryConfig(BaseModel):
    """Bounded retry around object store calls."""

    model_config = ConfigDict(frozen=True)

    attempts: int = 3
    backoff: float = 0.5
    max_backoff: float = 8.0


class StoreConfig(BaseModel):
    """Object store backend selection."""

    model_config = ConfigDict(frozen=True)

    backend: str = "s3"
    local_path: str = "./published"
    region: str = "us-east-1"
    endpoint_url: str = ""


class Credentials(BaseModel):
    """Object store credentials read from ``credentials_path``."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str


class AssetHostConfig(BaseSettings):
    """Immutable configuration shared by every component."""

    model_config = SettingsConfigDict(
        env_prefix="ASSETHOST_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    # Bucket that stores all the assets (required)
    bucket: str | None = None

    # CNAME configured for the bucket or CDN distribution, may contain %d
    cname: str | None = None
    scheme: str = "http"

    key_prefix: str = ""
    credentials_path: Path = Path("config/s3.yml")
    enabled: bool = False

    public_path: Path = Path("public")
    asset_dirs: Annotated[tuple[str, ...], NoDecode] = ("images", "javascripts", "stylesheets")

    # Regular expression; matching references are never published
    exclude_pattern: str | None = None

    gzip: GzipConfig = GzipConfig()
    object_store_domain: str = "s3.amazonaws.com"

    cache_max_age: int = TEN_YEARS
    expires_after: int = ONE_YEAR
    mime_types: dict[str, str] = {}

    workers: int = 8
    cache_asset_ids: bool = True

    retry: RetryConfig = RetryConfig()
    store: StoreConfig = StoreConfig()

    @field_validator("asset_dirs", mode="before")
    @classmethod
    def _split_asset_dirs(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(d.strip() for d in value.split(",") if d.strip())
        return value

    @field_validator("exclude_pattern")
    @classmethod
    def _check_pattern(cls, value: str | None) -> str | None:
        if value:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"Invalid exclude_pattern {value!r}: {exc}") from exc
        return value or None

    @field_validator("workers")
    @classmethod
    def _check_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("workers must be at least 1")
        return value

    @property
    def bucket_host(self) -> str:
        return f"{self.bucket}.{self.object_store_domain}"

    def validate_setup(self) -> None:
        """Check the settings needed before any network activity."""
        if not self.bucket or not self.bucket.strip():
            raise ConfigurationError("You'll need to specify a bucket")
        if self.store.backend == "s3" and not self.credentials_path.exists():
            raise ConfigurationError(
                f"Could not find object store credentials at {self.credentials_path}"
            )


def load_credentials(config: AssetHostConfig) -> Credentials:
    """Read ``access_key_id`` and ``secret_access_key`` from the credentials file."""
    path = config.credentials_path
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read credentials at {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Credentials file {path} must contain a mapping")

    missing = [k for k in ("access_key_id", "secret_access_key") if not data.get(k)]
    if missing:
        raise ConfigurationError(f"Credentials file {path} is missing: {', '.join(missing)}")

    return Credentials(
        access_key_id=str(data["access_key_id"]),
        secret_access_key=str(data["secret_access_key"]),
    )


def load_config(config_path: Path | str | None = None) -> AssetHostConfig:
    """Build the configuration from the YAML file and ``ASSETHOST_*`` env vars.

    A missing file is not an error here; fields then come from the
    environment and defaults. Relative ``public_path``, ``credentials_path``
    and ``store.local_path`` values resolve against the config file's
    directory.
    """
    path = Path(config_path) if config_path is not None else get_config_path()

    data: dict = {}
    if path.exists():
        data = load_config_file(path)
        base = path.parent
        for field in ("public_path", "credentials_path"):
            if field in data and not Path(str(data[field])).is_absolute():
                data[field] = str(base / str(data[field]))
        store = data.get("store")
        if isinstance(store, dict) and store.get("local_path"):
            if not Path(str(store["local_path"])).is_absolute():
                data["store"] = {**store, "local_path": str(base / str(store["local_path"]))}
    elif config_path is not None or _config_path_override is not None:
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        return AssetHostConfig(**data)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache
def get_config() -> AssetHostConfig:
    """Load the configuration once per process."""
    return load_config()


def clear_config_cache() -> None:
    get_config.cache_clear()
