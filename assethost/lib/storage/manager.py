"""Object store factory."""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import TYPE_CHECKING

from assethost.lib.exceptions import ConfigurationError
from assethost.lib.storage.local import LocalObjectStore

if TYPE_CHECKING:
    from assethost.config import AssetHostConfig, Credentials
    from assethost.lib.storage.base import ObjectStore


def create_object_store(config: AssetHostConfig, credentials: Credentials | None = None) -> ObjectStore:
    """Instantiate the object store named by ``config.store.backend``."""
    backend_type = config.store.backend

    if backend_type == "local":
        return LocalObjectStore(base_path=Path(config.store.local_path))

    if backend_type == "s3":
        from assethost.lib.storage.s3 import S3ObjectStore

        return S3ObjectStore(config.bucket or "", config.store, credentials)

    # Dynamic import: "module:ClassName"
    if ":" in backend_type:
        parts = backend_type.split(":")
        if len(parts) != 2:
            raise ConfigurationError(
                f"Invalid backend spec '{backend_type}': must contain exactly one colon"
            )
        module_path, class_name = parts
        try:
            module = importlib.import_module(module_path)
            cls = getattr(module, class_name)
        except (ImportError, AttributeError) as exc:
            raise ConfigurationError(f"Could not load backend '{backend_type}': {exc}") from exc
        return cls(config)

    raise ConfigurationError(
        f"Unknown storage backend '{backend_type}'. "
        "Use 'local', 's3', or 'module:ClassName'."
    )
