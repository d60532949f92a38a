"""Object store gateways."""

from assethost.lib.storage.base import ObjectStore, PUBLIC_READ
from assethost.lib.storage.local import LocalObjectStore
from assethost.lib.storage.manager import create_object_store

__all__ = ["LocalObjectStore", "ObjectStore", "PUBLIC_READ", "create_object_store"]
