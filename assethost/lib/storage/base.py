"""Object store gateway protocol."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Protocol, runtime_checkable

PUBLIC_READ = "public-read"


@runtime_checkable
class ObjectStore(Protocol):
    """Opaque key-value store the publisher uploads into."""

    async def put(
        self,
        key: str,
        body: bytes,
        acl: str = PUBLIC_READ,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Store *body* under *key* with the given ACL and HTTP headers."""
        ...

    def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        """Yield all keys starting with *prefix*."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...
