"""Filesystem object store that mirrors a bucket layout on disk."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Mapping
from pathlib import Path

from assethost.lib.exceptions import GatewayError
from assethost.lib.storage.base import PUBLIC_READ

META_DIR = ".meta"


class LocalObjectStore:
    """Store objects as files named by key, with headers in a JSON sidecar.

    Useful for staging a publish run or serving the bucket layout locally.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)

    async def put(
        self,
        key: str,
        body: bytes,
        acl: str = PUBLIC_READ,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        path = self._key_to_path(key)
        meta = {"acl": acl, "headers": dict(headers or {})}
        try:
            await asyncio.to_thread(self._write_object, path, self._meta_path(key), body, meta)
        except OSError as exc:
            raise GatewayError(key, exc) from exc

    async def get(self, key: str) -> bytes:
        return await asyncio.to_thread(self._key_to_path(key).read_bytes)

    async def get_headers(self, key: str) -> dict[str, str]:
        text = await asyncio.to_thread(self._meta_path(key).read_text)
        return json.loads(text)["headers"]

    async def list_keys(self, prefix: str = "") -> AsyncIterator[str]:
        base = self._base_path
        for path in await asyncio.to_thread(self._walk, base):
            key = path.relative_to(base).as_posix()
            if key.startswith(prefix):
                yield key

    async def close(self) -> None:
        """No persistent resources to clean up."""

    # -- internal helpers --

    def _key_to_path(self, key: str) -> Path:
        parts = key.split("/")
        if ".." in parts or "\x00" in key or key.startswith("/") or parts[0] == META_DIR:
            raise GatewayError(key, ValueError("invalid key"), retryable=False)
        return self._base_path / key

    def _meta_path(self, key: str) -> Path:
        return self._base_path / META_DIR / f"{key}.json"

    @staticmethod
    def _write_object(path: Path, meta_path: Path, body: bytes, meta: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(json.dumps(meta, sort_keys=True))

    @staticmethod
    def _walk(base: Path) -> list[Path]:
        if not base.exists():
            return []
        meta = base / META_DIR
        return sorted(
            p for p in base.rglob("*")
            if p.is_file() and not p.is_relative_to(meta)
        )
