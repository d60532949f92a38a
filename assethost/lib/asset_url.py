"""Serve-time asset URLs carrying the content fingerprint."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from assethost.lib.host import ClientHints, HostResolver
from assethost.lib.keys import AssetReference, KeyNamespace, reference_path

if TYPE_CHECKING:
    from litestar import Request

    from assethost.config import AssetHostConfig

logger = logging.getLogger(__name__)


class AssetURLResolver:
    """Turns an asset source such as ``/images/logo.png`` into its published URL.

    The web layer calls this directly, e.g. as a template global:
    ``{{ asset_url("/stylesheets/site.css") }}``. Asset ids are cached per
    source for the life of the resolver, like the static hash cache.
    """

    def __init__(
        self,
        config: AssetHostConfig,
        namespace: KeyNamespace | None = None,
        host_resolver: HostResolver | None = None,
    ) -> None:
        self.config = config
        self.namespace = namespace or KeyNamespace(config)
        self.host_resolver = host_resolver or HostResolver(config, self.namespace)
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def __call__(self, source: AssetReference | str, request: Request | None = None) -> str:
        hints = ClientHints.from_request(request) if request is not None else None
        return self.url_for(source, hints)

    def asset_id(self, source: AssetReference | str) -> str:
        """Return ``key_prefix + digest`` for *source*, or ``""`` when it is not published."""
        source = reference_path(source)
        if not self.config.cache_asset_ids:
            return self._compute(source)

        with self._lock:
            cached = self._cache.get(source)
        if cached is not None:
            return cached

        asset_id = self._compute(source)
        with self._lock:
            self._cache[source] = asset_id
        return asset_id

    def asset_path(self, source: AssetReference | str) -> str:
        source = reference_path(source)
        asset_id = self.asset_id(source)
        if not asset_id:
            return source
        return f"/{asset_id}/{source.lstrip('/')}"

    def url_for(
        self,
        source: AssetReference | str,
        client_hints: ClientHints | None = None,
        shard: int | None = None,
    ) -> str:
        source = reference_path(source)
        host = self.host_resolver.resolve_host(source, client_hints, shard)
        if not host:
            return source
        return f"{host}{self.asset_path(source)}"

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _compute(self, source: str) -> str:
        if self.namespace.should_exclude(source):
            return ""

        handle = self.namespace.handle_for_source(source)
        if handle is None or not handle.absolute_path.is_file():
            return ""

        try:
            return self.namespace.key_for(handle).asset_id
        except OSError as exc:
            logger.warning("Could not fingerprint %s: %s", source, exc)
            return ""
