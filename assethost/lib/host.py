"""Serve-time host resolution for asset references."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from assethost.lib.keys import AssetReference, KeyNamespace, reference_path

if TYPE_CHECKING:
    from litestar import Request

    from assethost.config import AssetHostConfig

# Netscape 4 is the only browser without gzip support. IE claims to be
# Mozilla/4 as well but sends an MSIE marker.
LEGACY_USER_AGENT = re.compile(r"^Mozilla/4")
MASQUERADING_USER_AGENT = re.compile(r"\bMSIE")

SHARD_PLACEHOLDER = "%d"


@dataclass(frozen=True)
class ClientHints:
    """Request signals that decide whether a gzip variant may be served."""

    user_agent: str = ""
    accept_encoding: str = ""

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> ClientHints:
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            user_agent=lowered.get("user-agent", "") or "",
            accept_encoding=lowered.get("accept-encoding", "") or "",
        )

    @classmethod
    def from_request(cls, request: Request) -> ClientHints:
        return cls(
            user_agent=request.headers.get("user-agent", ""),
            accept_encoding=request.headers.get("accept-encoding", ""),
        )

    @property
    def supports_gzip(self) -> bool:
        legacy = LEGACY_USER_AGENT.search(self.user_agent) is not None
        if legacy and MASQUERADING_USER_AGENT.search(self.user_agent) is None:
            return False
        return "gzip" in self.accept_encoding


class HostResolver:
    """Decides the public host (and gzip path segment) for an asset reference.

    Holds only read-only configuration, so one instance can serve
    concurrent requests.
    """

    def __init__(self, config: AssetHostConfig, namespace: KeyNamespace | None = None) -> None:
        self.config = config
        self.namespace = namespace or KeyNamespace(config)

    def base_host(self, shard: int | None = None) -> str:
        cname = self.config.cname
        if cname:
            if SHARD_PLACEHOLDER in cname:
                cname = cname.replace(SHARD_PLACEHOLDER, str(shard or 0))
            return f"{self.config.scheme}://{cname}"
        return f"{self.config.scheme}://{self.config.bucket_host}"

    def resolve_host(
        self,
        reference: AssetReference | str | None = None,
        client_hints: ClientHints | None = None,
        shard: int | None = None,
    ) -> str:
        """Return the host to prepend to *reference*.

        An empty string means the reference is excluded and must be served
        unmodified.
        """
        if reference is not None:
            reference = reference_path(reference)
        if reference and self.namespace.should_exclude(reference):
            return ""

        host = self.base_host(shard)

        if reference and client_hints is not None and self.negotiates_gzip(reference, client_hints):
            host = f"{host}/{self.config.gzip.prefix}"

        return host

    def negotiates_gzip(self, reference: str, client_hints: ClientHints) -> bool:
        return (
            self.config.gzip.enabled
            and self.namespace.gzip_eligible(reference)
            and client_hints.supports_gzip
        )
