"""Upload planning and execution against a remote key snapshot.

A publish run lists the remote keys once, decides which content keys are
missing, then streams the missing ones through the object store gateway.
Keys are derived from the original file bytes. For stylesheets the stored
payload is the rewritten text, so the key names the logical asset rather
than the exact bytes stored under it.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import mimetypes
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from enum import Enum
from typing import TYPE_CHECKING

from assethost.lib.compression import gzip_bytes
from assethost.lib.css_rewriter import STYLESHEET_ERRORS, CssRewriter
from assethost.lib.exceptions import GatewayError, LocalIOError
from assethost.lib.host import HostResolver
from assethost.lib.keys import ContentKey, FileHandle, KeyNamespace
from assethost.lib.retry import with_retries
from assethost.lib.storage.base import PUBLIC_READ

if TYPE_CHECKING:
    from assethost.config import AssetHostConfig, RetryConfig
    from assethost.lib.storage.base import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class PayloadKind(str, Enum):
    RAW = "raw"
    REWRITTEN = "rewritten"
    GZIP = "gzip"


@dataclass(frozen=True)
class RemoteKeySnapshot:
    """Keys present in the object store when the run started."""

    keys: frozenset[str] = frozenset()

    def __contains__(self, key: object) -> bool:
        return str(key) in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    @classmethod
    async def fetch(
        cls,
        store: ObjectStore,
        prefixes: Iterable[str],
        retry: RetryConfig,
    ) -> RemoteKeySnapshot:
        """List every prefix once and return the union of keys.

        Raises :class:`GatewayError` when a listing keeps failing.
        """
        keys: set[str] = set()
        for prefix in dict.fromkeys(prefixes):

            async def collect(prefix: str = prefix) -> list[str]:
                return [key async for key in store.list_keys(prefix)]

            try:
                keys.update(await with_retries(collect, retry, description=f"list {prefix!r}"))
            except GatewayError:
                raise
            except Exception as exc:
                raise GatewayError(prefix, exc, operation="list") from exc
        return cls(frozenset(keys))


@dataclass(frozen=True)
class UploadDecision:
    key: ContentKey
    handle: FileHandle
    rewrite: bool
    needs_upload: bool

    @property
    def gzip(self) -> bool:
        return self.key.is_gzip_variant

    @property
    def kind(self) -> PayloadKind:
        if self.gzip:
            return PayloadKind.GZIP
        if self.rewrite:
            return PayloadKind.REWRITTEN
        return PayloadKind.RAW


@dataclass
class PublishPlan:
    decisions: list[UploadDecision] = field(default_factory=list)
    failures: list[LocalIOError] = field(default_factory=list)

    @property
    def uploads(self) -> list[UploadDecision]:
        return [d for d in self.decisions if d.needs_upload]

    @property
    def existing(self) -> list[UploadDecision]:
        return [d for d in self.decisions if not d.needs_upload]


@dataclass
class PublishReport:
    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, GatewayError] = field(default_factory=dict)
    local_failures: list[LocalIOError] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.local_failures

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class PublishPlanner:
    """Builds upload plans and pushes them through an object store."""

    def __init__(
        self,
        config: AssetHostConfig,
        namespace: KeyNamespace | None = None,
        rewriter: CssRewriter | None = None,
    ) -> None:
        self.config = config
        self.namespace = namespace or KeyNamespace(config)
        self.rewriter = rewriter or CssRewriter(self.namespace, HostResolver(config, self.namespace))

    def plan(
        self,
        handles: Iterable[FileHandle],
        snapshot: RemoteKeySnapshot,
        force: bool = False,
    ) -> PublishPlan:
        """Decide which keys need uploading.

        Plain keys come first, then gzip keys. A file that cannot be read is
        reported in ``failures`` and left out; the rest of the batch goes on.
        """
        decisions: dict[str, UploadDecision] = {}
        failures: list[LocalIOError] = []
        gzip_enabled = self.config.gzip.enabled

        for handle in handles:
            if self.namespace.should_exclude(handle.relative_path):
                logger.debug("Excluded from publishing: %s", handle.relative_path)
                continue

            try:
                digest = self.namespace.digest_for(handle)
            except OSError as exc:
                error = LocalIOError(handle.absolute_path, exc)
                logger.error("Skipping %s: %s", handle.relative_path, error)
                failures.append(error)
                continue

            keys = [self.namespace.key_for(handle, digest=digest)]
            if gzip_enabled and self.namespace.gzip_eligible(handle.relative_path):
                keys.append(self.namespace.key_for(handle, gzip=True, digest=digest))

            for key in keys:
                name = str(key)
                if name in decisions:
                    continue
                decisions[name] = UploadDecision(
                    key=key,
                    handle=handle,
                    rewrite=handle.is_stylesheet,
                    needs_upload=force or name not in snapshot,
                )

        ordered = sorted(decisions.values(), key=lambda d: d.gzip)
        return PublishPlan(decisions=ordered, failures=failures)

    def build_payload(self, handle: FileHandle, rewrite: bool) -> bytes:
        """Return the bytes stored for *handle*: raw, or rewritten stylesheet text."""
        if rewrite:
            text = self.rewriter.rewrite_file(handle.absolute_path)
            return text.encode("utf-8", errors=STYLESHEET_ERRORS)
        try:
            return handle.read_bytes()
        except OSError as exc:
            raise LocalIOError(handle.absolute_path, exc) from exc

    def content_type_for(self, extension: str) -> str:
        if extension in self.config.mime_types:
            return self.config.mime_types[extension]
        guessed, _ = mimetypes.guess_type(f"asset.{extension}", strict=False)
        return guessed or DEFAULT_CONTENT_TYPE

    def headers_for(self, decision: UploadDecision, now: datetime | None = None) -> dict[str, str]:
        now = now or datetime.now(timezone.utc)
        expires = now + timedelta(seconds=self.config.expires_after)
        headers = {
            "Content-Type": self.content_type_for(decision.handle.extension),
            "Cache-Control": f"max-age={self.config.cache_max_age}",
            "Expires": format_datetime(expires, usegmt=True),
        }
        if decision.gzip:
            headers["Content-Encoding"] = "gzip"
        return headers

    async def execute(
        self,
        plan: PublishPlan,
        store: ObjectStore,
        dry_run: bool = False,
    ) -> PublishReport:
        """Upload every decision that needs it.

        Work is grouped per file so a stylesheet is rewritten once for both
        its plain and gzip keys. Files run on a pool of ``config.workers``
        tasks. A failing key is recorded and does not stop the others.
        """
        report = PublishReport(
            skipped=[str(d.key) for d in plan.existing],
            local_failures=list(plan.failures),
            dry_run=dry_run,
        )

        by_handle: dict[FileHandle, list[UploadDecision]] = {}
        for decision in plan.uploads:
            by_handle.setdefault(decision.handle, []).append(decision)

        semaphore = asyncio.Semaphore(self.config.workers)

        async def run(handle: FileHandle, decisions: list[UploadDecision]) -> None:
            async with semaphore:
                await self._upload_handle(handle, decisions, store, report, dry_run)

        await asyncio.gather(*(run(h, ds) for h, ds in by_handle.items()))

        report.uploaded.sort()
        return report

    async def _upload_handle(
        self,
        handle: FileHandle,
        decisions: list[UploadDecision],
        store: ObjectStore,
        report: PublishReport,
        dry_run: bool,
    ) -> None:
        if dry_run:
            report.uploaded.extend(str(d.key) for d in decisions)
            return

        rewrite = any(d.rewrite for d in decisions)
        try:
            base = await asyncio.to_thread(self.build_payload, handle, rewrite)
        except LocalIOError as exc:
            logger.error("Skipping %s: %s", handle.relative_path, exc)
            report.local_failures.append(exc)
            return

        try:
            for decision in decisions:
                key = str(decision.key)
                payload = await asyncio.to_thread(gzip_bytes, base) if decision.gzip else base
                put = functools.partial(
                    store.put, key, payload, PUBLIC_READ, self.headers_for(decision)
                )
                try:
                    await with_retries(put, self.config.retry, description=f"put {key}")
                except GatewayError as exc:
                    logger.error("Upload failed for %s: %s", key, exc)
                    report.failed[key] = exc
                except Exception as exc:
                    logger.error("Upload failed for %s: %s", key, exc)
                    report.failed[key] = GatewayError(key, exc)
                else:
                    logger.info("Uploaded %s", key)
                    report.uploaded.append(key)
                finally:
                    del payload
        finally:
            del base
