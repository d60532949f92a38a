"""Full publish cycle: scan, snapshot, plan, execute."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from assethost.lib.css_rewriter import CssRewriter
from assethost.lib.host import HostResolver
from assethost.lib.keys import KeyNamespace
from assethost.lib.planner import PublishPlan, PublishPlanner, PublishReport, RemoteKeySnapshot
from assethost.lib.scanner import discover_files

if TYPE_CHECKING:
    from assethost.config import AssetHostConfig
    from assethost.lib.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class Publisher:
    """Wires the pipeline components together for one object store."""

    def __init__(self, config: AssetHostConfig, store: ObjectStore) -> None:
        self.config = config
        self.store = store
        self.namespace = KeyNamespace(config)
        self.host_resolver = HostResolver(config, self.namespace)
        self.rewriter = CssRewriter(self.namespace, self.host_resolver)
        self.planner = PublishPlanner(config, self.namespace, self.rewriter)

    def snapshot_prefixes(self) -> list[str]:
        prefixes = [self.config.key_prefix]
        if self.config.gzip.enabled:
            prefixes.append(self.config.gzip.prefix)
        return prefixes

    async def snapshot(self) -> RemoteKeySnapshot:
        snapshot = await RemoteKeySnapshot.fetch(
            self.store, self.snapshot_prefixes(), self.config.retry
        )
        logger.info("Found %d existing keys", len(snapshot))
        return snapshot

    async def prepare(self, force: bool = False) -> PublishPlan:
        """Scan local files and plan against a fresh remote snapshot.

        Scanning and hashing run in a worker thread.
        """
        handles = await asyncio.to_thread(discover_files, self.namespace, self.config.asset_dirs)
        logger.info("Found %d local files", len(handles))
        snapshot = await self.snapshot()
        return await asyncio.to_thread(self.planner.plan, handles, snapshot, force)

    async def execute(self, plan: PublishPlan, dry_run: bool = False) -> PublishReport:
        report = await self.planner.execute(plan, self.store, dry_run=dry_run)
        logger.info(
            "Publish finished: %d uploaded, %d already present, %d failed",
            len(report.uploaded), len(report.skipped),
            len(report.failed) + len(report.local_failures),
        )
        return report

    async def run(self, dry_run: bool = False, force: bool = False) -> PublishReport:
        plan = await self.prepare(force=force)
        return await self.execute(plan, dry_run=dry_run)


async def publish(
    config: AssetHostConfig,
    store: ObjectStore,
    dry_run: bool = False,
    force: bool = False,
) -> PublishReport:
    """Publish every asset under the configured directories to *store*."""
    return await Publisher(config, store).run(dry_run=dry_run, force=force)
