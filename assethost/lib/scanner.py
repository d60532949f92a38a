"""Discovery of publishable files under the configured asset directories."""

from __future__ import annotations

import logging
from pathlib import Path

from assethost.lib.keys import FileHandle, KeyNamespace

logger = logging.getLogger(__name__)


def discover_files(namespace: KeyNamespace, asset_dirs: tuple[str, ...] | list[str]) -> list[FileHandle]:
    """Return a handle for every regular file under ``public_path/<dir>``.

    Directories that do not exist are skipped with a warning. Symlinks that
    escape the public root are ignored. The result is sorted by relative path.
    """
    root = namespace.public_path
    handles: dict[str, FileHandle] = {}

    for asset_dir in asset_dirs:
        if ".." in Path(asset_dir).parts:
            logger.warning("Skipping asset directory outside the public path: %s", asset_dir)
            continue

        base = root / asset_dir
        if not base.is_dir():
            logger.warning("Asset directory not found: %s", base)
            continue

        for path in base.rglob("*"):
            if not path.is_file():
                continue
            try:
                resolved = path.resolve()
            except (OSError, RuntimeError):
                logger.warning("Skipping unresolvable path %s", path)
                continue
            if not resolved.is_relative_to(root.resolve()):
                logger.warning("Skipping %s: resolves outside the public path", path)
                continue
            handle = namespace.handle_for(path)
            if handle is not None:
                handles[handle.relative_path] = handle

    return [handles[key] for key in sorted(handles)]
