"""Asset references, local file handles, and the storage key namespace."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from assethost.lib.fingerprint import fingerprint_file

if TYPE_CHECKING:
    from assethost.config import AssetHostConfig


def extension_of(path: str) -> str:
    """Return the extension of a reference path without the dot.

    Query strings and fragments are ignored, so ``/app.js?body=1`` is ``js``.
    """
    path = path.split("?", 1)[0].split("#", 1)[0]
    return PurePosixPath(path).suffix.lstrip(".").lower()


@dataclass(frozen=True)
class AssetReference:
    """A logical asset path as referenced by a consumer, e.g. ``/images/logo.png``."""

    path: str

    @property
    def extension(self) -> str:
        return extension_of(self.path)


def reference_path(reference: AssetReference | str) -> str:
    if isinstance(reference, AssetReference):
        return reference.path
    return reference


@dataclass(frozen=True)
class FileHandle:
    """A local file under the public root.

    ``relative_path`` is posix-style with a leading slash, so it doubles as
    the source reference the web layer emits.
    """

    absolute_path: Path
    relative_path: str

    @property
    def extension(self) -> str:
        return extension_of(self.relative_path)

    @property
    def is_stylesheet(self) -> bool:
        return self.extension == "css"

    def read_bytes(self) -> bytes:
        return self.absolute_path.read_bytes()


@dataclass(frozen=True)
class ContentKey:
    """Canonical storage key for a file's content."""

    digest_prefix: str
    relative_path: str
    key_prefix: str = ""
    gzip_prefix: str | None = None

    @property
    def is_gzip_variant(self) -> bool:
        return self.gzip_prefix is not None

    @property
    def asset_id(self) -> str:
        return f"{self.key_prefix}{self.digest_prefix}"

    def __str__(self) -> str:
        key = f"{self.asset_id}{self.relative_path}"
        if self.gzip_prefix is not None:
            return f"{self.gzip_prefix}/{key}"
        return key


class KeyNamespace:
    """Maps local files to storage keys and applies exclusion/gzip rules."""

    def __init__(self, config: AssetHostConfig) -> None:
        self.config = config
        self.public_path = Path(os.path.abspath(config.public_path))

    @cached_property
    def _exclude_regex(self) -> re.Pattern[str] | None:
        if not self.config.exclude_pattern:
            return None
        return re.compile(self.config.exclude_pattern)

    def handle_for(self, path: Path | str) -> FileHandle | None:
        """Build a handle for an absolute path, or ``None`` if it lies outside the public root."""
        absolute = Path(os.path.normpath(os.path.abspath(path)))
        try:
            relative = absolute.relative_to(self.public_path)
        except ValueError:
            return None
        return FileHandle(absolute_path=absolute, relative_path="/" + relative.as_posix())

    def handle_for_source(self, source: str) -> FileHandle | None:
        """Build a handle for a reference such as ``/images/logo.png``."""
        source = source.split("?", 1)[0].split("#", 1)[0]
        return self.handle_for(self.public_path / source.lstrip("/"))

    def digest_for(self, handle: FileHandle) -> str:
        return fingerprint_file(handle.absolute_path)

    def key_for(self, handle: FileHandle, gzip: bool = False, digest: str | None = None) -> ContentKey:
        """Return the plain or gzip key for *handle*.

        The digest is computed from the file on disk unless passed in.
        """
        if digest is None:
            digest = self.digest_for(handle)
        return ContentKey(
            digest_prefix=digest,
            relative_path=handle.relative_path,
            key_prefix=self.config.key_prefix,
            gzip_prefix=self.config.gzip.prefix if gzip else None,
        )

    def should_exclude(self, reference: str) -> bool:
        regex = self._exclude_regex
        return regex is not None and regex.search(reference) is not None

    def gzip_eligible(self, reference: str) -> bool:
        return extension_of(reference) in self.config.gzip.extensions
