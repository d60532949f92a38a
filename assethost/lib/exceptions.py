"""Error types raised across the publishing pipeline."""

from __future__ import annotations

from pathlib import Path


class AssetHostError(Exception):
    """Base class for all assethost errors."""


class ConfigurationError(AssetHostError):
    """Raised when configuration is missing or invalid.

    Fatal: the run is aborted before any network activity.
    """


class LocalIOError(AssetHostError):
    """A local asset file could not be read."""

    def __init__(self, path: Path | str, cause: BaseException | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Could not read {self.path}{detail}")


class RewriteAmbiguity(AssetHostError):
    """A stylesheet reference could not be resolved to a local file."""

    def __init__(self, reference: str, stylesheet: Path | str, reason: str) -> None:
        self.reference = reference
        self.stylesheet = Path(stylesheet)
        self.reason = reason
        super().__init__(f"{reason}: {reference!r} in {self.stylesheet}")


class GatewayError(AssetHostError):
    """An object store operation failed.

    ``retryable`` is false when repeating the call cannot succeed, e.g. for
    a malformed key.
    """

    def __init__(
        self,
        key: str,
        cause: BaseException | None = None,
        operation: str = "put",
        retryable: bool = True,
    ) -> None:
        self.key = key
        self.cause = cause
        self.operation = operation
        self.retryable = retryable
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed for {key!r}{detail}")
