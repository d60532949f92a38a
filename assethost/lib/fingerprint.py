"""Content fingerprints used as the content-addressed part of storage keys."""

import hashlib
from pathlib import Path

DIGEST_LENGTH = 9


def fingerprint(data: bytes) -> str:
    """Return the first 9 lowercase hex characters of the MD5 digest of *data*."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest()[:DIGEST_LENGTH]


def fingerprint_file(path: Path) -> str:
    """Fingerprint the full contents of *path*.

    Read errors propagate as ``OSError``; an unreadable file is never
    fingerprinted as empty content.
    """
    return fingerprint(Path(path).read_bytes())
