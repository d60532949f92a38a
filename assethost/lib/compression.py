"""In-process gzip transform for gzip variants."""

import gzip

COMPRESS_LEVEL = 9


def gzip_bytes(data: bytes, compresslevel: int = COMPRESS_LEVEL) -> bytes:
    """Compress *data* with gzip framing.

    ``mtime`` is pinned to 0 so identical input gives identical output.
    """
    return gzip.compress(data, compresslevel=compresslevel, mtime=0)


def gunzip_bytes(data: bytes) -> bytes:
    return gzip.decompress(data)
