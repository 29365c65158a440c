"""Content hashing for change detection."""

from __future__ import annotations

import hashlib
from pathlib import Path

READ_BLOCK_BYTES = 64 * 1024


def sha256_file(path: Path, block_size: int = READ_BLOCK_BYTES) -> str:
    """Return the hex SHA-256 of a file's bytes, read in fixed-size blocks."""
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(block_size), b""):
            digest.update(block)
    return digest.hexdigest()
