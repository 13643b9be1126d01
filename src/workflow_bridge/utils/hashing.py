"""
workflow-bridge — archive digests

File: src/workflow_bridge/utils/hashing.py

Purpose
- SHA-256 digests of artifact archives, as lowercase hex or in the
  ``sha256:<hex>`` form the artifact results service expects on finalize.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

PathLike = str | os.PathLike[str]

DIGEST_ALGORITHM = "sha256"
_READ_BLOCK = 64 * 1024


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: PathLike) -> str:
    """Hex digest of the file at ``path``, streamed in fixed-size blocks."""

    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for block in iter(lambda: handle.read(_READ_BLOCK), b""):
            digest.update(block)
    return digest.hexdigest()


def labeled_digest(data: bytes) -> str:
    """``sha256:<hex>`` for ``data``."""

    return f"{DIGEST_ALGORITHM}:{sha256_bytes(data)}"


__all__ = ["DIGEST_ALGORITHM", "labeled_digest", "sha256_bytes", "sha256_file"]
