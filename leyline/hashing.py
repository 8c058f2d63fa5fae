"""SHA-256 content hashing shared by the cache and the sync engine."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any, Union

HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")
CHUNK_SIZE = 8192


def hash_content(content: Union[bytes, str]) -> str:
    """Compute the SHA-256 hex digest of in-memory content."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def compute_file_hash(file_path: Union[str, Path]) -> str:
    """Compute SHA-256 hash of a file."""
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def is_content_hash(value: Any) -> bool:
    return isinstance(value, str) and HASH_PATTERN.match(value) is not None


__all__ = ["HASH_PATTERN", "hash_content", "compute_file_hash", "is_content_hash"]
