"""
tdd-dag: hashing utilities

Purpose
- Provide deterministic SHA-256 helpers for bytes and files.
- Compiled scenarios and the manifest record these digests as provenance.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import os
import string
from pathlib import Path

PathLike = str | os.PathLike[str]

_SHA256_HEX_LENGTH = 64
_FILE_READ_CHUNK_BYTES = 1024 * 1024
_HEX_DIGITS = set(string.hexdigits)

__all__ = [
    "is_sha256_hex",
    "sha256_bytes",
    "sha256_file",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    with Path(path).open("rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def is_sha256_hex(value: str) -> bool:
    """Return ``True`` when ``value`` looks like a SHA-256 hex digest."""

    return len(value) == _SHA256_HEX_LENGTH and set(value).issubset(_HEX_DIGITS)
