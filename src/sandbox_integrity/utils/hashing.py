"""
sandbox-integrity — hashing utilities

File: src/sandbox_integrity/utils/hashing.py
Last updated: 2026-10-17

Purpose
- Provide SHA-256 helpers for bytes, text, and files.
- Validate and normalize digests declared in sandbox manifests.
"""

from __future__ import annotations

import hashlib
import os
import string
from pathlib import Path

PathLike = str | os.PathLike[str]

_SHA256_HEX_LENGTH = 64
_FILE_READ_CHUNK_BYTES = 1024 * 1024
_HEX_DIGITS = frozenset(string.hexdigits)

__all__ = [
    "is_sha256_hex",
    "normalize_sha256",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


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
    """Return ``True`` for a 64-character hex string (any case)."""

    return len(value) == _SHA256_HEX_LENGTH and set(value).issubset(_HEX_DIGITS)


def normalize_sha256(value: str) -> str:
    """Return the lowercase digest, raising ``ValueError`` for malformed input."""

    candidate = value.strip().lower()
    if candidate.startswith("sha256:"):
        candidate = candidate[len("sha256:") :]
    if not is_sha256_hex(candidate):
        raise ValueError(f"invalid SHA-256 hex digest: {value!r}")
    return candidate
