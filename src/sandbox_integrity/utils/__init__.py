"""Utility exports for filesystem and hashing helpers."""

from sandbox_integrity.utils.fs import atomic_write, copy_no_clobber, is_within
from sandbox_integrity.utils.hashing import (
    is_sha256_hex,
    normalize_sha256,
    sha256_bytes,
    sha256_file,
    sha256_text,
)

__all__ = [
    "atomic_write",
    "copy_no_clobber",
    "is_sha256_hex",
    "is_within",
    "normalize_sha256",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]
