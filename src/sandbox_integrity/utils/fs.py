"""
sandbox-integrity — filesystem utilities

File: src/sandbox_integrity/utils/fs.py
Last updated: 2026-10-17

Purpose
- Provide the two write paths the repair stage is allowed to use: an atomic
  temp-then-replace write for regenerated content, and an exclusive-create copy
  for seed assets that never clobbers a file created concurrently.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Seed copies report "already present" instead of overwriting.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

_COPY_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "atomic_write",
    "copy_no_clobber",
    "is_within",
]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    create_parents: bool = False,
) -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    if create_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def copy_no_clobber(source: PathLike, destination: PathLike) -> bool:
    """
    Copy ``source`` to ``destination`` unless ``destination`` already exists.

    Returns ``True`` when the copy was made and ``False`` when the destination
    was already present. A partially written destination is removed on failure.
    """

    src = Path(source)
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)

    try:
        out_handle = dest.open("xb")
    except FileExistsError:
        return False

    try:
        with out_handle, src.open("rb") as in_handle:
            shutil.copyfileobj(in_handle, out_handle, _COPY_CHUNK_BYTES)
            out_handle.flush()
            os.fsync(out_handle.fileno())
    except BaseException:
        with contextlib.suppress(OSError):
            dest.unlink(missing_ok=True)
        raise

    with contextlib.suppress(OSError):
        shutil.copystat(src, dest)
    return True


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Return ``True`` if ``child`` is lexically within ``parent`` after normalization."""

    resolved_parent = Path(os.path.abspath(parent))
    resolved_child = Path(os.path.abspath(child))
    return _is_relative_to(resolved_child, resolved_parent)


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
