"""Value types shared by the manifest loader, validator, and repair stage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from sandbox_integrity.constants import SHORTCUT_SUFFIXES
from sandbox_integrity.utils.fs import is_within
from sandbox_integrity.utils.hashing import normalize_sha256


class EntryKind(str, Enum):
    """Kinds of filesystem entry a manifest can declare."""

    DIRECTORY = "directory"
    FILE = "file"
    SHORTCUT = "shortcut"


class DiscrepancyKind(str, Enum):
    """Classification of a divergence between manifest and filesystem."""

    MISSING = "Missing"
    SIZE_MISMATCH = "SizeMismatch"
    HASH_MISMATCH = "HashMismatch"
    RESOLUTION_FAILURE = "ResolutionFailure"
    ERROR = "Error"


_KIND_ALIASES: dict[str, EntryKind] = {
    "folder": EntryKind.DIRECTORY,
    "directory": EntryKind.DIRECTORY,
    "dir": EntryKind.DIRECTORY,
    "file": EntryKind.FILE,
    "shortcut": EntryKind.SHORTCUT,
    "link": EntryKind.SHORTCUT,
    "lnk": EntryKind.SHORTCUT,
}


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """One declared filesystem entry, relative to the sandbox root."""

    path: str
    kind: EntryKind
    required: bool = False
    source: str | None = None
    sha256: str | None = None
    size: int | None = None
    icon: str | None = None
    icon_index: int = 0
    arguments: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_entry_path(self.path))
        if self.sha256 is not None:
            object.__setattr__(self, "sha256", normalize_sha256(self.sha256))
        if self.size is not None and self.size < 0:
            raise ValueError(f"size must be >= 0 for {self.path!r}")
        if self.kind is not EntryKind.FILE and (self.sha256 is not None or self.size is not None):
            raise ValueError(f"integrity metadata is only valid for file entries: {self.path!r}")

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def stem(self) -> str:
        return PurePosixPath(self.path).stem

    def target(self, sandbox_root: Path) -> Path:
        """Return the target path under ``sandbox_root``."""

        full_path = sandbox_root.joinpath(*PurePosixPath(self.path).parts)
        if not is_within(full_path, sandbox_root):
            raise ValueError(f"entry path resolves outside the sandbox: {self.path!r}")
        return full_path


@dataclass(frozen=True, slots=True)
class Discrepancy:
    """Detected divergence for one entry."""

    entry: ManifestEntry
    full_path: Path
    kind: DiscrepancyKind
    details: str | None = None

    def describe(self) -> str:
        label = _DISCREPANCY_LABELS[self.kind]
        if self.details:
            return f"{label}: {self.entry.path} ({self.details})"
        return f"{label}: {self.entry.path}"


_DISCREPANCY_LABELS: dict[DiscrepancyKind, str] = {
    DiscrepancyKind.MISSING: "Missing",
    DiscrepancyKind.SIZE_MISMATCH: "Size mismatch",
    DiscrepancyKind.HASH_MISMATCH: "Hash mismatch",
    DiscrepancyKind.RESOLUTION_FAILURE: "Unresolved",
    DiscrepancyKind.ERROR: "Check failed",
}


def parse_entry_kind(raw: object) -> EntryKind | None:
    """Map a manifest ``kind``/``type`` value onto :class:`EntryKind` (case-insensitive)."""

    if isinstance(raw, EntryKind):
        return raw
    if not isinstance(raw, str):
        return None
    return _KIND_ALIASES.get(raw.strip().lower())


def infer_entry_kind(path: str) -> EntryKind:
    """Infer the kind of an entry whose manifest record does not declare one."""

    suffix = PurePosixPath(normalize_entry_path(path)).suffix.lower()
    if not suffix:
        return EntryKind.DIRECTORY
    if suffix in SHORTCUT_SUFFIXES:
        return EntryKind.SHORTCUT
    return EntryKind.FILE


def normalize_entry_path(raw: str) -> str:
    """
    Normalize a manifest path to a relative POSIX path.

    Backslashes become ``/``, empty and ``.`` segments are dropped, and any
    ``..`` segment or drive-qualified path is rejected.
    """

    if not isinstance(raw, str):
        raise ValueError(f"entry path must be a string, got {type(raw).__name__}")
    text = raw.strip().replace("\\", "/")
    if "\x00" in text:
        raise ValueError("entry path must not contain NUL bytes")
    parts = [part for part in text.split("/") if part not in {"", "."}]
    if not parts:
        raise ValueError(f"entry path is empty: {raw!r}")
    if any(part == ".." for part in parts):
        raise ValueError(f"entry path escapes the sandbox: {raw!r}")
    if parts[0].endswith(":"):
        raise ValueError(f"entry path must be relative: {raw!r}")
    return "/".join(parts)


__all__ = [
    "Discrepancy",
    "DiscrepancyKind",
    "EntryKind",
    "ManifestEntry",
    "infer_entry_kind",
    "normalize_entry_path",
    "parse_entry_kind",
]
