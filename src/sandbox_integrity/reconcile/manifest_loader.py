"""Manifest discovery and permissive parsing.

Manifests in the wild come in several shapes: ``{"entries": [...]}``,
``{"items": [...]}``, ``{"files": [...]}``, a versioned shim one level down
(``{"manifest": {"version": 2, "items": [...]}}``), or a bare array. Keys are
matched case-insensitively. Anything that cannot be read is treated as "not
found" and the search moves on; when nothing usable turns up the built-in
default entry set is returned so a run always has work to do.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog
import yaml

from sandbox_integrity.constants import (
    MANIFEST_ANCESTOR_LEVELS,
    MANIFEST_ASSETS_DIR,
    MANIFEST_ENTRY_ALIASES,
    MANIFEST_FILENAMES,
)
from sandbox_integrity.reconcile.errors import ManifestLoadError
from sandbox_integrity.reconcile.models import (
    EntryKind,
    ManifestEntry,
    infer_entry_kind,
    normalize_entry_path,
    parse_entry_kind,
)
from sandbox_integrity.utils.hashing import is_sha256_hex

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})
_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off", ""})

DEFAULT_ENTRIES: Final[tuple[ManifestEntry, ...]] = (
    ManifestEntry(path="Notes", kind=EntryKind.DIRECTORY, required=True),
    ManifestEntry(path="Downloads", kind=EntryKind.DIRECTORY, required=True),
    ManifestEntry(path="README.txt", kind=EntryKind.FILE, required=True),
    ManifestEntry(path="Terminal.lnk", kind=EntryKind.SHORTCUT),
    ManifestEntry(path="VPN.lnk", kind=EntryKind.SHORTCUT),
    ManifestEntry(path="Email.lnk", kind=EntryKind.SHORTCUT),
)


@dataclass(frozen=True, slots=True)
class ParsedManifest:
    """Entries extracted from one manifest payload."""

    entries: tuple[ManifestEntry, ...]
    version: str | None
    skipped: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LoadedManifest:
    """Outcome of manifest discovery for one run."""

    entries: tuple[ManifestEntry, ...]
    source: Path | None
    version: str | None = None
    used_defaults: bool = False
    reason: str | None = None
    skipped: tuple[str, ...] = ()

    def describe(self) -> str:
        if not self.used_defaults and self.source is not None:
            return f"Manifest: {self.source}"
        if self.reason:
            return f"Manifest unavailable ({self.reason}); using built-in defaults."
        return "Manifest unavailable; using built-in defaults."


class ManifestLoader:
    """Locate the first readable manifest and turn it into ordered entries."""

    def __init__(
        self,
        *,
        filenames: Sequence[str] = MANIFEST_FILENAMES,
        ancestor_levels: int = MANIFEST_ANCESTOR_LEVELS,
        logger: Any | None = None,
    ) -> None:
        if ancestor_levels < 0:
            raise ValueError("ancestor_levels must be >= 0")
        names = tuple(name.strip() for name in filenames if name.strip())
        if not names:
            raise ValueError("filenames must not be empty")
        self._filenames = names
        self._ancestor_levels = ancestor_levels
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def candidate_paths(
        self,
        install_root: Path | str,
        hints: Sequence[Path | str] = (),
    ) -> list[Path]:
        """Return candidate manifest files in search order, without duplicates."""

        ordered: list[Path] = []
        seen: set[Path] = set()

        def add(path: Path) -> None:
            normalized = Path(os.path.abspath(path))
            if normalized not in seen:
                seen.add(normalized)
                ordered.append(normalized)

        for raw_hint in hints:
            hint = Path(raw_hint).expanduser()
            if self._probe(hint, Path.is_dir):
                for name in self._filenames:
                    add(hint / name)
            else:
                add(hint)

        root = Path(os.path.abspath(install_root))
        directories = [root]
        current = root
        for _ in range(self._ancestor_levels):
            if current.parent == current:
                break
            current = current.parent
            directories.append(current)

        for directory in directories:
            for folder in (directory, directory / MANIFEST_ASSETS_DIR):
                for name in self._filenames:
                    add(folder / name)
        return ordered

    def load(
        self,
        install_root: Path | str,
        hints: Sequence[Path | str] = (),
    ) -> LoadedManifest:
        """Load the first existing, parseable manifest or fall back to defaults."""

        reason = "no manifest found"
        for candidate in self.candidate_paths(install_root, hints):
            if not self._probe(candidate, Path.is_file):
                continue
            try:
                parsed = parse_manifest_file(candidate)
            except ManifestLoadError as exc:
                reason = f"unreadable manifest {candidate.name}"
                self._logger.warning(
                    "manifest_unreadable",
                    path=str(candidate),
                    error=str(exc),
                )
                continue

            for message in parsed.skipped:
                self._logger.warning("manifest_entry_skipped", path=str(candidate), detail=message)

            if not parsed.entries:
                self._logger.warning("manifest_empty", path=str(candidate))
                return LoadedManifest(
                    entries=DEFAULT_ENTRIES,
                    source=candidate,
                    version=parsed.version,
                    used_defaults=True,
                    reason=f"manifest {candidate.name} declares no entries",
                    skipped=parsed.skipped,
                )

            self._logger.info(
                "manifest_loaded",
                path=str(candidate),
                entries=len(parsed.entries),
                version=parsed.version,
            )
            return LoadedManifest(
                entries=parsed.entries,
                source=candidate,
                version=parsed.version,
                skipped=parsed.skipped,
            )

        self._logger.warning("manifest_defaults_used", install_root=str(install_root), reason=reason)
        return LoadedManifest(
            entries=DEFAULT_ENTRIES,
            source=None,
            used_defaults=True,
            reason=reason,
        )

    def _probe(self, path: Path, check: Callable[[Path], bool]) -> bool:
        """Run a filesystem probe; an inaccessible candidate counts as not found."""

        try:
            return check(path)
        except OSError as exc:
            self._logger.warning("manifest_candidate_inaccessible", path=str(path), error=str(exc))
            return False


def parse_manifest_file(path: Path) -> ParsedManifest:
    """Read and parse one manifest file; every failure becomes :class:`ManifestLoadError`."""

    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestLoadError(f"unable to read manifest {path}: {exc}") from exc

    try:
        if path.suffix.lower() in _YAML_SUFFIXES:
            payload = yaml.safe_load(text)
        else:
            payload = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ManifestLoadError(f"invalid manifest {path}: {exc}") from exc

    return parse_manifest_payload(payload)


def parse_manifest_payload(payload: object) -> ParsedManifest:
    """Extract entries from a decoded manifest document."""

    located = _locate_entry_array(payload)
    if located is None:
        raise ManifestLoadError(
            "manifest has no entry array (expected one of: " + ", ".join(MANIFEST_ENTRY_ALIASES) + ")"
        )
    raw_entries, version = located

    entries: list[ManifestEntry] = []
    skipped: list[str] = []
    seen_paths: set[str] = set()
    for index, raw in enumerate(raw_entries):
        try:
            entry = parse_entry(raw, skipped=skipped, index=index)
        except ValueError as exc:
            skipped.append(f"entry[{index}]: {exc}")
            continue
        if entry.path in seen_paths:
            skipped.append(f"entry[{index}]: duplicate path {entry.path!r}")
            continue
        seen_paths.add(entry.path)
        entries.append(entry)

    return ParsedManifest(entries=tuple(entries), version=version, skipped=tuple(skipped))


def parse_entry(raw: object, *, skipped: list[str] | None = None, index: int = 0) -> ManifestEntry:
    """Build a :class:`ManifestEntry` from one manifest element.

    Raises ``ValueError`` when the element has no usable path. Soft problems
    (unknown kind, bad digest, metadata on the wrong kind) are recorded in
    ``skipped`` and the offending field is ignored.
    """

    notes = skipped if skipped is not None else []
    if not isinstance(raw, Mapping):
        raise ValueError(f"expected object, got {type(raw).__name__}")
    fields = _lower_keys(raw)

    raw_path = fields.get("path")
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise ValueError("missing path")
    path = normalize_entry_path(raw_path)

    raw_kind = fields.get("kind", fields.get("type"))
    kind = parse_entry_kind(raw_kind)
    if kind is None:
        if raw_kind is not None:
            notes.append(f"entry[{index}]: unknown kind {raw_kind!r} for {path!r}; inferred")
        kind = infer_entry_kind(path)

    sha256: str | None = None
    size: int | None = None
    raw_sha = fields.get("sha256")
    raw_size = fields.get("size")
    if kind is EntryKind.FILE:
        if isinstance(raw_sha, str) and raw_sha.strip():
            candidate = raw_sha.strip().lower().removeprefix("sha256:")
            if is_sha256_hex(candidate):
                sha256 = candidate
            else:
                notes.append(f"entry[{index}]: invalid sha256 for {path!r}; ignored")
        size = _as_optional_int(raw_size, f"entry[{index}].size", notes, minimum=0)
    elif raw_sha is not None or raw_size is not None:
        notes.append(f"entry[{index}]: size/sha256 ignored for {kind.value} {path!r}")

    icon: str | None = None
    icon_index = 0
    arguments: str | None = None
    if kind is EntryKind.SHORTCUT:
        icon = _as_optional_str(fields.get("icon"))
        icon_index = (
            _as_optional_int(fields.get("iconindex"), f"entry[{index}].iconIndex", notes) or 0
        )
        arguments = _as_optional_str(fields.get("arguments", fields.get("args")))

    return ManifestEntry(
        path=path,
        kind=kind,
        required=_as_bool(fields.get("required"), f"entry[{index}].required", notes),
        source=_as_optional_str(fields.get("source")),
        sha256=sha256,
        size=size,
        icon=icon,
        icon_index=icon_index,
        arguments=arguments,
    )


def _locate_entry_array(payload: object) -> tuple[list[object], str | None] | None:
    if isinstance(payload, list):
        return payload, None
    if not isinstance(payload, Mapping):
        return None

    fields = _lower_keys(payload)
    direct = _alias_array(fields)
    if direct is not None:
        return direct, _version_of(fields)

    for value in fields.values():
        if not isinstance(value, Mapping):
            continue
        nested_fields = _lower_keys(value)
        nested = _alias_array(nested_fields)
        if nested is not None:
            return nested, _version_of(nested_fields) or _version_of(fields)
    return None


def _alias_array(fields: Mapping[str, object]) -> list[object] | None:
    for alias in MANIFEST_ENTRY_ALIASES:
        value = fields.get(alias)
        if isinstance(value, list):
            return value
    return None


def _version_of(fields: Mapping[str, object]) -> str | None:
    value = fields.get("version")
    if value is None or isinstance(value, (Mapping, list)):
        return None
    return str(value)


def _lower_keys(payload: Mapping[Any, object]) -> dict[str, object]:
    out: dict[str, object] = {}
    for key, value in payload.items():
        if isinstance(key, str):
            out.setdefault(key.strip().lower(), value)
    return out


def _as_bool(value: object, path: str, notes: list[str]) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
    notes.append(f"{path}: expected boolean, got {value!r}; treated as false")
    return False


def _as_optional_int(
    value: object,
    path: str,
    notes: list[str],
    *,
    minimum: int | None = None,
) -> int | None:
    if value is None:
        return None
    parsed: int | None = None
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        parsed = int(value.strip())
    if parsed is None or (minimum is not None and parsed < minimum):
        notes.append(f"{path}: expected integer, got {value!r}; ignored")
        return None
    return parsed


def _as_optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


__all__ = [
    "DEFAULT_ENTRIES",
    "LoadedManifest",
    "ManifestLoader",
    "ParsedManifest",
    "parse_entry",
    "parse_manifest_file",
    "parse_manifest_payload",
]
