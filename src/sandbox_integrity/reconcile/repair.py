"""Per-kind repair actions for absent manifest entries.

Directories are created, files are restored from a seed asset or regenerated
from reserved default content, shortcuts are re-pointed at a resolved companion
executable. Each call to :meth:`RepairExecutor.repair` handles exactly one entry
and never raises: failures come back as a :class:`RepairResult`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Final

import structlog

from sandbox_integrity.constants import DEFAULT_SHORTCUT_DESCRIPTION, RESERVED_FILENAMES
from sandbox_integrity.reconcile.errors import LinkWriterError, UnrepairableEntryError
from sandbox_integrity.reconcile.link_writer import (
    LinkSpec,
    LinkWriter,
    PointerFileLinkWriter,
    default_link_writers,
)
from sandbox_integrity.reconcile.models import (
    Discrepancy,
    DiscrepancyKind,
    EntryKind,
    ManifestEntry,
)
from sandbox_integrity.reconcile.resolver import ExecutableResolver
from sandbox_integrity.utils.fs import atomic_write, copy_no_clobber

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from sandbox_integrity.reconcile.validator import EntryState

_README_TEXT: Final[str] = """\
Office of Shadows - Desktop Sandbox

This folder is a safe in-game workspace. Files here may be created,
modified, or removed by puzzles, scripts, and the in-game Terminal.

If items are missing, the game repairs them automatically on startup.
Reopen the game to rebuild critical files and shortcuts.

Nothing here touches your real system outside this sandbox.
"""


def reserved_content_for(names: Iterable[str]) -> dict[str, str]:
    """Map each reserved file name (case-insensitive) to the default README text."""

    return {name.strip().casefold(): _README_TEXT for name in names if name.strip()}


DEFAULT_RESERVED_CONTENT: Final[dict[str, str]] = reserved_content_for(RESERVED_FILENAMES)


class RepairOutcome(str, Enum):
    """What a repair attempt did to the filesystem."""

    REPAIRED = "repaired"
    ALREADY_PRESENT = "already_present"
    UNREPAIRABLE = "unrepairable"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RepairResult:
    """Outcome of one entry's repair, ready to be turned into a report line."""

    entry: ManifestEntry
    outcome: RepairOutcome
    line: str
    seeded: bool = False
    discrepancy: Discrepancy | None = None

    @property
    def changed(self) -> bool:
        return self.outcome is RepairOutcome.REPAIRED

    @property
    def is_warning(self) -> bool:
        return self.entry.required and self.outcome in {
            RepairOutcome.UNREPAIRABLE,
            RepairOutcome.FAILED,
        }


class RepairExecutor:
    """Apply idempotent repairs; seed assets and executables live under ``install_root``."""

    def __init__(
        self,
        install_root: Path | str,
        *,
        resolver: ExecutableResolver | None = None,
        link_writers: Sequence[LinkWriter] | None = None,
        fallback_writer: LinkWriter | None = None,
        reserved_content: Mapping[str, str] | None = None,
        shortcut_description: str = DEFAULT_SHORTCUT_DESCRIPTION,
        logger: Any | None = None,
    ) -> None:
        self._install_root = Path(install_root)
        self._resolver = resolver or ExecutableResolver()
        self._link_writers = tuple(
            link_writers if link_writers is not None else default_link_writers()
        )
        self._fallback_writer = fallback_writer or PointerFileLinkWriter()
        content = reserved_content if reserved_content is not None else DEFAULT_RESERVED_CONTENT
        self._reserved_content = {key.casefold(): value for key, value in content.items()}
        self._shortcut_description = shortcut_description
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def repair(self, state: EntryState) -> RepairResult:
        """Repair one absent entry; exceptions are folded into the result."""

        entry = state.entry
        try:
            if entry.kind is EntryKind.DIRECTORY:
                return self._repair_directory(entry, state.full_path)
            if entry.kind is EntryKind.FILE:
                return self._repair_file(entry, state.full_path)
            return self._repair_shortcut(entry, state.full_path)
        except UnrepairableEntryError as exc:
            discrepancy = None
            if exc.kind is not None:
                discrepancy = Discrepancy(entry, state.full_path, exc.kind, exc.details)
            self._logger.info(
                "entry_unrepairable",
                path=entry.path,
                reason=exc.reason,
                discrepancy=exc.kind.value if exc.kind is not None else None,
            )
            return RepairResult(
                entry,
                RepairOutcome.UNREPAIRABLE,
                exc.reason,
                discrepancy=discrepancy,
            )
        except Exception as exc:  # noqa: BLE001 - entry boundary, one failure must not stop the run.
            self._logger.warning(
                "entry_repair_failed",
                path=entry.path,
                kind=entry.kind.value,
                error=f"{type(exc).__name__}: {exc}",
            )
            return RepairResult(
                entry,
                RepairOutcome.FAILED,
                f"Repair failed: {entry.path} ({type(exc).__name__}: {exc})",
            )

    def resolve_source(self, source: str) -> Path:
        """Resolve a seed-asset path relative to the install root unless absolute."""

        candidate = Path(source).expanduser()
        if candidate.is_absolute():
            return candidate
        return self._install_root.joinpath(*PurePosixPath(source.replace("\\", "/")).parts)

    # ---------- per-kind strategies ----------

    def _repair_directory(self, entry: ManifestEntry, target: Path) -> RepairResult:
        try:
            target.mkdir(parents=True)
        except FileExistsError:
            if target.is_dir():
                return RepairResult(
                    entry,
                    RepairOutcome.ALREADY_PRESENT,
                    f"Directory already present: {entry.path}",
                )
            raise
        self._logger.info("directory_created", path=entry.path)
        return RepairResult(entry, RepairOutcome.REPAIRED, f"Created directory: {entry.path}")

    def _repair_file(self, entry: ManifestEntry, target: Path) -> RepairResult:
        _ensure_not_occupied(entry, target)
        missing_detail = ""
        if entry.source:
            source = self.resolve_source(entry.source)
            if source.is_file():
                if not copy_no_clobber(source, target):
                    return RepairResult(
                        entry,
                        RepairOutcome.ALREADY_PRESENT,
                        f"File already present: {entry.path}",
                    )
                self._logger.info("file_restored", path=entry.path, source=str(source))
                return RepairResult(
                    entry,
                    RepairOutcome.REPAIRED,
                    f"Restored file: {entry.path} (from {entry.source})",
                    seeded=True,
                )
            missing_detail = f" (source not found: {entry.source})"

        content = self._reserved_content.get(target.name.casefold())
        if content is not None:
            if target.exists():
                return RepairResult(
                    entry,
                    RepairOutcome.ALREADY_PRESENT,
                    f"File already present: {entry.path}",
                )
            atomic_write(target, content, create_parents=True)
            self._logger.info("file_regenerated", path=entry.path)
            return RepairResult(
                entry,
                RepairOutcome.REPAIRED,
                f"Regenerated file: {entry.path}",
                seeded=True,
            )

        raise UnrepairableEntryError(entry.path, f"Missing source for: {entry.path}{missing_detail}")

    def _repair_shortcut(self, entry: ManifestEntry, target: Path) -> RepairResult:
        _ensure_not_occupied(entry, target)
        logical_name = entry.stem
        resolved = self._resolver.resolve(logical_name, self._install_root)
        if resolved is None:
            if entry.required:
                reason = (
                    f"Unrepairable shortcut: {entry.path} "
                    f"(executable {logical_name!r} not found)"
                )
            else:
                reason = f"Shortcut target not found for: {entry.path}"
            raise UnrepairableEntryError(
                entry.path,
                reason,
                kind=DiscrepancyKind.RESOLUTION_FAILURE,
                details=f"executable {logical_name!r} not found",
            )

        spec = LinkSpec(
            link_path=target,
            target=resolved.path,
            working_directory=resolved.path.parent,
            description=self._shortcut_description,
            icon=self._resolve_icon(entry.icon),
            icon_index=entry.icon_index,
            arguments=entry.arguments,
        )

        for writer in self._link_writers:
            if not writer.is_available(target):
                continue
            try:
                writer.write(spec)
            except (LinkWriterError, OSError) as exc:
                self._logger.warning(
                    "link_writer_failed",
                    path=entry.path,
                    writer=writer.name,
                    error=str(exc),
                )
                break
            self._logger.info("shortcut_created", path=entry.path, writer=writer.name)
            return RepairResult(
                entry,
                RepairOutcome.REPAIRED,
                f"Shortcut OK: {entry.path} -> {resolved.path}",
            )

        self._fallback_writer.write(spec)
        self._logger.info("shortcut_pointer_written", path=entry.path, target=str(resolved.path))
        return RepairResult(
            entry,
            RepairOutcome.REPAIRED,
            f"Shortcut fallback: {entry.path} -> {resolved.path}",
        )

    def _resolve_icon(self, icon: str | None) -> str | None:
        if not icon:
            return None
        candidate = self.resolve_source(icon)
        if candidate.is_file():
            return str(candidate)
        return icon


def _ensure_not_occupied(entry: ManifestEntry, target: Path) -> None:
    # A directory at a file or shortcut path reads as absent but blocks every write.
    if target.exists() and not target.is_file():
        raise UnrepairableEntryError(entry.path, f"Path occupied by a directory: {entry.path}")


__all__ = [
    "DEFAULT_RESERVED_CONTENT",
    "RepairExecutor",
    "RepairOutcome",
    "RepairResult",
    "reserved_content_for",
]
