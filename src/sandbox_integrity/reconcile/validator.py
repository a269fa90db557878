"""Compare declared manifest entries against the sandbox tree."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from sandbox_integrity.reconcile.models import (
    Discrepancy,
    DiscrepancyKind,
    EntryKind,
    ManifestEntry,
)
from sandbox_integrity.utils.hashing import sha256_file

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class EntryState:
    """Observed state of one entry.

    ``exists`` drives repair: absent entries are repaired whether or not they are
    required. ``discrepancies`` holds what is reportable; an absent optional
    entry has none.
    """

    entry: ManifestEntry
    full_path: Path
    exists: bool
    discrepancies: tuple[Discrepancy, ...] = ()

    @property
    def probe_failed(self) -> bool:
        return any(item.kind is DiscrepancyKind.ERROR for item in self.discrepancies)


class StateValidator:
    """Kind-specific existence probes plus optional size/hash verification."""

    def __init__(
        self,
        sandbox_root: Path | str,
        *,
        verify_integrity: bool = True,
        logger: Any | None = None,
    ) -> None:
        self._sandbox_root = Path(sandbox_root)
        self._verify_integrity = verify_integrity
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def sandbox_root(self) -> Path:
        return self._sandbox_root

    def check(self, entry: ManifestEntry) -> EntryState:
        full_path = entry.target(self._sandbox_root)
        try:
            exists = full_path.is_dir() if entry.kind is EntryKind.DIRECTORY else full_path.is_file()
        except OSError as exc:
            return EntryState(
                entry=entry,
                full_path=full_path,
                exists=True,
                discrepancies=(Discrepancy(entry, full_path, DiscrepancyKind.ERROR, str(exc)),),
            )

        if not exists:
            if entry.required:
                missing = Discrepancy(entry, full_path, DiscrepancyKind.MISSING)
                return EntryState(entry, full_path, exists=False, discrepancies=(missing,))
            return EntryState(entry, full_path, exists=False)

        if entry.kind is not EntryKind.FILE or not self._verify_integrity:
            return EntryState(entry, full_path, exists=True)
        return EntryState(entry, full_path, exists=True, discrepancies=self._verify(entry, full_path))

    def validate(self, entries: Iterable[ManifestEntry]) -> list[Discrepancy]:
        """Return all discrepancies in manifest order."""

        found: list[Discrepancy] = []
        for entry in entries:
            found.extend(self.check(entry).discrepancies)
        return found

    def _verify(self, entry: ManifestEntry, full_path: Path) -> tuple[Discrepancy, ...]:
        if entry.size is None and entry.sha256 is None:
            return ()

        found: list[Discrepancy] = []
        try:
            if entry.size is not None:
                actual_size = full_path.stat().st_size
                if actual_size != entry.size:
                    found.append(
                        Discrepancy(
                            entry,
                            full_path,
                            DiscrepancyKind.SIZE_MISMATCH,
                            f"actual={actual_size}, expected={entry.size}",
                        )
                    )
            if entry.sha256 is not None:
                actual_digest = sha256_file(full_path)
                if actual_digest != entry.sha256:
                    found.append(
                        Discrepancy(
                            entry,
                            full_path,
                            DiscrepancyKind.HASH_MISMATCH,
                            f"actual={actual_digest}, expected={entry.sha256}",
                        )
                    )
        except OSError as exc:
            self._logger.warning("integrity_check_failed", path=entry.path, error=str(exc))
            found.append(Discrepancy(entry, full_path, DiscrepancyKind.ERROR, str(exc)))
        return tuple(found)


__all__ = ["EntryState", "StateValidator"]
