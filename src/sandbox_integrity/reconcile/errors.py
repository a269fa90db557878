"""Error types raised inside a reconciliation run.

None of these escape :func:`sandbox_integrity.reconcile.reconciler.reconcile`; they
are converted to report lines at the entry or run boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sandbox_integrity.reconcile.models import DiscrepancyKind


class ReconcileError(RuntimeError):
    """Base error for reconciliation failures."""


class ManifestLoadError(ReconcileError):
    """Raised when a manifest candidate exists but cannot be read or parsed."""


class RepairError(ReconcileError):
    """Raised when a repair action fails for one entry."""


class UnrepairableEntryError(RepairError):
    """Raised when no repair strategy applies to an absent entry."""

    def __init__(
        self,
        path: str,
        reason: str,
        *,
        kind: DiscrepancyKind | None = None,
        details: str | None = None,
    ) -> None:
        self.path = path
        self.reason = reason
        self.kind = kind
        self.details = details
        super().__init__(f"{path}: {reason}")


class LinkWriterError(RepairError):
    """Raised when a platform shortcut mechanism fails."""


__all__ = [
    "LinkWriterError",
    "ManifestLoadError",
    "ReconcileError",
    "RepairError",
    "UnrepairableEntryError",
]
