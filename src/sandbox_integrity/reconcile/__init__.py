"""Manifest-driven sandbox reconciliation engine."""

from sandbox_integrity.reconcile.errors import (
    LinkWriterError,
    ManifestLoadError,
    ReconcileError,
    RepairError,
    UnrepairableEntryError,
)
from sandbox_integrity.reconcile.link_writer import (
    DesktopEntryLinkWriter,
    LinkSpec,
    LinkWriter,
    PointerFileLinkWriter,
    WindowsShellLinkWriter,
    default_link_writers,
)
from sandbox_integrity.reconcile.manifest_loader import (
    DEFAULT_ENTRIES,
    LoadedManifest,
    ManifestLoader,
)
from sandbox_integrity.reconcile.models import (
    Discrepancy,
    DiscrepancyKind,
    EntryKind,
    ManifestEntry,
)
from sandbox_integrity.reconcile.reconciler import (
    ReconcileSettings,
    Reconciler,
    reconcile,
)
from sandbox_integrity.reconcile.repair import RepairExecutor, RepairOutcome, RepairResult
from sandbox_integrity.reconcile.report import ReconcileReport, ReportBuilder, write_report_file
from sandbox_integrity.reconcile.resolver import (
    ExecutableResolver,
    ResolutionStrategy,
    ResolvedExecutable,
    ResolverSettings,
)
from sandbox_integrity.reconcile.validator import EntryState, StateValidator

__all__ = [
    "DEFAULT_ENTRIES",
    "DesktopEntryLinkWriter",
    "Discrepancy",
    "DiscrepancyKind",
    "EntryKind",
    "EntryState",
    "ExecutableResolver",
    "LinkSpec",
    "LinkWriter",
    "LinkWriterError",
    "LoadedManifest",
    "ManifestEntry",
    "ManifestLoadError",
    "ManifestLoader",
    "PointerFileLinkWriter",
    "ReconcileError",
    "ReconcileReport",
    "ReconcileSettings",
    "Reconciler",
    "RepairError",
    "RepairExecutor",
    "RepairOutcome",
    "RepairResult",
    "ReportBuilder",
    "ResolutionStrategy",
    "ResolvedExecutable",
    "ResolverSettings",
    "StateValidator",
    "UnrepairableEntryError",
    "WindowsShellLinkWriter",
    "default_link_writers",
    "reconcile",
    "write_report_file",
]
