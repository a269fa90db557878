"""
sandbox-integrity — reconciliation driver.

File: src/sandbox_integrity/reconcile/reconciler.py
Last updated: 2026-10-17

Purpose
- Run one pass of load -> validate -> repair -> report over a sandbox tree.

What should be included in this file
- ``ReconcileSettings`` built from validated config.
- ``Reconciler`` wiring the loader, validator, repair executor, and report builder.
- ``reconcile(...)``: the single entrypoint collaborators call.

Functional requirements
- Entries are processed strictly in manifest order; validation and repair are
  interleaved per entry so the report reads in that order.
- Per-entry failures become one report line; run-level failures become a
  ``FATAL:`` line. Nothing raises to the caller.

Non-functional requirements
- No state survives between runs; every path is passed in explicitly.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from sandbox_integrity.constants import (
    DEFAULT_SHORTCUT_DESCRIPTION,
    MANIFEST_ANCESTOR_LEVELS,
    MANIFEST_FILENAMES,
    RESERVED_FILENAMES,
)
from sandbox_integrity.observability.logging import correlation_scope
from sandbox_integrity.reconcile.link_writer import (
    LinkWriter,
    PointerFileLinkWriter,
    default_link_writers,
)
from sandbox_integrity.reconcile.manifest_loader import ManifestLoader
from sandbox_integrity.reconcile.repair import RepairExecutor, reserved_content_for
from sandbox_integrity.reconcile.report import ReconcileReport, ReportBuilder
from sandbox_integrity.reconcile.resolver import ExecutableResolver, ResolverSettings
from sandbox_integrity.reconcile.validator import StateValidator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sandbox_integrity.reconcile.models import ManifestEntry
    from sandbox_integrity.reconcile.report import LineSink


@dataclass(frozen=True, slots=True)
class ReconcileSettings:
    """Tunables for one run; defaults match the built-in config."""

    manifest_filenames: tuple[str, ...] = MANIFEST_FILENAMES
    manifest_ancestor_levels: int = MANIFEST_ANCESTOR_LEVELS
    manifest_hints: tuple[Path, ...] = ()
    resolver: ResolverSettings = field(default_factory=ResolverSettings)
    reserved_names: tuple[str, ...] = RESERVED_FILENAMES
    shortcut_description: str = DEFAULT_SHORTCUT_DESCRIPTION
    verify_integrity: bool = True

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ReconcileSettings:
        """Build settings from a validated config mapping (see ``config.schema``)."""

        manifest = config.get("manifest", {})
        resolver = config.get("resolver", {})
        repair = config.get("repair", {})
        defaults = ResolverSettings()

        ceiling = resolver.get("ceiling")
        resolver_settings = ResolverSettings(
            subfolders=tuple(resolver.get("subfolders", defaults.subfolders)),
            ancestor_levels=int(resolver.get("ancestor_levels", defaults.ancestor_levels)),
            max_depth=int(resolver.get("max_depth", defaults.max_depth)),
            max_entries=int(resolver.get("max_entries", defaults.max_entries)),
            markers=tuple(resolver.get("markers", defaults.markers)),
            ceiling=Path(ceiling) if ceiling else None,
            aliases=dict(resolver.get("aliases", defaults.aliases)),
        )
        return cls(
            manifest_filenames=tuple(manifest.get("filenames", MANIFEST_FILENAMES)),
            manifest_ancestor_levels=int(
                manifest.get("ancestor_levels", MANIFEST_ANCESTOR_LEVELS)
            ),
            manifest_hints=tuple(Path(item) for item in manifest.get("hints", ())),
            resolver=resolver_settings,
            reserved_names=tuple(repair.get("reserved_names", RESERVED_FILENAMES)),
            shortcut_description=str(
                repair.get("shortcut_description", DEFAULT_SHORTCUT_DESCRIPTION)
            ),
            verify_integrity=bool(repair.get("verify_integrity", True)),
        )


def new_run_id(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(tz=UTC)).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


class Reconciler:
    """Drive reconciliation runs with injectable collaborators."""

    def __init__(
        self,
        settings: ReconcileSettings | None = None,
        *,
        loader: ManifestLoader | None = None,
        resolver: ExecutableResolver | None = None,
        link_writers: Sequence[LinkWriter] | None = None,
        fallback_writer: LinkWriter | None = None,
        logger: Any | None = None,
    ) -> None:
        self._settings = settings or ReconcileSettings()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._loader = loader or ManifestLoader(
            filenames=self._settings.manifest_filenames,
            ancestor_levels=self._settings.manifest_ancestor_levels,
        )
        self._resolver = resolver or ExecutableResolver(self._settings.resolver)
        self._link_writers = tuple(
            link_writers if link_writers is not None else default_link_writers()
        )
        self._fallback_writer = fallback_writer or PointerFileLinkWriter()

    @property
    def settings(self) -> ReconcileSettings:
        return self._settings

    @property
    def loader(self) -> ManifestLoader:
        return self._loader

    @property
    def resolver(self) -> ExecutableResolver:
        return self._resolver

    def run(
        self,
        sandbox_root: Path | str,
        install_root: Path | str,
        *,
        manifest_hints: Sequence[Path | str] = (),
        sink: LineSink | None = None,
        repair: bool = True,
        run_id: str | None = None,
    ) -> ReconcileReport:
        """Reconcile ``sandbox_root`` against the manifest found from ``install_root``.

        With ``repair=False`` the run only validates: absent entries are reported
        and nothing on disk is touched.
        """

        builder = ReportBuilder(sink)
        with correlation_scope(run_id=run_id or new_run_id()):
            try:
                sandbox = Path(sandbox_root)
                install = Path(install_root)
                if repair:
                    sandbox.mkdir(parents=True, exist_ok=True)
                hints = (*manifest_hints, *self._settings.manifest_hints)
                loaded = self._loader.load(install, hints)
            except Exception as exc:  # noqa: BLE001 - run boundary, the caller always gets a report.
                self._logger.error(
                    "reconcile_aborted",
                    sandbox_root=str(sandbox_root),
                    error=f"{type(exc).__name__}: {exc}",
                )
                builder.fatal(f"{type(exc).__name__}: {exc}")
                return builder.finalize()

            self._logger.info(
                "reconcile_started",
                sandbox_root=str(sandbox),
                install_root=str(install),
                manifest=loaded.describe(),
                entries=len(loaded.entries),
                repair=repair,
            )

            validator = StateValidator(sandbox, verify_integrity=self._settings.verify_integrity)
            executor = RepairExecutor(
                install,
                resolver=self._resolver,
                link_writers=self._link_writers,
                fallback_writer=self._fallback_writer,
                reserved_content=reserved_content_for(self._settings.reserved_names),
                shortcut_description=self._settings.shortcut_description,
            )

            for entry in loaded.entries:
                with correlation_scope(entry_path=entry.path):
                    try:
                        self._process(entry, validator, executor, builder, repair=repair)
                    except Exception as exc:  # noqa: BLE001 - entry boundary.
                        self._logger.warning(
                            "entry_processing_failed",
                            path=entry.path,
                            error=f"{type(exc).__name__}: {exc}",
                        )
                        line = f"Repair failed: {entry.path} ({type(exc).__name__}: {exc})"
                        if entry.required:
                            builder.warn(line)
                        else:
                            builder.skip(line)

            report = builder.finalize()
            self._logger.info(
                "reconcile_finished",
                checked=report.checked,
                repaired=report.repaired,
                seeded=report.seeded,
                warnings=report.warnings,
            )
            return report

    def _process(
        self,
        entry: ManifestEntry,
        validator: StateValidator,
        executor: RepairExecutor,
        builder: ReportBuilder,
        *,
        repair: bool,
    ) -> None:
        builder.count_checked()
        state = validator.check(entry)

        if state.exists:
            for discrepancy in state.discrepancies:
                builder.finding(discrepancy.describe(), required=entry.required)
            return

        if not repair:
            if state.discrepancies:
                for discrepancy in state.discrepancies:
                    builder.finding(discrepancy.describe(), required=entry.required)
            else:
                builder.add(f"Not present (optional): {entry.path}")
            return

        builder.record(executor.repair(state))


def reconcile(
    sandbox_root: Path | str,
    install_root: Path | str,
    *,
    manifest_hints: Sequence[Path | str] = (),
    sink: LineSink | None = None,
    settings: ReconcileSettings | None = None,
    repair: bool = True,
) -> ReconcileReport:
    """Run one reconciliation pass with default collaborators. Never raises."""

    try:
        reconciler = Reconciler(settings)
    except Exception as exc:  # noqa: BLE001 - settings errors still produce a report.
        builder = ReportBuilder(sink)
        builder.fatal(f"{type(exc).__name__}: {exc}")
        return builder.finalize()
    return reconciler.run(
        sandbox_root,
        install_root,
        manifest_hints=manifest_hints,
        sink=sink,
        repair=repair,
    )


__all__ = ["ReconcileSettings", "Reconciler", "new_run_id", "reconcile"]
