"""Ordered report lines plus summary counters for one reconciliation run."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from sandbox_integrity.constants import REPORT_FALLBACK_FILENAME
from sandbox_integrity.reconcile.repair import RepairOutcome
from sandbox_integrity.utils.fs import atomic_write

if TYPE_CHECKING:
    from sandbox_integrity.reconcile.repair import RepairResult

LineSink = Callable[[str], None]

NOTHING_TO_DO: Final[str] = "All entries match the manifest."
WARNING_PREFIX: Final[str] = "Warning: "
SKIP_PREFIX: Final[str] = "Skipped (optional): "
FATAL_PREFIX: Final[str] = "FATAL: "


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    """Finalized run output. ``lines[0]`` is always the summary line."""

    checked: int
    repaired: int
    seeded: int
    warnings: int
    lines: tuple[str, ...]

    @property
    def summary_line(self) -> str:
        return format_summary(self.checked, self.repaired, self.seeded)

    @property
    def body(self) -> tuple[str, ...]:
        return self.lines[1:]

    @property
    def fatal(self) -> bool:
        return any(line.startswith(FATAL_PREFIX) for line in self.lines)

    def render(self) -> str:
        return "\n".join(self.lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "repaired": self.repaired,
            "seeded": self.seeded,
            "warnings": self.warnings,
            "lines": list(self.lines),
        }


def format_summary(checked: int, repaired: int, seeded: int) -> str:
    return f"Checked: {checked} | Repaired: {repaired} | Seeded: {seeded}"


class ReportBuilder:
    """Accumulate lines in order, forwarding each one to an optional sink."""

    def __init__(self, sink: LineSink | None = None, *, logger: Any | None = None) -> None:
        self._sink = sink
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._lines: list[str] = []
        self._checked = 0
        self._repaired = 0
        self._seeded = 0
        self._warnings = 0
        self._finalized = False

    @property
    def warnings(self) -> int:
        return self._warnings

    def add(self, line: str) -> None:
        if self._finalized:
            raise RuntimeError("report already finalized")
        self._lines.append(line)
        if self._sink is None:
            return
        try:
            self._sink(line)
        except Exception as exc:  # noqa: BLE001 - a broken sink must not break the run.
            self._logger.warning("report_sink_failed", error=f"{type(exc).__name__}: {exc}")

    def warn(self, line: str) -> None:
        self._warnings += 1
        self.add(f"{WARNING_PREFIX}{line}")

    def skip(self, line: str) -> None:
        self.add(f"{SKIP_PREFIX}{line}")

    def fatal(self, message: str) -> None:
        self._warnings += 1
        self.add(f"{FATAL_PREFIX}{message}")

    def finding(self, line: str, *, required: bool) -> None:
        """Record a validation finding: a warning when required, informational otherwise."""

        if required:
            self.warn(line)
        else:
            self.add(line)

    def count_checked(self, count: int = 1) -> None:
        self._checked += count

    def record(self, result: RepairResult) -> None:
        """Translate one repair result into counters and a line."""

        if result.changed:
            self._repaired += 1
            if result.seeded:
                self._seeded += 1
            self.add(result.line)
        elif result.is_warning:
            self.warn(result.line)
        elif result.outcome in {RepairOutcome.UNREPAIRABLE, RepairOutcome.FAILED}:
            self.skip(result.line)
        else:
            self.add(result.line)

    def finalize(self) -> ReconcileReport:
        body = list(self._lines) or [NOTHING_TO_DO]
        self._finalized = True
        summary = format_summary(self._checked, self._repaired, self._seeded)
        return ReconcileReport(
            checked=self._checked,
            repaired=self._repaired,
            seeded=self._seeded,
            warnings=self._warnings,
            lines=(summary, *body),
        )


def report_filename(now: datetime | None = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"integrity_{stamp}.txt"


def write_report_file(
    report: ReconcileReport,
    output_dir: Path | str,
    *,
    sandbox_root: Path | str | None = None,
    now: datetime | None = None,
    logger: Any | None = None,
) -> Path | None:
    """Persist the rendered report; fall back to the sandbox root when ``output_dir`` is unwritable.

    Returns the written path, or ``None`` when neither location accepted the file.
    """

    log = logger if logger is not None else structlog.get_logger(__name__)
    text = report.render() + "\n"
    primary = Path(output_dir) / report_filename(now)
    try:
        atomic_write(primary, text, create_parents=True)
    except OSError as exc:
        log.warning("report_write_failed", path=str(primary), error=str(exc))
    else:
        return primary

    if sandbox_root is None:
        return None
    fallback = Path(sandbox_root) / REPORT_FALLBACK_FILENAME
    try:
        atomic_write(fallback, text, create_parents=True)
    except OSError as exc:
        log.warning("report_write_failed", path=str(fallback), error=str(exc))
        return None
    return fallback


__all__ = [
    "FATAL_PREFIX",
    "LineSink",
    "NOTHING_TO_DO",
    "ReconcileReport",
    "ReportBuilder",
    "SKIP_PREFIX",
    "WARNING_PREFIX",
    "format_summary",
    "report_filename",
    "write_report_file",
]
