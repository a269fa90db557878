"""Output rendering abstraction for the sandbox-integrity CLI.

File: src/sandbox_integrity/ui/render.py
Last updated: 2026-10-17

Purpose
- Provide a thin rendering layer for CLI output backed by ``rich``.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Report-line styling keyed on the line's leading label.
- Factory function to create a renderer with appropriate settings.

Functional requirements
- With color disabled the text content is identical, only styling is dropped.
- Arbitrary paths are printed verbatim (no markup interpretation).
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

_LINE_STYLES: Final[tuple[tuple[str, str], ...]] = (
    ("FATAL:", "bold red"),
    ("Warning:", "yellow"),
    ("Skipped (optional):", "dim"),
    ("Not present (optional):", "dim"),
    ("Checked:", "bold"),
    ("Created directory:", "green"),
    ("Restored file:", "green"),
    ("Regenerated file:", "green"),
    ("Shortcut OK:", "green"),
    ("Shortcut fallback:", "cyan"),
    ("All entries match", "green"),
)


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def line_style(line: str) -> str | None:
    """Return the rich style for a report line, or ``None`` for plain text."""

    for prefix, style in _LINE_STYLES:
        if line.startswith(prefix):
            return style
    return None


class CLIRenderer:
    """Thin CLI output renderer over a ``rich`` console."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        console: Console | None = None,
    ) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)
        self._console = console or Console(
            color_system="auto" if self._color else None,
            highlight=False,
            soft_wrap=True,
            emoji=False,
        )

    @property
    def console(self) -> Console:
        return self._console

    def heading(self, text: str) -> None:
        self._console.print(Text(text, style="bold"))

    def kv(self, key: str, value: object) -> None:
        self._console.print(Text.assemble((f"{key}: ", "bold"), str(value)))

    def text(self, line: str) -> None:
        self._console.print(Text(line))

    def blank(self) -> None:
        self._console.print()

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._console.print()
        self._console.print(Text(title, style="bold"))

    def warning(self, text: str) -> None:
        self._console.print(Text(f"  Warning: {text}", style="yellow"))

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._console.print(Text(f"  {prefix}{entry}"))

    def report_lines(self, lines: Sequence[str]) -> None:
        """Print report lines in order, styled by their leading label."""

        for line in lines:
            style = line_style(line)
            self._console.print(Text(line, style=style or ""))

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a table; nothing is printed for an empty row set."""

        if not rows:
            return
        table = Table(title=title, title_justify="left", show_edge=False)
        for header in headers:
            table.add_column(header, overflow="fold")
        for row in rows:
            table.add_row(*(Text(str(cell)) for cell in row))
        self._console.print(table)

    def ok(self, label: str) -> None:
        self._console.print(Text.assemble(("  OK  ", "green"), label))

    def fail(self, label: str) -> None:
        self._console.print(Text.assemble(("  FAIL  ", "red"), label))


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer", "line_style"]
