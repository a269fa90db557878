"""
sandbox-integrity — unit tests for CLI routing and rendering

File: tests/unit/ui/test_cli_render.py
Last updated: 2026-10-17

Purpose
- Validate parser wiring, report-line styling, and exit-code normalization.
"""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from sandbox_integrity.config.loader import ConfigLoadError
from sandbox_integrity.main import ExitCode, _route_exception
from sandbox_integrity.ui.cli import build_parser
from sandbox_integrity.ui.render import CLIRenderer, line_style


def _renderer() -> tuple[CLIRenderer, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, color_system=None, highlight=False, soft_wrap=True, width=200)
    return CLIRenderer(no_color=True, console=console), buffer


def test_parser_collects_common_options_per_subcommand() -> None:
    args = build_parser().parse_args(
        [
            "reconcile",
            "--sandbox-root",
            "sb",
            "--manifest",
            "a.json",
            "--manifest",
            "b.json",
            "--json",
            "--report-dir",
            "out",
        ]
    )

    assert args.command == "reconcile"
    assert args.sandbox_root == "sb"
    assert args.manifest_hints == ["a.json", "b.json"]
    assert args.json_output is True
    assert args.report_dir == "out"


def test_parser_requires_a_subcommand() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.parametrize(
    ("line", "style"),
    [
        ("FATAL: boom", "bold red"),
        ("Warning: Missing: Notes", "yellow"),
        ("Skipped (optional): Shortcut target not found for: VPN.lnk", "dim"),
        ("Created directory: Notes", "green"),
        ("Size mismatch: a.txt (actual=1, expected=2)", None),
    ],
)
def test_line_style_follows_leading_label(line: str, style: str | None) -> None:
    assert line_style(line) == style


def test_report_lines_print_verbatim_without_markup() -> None:
    renderer, buffer = _renderer()

    renderer.report_lines(["Checked: 1 | Repaired: 1 | Seeded: 0", "Created directory: [bold]Notes"])

    assert buffer.getvalue().splitlines() == [
        "Checked: 1 | Repaired: 1 | Seeded: 0",
        "Created directory: [bold]Notes",
    ]


def test_table_is_skipped_for_empty_rows() -> None:
    renderer, buffer = _renderer()

    renderer.table(["Path"], [])

    assert buffer.getvalue() == ""


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigLoadError("bad"), ExitCode.CONFIG_ERROR),
        (FileNotFoundError("gone"), ExitCode.CONFIG_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exception_routing_maps_to_exit_codes(exc: BaseException, expected: ExitCode) -> None:
    assert _route_exception(exc) is expected
