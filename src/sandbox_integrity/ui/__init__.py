"""UI package exports for the CLI router and output rendering."""

from sandbox_integrity.ui.cli import build_parser, run_cli
from sandbox_integrity.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
]
