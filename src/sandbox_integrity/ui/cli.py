"""Command-line interface router for sandbox-integrity."""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sandbox_integrity.config import load_config
from sandbox_integrity.main import ExitCode
from sandbox_integrity.observability import setup_logging, shutdown_logging
from sandbox_integrity.reconcile.reconciler import ReconcileSettings, Reconciler, new_run_id
from sandbox_integrity.reconcile.report import ReconcileReport, write_report_file
from sandbox_integrity.ui.render import CLIRenderer, create_renderer


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.CONFIG_ERROR)

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Effective config and derived settings for one command invocation."""

    config: dict[str, Any]
    settings: ReconcileSettings
    sandbox_root: Path
    install_root: Path
    run_id: str


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="sandbox-integrity",
        description=(
            "sandbox-integrity — manifest-driven repair of a desktop sandbox tree.\n\n"
            "Common workflows:\n"
            "  sandbox-integrity reconcile           Validate and repair the sandbox\n"
            "  sandbox-integrity validate            Report discrepancies without repairing\n"
            "  sandbox-integrity manifest            Show which manifest is in effect\n"
            "  sandbox-integrity resolve Terminal    Locate a companion executable\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to integrity TOML config (default: ./integrity.toml if present).",
    )
    common.add_argument(
        "--sandbox-root",
        default=None,
        help="Sandbox directory to reconcile (overrides [paths].sandbox_root).",
    )
    common.add_argument(
        "--install-root",
        default=None,
        help="Install directory holding seed assets and tools (overrides [paths].install_root).",
    )
    common.add_argument(
        "--manifest",
        dest="manifest_hints",
        action="append",
        default=None,
        metavar="PATH",
        help="Manifest file or directory to try first (repeatable).",
    )
    common.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        default=False,
        help="Emit machine-readable JSON on stdout.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and log at DEBUG level.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # reconcile -----------------------------------------------------------
    reconcile_parser = subparsers.add_parser(
        "reconcile",
        parents=[common],
        help="Validate the sandbox against the manifest and repair what is absent",
        description=(
            "Create missing folders, restore or regenerate missing files, and rebuild\n"
            "shortcuts. Existing files are never overwritten.\n\n"
            "Examples:\n"
            "  sandbox-integrity reconcile\n"
            "  sandbox-integrity reconcile --sandbox-root ./sandbox --report-dir ./reports\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    reconcile_parser.add_argument(
        "--report-dir",
        default=None,
        help="Write the rendered report to integrity_<timestamp>.txt in this directory.",
    )
    reconcile_parser.set_defaults(handler=_cmd_reconcile)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Dry run: report discrepancies without touching the filesystem",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # manifest ------------------------------------------------------------
    manifest_parser = subparsers.add_parser(
        "manifest",
        parents=[common],
        help="Show where the manifest was found and the entries it declares",
    )
    manifest_parser.set_defaults(handler=_cmd_manifest)

    # resolve -------------------------------------------------------------
    resolve_parser = subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Locate a companion executable by logical name",
    )
    resolve_parser.add_argument("name", help="Logical tool name, e.g. Terminal.")
    resolve_parser.set_defaults(handler=_cmd_resolve)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_reconcile(args: argparse.Namespace) -> int:
    context = _prepare(args)
    report = Reconciler(context.settings).run(
        context.sandbox_root,
        context.install_root,
        run_id=context.run_id,
    )

    report_path: Path | None = None
    report_dir = args.report_dir
    report_section = context.config.get("report", {})
    if report_dir is None and report_section.get("write_file"):
        report_dir = report_section.get("output_dir")
    if report_dir is not None:
        report_path = write_report_file(
            report,
            Path(report_dir).expanduser(),
            sandbox_root=context.sandbox_root,
        )

    if _flag(args, "json_output"):
        payload = _report_payload(report, context)
        payload["report_path"] = report_path.as_posix() if report_path is not None else None
        _emit_json(payload)
    else:
        renderer = _get_renderer(args)
        renderer.report_lines(report.lines)
        if report_path is not None:
            renderer.kv("Report", report_path.as_posix())
        elif report_dir is not None:
            renderer.warning("report could not be written")
    return int(_exit_code_for(report))


def _cmd_validate(args: argparse.Namespace) -> int:
    context = _prepare(args)
    report = Reconciler(context.settings).run(
        context.sandbox_root,
        context.install_root,
        repair=False,
        run_id=context.run_id,
    )

    if _flag(args, "json_output"):
        _emit_json(_report_payload(report, context))
    else:
        renderer = _get_renderer(args)
        renderer.report_lines(report.lines)
    return int(_exit_code_for(report))


def _cmd_manifest(args: argparse.Namespace) -> int:
    context = _prepare(args)
    reconciler = Reconciler(context.settings)
    loaded = reconciler.loader.load(context.install_root, context.settings.manifest_hints)

    if _flag(args, "json_output"):
        _emit_json(
            {
                "source": loaded.source.as_posix() if loaded.source is not None else None,
                "version": loaded.version,
                "used_defaults": loaded.used_defaults,
                "reason": loaded.reason,
                "skipped": list(loaded.skipped),
                "entries": [
                    {
                        "path": entry.path,
                        "kind": entry.kind.value,
                        "required": entry.required,
                        "source": entry.source,
                    }
                    for entry in loaded.entries
                ],
            }
        )
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    renderer.text(loaded.describe())
    if loaded.version is not None:
        renderer.kv("Version", loaded.version)
    rows = [
        [entry.path, entry.kind.value, "yes" if entry.required else "no", entry.source or ""]
        for entry in loaded.entries
    ]
    renderer.table(["Path", "Kind", "Required", "Source"], rows, title="Entries")
    if loaded.skipped and renderer.verbose:
        renderer.section("Skipped:")
        renderer.items(list(loaded.skipped))
    return int(ExitCode.SUCCESS)


def _cmd_resolve(args: argparse.Namespace) -> int:
    context = _prepare(args)
    reconciler = Reconciler(context.settings)
    name = str(args.name).strip()
    if not name:
        raise CLIError("tool name must not be empty")
    resolved = reconciler.resolver.resolve(name, context.install_root)

    if _flag(args, "json_output"):
        _emit_json(
            {
                "name": name,
                "candidates": list(reconciler.resolver.candidate_names(name)),
                "path": resolved.path.as_posix() if resolved is not None else None,
                "strategy": resolved.strategy.value if resolved is not None else None,
            }
        )
    else:
        renderer = _get_renderer(args)
        if resolved is None:
            renderer.fail(f"{name}: not found under {context.install_root.as_posix()}")
            if renderer.verbose:
                renderer.items(list(reconciler.resolver.candidate_names(name)))
        else:
            renderer.ok(f"{name}: {resolved.path.as_posix()} ({resolved.strategy.value})")
    return int(ExitCode.SUCCESS if resolved is not None else ExitCode.WARNINGS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _prepare(args: argparse.Namespace) -> RuntimeContext:
    """Load effective config, start logging, and derive run settings."""

    overrides: dict[str, object] = {}
    if args.sandbox_root:
        overrides["paths.sandbox_root"] = _absolute(args.sandbox_root)
    if args.install_root:
        overrides["paths.install_root"] = _absolute(args.install_root)
    if args.manifest_hints:
        overrides["manifest.hints"] = [_absolute(item) for item in args.manifest_hints]
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"

    config = load_config(args.config_path, cli_overrides=overrides)

    run_id = new_run_id()
    setup_logging(config.get("observability"), run_id=run_id)

    paths = config["paths"]
    return RuntimeContext(
        config=config,
        settings=ReconcileSettings.from_config(config),
        sandbox_root=Path(paths["sandbox_root"]),
        install_root=Path(paths["install_root"]),
        run_id=run_id,
    )


def _report_payload(report: ReconcileReport, context: RuntimeContext) -> dict[str, object]:
    payload: dict[str, object] = dict(report.to_dict())
    payload["run_id"] = context.run_id
    payload["sandbox_root"] = context.sandbox_root.as_posix()
    payload["install_root"] = context.install_root.as_posix()
    return payload


def _exit_code_for(report: ReconcileReport) -> ExitCode:
    return ExitCode.WARNINGS if report.warnings else ExitCode.SUCCESS


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Create a CLI renderer from the parsed namespace."""

    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _absolute(raw: str) -> str:
    return Path(os.path.abspath(Path(raw).expanduser())).as_posix()


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "RuntimeContext", "build_parser", "run_cli"]
