"""
sandbox-integrity — unit tests for the reconciliation driver

File: tests/unit/reconcile/test_reconciler.py
Last updated: 2026-10-17

Purpose
- Validate end-to-end runs over a temporary sandbox with injected collaborators.

What this test file should cover
- Manifest-ordered interleaving of validation and repair lines.
- Required vs optional handling and the summary counters.
- Dry runs leave the disk untouched.
- Repeat runs converge (second run repairs nothing) for folders, seeds, and shortcuts.
- Run-level failures become a single FATAL report instead of raising.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

from hypothesis import assume, given, settings
from hypothesis import strategies as st

from sandbox_integrity.reconcile.reconciler import (
    ReconcileSettings,
    Reconciler,
    new_run_id,
    reconcile,
)
from sandbox_integrity.reconcile.report import NOTHING_TO_DO
from sandbox_integrity.reconcile.resolver import ResolverSettings
from sandbox_integrity.utils.hashing import sha256_bytes


def _settings(ceiling: Path) -> ReconcileSettings:
    return ReconcileSettings(
        manifest_ancestor_levels=0,
        resolver=ResolverSettings(ceiling=ceiling),
    )


def _layout(root: Path, entries: list[dict[str, object]]) -> tuple[Path, Path]:
    sandbox = root / "sandbox"
    install = root / "install"
    install.mkdir(parents=True, exist_ok=True)
    (install / "sandbox_manifest.json").write_text(
        json.dumps({"version": 1, "entries": entries}), encoding="utf-8"
    )
    return sandbox, install


def _reconciler(root: Path) -> Reconciler:
    return Reconciler(_settings(root), link_writers=())


def test_folder_repaired_and_missing_shortcut_warned(tmp_path: Path) -> None:
    sandbox, install = _layout(
        tmp_path,
        [
            {"path": "Notes", "kind": "folder", "required": True},
            {"path": "Terminal.lnk", "kind": "shortcut", "required": True},
        ],
    )
    streamed: list[str] = []

    report = _reconciler(tmp_path).run(sandbox, install, sink=streamed.append)

    assert report.lines == (
        "Checked: 2 | Repaired: 1 | Seeded: 0",
        "Created directory: Notes",
        "Warning: Unrepairable shortcut: Terminal.lnk (executable 'Terminal' not found)",
    )
    assert report.warnings == 1
    assert streamed == list(report.body)
    assert (sandbox / "Notes").is_dir()
    assert not (sandbox / "Terminal.lnk").exists()


def test_optional_unresolvable_shortcut_is_skipped_without_warning(tmp_path: Path) -> None:
    sandbox, install = _layout(tmp_path, [{"path": "VPN.lnk"}])

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.body == ("Skipped (optional): Shortcut target not found for: VPN.lnk",)
    assert report.warnings == 0
    assert report.repaired == 0


def test_shortcut_falls_back_to_pointer_file_when_no_writer_applies(tmp_path: Path) -> None:
    sandbox, install = _layout(tmp_path, [{"path": "Email.lnk", "required": True}])
    exe = install / "OOS.Email.exe"
    exe.write_bytes(b"MZ")

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.body == (f"Shortcut fallback: Email.lnk -> {exe}",)
    assert report.summary_line == "Checked: 1 | Repaired: 1 | Seeded: 0"
    assert (sandbox / "Email.lnk").read_text(encoding="utf-8").startswith("[InternetShortcut]")


def test_hash_mismatch_is_reported_even_when_size_matches(tmp_path: Path) -> None:
    sandbox, install = _layout(
        tmp_path,
        [{"path": "data.bin", "required": True, "size": 3, "sha256": sha256_bytes(b"xyz")}],
    )
    sandbox.mkdir()
    (sandbox / "data.bin").write_bytes(b"abc")

    report = _reconciler(tmp_path).run(sandbox, install)

    (line,) = report.body
    assert line.startswith("Warning: Hash mismatch: data.bin")
    assert report.repaired == 0
    assert (sandbox / "data.bin").read_bytes() == b"abc"


def test_unrepairable_file_produces_exactly_one_line(tmp_path: Path) -> None:
    sandbox, install = _layout(tmp_path, [{"path": "ledger.xlsx", "required": True}])

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.body == ("Warning: Missing source for: ledger.xlsx",)
    assert report.checked == 1


def test_seeded_counts_restored_and_regenerated_files(tmp_path: Path) -> None:
    sandbox, install = _layout(
        tmp_path,
        [
            {"path": "README.txt", "required": True},
            {"path": "Docs/plan.txt", "source": "seeds/plan.txt"},
        ],
    )
    (install / "seeds").mkdir()
    (install / "seeds" / "plan.txt").write_text("plan", encoding="utf-8")

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.summary_line == "Checked: 2 | Repaired: 2 | Seeded: 2"
    assert report.body == (
        "Regenerated file: README.txt",
        "Restored file: Docs/plan.txt (from seeds/plan.txt)",
    )


def test_dry_run_reports_without_touching_disk(tmp_path: Path) -> None:
    sandbox, install = _layout(
        tmp_path,
        [
            {"path": "Notes", "kind": "folder", "required": True},
            {"path": "Downloads", "kind": "folder"},
        ],
    )

    report = _reconciler(tmp_path).run(sandbox, install, repair=False)

    assert report.body == ("Warning: Missing: Notes", "Not present (optional): Downloads")
    assert report.summary_line == "Checked: 2 | Repaired: 0 | Seeded: 0"
    assert not sandbox.exists()


def test_missing_manifest_uses_built_in_defaults(tmp_path: Path) -> None:
    sandbox = tmp_path / "sandbox"
    install = tmp_path / "install"
    install.mkdir()

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.checked == 6
    assert "Created directory: Notes" in report.body
    assert "Regenerated file: README.txt" in report.body
    assert report.warnings == 0


def test_run_level_failure_becomes_fatal_report(tmp_path: Path) -> None:
    blocker = tmp_path / "sandbox"
    blocker.write_text("not a folder", encoding="utf-8")
    install = tmp_path / "install"
    install.mkdir()

    report = _reconciler(tmp_path).run(blocker / "inner", install)

    assert report.fatal is True
    assert report.summary_line == "Checked: 0 | Repaired: 0 | Seeded: 0"
    assert len(report.body) == 1


def test_inaccessible_manifest_hint_falls_through_to_install_root(tmp_path: Path) -> None:
    sandbox, install = _layout(tmp_path, [{"path": "Notes", "kind": "folder", "required": True}])

    report = _reconciler(tmp_path).run(sandbox, install, manifest_hints=[tmp_path / ("x" * 300)])

    assert report.fatal is False
    assert report.lines == ("Checked: 1 | Repaired: 1 | Seeded: 0", "Created directory: Notes")
    assert (sandbox / "Notes").is_dir()


def test_directory_squatting_on_required_file_is_warned(tmp_path: Path) -> None:
    sandbox, install = _layout(tmp_path, [{"path": "README.txt", "required": True}])
    (sandbox / "README.txt").mkdir(parents=True)

    report = _reconciler(tmp_path).run(sandbox, install)

    assert report.lines == (
        "Checked: 1 | Repaired: 0 | Seeded: 0",
        "Warning: Path occupied by a directory: README.txt",
    )
    assert report.warnings == 1


def test_reconcile_entrypoint_never_raises_on_bad_settings(tmp_path: Path) -> None:
    report = reconcile(
        tmp_path / "sandbox",
        tmp_path / "install",
        settings=ReconcileSettings(manifest_filenames=()),
    )

    assert report.fatal is True
    assert report.body[0].startswith("FATAL: ValueError")


def test_new_run_id_is_sortable_and_unique() -> None:
    first = new_run_id()
    second = new_run_id()

    assert first != second
    assert first.endswith("Z-" + first.rsplit("-", 1)[1])
    assert len(first.rsplit("-", 1)[1]) == 8


_NAMES = st.lists(
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=8),
    max_size=4,
    unique=True,
)


@settings(max_examples=25, deadline=None)
@given(
    folders=_NAMES,
    seeds=_NAMES,
    shortcuts=_NAMES,
    include_readme=st.booleans(),
    required=st.booleans(),
)
def test_property_second_run_repairs_nothing(
    folders: list[str],
    seeds: list[str],
    shortcuts: list[str],
    include_readme: bool,
    required: bool,
) -> None:
    entries: list[dict[str, object]] = [
        {"path": f"Work/{name}", "kind": "folder", "required": required} for name in folders
    ]
    entries.extend(
        {"path": f"Docs/{name}.txt", "source": f"seeds/{name}.txt", "required": required}
        for name in seeds
    )
    entries.extend(
        {"path": f"Apps/{name}.lnk", "kind": "shortcut", "required": required}
        for name in shortcuts
    )
    if include_readme:
        entries.append({"path": "README.txt", "required": required})
    assume(entries)

    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        sandbox, install = _layout(root, entries)
        (install / "seeds").mkdir()
        for name in seeds:
            (install / "seeds" / f"{name}.txt").write_text(name, encoding="utf-8")
        for name in shortcuts:
            (install / f"{name}.exe").write_bytes(b"MZ")
        reconciler = _reconciler(root)

        first = reconciler.run(sandbox, install)
        second = reconciler.run(sandbox, install)
        third = reconciler.run(sandbox, install)

    assert first.repaired == len(entries)
    assert first.seeded == len(seeds) + int(include_readme)
    assert first.warnings == 0
    assert second.repaired == 0
    assert second.warnings == 0
    assert second.lines == third.lines
    assert second.body == (NOTHING_TO_DO,)
