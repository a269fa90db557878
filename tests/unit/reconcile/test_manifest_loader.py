"""
sandbox-integrity — unit tests for manifest discovery and parsing

File: tests/unit/reconcile/test_manifest_loader.py
Last updated: 2026-10-17

Purpose
- Validate permissive manifest parsing and the ordered candidate search.

What this test file should cover
- Entry array aliases, nested shims, bare arrays, and case-insensitive keys.
- Soft failures: skipped elements, dropped digests, unknown kinds.
- Fallback to built-in defaults when nothing usable is found.
- Unparseable candidates do not stop the search.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sandbox_integrity.reconcile.errors import ManifestLoadError
from sandbox_integrity.reconcile.manifest_loader import (
    DEFAULT_ENTRIES,
    ManifestLoader,
    parse_entry,
    parse_manifest_file,
    parse_manifest_payload,
)
from sandbox_integrity.reconcile.models import EntryKind


def _write_json(path: Path, payload: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.mark.parametrize("alias", ["entries", "items", "files", "Entries", "ITEMS"])
def test_entry_array_aliases_are_case_insensitive(alias: str) -> None:
    parsed = parse_manifest_payload({alias: [{"path": "Notes"}]})

    assert [entry.path for entry in parsed.entries] == ["Notes"]


def test_bare_array_and_nested_shim_are_accepted() -> None:
    bare = parse_manifest_payload([{"path": "Notes", "kind": "folder"}])
    nested = parse_manifest_payload(
        {"manifest": {"version": 2, "items": [{"Path": "Downloads", "Type": "dir"}]}}
    )

    assert bare.entries[0].kind is EntryKind.DIRECTORY
    assert bare.version is None
    assert nested.entries[0].path == "Downloads"
    assert nested.entries[0].kind is EntryKind.DIRECTORY
    assert nested.version == "2"


def test_payload_without_entry_array_is_rejected() -> None:
    with pytest.raises(ManifestLoadError):
        parse_manifest_payload({"version": 1})
    with pytest.raises(ManifestLoadError):
        parse_manifest_payload("just text")


def test_unusable_elements_are_skipped_with_notes() -> None:
    parsed = parse_manifest_payload(
        {
            "entries": [
                "not-an-object",
                {"kind": "file"},
                {"path": "../outside.txt"},
                {"path": "Notes", "kind": "folder"},
                {"path": "notes\\", "kind": "folder"},
                {"path": "Notes", "kind": "folder"},
            ]
        }
    )

    assert [entry.path for entry in parsed.entries] == ["Notes", "notes"]
    assert len(parsed.skipped) == 4
    assert any("duplicate path" in note for note in parsed.skipped)


def test_parse_entry_coerces_loose_field_types() -> None:
    notes: list[str] = []
    entry = parse_entry(
        {
            "PATH": "Docs/report.txt",
            "required": "yes",
            "size": "12",
            "sha256": "not-a-digest",
            "source": "  Seeds/report.txt ",
        },
        skipped=notes,
    )

    assert entry.kind is EntryKind.FILE
    assert entry.required is True
    assert entry.size == 12
    assert entry.sha256 is None
    assert entry.source == "Seeds/report.txt"
    assert any("invalid sha256" in note for note in notes)


def test_parse_entry_infers_kind_for_unknown_values_and_reads_shortcut_fields() -> None:
    notes: list[str] = []
    entry = parse_entry(
        {"path": "Terminal.lnk", "kind": "launcher", "icon": "icon.ico", "iconIndex": "2", "args": "-x"},
        skipped=notes,
    )

    assert entry.kind is EntryKind.SHORTCUT
    assert entry.icon == "icon.ico"
    assert entry.icon_index == 2
    assert entry.arguments == "-x"
    assert any("unknown kind" in note for note in notes)


def test_parse_manifest_file_reads_yaml_and_bom_prefixed_json(tmp_path: Path) -> None:
    yaml_path = tmp_path / "sandbox_manifest.yaml"
    yaml_path.write_text("items:\n  - path: Notes\n    required: true\n", encoding="utf-8")
    json_path = tmp_path / "manifest.json"
    json_path.write_text('\ufeff{"entries": [{"path": "README.txt"}]}', encoding="utf-8")

    assert parse_manifest_file(yaml_path).entries[0].required is True
    assert parse_manifest_file(json_path).entries[0].kind is EntryKind.FILE


def test_parse_manifest_file_wraps_decode_errors(tmp_path: Path) -> None:
    broken = tmp_path / "manifest.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(ManifestLoadError):
        parse_manifest_file(broken)


def test_candidate_paths_put_hints_first_then_install_root_and_assets(tmp_path: Path) -> None:
    install = tmp_path / "game" / "bin"
    install.mkdir(parents=True)
    hint_file = tmp_path / "custom.json"
    loader = ManifestLoader(filenames=("a.json",), ancestor_levels=1)

    candidates = loader.candidate_paths(install, hints=[hint_file])

    assert candidates == [
        hint_file,
        install / "a.json",
        install / "Assets" / "a.json",
        install.parent / "a.json",
        install.parent / "Assets" / "a.json",
    ]


def test_load_prefers_install_root_over_ancestors(tmp_path: Path) -> None:
    install = tmp_path / "app"
    _write_json(install / "sandbox_manifest.json", {"entries": [{"path": "Mine"}]})
    _write_json(tmp_path / "sandbox_manifest.json", {"entries": [{"path": "Parent"}]})

    loaded = ManifestLoader(ancestor_levels=1).load(install)

    assert loaded.source == install / "sandbox_manifest.json"
    assert [entry.path for entry in loaded.entries] == ["Mine"]
    assert loaded.used_defaults is False
    assert loaded.describe().startswith("Manifest: ")


def test_unparseable_candidate_does_not_stop_the_search(tmp_path: Path) -> None:
    install = tmp_path / "app"
    install.mkdir()
    (install / "sandbox_manifest.json").write_text("{broken", encoding="utf-8")
    _write_json(install / "Assets" / "sandbox_manifest.json", {"items": [{"path": "FromAssets"}]})

    loaded = ManifestLoader(ancestor_levels=0).load(install)

    assert [entry.path for entry in loaded.entries] == ["FromAssets"]


def test_inaccessible_hint_does_not_stop_the_search(tmp_path: Path) -> None:
    install = tmp_path / "app"
    _write_json(install / "sandbox_manifest.json", {"entries": [{"path": "Notes"}]})
    overlong_hint = tmp_path / ("x" * 300)

    loader = ManifestLoader(ancestor_levels=0)
    candidates = loader.candidate_paths(install, hints=[overlong_hint])
    loaded = loader.load(install, hints=[overlong_hint])

    assert candidates[0] == overlong_hint
    assert loaded.source == install / "sandbox_manifest.json"
    assert [entry.path for entry in loaded.entries] == ["Notes"]
    assert loaded.used_defaults is False


def test_missing_manifest_falls_back_to_defaults(tmp_path: Path) -> None:
    loaded = ManifestLoader(ancestor_levels=0).load(tmp_path)

    assert loaded.used_defaults is True
    assert loaded.source is None
    assert loaded.entries == DEFAULT_ENTRIES
    assert "built-in defaults" in loaded.describe()


def test_empty_manifest_falls_back_to_defaults_but_keeps_source(tmp_path: Path) -> None:
    manifest = _write_json(tmp_path / "sandbox_manifest.json", {"entries": []})

    loaded = ManifestLoader(ancestor_levels=0).load(tmp_path)

    assert loaded.used_defaults is True
    assert loaded.source == manifest
    assert loaded.entries == DEFAULT_ENTRIES


def test_default_entries_cover_folders_readme_and_optional_shortcuts() -> None:
    by_path = {entry.path: entry for entry in DEFAULT_ENTRIES}

    assert by_path["Notes"].kind is EntryKind.DIRECTORY
    assert by_path["README.txt"].required is True
    assert all(
        not by_path[name].required and by_path[name].kind is EntryKind.SHORTCUT
        for name in ("Terminal.lnk", "VPN.lnk", "Email.lnk")
    )
