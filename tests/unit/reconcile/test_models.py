"""
sandbox-integrity — unit tests for reconcile value types

File: tests/unit/reconcile/test_models.py
Last updated: 2026-10-17

Purpose
- Validate entry path normalization, kind parsing/inference, and discrepancy rendering.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sandbox_integrity.reconcile.models import (
    Discrepancy,
    DiscrepancyKind,
    EntryKind,
    ManifestEntry,
    infer_entry_kind,
    normalize_entry_path,
    parse_entry_kind,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Notes", "Notes"),
        ("Notes\\Sub\\file.txt", "Notes/Sub/file.txt"),
        ("./Notes//file.txt", "Notes/file.txt"),
        ("  Downloads/  ", "Downloads"),
        ("/Notes/", "Notes"),
    ],
)
def test_normalize_entry_path_uses_forward_slashes(raw: str, expected: str) -> None:
    assert normalize_entry_path(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", ".", "../escape", "Notes/../../x", "C:\\Windows", "a\x00b"])
def test_normalize_entry_path_rejects_unsafe_paths(raw: str) -> None:
    with pytest.raises(ValueError):
        normalize_entry_path(raw)


def test_parse_entry_kind_accepts_aliases_case_insensitively() -> None:
    assert parse_entry_kind("Folder") is EntryKind.DIRECTORY
    assert parse_entry_kind("dir") is EntryKind.DIRECTORY
    assert parse_entry_kind("FILE") is EntryKind.FILE
    assert parse_entry_kind("link") is EntryKind.SHORTCUT
    assert parse_entry_kind("lnk") is EntryKind.SHORTCUT
    assert parse_entry_kind("symlink") is None
    assert parse_entry_kind(3) is None


def test_infer_entry_kind_from_extension() -> None:
    assert infer_entry_kind("Notes") is EntryKind.DIRECTORY
    assert infer_entry_kind("Terminal.lnk") is EntryKind.SHORTCUT
    assert infer_entry_kind("Site.URL") is EntryKind.SHORTCUT
    assert infer_entry_kind("tool.desktop") is EntryKind.SHORTCUT
    assert infer_entry_kind("README.txt") is EntryKind.FILE


def test_manifest_entry_normalizes_path_and_digest() -> None:
    digest = "AB" * 32
    entry = ManifestEntry(path="Docs\\a.txt", kind=EntryKind.FILE, sha256=f"sha256:{digest}")

    assert entry.path == "Docs/a.txt"
    assert entry.sha256 == digest.lower()
    assert entry.name == "a.txt"
    assert entry.stem == "a"
    assert entry.target(Path("/sandbox")) == Path("/sandbox/Docs/a.txt")


def test_manifest_entry_rejects_integrity_metadata_on_non_files() -> None:
    with pytest.raises(ValueError):
        ManifestEntry(path="Notes", kind=EntryKind.DIRECTORY, size=10)
    with pytest.raises(ValueError):
        ManifestEntry(path="a.txt", kind=EntryKind.FILE, size=-1)


def test_discrepancy_describe_names_the_entry_path() -> None:
    entry = ManifestEntry(path="a.txt", kind=EntryKind.FILE, size=3)
    plain = Discrepancy(entry, Path("/s/a.txt"), DiscrepancyKind.MISSING)
    detailed = Discrepancy(
        entry, Path("/s/a.txt"), DiscrepancyKind.SIZE_MISMATCH, "actual=1, expected=3"
    )

    assert plain.describe() == "Missing: a.txt"
    assert detailed.describe() == "Size mismatch: a.txt (actual=1, expected=3)"
