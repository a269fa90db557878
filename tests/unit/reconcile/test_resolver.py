"""
sandbox-integrity — unit tests for companion-executable resolution

File: tests/unit/reconcile/test_resolver.py
Last updated: 2026-10-17

Purpose
- Validate the prioritized search order and the bounded ancestor walk.

What this test file should cover
- Candidate naming (alias first, ``.exe`` before the bare name).
- Explicit candidates, install root, and conventional subfolders.
- Marker/depth ranking during the ancestor search.
- The ceiling keeps every search inside ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sandbox_integrity.reconcile.resolver import (
    ExecutableResolver,
    ResolutionStrategy,
    ResolverSettings,
)


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    return path


def _resolver(ceiling: Path, **overrides: object) -> ExecutableResolver:
    return ExecutableResolver(ResolverSettings(ceiling=ceiling, **overrides))  # type: ignore[arg-type]


def test_candidate_names_put_alias_and_exe_first(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path)

    assert resolver.candidate_names("Terminal") == (
        "OOS.Terminal.exe",
        "OOS.Terminal",
        "Terminal.exe",
        "Terminal",
    )
    assert resolver.candidate_names("tool.exe") == ("tool.exe",)
    with pytest.raises(ValueError):
        resolver.candidate_names("  ")


def test_explicit_absolute_candidate_wins(tmp_path: Path) -> None:
    install = tmp_path / "install"
    _touch(install / "Tool.exe")
    explicit = _touch(tmp_path / "elsewhere" / "custom-tool")

    resolved = _resolver(tmp_path).resolve("Tool", install, explicit_candidates=[explicit])

    assert resolved is not None
    assert resolved.path == explicit
    assert resolved.strategy is ResolutionStrategy.EXPLICIT


def test_install_root_beats_subfolders(tmp_path: Path) -> None:
    install = tmp_path / "install"
    direct = _touch(install / "Tool.exe")
    _touch(install / "Tools" / "Tool.exe")

    resolved = _resolver(tmp_path).resolve("Tool", install)

    assert resolved is not None
    assert resolved.path == direct
    assert resolved.strategy is ResolutionStrategy.INSTALL_ROOT


def test_conventional_subfolders_are_checked_in_order(tmp_path: Path) -> None:
    install = tmp_path / "install"
    in_assets_tools = _touch(install / "Assets" / "Tools" / "Tool")
    _touch(install / "Assets" / "Tool")

    resolved = _resolver(tmp_path).resolve("Tool", install)

    assert resolved is not None
    assert resolved.path == in_assets_tools
    assert resolved.strategy is ResolutionStrategy.SUBFOLDER


def test_ancestor_search_finds_sibling_build_output_preferring_markers(tmp_path: Path) -> None:
    install = tmp_path / "repo" / "Game" / "bin" / "Debug"
    install.mkdir(parents=True)
    _touch(tmp_path / "repo" / "Tool" / "copy" / "Tool.exe")
    release = _touch(tmp_path / "repo" / "Tool" / "bin" / "Release" / "Tool.exe")

    resolved = _resolver(tmp_path).resolve("Tool", install)

    assert resolved is not None
    assert resolved.path == release
    assert resolved.strategy is ResolutionStrategy.ANCESTOR_SEARCH


def test_ancestor_search_prefers_shallower_match_without_markers(tmp_path: Path) -> None:
    install = tmp_path / "app"
    install.mkdir()
    shallow = _touch(tmp_path / "x" / "Tool")
    _touch(tmp_path / "a" / "b" / "Tool")

    resolved = _resolver(tmp_path).resolve("Tool", install)

    assert resolved is not None
    assert resolved.path == shallow


def test_ceiling_stops_the_upward_walk(tmp_path: Path) -> None:
    _touch(tmp_path / "outside" / "Tool.exe")
    ceiling = tmp_path / "inside"
    install = ceiling / "app"
    install.mkdir(parents=True)

    assert _resolver(ceiling).resolve("Tool", install) is None


def test_depth_limit_bounds_the_subtree_scan(tmp_path: Path) -> None:
    install = tmp_path / "app"
    install.mkdir()
    _touch(tmp_path / "a" / "b" / "c" / "Tool")

    assert _resolver(tmp_path, max_depth=2).resolve("Tool", install) is None
    assert _resolver(tmp_path, max_depth=3).resolve("Tool", install) is not None


def test_hidden_and_vendor_directories_are_skipped(tmp_path: Path) -> None:
    install = tmp_path / "app"
    install.mkdir()
    _touch(tmp_path / ".git" / "Tool")
    _touch(tmp_path / "node_modules" / "Tool")

    assert _resolver(tmp_path).resolve("Tool", install) is None


def test_missing_install_root_returns_none(tmp_path: Path) -> None:
    assert _resolver(tmp_path).resolve("Tool", tmp_path / "does-not-exist") is None


def test_settings_validate_bounds() -> None:
    with pytest.raises(ValueError):
        ResolverSettings(ancestor_levels=-1)
    with pytest.raises(ValueError):
        ResolverSettings(max_entries=0)
    assert ResolverSettings(aliases={" VPN ": " OOS.VPN "}).aliases == {"vpn": "OOS.VPN"}
