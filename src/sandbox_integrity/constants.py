"""Stable constants shared by the reconciler, config layer, and CLI."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Manifest discovery.
MANIFEST_FILENAMES: Final[tuple[str, ...]] = (
    "sandbox_manifest.json",
    "SandboxManifest.json",
    "manifest.json",
    "sandbox_manifest.yaml",
    "sandbox_manifest.yml",
)
MANIFEST_ASSETS_DIR: Final[str] = "Assets"
MANIFEST_ANCESTOR_LEVELS: Final[int] = 3
MANIFEST_ENTRY_ALIASES: Final[tuple[str, ...]] = ("entries", "items", "files")

# Executable resolution.
RESOLVER_SUBFOLDERS: Final[tuple[PurePosixPath, ...]] = (
    PurePosixPath("Tools"),
    PurePosixPath("Assets/Tools"),
    PurePosixPath("Assets"),
)
RESOLVER_ANCESTOR_LEVELS: Final[int] = 5
RESOLVER_MAX_DEPTH: Final[int] = 5
RESOLVER_MAX_ENTRIES: Final[int] = 20_000
RESOLVER_MARKERS: Final[tuple[str, ...]] = ("publish", "Release", "bin", "Debug", "dist", "build")
RESOLVER_SKIP_DIRS: Final[frozenset[str]] = frozenset(
    {".git", ".hg", ".svn", ".venv", "__pycache__", "node_modules", "obj"}
)
EXECUTABLE_SUFFIX: Final[str] = ".exe"

# Companion tools known to the desktop experience (logical name -> executable stem).
DEFAULT_EXECUTABLE_ALIASES: Final[dict[str, str]] = {
    "terminal": "OOS.Terminal",
    "vpn": "OOS.VPN",
    "email": "OOS.Email",
}

# Repair.
RESERVED_FILENAMES: Final[tuple[str, ...]] = ("README.txt", "README.md")
SHORTCUT_SUFFIXES: Final[frozenset[str]] = frozenset({".lnk", ".url", ".desktop"})
DEFAULT_SHORTCUT_DESCRIPTION: Final[str] = "Office of Shadows tool"

# Runtime paths (relative to the working directory unless overridden by config).
DEFAULT_CONFIG_FILE: Final[str] = "integrity.toml"
DEFAULT_SANDBOX_DIRNAME: Final[str] = "Office Work Stuff"
LOG_DIR: Final[PurePosixPath] = PurePosixPath("logs")
REPORT_FALLBACK_FILENAME: Final[str] = "_integrity_report.txt"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_EXECUTABLE_ALIASES",
    "DEFAULT_SANDBOX_DIRNAME",
    "DEFAULT_SHORTCUT_DESCRIPTION",
    "EXECUTABLE_SUFFIX",
    "LOG_DIR",
    "MANIFEST_ANCESTOR_LEVELS",
    "MANIFEST_ASSETS_DIR",
    "MANIFEST_ENTRY_ALIASES",
    "MANIFEST_FILENAMES",
    "REPORT_FALLBACK_FILENAME",
    "RESERVED_FILENAMES",
    "RESOLVER_ANCESTOR_LEVELS",
    "RESOLVER_MARKERS",
    "RESOLVER_MAX_DEPTH",
    "RESOLVER_MAX_ENTRIES",
    "RESOLVER_SKIP_DIRS",
    "RESOLVER_SUBFOLDERS",
    "SHORTCUT_SUFFIXES",
]
