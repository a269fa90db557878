"""
sandbox-integrity — package root

File: src/sandbox_integrity/__init__.py
Last updated: 2026-10-17

Purpose
- Manifest-driven reconciliation of a desktop sandbox tree: diff declared entries
  against the filesystem, repair what can be repaired, and report the rest.

Import boundary
- Must not have side effects at import time (no config loading, no logging init).
- Heavy submodules are imported lazily by callers; only the version is exported here.
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
