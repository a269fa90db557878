"""Module entrypoint for ``python -m sandbox_integrity``."""

from __future__ import annotations

from sandbox_integrity.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
