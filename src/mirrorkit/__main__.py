"""Module entrypoint for ``python -m mirrorkit``."""

from __future__ import annotations

from mirrorkit.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
