"""Module entrypoint for ``python -m workflow_bridge``."""

from __future__ import annotations

from workflow_bridge.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
