"""Command-line surface."""

from workflow_bridge.ui.cli import build_parser, run_cli

__all__ = ["build_parser", "run_cli"]
