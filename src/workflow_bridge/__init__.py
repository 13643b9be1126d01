"""
workflow-bridge — package root

File: src/workflow_bridge/__init__.py

Purpose
- Carry outputs, metadata and files from an untrusted producer workflow to a
  privileged consumer workflow, accepting the bundle only when its provenance
  binds to the expected run.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
- The ``contract`` package is pure; platform adapters live in ``platform`` and
  ``pipeline``.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
