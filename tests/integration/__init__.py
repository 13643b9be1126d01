"""
workflow-bridge — integration test package

File: tests/integration/__init__.py

Purpose
- Test package marker file.

Functional requirements
- Must not trigger network access; tests use the local directory artifact store.
"""
