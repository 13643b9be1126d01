"""
workflow-bridge — error taxonomy

File: src/workflow_bridge/errors.py

Purpose
- One exception family for every failure the bridge surfaces. Each failure is
  raised once, synchronously, and never retried; the CLI boundary maps the
  class to an exit code.

Buckets
- Malformed input: ``BundleFormatError`` and its subclasses.
- Filesystem policy violation: ``BundlePathError``.
- Identity/binding mismatch: ``ExpectationMismatchError``.
- Missing data / transport: ``ArtifactNotFoundError``, ``ArtifactTransportError``,
  ``TokenResolutionError``.

Filesystem I/O errors are not wrapped; ``OSError`` subclasses propagate as-is.
"""

from __future__ import annotations


class BridgeError(ValueError):
    """Base class for bridge contract and adapter failures."""


class BundleFormatError(BridgeError):
    """Raised when untrusted JSON or outputs are malformed."""


class MetaValidationError(BundleFormatError):
    """Raised when bundle metadata is missing a field or has the wrong shape."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ExtractMappingError(BundleFormatError):
    """Raised for malformed ``name=path`` extract lines."""


class BundlePathError(BridgeError):
    """Raised when a requested bundle file path is absolute or escapes the workspace."""


class ExpectationMismatchError(BridgeError):
    """Raised when bundle provenance does not bind to the consumer's expectations."""

    def __init__(self, message: str, *, check: str) -> None:
        super().__init__(message)
        self.check = check


class ArtifactNotFoundError(BridgeError):
    """Raised when the named artifact does not exist on the source run."""


class ArtifactTransportError(BridgeError):
    """Raised when artifact storage returns an unexpected response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenResolutionError(BridgeError):
    """Raised when no credential is available for artifact download."""


__all__ = [
    "ArtifactNotFoundError",
    "ArtifactTransportError",
    "BridgeError",
    "BundleFormatError",
    "BundlePathError",
    "ExpectationMismatchError",
    "ExtractMappingError",
    "MetaValidationError",
    "TokenResolutionError",
]
