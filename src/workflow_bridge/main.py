"""Executable CLI entrypoint for ``workflow_bridge``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

import httpx

from workflow_bridge.config.loader import ConfigLoadError
from workflow_bridge.config.schema import ConfigValidationError
from workflow_bridge.errors import (
    ArtifactNotFoundError,
    ArtifactTransportError,
    BundleFormatError,
    BundlePathError,
    ExpectationMismatchError,
    TokenResolutionError,
)
from workflow_bridge.observability.logging import escape_command_data, redact

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Deterministic process exit-code contract."""

    SUCCESS = 0
    VALIDATION_REJECTED = 1
    CONFIG_ERROR = 2
    TRANSPORT_ERROR = 3
    INTERNAL_ERROR = 4


_VALIDATION_ERRORS: tuple[type[BaseException], ...] = (
    BundleFormatError,
    BundlePathError,
    ExpectationMismatchError,
)
_CONFIG_ERRORS: tuple[type[BaseException], ...] = (
    ConfigLoadError,
    ConfigValidationError,
    FileNotFoundError,
    NotADirectoryError,
    PermissionError,
)
_TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    ArtifactNotFoundError,
    ArtifactTransportError,
    TokenResolutionError,
    httpx.HTTPError,
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m workflow_bridge`` and script shims."""

    try:
        from workflow_bridge.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = _route_exception(exc)
        _emit_failure(exc, exit_code)
        return int(exit_code)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {code.value for code in ExitCode}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    for item in _iter_exception_chain(exc):
        if isinstance(item, _VALIDATION_ERRORS):
            return ExitCode.VALIDATION_REJECTED
        if isinstance(item, _CONFIG_ERRORS):
            return ExitCode.CONFIG_ERROR
        if isinstance(item, _TRANSPORT_ERRORS):
            return ExitCode.TRANSPORT_ERROR
    return ExitCode.INTERNAL_ERROR


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, exit_code: ExitCode) -> None:
    message = redact(str(exc).strip() or exc.__class__.__name__)
    sys.stdout.write(f"::error::{escape_command_data(message)}\n")
    sys.stdout.flush()
    if exit_code is ExitCode.INTERNAL_ERROR:
        rendered = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        _write_stderr(redact(rendered))


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
