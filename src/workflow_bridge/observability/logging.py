"""Logging setup: workflow-command stdout output, optional JSON-lines file, redaction."""

from __future__ import annotations

import json
import logging
import math
import os
import re
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, TextIO

DEFAULT_LOGGER_NAME: Final[str] = "workflow_bridge"
REDACTED_VALUE: Final[str] = "***"

_COMMAND_ATTR: Final[str] = "workflow_command"

_TOKEN_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"),
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(token|github_token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
        _COMMAND_ATTR,
    }
)


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for a single bridge invocation's logging."""

    logger_name: str = DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    debug: bool = False
    json_log_path: Path | str | None = None
    redact_secrets: bool = True
    stream: TextIO | None = None


class SecretMasker:
    """Replaces registered values and token-shaped strings with ``***``."""

    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled
        self._lock = threading.Lock()
        self._values: set[str] = set()

    def add(self, value: str) -> None:
        if not value:
            return
        with self._lock:
            self._values.add(value)

    def __call__(self, text: str) -> str:
        if not self._enabled:
            return text
        with self._lock:
            values = sorted(self._values, key=len, reverse=True)
        for value in values:
            text = text.replace(value, REDACTED_VALUE)
        for pattern in _TOKEN_PATTERNS:
            text = pattern.sub(REDACTED_VALUE, text)
        text = _BEARER_TOKEN_PATTERN.sub(f"Bearer {REDACTED_VALUE}", text)
        return _SENSITIVE_ASSIGNMENT_PATTERN.sub(
            lambda match: f"{match.group(1)}{match.group(2)}{REDACTED_VALUE}", text
        )


class _WorkflowCommandFormatter(logging.Formatter):
    """Renders records as runner workflow commands (``::debug::`` etc.)."""

    def __init__(self, masker: SecretMasker) -> None:
        super().__init__()
        self._masker = masker

    def format(self, record: logging.LogRecord) -> str:
        command = getattr(record, _COMMAND_ATTR, None)
        message = record.getMessage()
        if command == "add-mask":
            return f"::add-mask::{escape_command_data(message)}"

        message = self._masker(message)
        if record.exc_info is not None and record.levelno >= logging.ERROR:
            message = f"{message}\n{self._masker(self.formatException(record.exc_info))}"

        if command == "group":
            return f"::group::{escape_command_data(message)}"
        if command == "endgroup":
            return "::endgroup::"
        if record.levelno >= logging.ERROR:
            return f"::error::{escape_command_data(message)}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{escape_command_data(message)}"
        if record.levelno <= logging.DEBUG:
            return f"::debug::{escape_command_data(message)}"
        return message


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(self, masker: SecretMasker) -> None:
        super().__init__()
        self._masker = masker

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, object] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": self._masker(record.getMessage()),
        }
        command = getattr(record, _COMMAND_ATTR, None)
        if command == "add-mask":
            event["message"] = REDACTED_VALUE
        if command is not None:
            event["command"] = command

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = json.loads(self._masker(json.dumps(extras, sort_keys=True)))

        if record.exc_info is not None:
            event["exception"] = self._masker(self.formatException(record.exc_info))

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


_MASKERS_LOCK = threading.Lock()
_MASKERS: dict[str, SecretMasker] = {}


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Configure the bridge logger for one invocation and return it.

    Existing handlers on the logger are replaced.
    """

    cfg = config or LoggingConfig()
    level = logging.DEBUG if cfg.debug else _parse_log_level(cfg.level)
    masker = SecretMasker(enabled=cfg.redact_secrets)

    logger = logging.getLogger(cfg.logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    stream_handler = logging.StreamHandler(cfg.stream if cfg.stream is not None else sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(_WorkflowCommandFormatter(masker))
    logger.addHandler(stream_handler)

    if cfg.json_log_path:
        log_path = Path(cfg.json_log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(_JsonLineFormatter(masker))
        logger.addHandler(file_handler)

    with _MASKERS_LOCK:
        _MASKERS[cfg.logger_name] = masker
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    return logging.getLogger(name)


def is_debug_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Runner debug logging is on when ``RUNNER_DEBUG=1`` or ``ACTIONS_STEP_DEBUG=true``."""

    env = os.environ if environ is None else environ
    return env.get("RUNNER_DEBUG") == "1" or env.get("ACTIONS_STEP_DEBUG") == "true"


def add_mask(logger: logging.Logger, value: str) -> None:
    """Register ``value`` as secret locally and with the runner."""

    if not value:
        return
    with _MASKERS_LOCK:
        masker = _MASKERS.get(logger.name)
    if masker is not None:
        masker.add(value)
    logger.info(value, extra={_COMMAND_ATTR: "add-mask"})


@contextmanager
def log_group(logger: logging.Logger, title: str) -> Iterator[None]:
    """Wrap a pipeline stage in a collapsible log group; the group is closed on failure too."""

    logger.info(title, extra={_COMMAND_ATTR: "group"})
    try:
        yield
    finally:
        logger.info("", extra={_COMMAND_ATTR: "endgroup"})


def redact(text: str, logger_name: str = DEFAULT_LOGGER_NAME) -> str:
    """Apply the masker registered for ``logger_name`` (token patterns only if none)."""

    with _MASKERS_LOCK:
        masker = _MASKERS.get(logger_name)
    return (masker or SecretMasker())(text)


def debug_json(logger: logging.Logger, label: str, value: object) -> None:
    """Log ``value`` as indented JSON on the debug channel only."""

    if not logger.isEnabledFor(logging.DEBUG):
        return
    rendered = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    logger.debug("%s: %s", label, rendered)


def escape_command_data(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, object]:
    fields: dict[str, object] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> object:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    return repr(value)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "REDACTED_VALUE",
    "LoggingConfig",
    "SecretMasker",
    "add_mask",
    "debug_json",
    "escape_command_data",
    "get_logger",
    "is_debug_enabled",
    "log_group",
    "redact",
    "setup_logging",
]
