"""
workflow-bridge — configuration schema and validation.

File: src/workflow_bridge/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules for
  the emit and consume entrypoints.

What should be included in this file
- Section TypedDicts and defaults.
- Validation rules for enums, numeric bounds and non-empty names.
- Deterministic deep-merge helper.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Credentials are never configuration; tokens come from action inputs or the
  environment only.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from workflow_bridge.constants import DEFAULT_ARTIFACT_NAME, DEFAULT_RESTORE_PATH

SANITIZE_MODES: Final[tuple[str, ...]] = ("strict", "none")
INCLUDE_EVENT_MODES: Final[tuple[str, ...]] = ("none", "minimal", "full")
EXPOSE_MODES: Final[tuple[str, ...]] = ("outputs", "env", "both")
ARTIFACT_BACKENDS: Final[tuple[str, ...]] = ("github", "directory")

_SECRET_KEY_TERMS: Final[tuple[str, ...]] = ("token", "secret", "password", "credential")


class EmitSettings(TypedDict):
    artifact: str
    outputs: str
    outputs_file: str
    files: str
    retention_days: int
    sanitize: str
    meta: str
    include_event: str
    event_fields: str


class ConsumeSettings(TypedDict):
    artifact: str
    run_id: str
    fail_on_missing: bool
    expose: str
    prefix: str
    path: str
    source_workflow: str
    expected_head_sha: str
    expected_pr_number: str
    require_event: str
    extract: str


class LoggingSettings(TypedDict):
    level: str
    json_log_file: str
    redact_secrets: bool


class GitHubSettings(TypedDict):
    api_url: str
    timeout_seconds: float


class ArtifactSettings(TypedDict):
    backend: str
    directory: str


class BridgeConfig(TypedDict):
    emit: EmitSettings
    consume: ConsumeSettings
    logging: LoggingSettings
    github: GitHubSettings
    artifacts: ArtifactSettings


DEFAULT_CONFIG: Final[BridgeConfig] = {
    "emit": {
        "artifact": DEFAULT_ARTIFACT_NAME,
        "outputs": "",
        "outputs_file": "",
        "files": "",
        # 0 defers to the storage platform's default retention.
        "retention_days": 0,
        "sanitize": "strict",
        "meta": "",
        "include_event": "minimal",
        "event_fields": "",
    },
    "consume": {
        "artifact": DEFAULT_ARTIFACT_NAME,
        "run_id": "",
        "fail_on_missing": True,
        "expose": "outputs",
        "prefix": "",
        "path": DEFAULT_RESTORE_PATH,
        "source_workflow": "",
        "expected_head_sha": "",
        "expected_pr_number": "",
        "require_event": "",
        "extract": "",
    },
    "logging": {
        "level": "INFO",
        "json_log_file": "",
        "redact_secrets": True,
    },
    "github": {
        "api_url": "https://api.github.com",
        "timeout_seconds": 30.0,
    },
    "artifacts": {
        "backend": "github",
        "directory": ".bridge-artifacts",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


def default_config() -> BridgeConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base`` without mutating either."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key in sorted(overlay):
        value = overlay[key]
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = merge_config(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object]) -> tuple[ConfigValidationIssue, ...]:
    """Return every validation issue in deterministic field order."""

    issues: list[ConfigValidationIssue] = []

    for section_name in sorted(config):
        if section_name not in DEFAULT_CONFIG:
            issues.append(ConfigValidationIssue(section_name, "unknown config section"))

    for section_name, defaults in DEFAULT_CONFIG.items():
        section = config.get(section_name)
        if not isinstance(section, Mapping):
            issues.append(ConfigValidationIssue(section_name, "must be a table"))
            continue
        for key in sorted(section):
            path = f"{section_name}.{key}"
            if key not in defaults:
                if any(term in key.lower() for term in _SECRET_KEY_TERMS):
                    issues.append(
                        ConfigValidationIssue(path, "credentials may not be stored in config")
                    )
                else:
                    issues.append(ConfigValidationIssue(path, "unknown config key"))
                continue
            issue = _check_type(path, section[key], defaults[key])  # type: ignore[literal-required]
            if issue is not None:
                issues.append(issue)

    if issues:
        return tuple(issues)

    emit = config["emit"]
    consume = config["consume"]
    logging_cfg = config["logging"]
    github = config["github"]
    artifacts = config["artifacts"]
    assert isinstance(emit, Mapping)
    assert isinstance(consume, Mapping)
    assert isinstance(logging_cfg, Mapping)
    assert isinstance(github, Mapping)
    assert isinstance(artifacts, Mapping)

    _check_choice(issues, "emit.sanitize", emit["sanitize"], SANITIZE_MODES)
    _check_choice(issues, "emit.include_event", emit["include_event"], INCLUDE_EVENT_MODES)
    _check_choice(issues, "consume.expose", consume["expose"], EXPOSE_MODES)
    _check_choice(issues, "artifacts.backend", artifacts["backend"], ARTIFACT_BACKENDS)

    for path, value in (
        ("emit.artifact", emit["artifact"]),
        ("consume.artifact", consume["artifact"]),
    ):
        if not str(value).strip():
            issues.append(ConfigValidationIssue(path, "artifact name must not be empty"))

    if int(emit["retention_days"]) < 0:
        issues.append(ConfigValidationIssue("emit.retention_days", "must be >= 0"))
    if float(github["timeout_seconds"]) <= 0:
        issues.append(ConfigValidationIssue("github.timeout_seconds", "must be > 0"))

    run_id = str(consume["run_id"]).strip()
    if run_id and (not run_id.isdigit() or int(run_id) <= 0):
        issues.append(ConfigValidationIssue("consume.run_id", "must be a positive integer"))

    level_name = str(logging_cfg["level"]).strip().upper()
    if not isinstance(logging.getLevelName(level_name), int):
        issues.append(ConfigValidationIssue("logging.level", f"unsupported level {level_name!r}"))

    return tuple(issues)


def assert_valid_config(config: Mapping[str, object]) -> BridgeConfig:
    """Validate ``config`` and return it typed, or raise ``ConfigValidationError``."""

    issues = validate_config(config)
    if issues:
        raise ConfigValidationError(issues)
    return config  # type: ignore[return-value]


def _check_type(path: str, value: object, default: object) -> ConfigValidationIssue | None:
    if isinstance(default, bool):
        if not isinstance(value, bool):
            return ConfigValidationIssue(path, "must be a boolean")
        return None
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            return ConfigValidationIssue(path, "must be an integer")
        return None
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return ConfigValidationIssue(path, "must be a number")
        return None
    if not isinstance(value, str):
        return ConfigValidationIssue(path, "must be a string")
    return None


def _check_choice(
    issues: list[ConfigValidationIssue],
    path: str,
    value: object,
    choices: tuple[str, ...],
) -> None:
    if value not in choices:
        issues.append(
            ConfigValidationIssue(path, f"must be one of {', '.join(choices)}; got {value!r}")
        )


__all__ = [
    "ARTIFACT_BACKENDS",
    "DEFAULT_CONFIG",
    "EXPOSE_MODES",
    "INCLUDE_EVENT_MODES",
    "SANITIZE_MODES",
    "ArtifactSettings",
    "BridgeConfig",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConsumeSettings",
    "EmitSettings",
    "GitHubSettings",
    "LoggingSettings",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
