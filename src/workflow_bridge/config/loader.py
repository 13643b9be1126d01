"""
workflow-bridge — runtime config loader.

File: src/workflow_bridge/config/loader.py

Purpose
- Load effective runtime config from defaults, TOML file, env vars, action
  inputs and CLI overrides.

What should be included in this file
- Precedence logic: CLI > action inputs (INPUT_) > env (BRIDGE_) > file > defaults.
- TOML loading via ``tomllib``.
- Deterministic environment variable mapping and coercion.

Functional requirements
- Action inputs only apply to the section of the command being run
  (``emit`` or ``consume``); empty inputs count as unset.
- Invalid coercions name the offending variable.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from workflow_bridge.config.schema import (
    BridgeConfig,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "bridge.toml"
ENV_PREFIX: Final[str] = "BRIDGE_"
INPUT_PREFIX: Final[str] = "INPUT_"
CONFIG_PATH_ENV: Final[str] = f"{ENV_PREFIX}CONFIG"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

Section = Literal["emit", "consume"]
ValueType = Literal["str", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: ValueType


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    section: Section | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> BridgeConfig:
    """Load effective config with deterministic precedence."""

    env_map = dict(os.environ if environ is None else environ)
    if config_path is None and env_map.get(CONFIG_PATH_ENV, "").strip():
        config_path = env_map[CONFIG_PATH_ENV].strip()
    resolved_path = _resolve_config_path(config_path)
    explicit_path = config_path is not None

    file_payload = _load_toml_file(resolved_path, required=explicit_path)
    merged = merge_config(default_config(), file_payload)
    merged = dict(assert_valid_config(merged))

    bindings = _build_bindings(merged)
    merged = merge_config(merged, _collect_env_overrides(bindings, env_map))
    if section is not None:
        merged = merge_config(merged, _collect_input_overrides(bindings, section, env_map))
    merged = merge_config(merged, _materialize_cli_overrides(cli_overrides or {}))

    return assert_valid_config(merged)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of the effective config."""

    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def coerce_value(raw: str, value_type: ValueType, *, source: str) -> object:
    """Coerce a string setting to ``value_type``; ``source`` names it in errors."""

    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{source} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{source} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(f"{source} must be a boolean (true/false/1/0/yes/no/on/off)")


def input_env_name(name: str) -> str:
    """Environment variable carrying action input ``name``."""

    return f"{INPUT_PREFIX}{name.replace(' ', '_').upper()}"


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    return parsed


def _build_bindings(config: Mapping[str, object]) -> dict[tuple[str, ...], _Binding]:
    bindings: dict[tuple[str, ...], _Binding] = {}
    for section_name in sorted(config):
        section = config[section_name]
        if not isinstance(section, Mapping):
            continue
        for key in sorted(section):
            kind = _kind_for_value(section[key])
            if kind is None:
                continue
            path = (section_name, key)
            bindings[path] = _Binding(path=path, value_type=kind)
    return bindings


def _collect_env_overrides(
    bindings: Mapping[tuple[str, ...], _Binding],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for path in sorted(bindings):
        env_name = ENV_PREFIX + "_".join(part.upper() for part in path)
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = bindings[path]
        value = coerce_value(
            raw, binding.value_type, source=f"{env_name} -> {'.'.join(binding.path)}"
        )
        _set_nested(overrides, binding.path, value)
    return overrides


def _collect_input_overrides(
    bindings: Mapping[tuple[str, ...], _Binding],
    section: Section,
    environ: Mapping[str, str],
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for path in sorted(bindings):
        if path[0] != section:
            continue
        env_name = input_env_name(path[-1])
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        binding = bindings[path]
        value = coerce_value(raw, binding.value_type, source=f"input '{path[-1]}'")
        _set_nested(overrides, binding.path, value)
    return overrides


def _kind_for_value(value: object) -> ValueType | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(cli_overrides):
        value = cli_overrides[key]
        if value is None:
            continue
        path = tuple(part for part in key.split(".") if part)
        if len(path) != 2:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        child = cursor.get(part)
        if not isinstance(child, dict):
            child = {}
            cursor[part] = child
        cursor = child
    cursor[path[-1]] = value


__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "INPUT_PREFIX",
    "ConfigLoadError",
    "coerce_value",
    "dump_effective_config",
    "input_env_name",
    "load_config",
]
