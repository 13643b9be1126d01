"""
workflow-bridge — unit tests for config loader

File: tests/unit/config/test_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides,
  action inputs and CLI overrides.

What this test file should cover
- Precedence: CLI > action inputs > env > file > defaults.
- Action inputs apply only to the selected section and ignore empty values.
- Type coercion errors name their source.
- Deterministic effective config dumping.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from workflow_bridge.config.loader import (
    ConfigLoadError,
    coerce_value,
    dump_effective_config,
    input_env_name,
    load_config,
)
from workflow_bridge.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_loader_precedence_default_file_env_input_cli(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "bridge.toml",
        """
[consume]
prefix = "file_"
""".strip(),
    )
    empty_path = _write_config(tmp_path / "empty.toml", "")

    default_loaded = load_config(empty_path, environ={})
    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"BRIDGE_CONSUME_PREFIX": "env_"})
    input_loaded = load_config(
        config_path,
        section="consume",
        environ={"BRIDGE_CONSUME_PREFIX": "env_", "INPUT_PREFIX": "input_"},
    )
    cli_loaded = load_config(
        config_path,
        section="consume",
        environ={"BRIDGE_CONSUME_PREFIX": "env_", "INPUT_PREFIX": "input_"},
        cli_overrides={"consume.prefix": "cli_"},
    )

    assert default_loaded["consume"]["prefix"] == ""
    assert file_loaded["consume"]["prefix"] == "file_"
    assert env_loaded["consume"]["prefix"] == "env_"
    assert input_loaded["consume"]["prefix"] == "input_"
    assert cli_loaded["consume"]["prefix"] == "cli_"


def test_missing_default_file_is_optional(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    loaded = load_config(environ={})
    assert loaded["emit"]["artifact"] == "bridge"
    assert loaded["consume"]["path"] == ".bridge"


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "nope.toml", environ={})


def test_config_path_can_come_from_environment(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "custom.toml", '[emit]\nartifact = "custom"\n')
    loaded = load_config(environ={"BRIDGE_CONFIG": str(config_path)})
    assert loaded["emit"]["artifact"] == "custom"


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "[emit\nartifact=")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_inputs_only_apply_to_selected_section(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    environ = {"INPUT_ARTIFACT": "from-input"}

    emit_loaded = load_config(config_path, section="emit", environ=environ)
    assert emit_loaded["emit"]["artifact"] == "from-input"
    assert emit_loaded["consume"]["artifact"] == "bridge"

    unscoped = load_config(config_path, environ=environ)
    assert unscoped["emit"]["artifact"] == "bridge"


def test_empty_inputs_count_as_unset(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", '[emit]\nsanitize = "none"\n')
    loaded = load_config(config_path, section="emit", environ={"INPUT_SANITIZE": "  "})
    assert loaded["emit"]["sanitize"] == "none"


def test_inputs_are_coerced_to_field_types(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")

    consume = load_config(
        config_path,
        section="consume",
        environ={"INPUT_FAIL_ON_MISSING": "false", "INPUT_RUN_ID": " 42 "},
    )["consume"]
    emit = load_config(
        config_path, section="emit", environ={"INPUT_RETENTION_DAYS": "5"}
    )["emit"]

    assert consume["fail_on_missing"] is False
    assert consume["run_id"] == "42"
    assert emit["retention_days"] == 5


def test_invalid_input_coercion_names_the_input(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    with pytest.raises(ConfigLoadError, match="input 'retention_days' must be an integer"):
        load_config(config_path, section="emit", environ={"INPUT_RETENTION_DAYS": "soon"})


def test_invalid_env_coercion_names_the_variable(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    with pytest.raises(ConfigLoadError, match="BRIDGE_CONSUME_FAIL_ON_MISSING"):
        load_config(config_path, environ={"BRIDGE_CONSUME_FAIL_ON_MISSING": "maybe"})


def test_loaded_values_are_validated(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    with pytest.raises(ConfigValidationError, match="consume.expose"):
        load_config(config_path, section="consume", environ={"INPUT_EXPOSE": "stdout"})


def test_cli_override_keys_must_be_section_dot_key(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    with pytest.raises(ConfigLoadError, match="invalid CLI override key"):
        load_config(config_path, environ={}, cli_overrides={"prefix": "x"})


def test_cli_overrides_skip_none(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", '[consume]\nexpose = "env"\n')
    loaded = load_config(config_path, environ={}, cli_overrides={"consume.expose": None})
    assert loaded["consume"]["expose"] == "env"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("true", True), ("YES", True), ("1", True), ("off", False), ("No", False), ("0", False)],
)
def test_coerce_boolean_vocabulary(raw: str, expected: bool) -> None:
    assert coerce_value(raw, "bool", source="x") is expected


def test_coerce_float_and_str() -> None:
    assert coerce_value("2.5", "float", source="x") == 2.5
    assert coerce_value("  keep  ", "str", source="x") == "keep"


def test_input_env_name_mapping() -> None:
    assert input_env_name("fail_on_missing") == "INPUT_FAIL_ON_MISSING"
    assert input_env_name("github token") == "INPUT_GITHUB_TOKEN"


def test_dump_effective_config_is_deterministic(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "bridge.toml", "")
    first = dump_effective_config(load_config(config_path, environ={}))
    second = dump_effective_config(load_config(config_path, environ={}))

    assert first == second
    assert list(json.loads(first)) == ["artifacts", "consume", "emit", "github", "logging"]
