"""
workflow-bridge config package public API.

File: src/workflow_bridge/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``bridge.toml`` + ``BRIDGE_`` env + ``INPUT_`` action inputs.
- Fail fast with clear structured validation/load errors.
"""

from workflow_bridge.config.loader import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    INPUT_PREFIX,
    ConfigLoadError,
    coerce_value,
    dump_effective_config,
    input_env_name,
    load_config,
)
from workflow_bridge.config.schema import (
    DEFAULT_CONFIG,
    BridgeConfig,
    ConfigValidationError,
    ConfigValidationIssue,
    ConsumeSettings,
    EmitSettings,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "INPUT_PREFIX",
    "BridgeConfig",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConsumeSettings",
    "EmitSettings",
    "assert_valid_config",
    "coerce_value",
    "default_config",
    "dump_effective_config",
    "input_env_name",
    "load_config",
    "merge_config",
    "validate_config",
]
