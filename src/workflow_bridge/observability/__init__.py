"""Public observability primitives: workflow-command logging and secret masking."""

from workflow_bridge.observability.logging import (
    DEFAULT_LOGGER_NAME,
    REDACTED_VALUE,
    LoggingConfig,
    SecretMasker,
    add_mask,
    debug_json,
    escape_command_data,
    get_logger,
    is_debug_enabled,
    log_group,
    redact,
    setup_logging,
)

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
