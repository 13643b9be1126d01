"""Stable constants shared by the bridge contract and its adapters."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Final

# Schema version for persisted bundle metadata.
BRIDGE_SCHEMA_VERSION: Final[int] = 2

# Output keys and extract names.
OUTPUT_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Canonical bundle layout (relative to the staging/extraction root).
BRIDGE_DIR: Final[PurePosixPath] = PurePosixPath("bridge")
OUTPUTS_FILE_NAME: Final[str] = "outputs.json"
META_FILE_NAME: Final[str] = "meta.json"
FILES_DIR_NAME: Final[str] = "files"

REQUIRED_META_FIELDS: Final[tuple[str, ...]] = (
    "schema_version",
    "repository",
    "workflow_name",
    "workflow_run_id",
    "workflow_run_attempt",
    "event_name",
    "head_sha",
    "created_at",
)
REQUIRED_META_STRING_FIELDS: Final[tuple[str, ...]] = REQUIRED_META_FIELDS[1:]

DEFAULT_ARTIFACT_NAME: Final[str] = "bridge"
DEFAULT_RESTORE_PATH: Final[str] = ".bridge"
DEFAULT_RUN_ATTEMPT: Final[str] = "1"

# Event payload fields kept when include_event=minimal.
MINIMAL_EVENT_PATHS: Final[tuple[str, ...]] = (
    "action",
    "sender.login",
    "sender.type",
    "issue.number",
    "issue.title",
    "issue.html_url",
    "issue.user.login",
    "comment.body",
    "comment.path",
    "comment.user.login",
    "review.body",
    "review.state",
    "review.user.login",
    "pull_request.number",
    "pull_request.title",
    "pull_request.html_url",
    "pull_request.user.login",
    "pull_request.base.ref",
    "pull_request.base.sha",
    "pull_request.base.repo.full_name",
    "pull_request.head.ref",
    "pull_request.head.sha",
    "pull_request.head.repo.full_name",
)

__all__ = [
    "BRIDGE_DIR",
    "BRIDGE_SCHEMA_VERSION",
    "DEFAULT_ARTIFACT_NAME",
    "DEFAULT_RESTORE_PATH",
    "DEFAULT_RUN_ATTEMPT",
    "FILES_DIR_NAME",
    "META_FILE_NAME",
    "MINIMAL_EVENT_PATHS",
    "OUTPUTS_FILE_NAME",
    "OUTPUT_KEY_PATTERN",
    "REQUIRED_META_FIELDS",
    "REQUIRED_META_STRING_FIELDS",
]
