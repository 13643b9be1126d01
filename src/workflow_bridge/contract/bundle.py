"""
workflow-bridge — bundle builder and reader

File: src/workflow_bridge/contract/bundle.py

Purpose
- Build producer metadata and merged outputs.
- Write the canonical bundle layout and read it back with full validation.
- Restore the opaque ``files/`` tree on the consumer side.

Storage layout
- `<root>/bridge/outputs.json` (pretty-printed outputs map)
- `<root>/bridge/meta.json` (pretty-printed metadata record)
- `<root>/bridge/files/<relative paths>` (copied verbatim)

Functional requirements
- Metadata and outputs are written before any file is copied.
- File entries must be relative and may not escape the workspace once
  normalized; every entry is checked before the first copy.
- Reading always re-validates metadata and strict outputs.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path, PurePath
from typing import cast

from workflow_bridge.constants import (
    BRIDGE_DIR,
    BRIDGE_SCHEMA_VERSION,
    FILES_DIR_NAME,
    META_FILE_NAME,
    OUTPUTS_FILE_NAME,
)
from workflow_bridge.contract.schema import (
    BridgeMeta,
    JSONValue,
    OutputsMap,
    SanitizeMode,
    normalize_outputs,
    parse_json_object,
    validate_meta,
)
from workflow_bridge.errors import BundlePathError
from workflow_bridge.utils.fs import copy_file, copy_tree, is_lexically_within, write_json

PathLike = str | os.PathLike[str]
Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class ProducerContext:
    """Identity of the producing run, stamped into ``meta.json``."""

    repository: str
    workflow_name: str
    run_id: str
    run_attempt: str
    event_name: str
    head_sha: str
    pr_number: int | None = None
    producer_job: str | None = None
    producer_step: str | None = None


@dataclass(frozen=True, slots=True)
class BridgeBundle:
    """A validated bundle read back from disk."""

    outputs: OutputsMap
    meta: BridgeMeta
    files_dir: Path


def bridge_dir_for(root_dir: PathLike) -> Path:
    return Path(root_dir).joinpath(*BRIDGE_DIR.parts)


def build_bridge_meta(
    producer: ProducerContext,
    extra_meta: Mapping[str, JSONValue] | None = None,
    *,
    clock: Clock | None = None,
) -> BridgeMeta:
    """Assemble metadata for ``producer``; keys in ``extra_meta`` override the base record."""

    now = clock() if clock is not None else datetime.now(UTC)
    meta: dict[str, object] = {
        "schema_version": BRIDGE_SCHEMA_VERSION,
        "repository": producer.repository,
        "workflow_name": producer.workflow_name,
        "workflow_run_id": producer.run_id,
        "workflow_run_attempt": producer.run_attempt,
        "event_name": producer.event_name,
        "head_sha": producer.head_sha,
        "created_at": _iso8601z(now),
    }
    if isinstance(producer.pr_number, (int, float)) and not isinstance(producer.pr_number, bool):
        meta["pr_number"] = producer.pr_number
    if producer.producer_job:
        meta["producer_job"] = producer.producer_job
    if producer.producer_step:
        meta["producer_step"] = producer.producer_step
    if extra_meta:
        meta.update(extra_meta)
    return cast("BridgeMeta", meta)


def parse_and_merge_outputs(
    outputs_json: str,
    outputs_file_json: str,
    mode: SanitizeMode | str = SanitizeMode.STRICT,
) -> OutputsMap:
    """Merge file-sourced and inline outputs (inline wins) and sanitize the result."""

    from_file = parse_json_object(outputs_file_json, "outputs_file") if outputs_file_json else {}
    from_input = parse_json_object(outputs_json, "outputs") if outputs_json else {}
    return normalize_outputs({**from_file, **from_input}, mode)


def write_bundle(
    root_dir: PathLike,
    outputs: Mapping[str, JSONValue],
    meta: Mapping[str, object],
    files: Sequence[str] = (),
    *,
    cwd: PathLike | None = None,
) -> Path:
    """Write the bundle under ``root_dir`` and return the ``bridge`` directory.

    ``files`` entries are resolved against ``cwd`` (default: current working
    directory) and copied to the same relative location under ``files/``.
    """

    bridge_dir = bridge_dir_for(root_dir)
    files_dir = bridge_dir / FILES_DIR_NAME
    files_dir.mkdir(parents=True, exist_ok=True)

    write_json(bridge_dir / OUTPUTS_FILE_NAME, dict(outputs))
    write_json(bridge_dir / META_FILE_NAME, dict(meta))

    base_dir = Path(cwd) if cwd is not None else Path.cwd()
    planned = [_plan_file_entry(entry) for entry in files]
    for normalized in planned:
        copy_file(base_dir / normalized, files_dir / normalized)

    return bridge_dir


def read_bundle(root_dir: PathLike) -> BridgeBundle:
    """Read and validate a bundle previously written or extracted under ``root_dir``."""

    bridge_dir = bridge_dir_for(root_dir)

    raw_meta = parse_json_object(
        (bridge_dir / META_FILE_NAME).read_bytes(), META_FILE_NAME
    )
    meta = validate_meta(raw_meta)

    raw_outputs = parse_json_object(
        (bridge_dir / OUTPUTS_FILE_NAME).read_bytes(), OUTPUTS_FILE_NAME
    )
    outputs = normalize_outputs(raw_outputs, SanitizeMode.STRICT)

    return BridgeBundle(outputs=outputs, meta=meta, files_dir=bridge_dir / FILES_DIR_NAME)


def restore_files(files_dir: PathLike, destination: PathLike) -> bool:
    """Copy the bundle's ``files/`` tree into ``destination``.

    Returns ``False`` without touching ``destination`` when ``files_dir`` is
    absent or not a directory.
    """

    source = Path(files_dir)
    if not source.is_dir():
        return False

    target = Path(destination)
    target.mkdir(parents=True, exist_ok=True)
    copy_tree(source, target)
    return True


def _plan_file_entry(entry: str) -> PurePath:
    if os.path.isabs(entry) or PurePath(entry).anchor:
        raise BundlePathError(f"files entries must be relative paths: {entry}")
    if not is_lexically_within(entry):
        raise BundlePathError(f"files entry may not escape workspace: {entry}")
    return PurePath(os.path.normpath(entry))


def _iso8601z(moment: datetime) -> str:
    if moment.tzinfo is None or moment.utcoffset() is None:
        normalized = moment.replace(tzinfo=UTC)
    else:
        normalized = moment.astimezone(UTC)
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = [
    "BridgeBundle",
    "Clock",
    "ProducerContext",
    "bridge_dir_for",
    "build_bridge_meta",
    "parse_and_merge_outputs",
    "read_bundle",
    "restore_files",
    "write_bundle",
]
