"""
workflow-bridge — producer pipeline

File: src/workflow_bridge/pipeline/emit.py

Purpose
- Turn action inputs plus the run context into a bundle and upload it as a
  named artifact.

Stages (each a collapsible log group)
1. Inputs
2. Build Payload
3. Stage Artifact
4. Upload Artifact

Step outputs: ``artifact``, ``outputs-json``, ``meta-json``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from workflow_bridge.config.schema import EmitSettings
from workflow_bridge.constants import DEFAULT_ARTIFACT_NAME, MINIMAL_EVENT_PATHS
from workflow_bridge.contract.bundle import (
    Clock,
    ProducerContext,
    build_bridge_meta,
    parse_and_merge_outputs,
    write_bundle,
)
from workflow_bridge.contract.paths import parse_path_list, pick_by_paths
from workflow_bridge.contract.schema import (
    BridgeMeta,
    JSONValue,
    OutputsMap,
    coerce_sanitize_mode,
    parse_json_object,
)
from workflow_bridge.observability.logging import debug_json, get_logger, log_group
from workflow_bridge.platform.artifacts import ArtifactUploader, UploadResult
from workflow_bridge.platform.runtime import ActionsRuntime, RunContext, compact_json
from workflow_bridge.utils.fs import list_files_recursively, temp_directory

PathLike = str | os.PathLike[str]


@dataclass(frozen=True, slots=True)
class EmitResult:
    artifact: str
    outputs: OutputsMap
    meta: BridgeMeta
    upload: UploadResult
    file_count: int


def producer_from_context(context: RunContext) -> ProducerContext:
    return ProducerContext(
        repository=context.repository,
        workflow_name=context.workflow,
        run_id=context.run_id,
        run_attempt=context.run_attempt,
        event_name=context.event_name,
        head_sha=context.sha,
        pr_number=context.pr_number,
        producer_job=context.job or None,
        producer_step=context.action or None,
    )


def build_event_meta(
    payload: dict[str, JSONValue],
    include_event: str,
    event_fields: str,
) -> dict[str, JSONValue] | None:
    """Select the event excerpt stored in ``meta.event``.

    Explicit ``event_fields`` take precedence over ``include_event``.
    """

    fields = parse_path_list(event_fields)
    if fields:
        return pick_by_paths(payload, fields)
    if include_event == "none":
        return None
    if include_event == "full":
        return payload
    return pick_by_paths(payload, MINIMAL_EVENT_PATHS)


def run_emit(
    settings: EmitSettings,
    *,
    context: RunContext,
    runtime: ActionsRuntime,
    uploader: ArtifactUploader,
    logger: logging.Logger | None = None,
    cwd: PathLike | None = None,
    clock: Clock | None = None,
) -> EmitResult:
    log = logger or get_logger()
    base_dir = Path(cwd) if cwd is not None else Path.cwd()

    artifact_name = settings["artifact"].strip() or DEFAULT_ARTIFACT_NAME
    sanitize = coerce_sanitize_mode(settings["sanitize"])
    files = _parse_lines(settings["files"])
    outputs_file = settings["outputs_file"].strip()
    retention_days = settings["retention_days"] or None

    with log_group(log, "Bridge Emit: Inputs"):
        log.info("Artifact name: %s", artifact_name)
        log.info("Sanitize mode: %s", sanitize.value)
        log.info("Files requested: %d", len(files))
        log.info("Event mode: %s", settings["include_event"])
        log.debug("outputs_file: %s", outputs_file or "(none)")
        log.debug("retention_days: %s", retention_days or "(default)")
        log.debug("meta provided: %s", "yes" if settings["meta"].strip() else "no")
        log.debug("event_fields provided: %s", "yes" if settings["event_fields"].strip() else "no")

    with log_group(log, "Bridge Emit: Build Payload"):
        outputs_file_text = (
            (base_dir / outputs_file).read_text(encoding="utf-8") if outputs_file else ""
        )
        outputs = parse_and_merge_outputs(settings["outputs"], outputs_file_text, sanitize)
        log.info("Output keys: %d", len(outputs))
        debug_json(log, "output keys", list(outputs))

        user_meta: dict[str, JSONValue] = {}
        if settings["meta"].strip():
            user_meta = parse_json_object(settings["meta"], "meta")
            debug_json(log, "user meta", user_meta)

        event_meta = build_event_meta(
            context.payload, settings["include_event"], settings["event_fields"]
        )
        extra_meta: dict[str, JSONValue] = dict(user_meta)
        if event_meta is not None:
            extra_meta["event"] = event_meta
        meta = build_bridge_meta(producer_from_context(context), extra_meta, clock=clock)
        debug_json(log, "bridge meta", meta)

    with temp_directory(prefix="bridge-emit-") as staging_root:
        with log_group(log, "Bridge Emit: Stage Artifact"):
            bridge_dir = write_bundle(staging_root, outputs, meta, files, cwd=base_dir)
            log.info("Staged bridge payload directory.")
            log.debug("staging root: %s", staging_root)
            log.debug("staged files: %d", len(files))

        with log_group(log, "Bridge Emit: Upload Artifact"):
            upload_files = list_files_recursively(bridge_dir)
            upload = uploader.upload(artifact_name, upload_files, staging_root, retention_days)
            log.info(
                "Uploaded artifact '%s' with %d files.",
                artifact_name,
                len(upload_files),
                extra={"artifact_id": upload.artifact_id, "size": upload.size},
            )
            debug_json(log, "upload result", {"id": upload.artifact_id, "size": upload.size})

    runtime.set_output("artifact", artifact_name)
    runtime.set_output("outputs-json", compact_json(outputs))
    runtime.set_output("meta-json", compact_json(meta))
    log.info("Bridge emit completed for artifact '%s'.", artifact_name)

    return EmitResult(
        artifact=artifact_name,
        outputs=outputs,
        meta=meta,
        upload=upload,
        file_count=len(upload_files),
    )


def _parse_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


__all__ = ["EmitResult", "build_event_meta", "producer_from_context", "run_emit"]
