"""
workflow-bridge — consumer pipeline

File: src/workflow_bridge/pipeline/consume.py

Purpose
- Download a bundle artifact from a source run, bind it to the consumer's
  expectations, restore its files and expose its outputs.

Stages (each a collapsible log group)
1. Inputs
2. Download Artifact
3. Validate Metadata
4. Restore Files
5. Expose Outputs

Functional requirements
- Nothing is exposed or restored unless metadata validation passes.
- The scratch extraction directory is removed on success and on failure.
- A missing artifact with ``fail_on_missing = false`` is a warning that sets
  empty JSON outputs.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from workflow_bridge.config.loader import ConfigLoadError
from workflow_bridge.config.schema import ConsumeSettings
from workflow_bridge.constants import DEFAULT_ARTIFACT_NAME, DEFAULT_RESTORE_PATH
from workflow_bridge.contract.bundle import read_bundle, restore_files
from workflow_bridge.contract.expectations import ConsumerExpectations, validate_expectations
from workflow_bridge.contract.extract import apply_extract_mappings, parse_extract_mappings
from workflow_bridge.contract.paths import parse_path_list
from workflow_bridge.contract.schema import JSONValue, OutputsMap, stringify_scalar
from workflow_bridge.errors import ArtifactNotFoundError
from workflow_bridge.observability.logging import debug_json, get_logger, log_group
from workflow_bridge.platform.artifacts import ArtifactSource, extract_archive
from workflow_bridge.platform.runtime import ActionsRuntime, RunContext, compact_json
from workflow_bridge.utils.fs import temp_directory

PathLike = str | os.PathLike[str]


@dataclass(frozen=True, slots=True)
class ConsumeResult:
    found: bool
    outputs: OutputsMap = field(default_factory=dict)
    meta: Mapping[str, object] = field(default_factory=dict)
    files_path: Path | None = None
    restored: bool = False
    extracted: tuple[tuple[str, str], ...] = ()


def resolve_source_run_id(settings: ConsumeSettings, context: RunContext) -> str:
    """Explicit ``run_id`` setting, else the triggering ``workflow_run.id``."""

    raw: JSONValue = settings["run_id"].strip() or context.triggering_run.get("id")
    if isinstance(raw, bool) or raw is None:
        raw = ""
    candidate = str(raw).strip()
    if not candidate.isdigit() or int(candidate) <= 0:
        raise ConfigLoadError("run_id is required (or action must run from workflow_run event)")
    return str(int(candidate))


def expectations_for(
    settings: ConsumeSettings,
    context: RunContext,
    run_id: str,
) -> ConsumerExpectations:
    trigger_attempt = context.triggering_run.get("run_attempt")
    return ConsumerExpectations(
        repository=context.repository,
        run_id=run_id,
        run_attempt=str(trigger_attempt) if trigger_attempt else None,
        source_workflow=settings["source_workflow"].strip() or None,
        expected_head_sha=settings["expected_head_sha"].strip() or None,
        expected_pr_number=settings["expected_pr_number"].strip() or None,
        require_events=tuple(parse_path_list(settings["require_event"])),
    )


def run_consume(
    settings: ConsumeSettings,
    *,
    context: RunContext,
    runtime: ActionsRuntime,
    source: ArtifactSource,
    logger: logging.Logger | None = None,
    cwd: PathLike | None = None,
) -> ConsumeResult:
    log = logger or get_logger()
    base_dir = Path(cwd) if cwd is not None else Path.cwd()

    artifact_name = settings["artifact"].strip() or DEFAULT_ARTIFACT_NAME
    expose = settings["expose"]
    prefix = settings["prefix"]
    destination = (base_dir / (settings["path"].strip() or DEFAULT_RESTORE_PATH)).resolve()
    mappings = parse_extract_mappings(settings["extract"])

    with log_group(log, "Bridge Consume: Inputs"):
        log.info("Artifact name: %s", artifact_name)
        log.info("Source run id: %s", settings["run_id"].strip() or "(from workflow_run)")
        log.info("Expose mode: %s", expose)
        log.info("Output prefix: %s", prefix or "(none)")
        log.info("Restore path: %s", destination)
        log.debug("Repository: %s", context.repository)
        log.debug("fail_on_missing: %s", str(settings["fail_on_missing"]).lower())
        log.debug("source_workflow: %s", settings["source_workflow"] or "(none)")
        log.debug("expected_head_sha: %s", settings["expected_head_sha"] or "(none)")
        log.debug("expected_pr_number: %s", settings["expected_pr_number"] or "(none)")
        log.debug("require_event: %s", settings["require_event"] or "(none)")
        log.debug("extract mappings: %d", len(mappings))

    run_id = resolve_source_run_id(settings, context)

    with log_group(log, "Bridge Consume: Download Artifact"):
        archive = source.download(context.repository, run_id, artifact_name)
        if archive is None:
            if settings["fail_on_missing"]:
                raise ArtifactNotFoundError(
                    f"Artifact {artifact_name} was not found for run {run_id}"
                )
            log.warning(
                "Artifact '%s' not found; continuing because fail_on_missing=false.",
                artifact_name,
            )
        else:
            log.info("Downloaded artifact '%s' (%d bytes).", artifact_name, len(archive))

    if archive is None:
        log.info("Bridge artifact not found and fail_on_missing=false; exiting without outputs.")
        for name in ("outputs-json", "meta-json", "event-json"):
            runtime.set_output(name, "{}")
        return ConsumeResult(found=False)

    with temp_directory(prefix="bridge-consume-") as scratch:
        extract_archive(archive, scratch)
        bundle = read_bundle(scratch)
        debug_json(log, "downloaded meta", bundle.meta)
        debug_json(log, "downloaded output keys", list(bundle.outputs))

        with log_group(log, "Bridge Consume: Validate Metadata"):
            validate_expectations(bundle.meta, expectations_for(settings, context, run_id))
            log.info("Metadata validation passed.")

        with log_group(log, "Bridge Consume: Restore Files"):
            restored = restore_files(bundle.files_dir, destination)
            if restored:
                log.info("Restored files to %s", destination)
            else:
                log.info("No 'bridge/files' directory in artifact; skipping file restore.")

    with log_group(log, "Bridge Consume: Expose Outputs"):
        for key, value in bundle.outputs.items():
            _expose(runtime, f"{prefix}{key}", stringify_scalar(value), expose)

        extracted = apply_extract_mappings(mappings, bundle.outputs, bundle.meta)
        for name, value in extracted:
            _expose(runtime, name, value, expose)

        log.info("Exposed %d bridge output keys.", len(bundle.outputs))
        if extracted:
            log.info("Exposed %d extracted keys from mappings.", len(extracted))
            debug_json(log, "extracted output keys", [name for name, _ in extracted])
        debug_json(log, "exposed output keys", list(bundle.outputs))

    event = bundle.meta.get("event")
    runtime.set_output("outputs-json", compact_json(bundle.outputs))
    runtime.set_output("meta-json", compact_json(bundle.meta))
    runtime.set_output("event-json", compact_json(event if event is not None else {}))
    runtime.set_output("files-path", str(destination))
    log.info("Bridge consume completed.")

    return ConsumeResult(
        found=True,
        outputs=bundle.outputs,
        meta=bundle.meta,
        files_path=destination,
        restored=restored,
        extracted=tuple(extracted),
    )


def _expose(runtime: ActionsRuntime, name: str, value: str, expose: str) -> None:
    if expose in ("outputs", "both"):
        runtime.set_output(name, value)
    if expose in ("env", "both"):
        runtime.export_variable(name, value)


__all__ = ["ConsumeResult", "expectations_for", "resolve_source_run_id", "run_consume"]
