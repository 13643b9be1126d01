"""
workflow-bridge — unit tests for the consumer pipeline

File: tests/unit/pipeline/test_consume.py

Purpose
- Validate download, expectation binding, file restore and output exposure
  against bundles published to a local directory store.

What this test file should cover
- Outputs and extracted values exposed only after validation passes.
- Missing artifacts honoured according to ``fail_on_missing``.
- Source run id taken from the triggering ``workflow_run`` when not supplied.
"""

from __future__ import annotations

import io
import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from workflow_bridge.config.loader import ConfigLoadError
from workflow_bridge.config.schema import ConsumeSettings, EmitSettings, default_config
from workflow_bridge.errors import (
    ArtifactNotFoundError,
    ArtifactTransportError,
    ExpectationMismatchError,
    ExtractMappingError,
)
from workflow_bridge.pipeline.consume import expectations_for, resolve_source_run_id, run_consume
from workflow_bridge.pipeline.emit import run_emit
from workflow_bridge.platform.artifacts import DirectoryArtifactStore
from workflow_bridge.platform.runtime import ActionsRuntime, RunContext

PRODUCER_RUN = "4001"


class NoArtifacts:
    def __init__(self) -> None:
        self.requests: list[tuple[str, str, str]] = []

    def download(self, repository: str, run_id: str, name: str) -> bytes | None:
        self.requests.append((repository, run_id, name))
        return None


def _producer_context() -> RunContext:
    return RunContext(
        repository="octo/repo",
        workflow="PR Checks",
        run_id=PRODUCER_RUN,
        run_attempt="2",
        event_name="pull_request",
        sha="f00d",
        payload={
            "action": "opened",
            "pull_request": {"number": 31, "head": {"sha": "f00d", "ref": "feature"}},
        },
    )


def _consumer_context(workflow_run: dict[str, object] | None = None) -> RunContext:
    payload: dict[str, object] = {}
    if workflow_run is not None:
        payload["workflow_run"] = workflow_run
    return RunContext(
        repository="octo/repo",
        workflow="Comment",
        run_id="5001",
        run_attempt="1",
        event_name="workflow_run",
        sha="ba5e",
        payload=payload,  # type: ignore[arg-type]
    )


def _emit_settings(**overrides: object) -> EmitSettings:
    settings = default_config()["emit"]
    settings.update(overrides)  # type: ignore[typeddict-item]
    return settings


def _consume_settings(**overrides: object) -> ConsumeSettings:
    settings = default_config()["consume"]
    settings["run_id"] = PRODUCER_RUN
    settings.update(overrides)  # type: ignore[typeddict-item]
    return settings


@pytest.fixture()
def store(tmp_path: Path) -> DirectoryArtifactStore:
    producer_dir = tmp_path / "producer"
    (producer_dir / "coverage").mkdir(parents=True)
    (producer_dir / "coverage" / "summary.txt").write_text("91%", encoding="utf-8")

    uploader = DirectoryArtifactStore(tmp_path / "store", repository="octo/repo", run_id=PRODUCER_RUN)
    run_emit(
        _emit_settings(
            outputs='{"status": "pass", "tests": 12, "flaky": false, "note": null}',
            files="coverage/summary.txt",
            meta='{"tool": "pytest"}',
        ),
        context=_producer_context(),
        runtime=ActionsRuntime({}, stdout=io.StringIO()),
        uploader=uploader,
        cwd=producer_dir,
        clock=lambda: datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
    )
    return DirectoryArtifactStore(tmp_path / "store")


def test_consume_exposes_outputs_and_restores_files(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    workspace = tmp_path / "consumer"
    workspace.mkdir()
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    result = run_consume(
        _consume_settings(
            expected_head_sha="f00d",
            expected_pr_number="31",
            require_event="pull_request, pull_request_target",
            source_workflow="PR Checks",
        ),
        context=_consumer_context(),
        runtime=runtime,
        source=store,
        cwd=workspace,
    )

    assert result.found is True
    assert result.restored is True
    assert result.files_path == (workspace / ".bridge").resolve()
    assert (workspace / ".bridge" / "coverage" / "summary.txt").read_text(encoding="utf-8") == "91%"

    assert runtime.output_value("status") == "pass"
    assert runtime.output_value("tests") == "12"
    assert runtime.output_value("flaky") == "false"
    assert runtime.output_value("note") == "null"
    assert json.loads(runtime.output_value("outputs-json") or "")["tests"] == 12
    meta = json.loads(runtime.output_value("meta-json") or "")
    assert meta["tool"] == "pytest"
    assert meta["workflow_run_attempt"] == "2"
    assert json.loads(runtime.output_value("event-json") or "")["pull_request"]["number"] == 31
    assert runtime.output_value("files-path") == str(result.files_path)
    assert runtime.exported == []


def test_consume_prefix_and_env_exposure(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    environ: dict[str, str] = {}
    runtime = ActionsRuntime(environ, stdout=io.StringIO())

    run_consume(
        _consume_settings(expose="both", prefix="bridge_"),
        context=_consumer_context(),
        runtime=runtime,
        source=store,
        cwd=tmp_path,
    )

    assert runtime.output_value("bridge_status") == "pass"
    assert runtime.output_value("status") is None
    assert environ["bridge_status"] == "pass"
    assert environ["bridge_tests"] == "12"


def test_consume_env_only_keeps_json_outputs(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    environ: dict[str, str] = {}
    runtime = ActionsRuntime(environ, stdout=io.StringIO())

    run_consume(
        _consume_settings(expose="env"),
        context=_consumer_context(),
        runtime=runtime,
        source=store,
        cwd=tmp_path,
    )

    assert environ["status"] == "pass"
    assert runtime.output_value("status") is None
    assert runtime.output_value("outputs-json") is not None


def test_consume_applies_extract_mappings(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    result = run_consume(
        _consume_settings(
            extract="\n".join(
                [
                    "pr=event.pull_request.number",
                    "sha=event.pull_request.head.sha",
                    "tool=meta.tool",
                    "missing=outputs.absent",
                    "fallback=outputs.absent|outputs.status",
                ]
            )
        ),
        context=_consumer_context(),
        runtime=runtime,
        source=store,
        cwd=tmp_path,
    )

    assert result.extracted == (
        ("pr", "31"),
        ("sha", "f00d"),
        ("tool", "pytest"),
        ("fallback", "pass"),
    )
    assert runtime.output_value("pr") == "31"
    assert runtime.output_value("missing") is None


def test_consume_mismatch_exposes_nothing(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    workspace = tmp_path / "consumer"
    workspace.mkdir()
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    with pytest.raises(ExpectationMismatchError, match="Head SHA mismatch: expected beef, got f00d"):
        run_consume(
            _consume_settings(expected_head_sha="beef"),
            context=_consumer_context(),
            runtime=runtime,
            source=store,
            cwd=workspace,
        )

    assert runtime.outputs == []
    assert not (workspace / ".bridge").exists()


def test_consume_run_attempt_bound_to_trigger(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    with pytest.raises(ExpectationMismatchError) as info:
        run_consume(
            _consume_settings(run_id=""),
            context=_consumer_context({"id": int(PRODUCER_RUN), "run_attempt": 1}),
            runtime=runtime,
            source=store,
            cwd=tmp_path,
        )
    assert info.value.check == "run_attempt"


def test_consume_run_id_from_workflow_run(tmp_path: Path, store: DirectoryArtifactStore) -> None:
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    result = run_consume(
        _consume_settings(run_id=""),
        context=_consumer_context({"id": int(PRODUCER_RUN), "run_attempt": 2}),
        runtime=runtime,
        source=store,
        cwd=tmp_path,
    )
    assert result.found is True


def test_consume_missing_artifact_fails_by_default(tmp_path: Path) -> None:
    source = NoArtifacts()
    with pytest.raises(ArtifactNotFoundError, match="Artifact bridge was not found for run 4001"):
        run_consume(
            _consume_settings(),
            context=_consumer_context(),
            runtime=ActionsRuntime({}, stdout=io.StringIO()),
            source=source,
            cwd=tmp_path,
        )
    assert source.requests == [("octo/repo", "4001", "bridge")]


def test_consume_missing_artifact_tolerated(tmp_path: Path) -> None:
    runtime = ActionsRuntime({}, stdout=io.StringIO())

    result = run_consume(
        _consume_settings(fail_on_missing=False),
        context=_consumer_context(),
        runtime=runtime,
        source=NoArtifacts(),
        cwd=tmp_path,
    )

    assert result.found is False
    assert runtime.outputs == [("outputs-json", "{}"), ("meta-json", "{}"), ("event-json", "{}")]


def test_invalid_extract_mapping_fails_before_download(tmp_path: Path) -> None:
    source = NoArtifacts()
    with pytest.raises(ExtractMappingError):
        run_consume(
            _consume_settings(extract="not-a-mapping"),
            context=_consumer_context(),
            runtime=ActionsRuntime({}, stdout=io.StringIO()),
            source=source,
            cwd=tmp_path,
        )
    assert source.requests == []


def test_corrupt_archive_is_a_transport_error(tmp_path: Path) -> None:
    class Corrupt:
        def download(self, repository: str, run_id: str, name: str) -> bytes | None:
            return b"garbage"

    with pytest.raises(ArtifactTransportError):
        run_consume(
            _consume_settings(),
            context=_consumer_context(),
            runtime=ActionsRuntime({}, stdout=io.StringIO()),
            source=Corrupt(),
            cwd=tmp_path,
        )


@pytest.mark.parametrize("workflow_run", [None, {}, {"id": 0}, {"id": True}, {"id": "abc"}])
def test_resolve_source_run_id_requires_a_run(workflow_run: dict[str, object] | None) -> None:
    with pytest.raises(ConfigLoadError, match="run_id is required"):
        resolve_source_run_id(_consume_settings(run_id=""), _consumer_context(workflow_run))


def test_resolve_source_run_id_prefers_setting() -> None:
    context = _consumer_context({"id": 99})
    assert resolve_source_run_id(_consume_settings(run_id=" 0012 "), context) == "12"
    assert resolve_source_run_id(_consume_settings(run_id=""), context) == "99"


def test_expectations_for_collects_policy() -> None:
    expectations = expectations_for(
        _consume_settings(source_workflow=" CI ", require_event="push\npull_request"),
        _consumer_context({"id": 7, "run_attempt": 3}),
        "7",
    )
    assert expectations.repository == "octo/repo"
    assert expectations.run_attempt == "3"
    assert expectations.source_workflow == "CI"
    assert expectations.expected_head_sha is None
    assert tuple(expectations.require_events) == ("push", "pull_request")
