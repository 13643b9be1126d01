"""
workflow-bridge — runner runtime adapter

File: src/workflow_bridge/platform/runtime.py

Purpose
- Read action inputs and the running context from an injected environment.
- Publish step outputs and exported variables through the runner's file
  commands (``GITHUB_OUTPUT`` / ``GITHUB_ENV``).

Functional requirements
- Nothing here reads ``os.environ`` unless the caller passes no mapping.
- Ambient fallbacks are explicit ordered source lists (``resolve_first``).
"""

from __future__ import annotations

import json
import os
import sys
import uuid
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, TextIO

from workflow_bridge.config.loader import ConfigLoadError, input_env_name
from workflow_bridge.constants import DEFAULT_RUN_ATTEMPT
from workflow_bridge.contract.schema import JSONValue, parse_json_object

_DELIMITER_PREFIX: Final[str] = "ghadelimiter_"


def resolve_first(sources: Sequence[tuple[str, str | None]]) -> tuple[str, str] | None:
    """Return ``(label, value)`` for the first source with a non-empty value."""

    for label, value in sources:
        if value:
            return label, value
    return None


@dataclass(frozen=True, slots=True)
class RunContext:
    """Identity of the running workflow plus its triggering event payload."""

    repository: str
    workflow: str
    run_id: str
    run_attempt: str
    event_name: str
    sha: str
    job: str = ""
    action: str = ""
    payload: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> RunContext:
        env = os.environ if environ is None else environ
        payload = load_event_payload(env.get("GITHUB_EVENT_PATH", ""))

        repo_from_payload: str | None = None
        payload_repo = payload.get("repository")
        if isinstance(payload_repo, dict) and isinstance(payload_repo.get("full_name"), str):
            repo_from_payload = str(payload_repo["full_name"])

        repository = resolve_first(
            (
                ("env GITHUB_REPOSITORY", env.get("GITHUB_REPOSITORY")),
                ("event repository.full_name", repo_from_payload),
            )
        )
        run_attempt = resolve_first(
            (
                ("env GITHUB_RUN_ATTEMPT", env.get("GITHUB_RUN_ATTEMPT")),
                ("default", DEFAULT_RUN_ATTEMPT),
            )
        )
        return cls(
            repository=repository[1] if repository else "",
            workflow=env.get("GITHUB_WORKFLOW", ""),
            run_id=env.get("GITHUB_RUN_ID", ""),
            run_attempt=run_attempt[1] if run_attempt else DEFAULT_RUN_ATTEMPT,
            event_name=env.get("GITHUB_EVENT_NAME", ""),
            sha=env.get("GITHUB_SHA", ""),
            job=env.get("GITHUB_JOB", ""),
            action=env.get("GITHUB_ACTION", ""),
            payload=payload,
        )

    @property
    def pr_number(self) -> int | None:
        """PR number from ``pull_request.number``, else ``issue.number``."""

        for section in ("pull_request", "issue"):
            candidate = self.payload.get(section)
            if isinstance(candidate, dict):
                number = candidate.get("number")
                if isinstance(number, int) and not isinstance(number, bool):
                    return number
        return None

    @property
    def triggering_run(self) -> dict[str, JSONValue]:
        """The ``workflow_run`` object of a workflow_run event, or ``{}``."""

        workflow_run = self.payload.get("workflow_run")
        return workflow_run if isinstance(workflow_run, dict) else {}


def load_event_payload(event_path: str) -> dict[str, JSONValue]:
    """Read the triggering event JSON; a missing path yields ``{}``."""

    if not event_path:
        return {}
    path = Path(event_path)
    if not path.is_file():
        return {}
    return parse_json_object(path.read_text(encoding="utf-8"), "event payload")


class ActionsRuntime:
    """Input/output plumbing for one step execution."""

    def __init__(
        self,
        environ: MutableMapping[str, str] | None = None,
        *,
        stdout: TextIO | None = None,
    ) -> None:
        self._environ: MutableMapping[str, str] = os.environ if environ is None else environ
        self._stdout = stdout
        self.outputs: list[tuple[str, str]] = []
        self.exported: list[tuple[str, str]] = []

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self._environ

    def get_input(self, name: str) -> str:
        return self._environ.get(input_env_name(name), "").strip()

    def set_output(self, name: str, value: str) -> None:
        self.outputs.append((name, value))
        if not self._append_file_command("GITHUB_OUTPUT", name, value):
            self._write_line(f"::set-output name={_escape_property(name)}::{_escape_data(value)}")

    def export_variable(self, name: str, value: str) -> None:
        self.exported.append((name, value))
        self._environ[name] = value
        if not self._append_file_command("GITHUB_ENV", name, value):
            self._write_line(f"::set-env name={_escape_property(name)}::{_escape_data(value)}")

    def output_value(self, name: str) -> str | None:
        """Last value written for output ``name`` in this process."""

        for output_name, value in reversed(self.outputs):
            if output_name == name:
                return value
        return None

    def _append_file_command(self, env_var: str, name: str, value: str) -> bool:
        file_path = self._environ.get(env_var, "")
        if not file_path:
            return False
        delimiter = f"{_DELIMITER_PREFIX}{uuid.uuid4()}"
        if delimiter in name:
            raise ConfigLoadError(
                f"Unexpected input: name should not contain the delimiter {delimiter!r}"
            )
        if delimiter in value:
            raise ConfigLoadError(
                f"Unexpected input: value should not contain the delimiter {delimiter!r}"
            )
        with Path(file_path).open("a", encoding="utf-8") as handle:
            handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        return True

    def _write_line(self, line: str) -> None:
        stream = self._stdout if self._stdout is not None else sys.stdout
        stream.write(f"{line}\n")


def compact_json(value: object) -> str:
    """Single-line JSON used for ``*-json`` step outputs."""

    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _escape_data(text: str) -> str:
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(text: str) -> str:
    return _escape_data(text).replace(":", "%3A").replace(",", "%2C")


__all__ = [
    "ActionsRuntime",
    "RunContext",
    "compact_json",
    "load_event_payload",
    "resolve_first",
]
