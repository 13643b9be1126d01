"""
workflow-bridge — consumer expectation checks

File: src/workflow_bridge/contract/expectations.py

Purpose
- Bind a bundle's metadata to the identity the consumer expects, failing
  closed on the first mismatch.

Check order
1. repository (always)
2. run id (always)
3. run attempt, workflow name, head SHA, PR number (each only when supplied)
4. source event allow-list (only when non-empty)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final

from workflow_bridge.contract.schema import stringify_scalar
from workflow_bridge.errors import ExpectationMismatchError

# Rendering of an absent producer value; never equal to a supplied expectation.
_ABSENT: Final[str] = "undefined"


@dataclass(frozen=True, slots=True)
class ConsumerExpectations:
    """Identity and policy the consumer requires of a bundle."""

    repository: str
    run_id: str
    run_attempt: str | None = None
    source_workflow: str | None = None
    expected_head_sha: str | None = None
    expected_pr_number: str | None = None
    require_events: Sequence[str] = field(default_factory=tuple)


def validate_expectations(
    meta: Mapping[str, object],
    expectations: ConsumerExpectations,
) -> None:
    """Raise ``ExpectationMismatchError`` unless ``meta`` satisfies every supplied expectation."""

    _require_equal(
        "repository",
        "Repository mismatch",
        expected=expectations.repository,
        actual=meta.get("repository"),
    )
    _require_equal(
        "run_id",
        "Run mismatch",
        expected=expectations.run_id,
        actual=meta.get("workflow_run_id"),
    )

    optional_checks: tuple[tuple[str, str, str | None, str], ...] = (
        ("run_attempt", "Run attempt mismatch", expectations.run_attempt, "workflow_run_attempt"),
        ("workflow", "Workflow mismatch", expectations.source_workflow, "workflow_name"),
        ("head_sha", "Head SHA mismatch", expectations.expected_head_sha, "head_sha"),
    )
    for check, label, expected, meta_field in optional_checks:
        if expected:
            _require_equal(check, label, expected=expected, actual=meta.get(meta_field))

    if expectations.expected_pr_number:
        actual_pr = _render(meta["pr_number"]) if "pr_number" in meta else _ABSENT
        if actual_pr != expectations.expected_pr_number:
            raise ExpectationMismatchError(
                f"PR mismatch: expected {expectations.expected_pr_number}, got {actual_pr}",
                check="pr_number",
            )

    allowed = tuple(expectations.require_events)
    if allowed:
        event_name = meta.get("event_name")
        if event_name not in allowed:
            raise ExpectationMismatchError(
                f"Source event {_render(event_name)} is not allowed",
                check="event",
            )


def _require_equal(check: str, label: str, *, expected: str, actual: object) -> None:
    if actual != expected or not isinstance(actual, str):
        raise ExpectationMismatchError(
            f"{label}: expected {expected}, got {_render(actual)}",
            check=check,
        )


def _render(value: object) -> str:
    if isinstance(value, str):
        return value
    return stringify_scalar(value)


__all__ = [
    "ConsumerExpectations",
    "validate_expectations",
]
