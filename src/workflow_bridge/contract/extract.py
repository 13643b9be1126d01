"""
workflow-bridge — extract mappings

File: src/workflow_bridge/contract/extract.py

Purpose
- Parse ``name=path`` lines into ordered extraction rules.
- Apply them against ``{outputs, meta, event}`` with fallback-aware paths.

Duplicate names are kept in order; the emission layer decides (last write wins).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from workflow_bridge.constants import OUTPUT_KEY_PATTERN
from workflow_bridge.contract.paths import UNRESOLVED, get_by_path
from workflow_bridge.contract.schema import JSONValue, stringify_scalar
from workflow_bridge.errors import ExtractMappingError


@dataclass(frozen=True, slots=True)
class ExtractMapping:
    """One ``name=path`` rule."""

    name: str
    path: str


def parse_extract_mappings(text: str) -> list[ExtractMapping]:
    mappings: list[ExtractMapping] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        separator = line.find("=")
        if separator <= 0 or separator == len(line) - 1:
            raise ExtractMappingError(f"Invalid extract mapping: {line}")

        name = line[:separator].strip()
        path = line[separator + 1 :].strip()
        if OUTPUT_KEY_PATTERN.fullmatch(name) is None:
            raise ExtractMappingError(f"Invalid extract output key: {name}")
        if not path:
            raise ExtractMappingError(f"Invalid extract mapping path for {name}")

        mappings.append(ExtractMapping(name=name, path=path))
    return mappings


def extraction_root(
    outputs: Mapping[str, JSONValue],
    meta: Mapping[str, object],
) -> dict[str, object]:
    """Build the object extract paths are resolved against."""

    event = meta.get("event")
    return {
        "outputs": outputs,
        "meta": meta,
        "event": event if event is not None else {},
    }


def apply_extract_mappings(
    mappings: Sequence[ExtractMapping],
    outputs: Mapping[str, JSONValue],
    meta: Mapping[str, object],
) -> list[tuple[str, str]]:
    """Resolve each mapping and return ``(name, value)`` pairs for the ones that resolved."""

    root = extraction_root(outputs, meta)
    extracted: list[tuple[str, str]] = []
    for mapping in mappings:
        value = get_by_path(root, mapping.path)
        if value is UNRESOLVED:
            continue
        extracted.append((mapping.name, stringify_scalar(value)))
    return extracted


__all__ = [
    "ExtractMapping",
    "apply_extract_mappings",
    "extraction_root",
    "parse_extract_mappings",
]
