"""
workflow-bridge — bundle schema and sanitizer

File: src/workflow_bridge/contract/schema.py

Purpose
- Define the bundle's JSON shapes (outputs map, metadata record).
- Parse untrusted JSON text into objects with labeled errors.
- Enforce output key/value well-formedness under a sanitize mode.
- Validate metadata structure in a fixed order, failing on the first violation.

Functional requirements
- Reading a bundle always validates outputs in strict mode, whatever mode the
  producer used.
- ``validate_meta`` never aggregates issues; the first offending field wins.
"""

from __future__ import annotations

import enum
import json
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Final, NotRequired, TypeAlias, TypedDict, cast

from workflow_bridge.constants import (
    BRIDGE_SCHEMA_VERSION,
    OUTPUT_KEY_PATTERN,
    REQUIRED_META_FIELDS,
    REQUIRED_META_STRING_FIELDS,
)
from workflow_bridge.errors import BundleFormatError, MetaValidationError

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
OutputsMap: TypeAlias = dict[str, JSONValue]

_SCALAR_TYPES: Final[tuple[type, ...]] = (str, int, float, bool)


class SanitizeMode(enum.Enum):
    """How strictly producer outputs are checked."""

    STRICT = "strict"
    NONE = "none"


class BridgeMeta(TypedDict):
    """Provenance record stored as ``bridge/meta.json``.

    Arbitrary extra keys supplied by the producer are carried alongside the
    declared fields.
    """

    schema_version: int
    repository: str
    workflow_name: str
    workflow_run_id: str
    workflow_run_attempt: str
    event_name: str
    head_sha: str
    created_at: str
    pr_number: NotRequired[int | float]
    producer_job: NotRequired[str]
    producer_step: NotRequired[str]
    event: NotRequired[dict[str, JSONValue]]


def parse_json_object(raw: str | bytes, label: str) -> dict[str, JSONValue]:
    """Parse ``raw`` as a JSON object, naming ``label`` in any error.

    Bytes must be UTF-8. Non-finite numbers (``NaN``, ``1e400``) are rejected.
    """

    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        parsed: object = json.loads(
            text, parse_constant=_reject_constant, parse_float=_parse_finite_float
        )
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        raise BundleFormatError(f"{label} must be valid JSON") from exc

    if not isinstance(parsed, dict):
        raise BundleFormatError(f"{label} must be a JSON object")
    return cast("dict[str, JSONValue]", parsed)


def is_scalar(value: object) -> bool:
    """Return ``True`` for JSON scalars: string, number, boolean or null."""

    if value is None:
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, _SCALAR_TYPES)


def coerce_sanitize_mode(mode: SanitizeMode | str) -> SanitizeMode:
    if isinstance(mode, SanitizeMode):
        return mode
    try:
        return SanitizeMode(str(mode).strip())
    except ValueError as exc:
        raise BundleFormatError(f"Invalid sanitize mode: {mode}") from exc


def normalize_outputs(
    outputs: Mapping[str, object],
    mode: SanitizeMode | str = SanitizeMode.STRICT,
) -> OutputsMap:
    """Return a copy of ``outputs`` checked according to ``mode``.

    Strict mode rejects keys that are not identifiers and values that are not
    scalars (empty objects and arrays included). ``none`` passes everything
    through unchanged. Insertion order is preserved.
    """

    resolved_mode = coerce_sanitize_mode(mode)
    normalized: OutputsMap = {}
    for key, value in outputs.items():
        if resolved_mode is SanitizeMode.STRICT:
            if not isinstance(key, str) or OUTPUT_KEY_PATTERN.fullmatch(key) is None:
                raise BundleFormatError(f"Invalid output key: {key}")
            if not is_scalar(value):
                raise BundleFormatError(f"Output {key} must be a scalar value")
        normalized[key] = cast("JSONValue", value)
    return normalized


def validate_meta(meta: Mapping[str, object]) -> BridgeMeta:
    """Check ``meta`` against the bundle metadata contract and return it typed.

    Order: presence, schema version, required strings, optional fields.
    """

    for field in REQUIRED_META_FIELDS:
        if field not in meta:
            raise MetaValidationError(f"Missing required meta field: {field}", field=field)

    version = meta["schema_version"]
    if isinstance(version, bool) or version != BRIDGE_SCHEMA_VERSION:
        raise MetaValidationError(
            f"Unsupported schema_version: {stringify_scalar(version)}",
            field="schema_version",
        )

    for field in REQUIRED_META_STRING_FIELDS:
        value = meta[field]
        if not isinstance(value, str) or not value:
            raise MetaValidationError(f"Invalid meta field: {field}", field=field)

    if "pr_number" in meta:
        pr_number = meta["pr_number"]
        if isinstance(pr_number, bool) or not isinstance(pr_number, (int, float)):
            raise MetaValidationError(
                "meta.pr_number must be a number when provided", field="pr_number"
            )

    if "event" in meta and not isinstance(meta["event"], dict):
        raise MetaValidationError("meta.event must be an object when provided", field="event")

    return cast("BridgeMeta", meta)


def stringify_scalar(value: object) -> str:
    """Render a JSON value the way workflow outputs carry it.

    ``None`` becomes ``"null"``, booleans lower-case, floats use the shortest
    round-trip digits in the positional or exponent form JavaScript numbers
    print with (``5.0`` -> ``5``, ``1e21`` -> ``1e+21``, ``1.5e-7`` -> ``1.5e-7``).
    """

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value):
        return _format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    _, digit_tuple, raw_exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(digit) for digit in digit_tuple).rstrip("0")
    exponent = int(raw_exponent) + len(digit_tuple) - len(digits)
    # Decimal point position relative to the first significant digit.
    point = exponent + len(digits)

    if len(digits) <= point <= 21:
        rendered = digits + "0" * (point - len(digits))
    elif 0 < point <= 21:
        rendered = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        rendered = "0." + "0" * -point + digits
    else:
        power = point - 1
        mantissa = digits if len(digits) == 1 else f"{digits[0]}.{digits[1:]}"
        exponent_sign = "+" if power > 0 else "-"
        rendered = f"{mantissa}e{exponent_sign}{abs(power)}"
    return sign + rendered


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-standard JSON constant {name}")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {text}")
    return value


__all__ = [
    "BridgeMeta",
    "JSONScalar",
    "JSONValue",
    "OutputsMap",
    "SanitizeMode",
    "coerce_sanitize_mode",
    "is_scalar",
    "normalize_outputs",
    "parse_json_object",
    "stringify_scalar",
    "validate_meta",
]
