"""Bridge contract: schema, path resolver, bundle layout, expectations, extraction."""

from workflow_bridge.contract.bundle import (
    BridgeBundle,
    ProducerContext,
    bridge_dir_for,
    build_bridge_meta,
    parse_and_merge_outputs,
    read_bundle,
    restore_files,
    write_bundle,
)
from workflow_bridge.contract.expectations import ConsumerExpectations, validate_expectations
from workflow_bridge.contract.extract import (
    ExtractMapping,
    apply_extract_mappings,
    extraction_root,
    parse_extract_mappings,
)
from workflow_bridge.contract.paths import (
    UNRESOLVED,
    get_by_path,
    parse_path_list,
    pick_by_paths,
    resolve_path,
)
from workflow_bridge.contract.schema import (
    BridgeMeta,
    JSONScalar,
    JSONValue,
    OutputsMap,
    SanitizeMode,
    is_scalar,
    normalize_outputs,
    parse_json_object,
    stringify_scalar,
    validate_meta,
)

__all__ = [
    "UNRESOLVED",
    "BridgeBundle",
    "BridgeMeta",
    "ConsumerExpectations",
    "ExtractMapping",
    "JSONScalar",
    "JSONValue",
    "OutputsMap",
    "ProducerContext",
    "SanitizeMode",
    "apply_extract_mappings",
    "bridge_dir_for",
    "build_bridge_meta",
    "extraction_root",
    "get_by_path",
    "is_scalar",
    "normalize_outputs",
    "parse_and_merge_outputs",
    "parse_extract_mappings",
    "parse_json_object",
    "parse_path_list",
    "pick_by_paths",
    "read_bundle",
    "resolve_path",
    "restore_files",
    "stringify_scalar",
    "validate_expectations",
    "validate_meta",
    "write_bundle",
]
