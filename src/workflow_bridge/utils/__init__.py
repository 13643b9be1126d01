"""Utility exports for filesystem and hashing helpers."""

from workflow_bridge.utils.fs import (
    atomic_write,
    copy_file,
    copy_tree,
    is_lexically_within,
    list_files_recursively,
    temp_directory,
    write_json,
)
from workflow_bridge.utils.hashing import labeled_digest, sha256_bytes, sha256_file

__all__ = [
    "atomic_write",
    "copy_file",
    "copy_tree",
    "is_lexically_within",
    "labeled_digest",
    "list_files_recursively",
    "sha256_bytes",
    "sha256_file",
    "temp_directory",
    "write_json",
]
