"""
workflow-bridge — filesystem utilities

File: src/workflow_bridge/utils/fs.py

Purpose
- Atomic JSON/text writes for bundle documents.
- Verbatim file and tree copies for bundle ``files/`` staging and restore.
- Scratch directories that are removed on exit, including on failure.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import json
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "copy_file",
    "copy_tree",
    "is_lexically_within",
    "list_files_recursively",
    "temp_directory",
    "write_json",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """Write ``data`` to a sibling temp file, then move it over ``path`` with ``os.replace``.

    The parent directory must already exist.
    """

    target = Path(path)
    parent = target.parent.resolve(strict=True)
    payload = data if isinstance(data, bytes) else data.encode(encoding)

    fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, target)
    except Exception:
        with contextlib.suppress(OSError):
            os.unlink(temp_name)
        raise


def write_json(path: PathLike, payload: object) -> None:
    """Write ``payload`` as pretty-printed JSON (two-space indent), preserving key order."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    rendered = json.dumps(payload, indent=2, ensure_ascii=False, allow_nan=False)
    atomic_write(target, rendered, encoding="utf-8")


def copy_file(source: PathLike, destination: PathLike) -> Path:
    """Copy one regular file, creating parent directories of ``destination``.

    A missing source raises the underlying ``FileNotFoundError``.
    """

    target = Path(destination)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(Path(source), target)
    return target


def copy_tree(source: PathLike, destination: PathLike) -> None:
    """Recursively copy ``source`` into ``destination``, overwriting collisions."""

    shutil.copytree(Path(source), Path(destination), dirs_exist_ok=True)


def list_files_recursively(root: PathLike) -> list[Path]:
    """Return regular files under ``root`` in deterministic POSIX path order."""

    base = Path(root)
    files: list[Path] = []
    for current_dir, dir_names, file_names in os.walk(base, topdown=True, followlinks=False):
        dir_names.sort()
        current_path = Path(current_dir)
        for file_name in sorted(file_names):
            candidate = current_path / file_name
            if candidate.is_file() and not candidate.is_symlink():
                files.append(candidate)
    files.sort(key=lambda item: item.relative_to(base).as_posix())
    return files


def is_lexically_within(candidate: PurePath | str) -> bool:
    """Return ``True`` if a relative path stays inside its base after normalization."""

    normalized = os.path.normpath(str(candidate))
    if os.path.isabs(normalized) or PurePath(normalized).anchor:
        return False
    return normalized != ".." and not normalized.startswith(f"..{os.sep}")


@contextmanager
def temp_directory(prefix: str = "bridge-") -> Iterator[Path]:
    """Yield a temporary directory path and clean it up on exit."""

    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)

