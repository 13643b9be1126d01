"""
workflow-bridge — unit tests for filesystem utilities

File: tests/unit/utils/test_fs.py

Purpose
- Validate atomic writes, JSON rendering, copies, deterministic listings and
  the lexical containment check used by the bundle path policy.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

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


def test_atomic_write_replaces_without_leftovers(tmp_path: Path) -> None:
    target = tmp_path / "doc.txt"
    atomic_write(target, "first")
    atomic_write(target, b"second")

    assert target.read_bytes() == b"second"
    assert [path.name for path in tmp_path.iterdir()] == ["doc.txt"]


def test_atomic_write_requires_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "doc.txt", "x")


def test_write_json_pretty_prints_and_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b.json"
    write_json(target, {"z": 1, "a": "é"})

    assert target.read_text(encoding="utf-8") == '{\n  "z": 1,\n  "a": "é"\n}'


def test_write_json_rejects_nan(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        write_json(tmp_path / "x.json", {"v": float("nan")})


def test_copy_file_and_tree(tmp_path: Path) -> None:
    source = tmp_path / "src"
    (source / "nested").mkdir(parents=True)
    (source / "nested" / "a.txt").write_text("A", encoding="utf-8")

    copied = copy_file(source / "nested" / "a.txt", tmp_path / "dest" / "deep" / "a.txt")
    assert copied.read_text(encoding="utf-8") == "A"

    tree_target = tmp_path / "tree"
    tree_target.mkdir()
    copy_tree(source, tree_target)
    assert (tree_target / "nested" / "a.txt").is_file()


def test_copy_file_missing_source(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        copy_file(tmp_path / "nope", tmp_path / "out")


def test_list_files_recursively_is_sorted(tmp_path: Path) -> None:
    for rel in ("b.txt", "a/z.txt", "a/b/c.txt", "A.txt"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")

    listed = [path.relative_to(tmp_path).as_posix() for path in list_files_recursively(tmp_path)]
    assert listed == ["A.txt", "a/b/c.txt", "a/z.txt", "b.txt"]


def test_temp_directory_is_removed_on_error() -> None:
    with pytest.raises(RuntimeError), temp_directory(prefix="bridge-test-") as scratch:
        created = scratch
        (scratch / "f").write_text("x", encoding="utf-8")
        raise RuntimeError("fail")
    assert not created.exists()


@pytest.mark.parametrize(
    ("candidate", "expected"),
    [
        ("a/b.txt", True),
        ("./a/../b.txt", True),
        ("..hidden", True),
        ("a/..b/c", True),
        ("..", False),
        ("../x", False),
        ("a/../../x", False),
        ("/etc/passwd", False),
    ],
)
def test_is_lexically_within(candidate: str, expected: bool) -> None:
    assert is_lexically_within(candidate) is expected


def test_hashing_helpers(tmp_path: Path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"abc")
    digest = "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    assert sha256_bytes(b"abc") == digest
    assert sha256_file(target) == digest
    assert labeled_digest(b"abc") == f"sha256:{digest}"


@settings(max_examples=60, deadline=None)
@given(parts=st.lists(st.sampled_from(["a", "b", ".", ".."]), min_size=1, max_size=6))
def test_property_containment_matches_depth_walk(parts: list[str]) -> None:
    depth = 0
    escaped = False
    for part in parts:
        if part == "..":
            depth -= 1
            escaped = escaped or depth < 0
        elif part != ".":
            depth += 1

    assert is_lexically_within("/".join(parts)) is (not escaped)


def test_json_helper_output_parses(tmp_path: Path) -> None:
    target = tmp_path / "x.json"
    write_json(target, [1, {"k": None}])
    assert json.loads(target.read_text(encoding="utf-8")) == [1, {"k": None}]
