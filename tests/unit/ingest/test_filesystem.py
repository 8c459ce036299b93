"""Tests for LocalFileSystem scanning and reads."""

from __future__ import annotations

import os

import pytest

from docquarry.errors import StorageError
from docquarry.ingest.filesystem import FileSystem, LocalFileSystem, SnapshotFileSystem


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.md").write_text("# A\n", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.md").write_text("# B\nbody\n", encoding="utf-8")
    (tmp_path / "sub" / "deeper").mkdir()
    (tmp_path / "sub" / "deeper" / "c.md").write_text("c", encoding="utf-8")
    return tmp_path


def test_satisfies_protocols():
    fs = LocalFileSystem()
    assert isinstance(fs, FileSystem)
    assert isinstance(fs, SnapshotFileSystem)


def test_scan_returns_sorted_absolute_paths(tree):
    entries = LocalFileSystem().scan_directory(str(tree), max_depth=10)
    assert [e.path for e in entries] == [
        str(tree / "a.md"),
        str(tree / "sub" / "b.md"),
        str(tree / "sub" / "deeper" / "c.md"),
    ]
    assert all(os.path.isabs(e.path) for e in entries)
    assert entries[1].size == len("# B\nbody\n")


def test_scan_respects_max_depth(tree):
    entries = LocalFileSystem().scan_directory(str(tree), max_depth=1)
    assert [os.path.basename(e.path) for e in entries] == ["a.md", "b.md"]

    entries = LocalFileSystem().scan_directory(str(tree), max_depth=0)
    assert [os.path.basename(e.path) for e in entries] == ["a.md"]


def test_list_files_includes_mtime(tree):
    snapshots = LocalFileSystem().list_files(str(tree), max_depth=10)
    assert all(s.mtime > 0 for s in snapshots)


def test_symlinked_directories_are_not_followed(tree, tmp_path_factory):
    outside = tmp_path_factory.mktemp("outside")
    (outside / "x.md").write_text("x", encoding="utf-8")
    try:
        os.symlink(outside, tree / "link", target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    names = [os.path.basename(e.path) for e in LocalFileSystem().scan_directory(str(tree), max_depth=10)]
    assert "x.md" not in names


def test_scan_missing_root_raises(tmp_path):
    with pytest.raises(StorageError):
        LocalFileSystem().scan_directory(str(tmp_path / "missing"), max_depth=3)


def test_read_file(tree):
    assert LocalFileSystem().read_file(str(tree / "sub" / "b.md")) == "# B\nbody\n"


def test_read_file_replaces_invalid_utf8(tmp_path):
    path = tmp_path / "bad.md"
    path.write_bytes(b"ok \xff end")
    assert LocalFileSystem().read_file(str(path)) == "ok \ufffd end"


def test_read_missing_file_raises_storage_error(tmp_path):
    with pytest.raises(StorageError) as exc_info:
        LocalFileSystem().read_file(str(tmp_path / "nope.md"))
    assert exc_info.value.code == "STORAGE_ERROR"
