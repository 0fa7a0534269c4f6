"""Unit tests for recursive source directory walking."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from plugins.model_archive.service.walk import walk_source_directory

from wktarchive.core.errors import SourcePathError


def test_walk_files_and_nested_dirs(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "sub").mkdir(parents=True)
    (src / "a.txt").write_text("a")
    (src / "sub" / "b.txt").write_text("b")

    items = walk_source_directory(src, "libs/")
    assert [i.archive_path for i in items] == ["libs/a.txt", "libs/sub/b.txt"]
    assert items[0].source_path == str(src / "a.txt")
    assert not items[0].is_dir


def test_walk_sorted_children(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    for name in ("c.txt", "a.txt", "b.txt"):
        (src / name).write_text(name)

    items = walk_source_directory(src, "x")
    assert [i.archive_path for i in items] == ["x/a.txt", "x/b.txt", "x/c.txt"]


def test_walk_empty_subdirectory_becomes_directory_entry(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "empty").mkdir(parents=True)
    (src / "f.txt").write_text("f")

    items = walk_source_directory(src, "t/")
    assert [(i.archive_path, i.source_path) for i in items] == [
        ("t/empty/", None),
        ("t/f.txt", str(src / "f.txt")),
    ]
    assert items[0].is_dir


def test_walk_empty_root_is_target_directory(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()

    items = walk_source_directory(src, "wlsdeploy/stores/mystore/")
    assert [i.archive_path for i in items] == ["wlsdeploy/stores/mystore/"]


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires mkfifo")
def test_walk_rejects_special_files(tmp_path: Path) -> None:
    src = tmp_path / "src"
    src.mkdir()
    os.mkfifo(src / "pipe")

    with pytest.raises(SourcePathError):
        walk_source_directory(src, "t/")
