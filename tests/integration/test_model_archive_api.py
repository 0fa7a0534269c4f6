"""Integration tests for the archive HTTP endpoints."""

from __future__ import annotations

import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient
from plugins.model_archive.api import create_app
from plugins.model_archive.plugin import ModelArchivePlugin
from plugins.model_archive.service.backends import InMemoryBackend
from plugins.model_archive.service.types import ArchiveEntry, ArchiveOperation

from wktarchive.core.errors import WriteError


class _FailingWriteBackend:
    async def list_entries(self, archive: Path) -> list[ArchiveEntry]:
        return []

    async def apply_operations(self, archive: Path, operations: Sequence[ArchiveOperation]) -> None:
        raise WriteError(
            "Failed to replace archive",
            original_file=str(archive),
            new_file=str(archive) + ".new",
        )

    async def get_entry_tree(self, archive: Path) -> dict[str, Any]:
        return {}


def _client(config_resolver: Any, plugin: ModelArchivePlugin | None = None) -> TestClient:
    return TestClient(create_app(config_resolver=config_resolver, plugin=plugin))


def test_contents_returns_trees(tmp_path: Path, make_zip: Any, config_resolver: Any) -> None:
    make_zip({"wlsdeploy/applications/todo.war": b"w", "wlsdeploy/config/": None})
    client = _client(config_resolver)

    r = client.post(
        "/api/archive/contents",
        json={"project_dir": str(tmp_path), "archive_files": ["app.zip"]},
    )

    assert r.status_code == 200
    assert r.json() == {
        "contents": {
            "app.zip": {"wlsdeploy": {"applications": {"todo.war": ""}, "config": {}}}
        }
    }


def test_contents_without_archive_files_is_null(tmp_path: Path, config_resolver: Any) -> None:
    r = _client(config_resolver).post("/api/archive/contents", json={"project_dir": str(tmp_path)})

    assert r.status_code == 200
    assert r.json() == {"contents": None}


def test_save_applies_operations(
    tmp_path: Path, make_zip: Any, read_zip: Any, config_resolver: Any
) -> None:
    archive = make_zip({"wlsdeploy/applications/old.war": b"old"})
    src = tmp_path / "new.war"
    src.write_bytes(b"new")
    client = _client(config_resolver)

    r = client.post(
        "/api/archive/save",
        json={
            "project_dir": str(tmp_path),
            "updates": {
                "app.zip": [
                    {"op": "remove", "path": "wlsdeploy/applications/old.war"},
                    {"op": "add", "path": "wlsdeploy/applications/new.war", "filePath": str(src)},
                ]
            },
        },
    )

    assert r.status_code == 200
    assert r.json() == {"contents": {"app.zip": {"wlsdeploy": {"applications": {"new.war": ""}}}}}
    assert read_zip(archive) == {"wlsdeploy/applications/new.war": b"new"}


def test_save_unknown_operation_is_400(tmp_path: Path, make_zip: Any, config_resolver: Any) -> None:
    make_zip({"a.txt": b"a"})

    r = _client(config_resolver).post(
        "/api/archive/save",
        json={"project_dir": str(tmp_path), "updates": {"app.zip": [{"op": "rename", "path": "a.txt"}]}},
    )

    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "UnknownOperationError"


def test_save_missing_source_is_400(tmp_path: Path, make_zip: Any, config_resolver: Any) -> None:
    make_zip({"a.txt": b"a"})

    r = _client(config_resolver).post(
        "/api/archive/save",
        json={
            "project_dir": str(tmp_path),
            "updates": {
                "app.zip": [{"op": "add", "path": "b.txt", "filePath": str(tmp_path / "nope")}]
            },
        },
    )

    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "SourcePathError"


def test_malformed_body_is_400(config_resolver: Any) -> None:
    r = _client(config_resolver).post("/api/archive/contents", json={"archive_files": ["a.zip"]})

    assert r.status_code == 400
    assert isinstance(r.json()["detail"], list)


def test_unreadable_archive_is_422(tmp_path: Path, config_resolver: Any) -> None:
    (tmp_path / "bad.zip").write_bytes(b"not a zip")

    r = _client(config_resolver).post(
        "/api/archive/contents",
        json={"project_dir": str(tmp_path), "archive_files": ["bad.zip"]},
    )

    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "ArchiveReadError"


def test_write_failure_is_500(tmp_path: Path, config_resolver: Any) -> None:
    plugin = ModelArchivePlugin(backend=_FailingWriteBackend())

    r = _client(config_resolver, plugin).post(
        "/api/archive/save",
        json={"project_dir": str(tmp_path), "updates": {"app.zip": [{"op": "remove", "path": "x"}]}},
    )

    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "WriteError"


def test_explicit_plugin_is_used(tmp_path: Path, make_zip: Any, config_resolver: Any) -> None:
    make_zip({"x/": None})
    plugin = ModelArchivePlugin(backend=InMemoryBackend())

    r = _client(config_resolver, plugin).post(
        "/api/archive/contents",
        json={"project_dir": str(tmp_path), "archive_files": ["app.zip"]},
    )

    assert r.status_code == 200
    assert r.json()["contents"] == {"app.zip": {"x": {}}}
    with zipfile.ZipFile(tmp_path / "app.zip") as zf:
        assert zf.namelist() == ["x/"]
