"""Integration tests for the wktarchive command line."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from wktarchive import __version__
from wktarchive.__main__ import build_rich_tree, parse_cli_args, run
from wktarchive.core.logging import VerbosityLevel, set_verbosity


@pytest.fixture(autouse=True)
def _reset_verbosity():
    yield
    set_verbosity(VerbosityLevel.NORMAL)


def _console() -> Console:
    return Console(record=True, width=120, color_system=None)


class TestParseCliArgs:
    def test_verbosity_flags(self):
        cli_args, positional = parse_cli_args(["-d", "list", "app.zip"])
        assert cli_args == {"logging": {"level": "debug"}}
        assert positional == ["list", "app.zip"]

    def test_value_options_anywhere(self):
        cli_args, positional = parse_cli_args(
            ["list", "app.zip", "--backend", "streaming", "--helper-script", "/opt/h.sh"]
        )
        assert cli_args == {
            "archive": {"backend": "streaming", "helper": {"script": "/opt/h.sh"}}
        }
        assert positional == ["list", "app.zip"]

    def test_server_options(self):
        cli_args, positional = parse_cli_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
        assert cli_args == {"server": {"host": "0.0.0.0", "port": 9000}}
        assert positional == ["serve"]

    def test_project_dir_and_no_color(self):
        cli_args, _ = parse_cli_args(["--project-dir", "/work", "--no-color", "list", "a.zip"])
        assert cli_args == {"project_dir": "/work", "logging": {"color": False}}


def test_build_rich_tree_sorts_and_marks_dirs():
    console = _console()
    console.print(build_rich_tree("app.zip", {"b.txt": "", "a": {"c.txt": ""}}))
    text = console.export_text()

    assert text.index("a/") < text.index("b.txt")
    assert "c.txt" in text


def test_no_arguments_prints_usage_and_fails():
    console = _console()
    assert asyncio.run(run([], console)) == 1
    assert "Usage:" in console.export_text()


def test_help_and_version():
    console = _console()
    assert asyncio.run(run(["help"], console)) == 0
    assert asyncio.run(run(["version"], console)) == 0
    assert f"wktarchive v{__version__}" in console.export_text()


def test_unknown_command_fails():
    assert asyncio.run(run(["explode"], _console())) == 1


def test_list_prints_tree(tmp_path: Path, make_zip: Any):
    make_zip({"wlsdeploy/applications/todo.war": b"w"})
    console = _console()

    code = asyncio.run(run(["-q", "--project-dir", str(tmp_path), "list", "app.zip"], console))

    assert code == 0
    text = console.export_text()
    assert "app.zip" in text
    assert "applications/" in text
    assert "todo.war" in text


def test_list_without_archives_fails(tmp_path: Path):
    assert asyncio.run(run(["-q", "list"], _console())) == 1


def test_update_applies_operations_file(tmp_path: Path, make_zip: Any, read_zip: Any):
    archive = make_zip({"old.txt": b"old"})
    src = tmp_path / "new.txt"
    src.write_bytes(b"new")
    ops_file = tmp_path / "ops.json"
    ops_file.write_text(
        json.dumps(
            {
                "operations": [
                    {"op": "remove", "path": "old.txt"},
                    {"op": "add", "path": "new.txt", "filePath": str(src)},
                ]
            }
        ),
        encoding="utf-8",
    )
    console = _console()

    code = asyncio.run(
        run(
            ["-q", "--backend", "streaming", "--tmp-dir", str(tmp_path), "update", str(archive), str(ops_file)],
            console,
        )
    )

    assert code == 0
    assert read_zip(archive) == {"new.txt": b"new"}
    assert "new.txt" in console.export_text()


def test_update_with_bad_operations_file_fails(tmp_path: Path, make_zip: Any, capsys):
    archive = make_zip({"a.txt": b"a"})
    ops_file = tmp_path / "ops.json"
    ops_file.write_text("{not json", encoding="utf-8")

    code = asyncio.run(run(["update", str(archive), str(ops_file)], _console()))

    assert code == 1
    assert "Failed to read operations file" in capsys.readouterr().err


def test_invalid_backend_fails(tmp_path: Path, make_zip: Any, capsys):
    make_zip({"a.txt": b"a"})

    code = asyncio.run(
        run(["--backend", "jszip", "--project-dir", str(tmp_path), "list", "app.zip"], _console())
    )

    assert code == 1
    assert "archive.backend" in capsys.readouterr().err
