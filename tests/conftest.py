"""Pytest configuration and fixtures."""

import sys
import zipfile
from pathlib import Path

import pytest

# Add repo root and src to path (for 'plugins.*' and 'wktarchive.*' imports)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))
sys.path.insert(0, str(repo_root / "src"))


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep real user config and WKTARCHIVE_* variables out of tests."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in (
        "WKTARCHIVE_ARCHIVE_BACKEND",
        "WKTARCHIVE_ARCHIVE_TMP_DIR",
        "WKTARCHIVE_LOGGING_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_zip(tmp_path):
    """Factory writing a zip archive from {entry name: bytes or None}.

    A name ending with "/" creates a directory entry.
    """

    def _make(entries, name="app.zip"):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry_name, data in entries.items():
                if entry_name.endswith("/"):
                    zf.writestr(entry_name, b"")
                else:
                    zf.writestr(entry_name, data if data is not None else b"")
        return path

    return _make


@pytest.fixture
def read_zip():
    """Return {entry name: bytes} of a zip archive (directories map to b'')."""

    def _read(path):
        with zipfile.ZipFile(path, "r") as zf:
            return {info.filename: zf.read(info) for info in zf.infolist()}

    return _read


@pytest.fixture
def config_resolver(tmp_path):
    """Create ConfigResolver with isolated config files.

    Returns:
        ConfigResolver instance
    """
    from wktarchive.core import ConfigResolver

    return ConfigResolver(
        cli_args={},
        user_config_path=tmp_path / "user.yaml",
        system_config_path=tmp_path / "system.yaml",
    )
