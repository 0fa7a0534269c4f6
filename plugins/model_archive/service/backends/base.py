"""Backend interface and shared zip helpers for model_archive."""

from __future__ import annotations

import asyncio
import errno
import os
import shutil
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from wktarchive.core.errors import ArchiveReadError, SourcePathError, WriteError
from wktarchive.core.logging import get_logger

from ..tree import build_tree, to_result_tree
from ..types import ArchiveEntry, ArchiveOperation, OpName, ResultTree

log = get_logger(__name__)


class ArchiveBackend(Protocol):
    """Strategy that reads and mutates one zip archive at a time."""

    async def list_entries(self, archive: Path) -> list[ArchiveEntry]: ...

    async def apply_operations(
        self, archive: Path, operations: Sequence[ArchiveOperation]
    ) -> None: ...

    async def get_entry_tree(self, archive: Path) -> ResultTree: ...


def read_zip_entries(archive: Path) -> list[ArchiveEntry]:
    """List entries of a zip archive (metadata only).

    A missing archive is an empty archive.

    Raises:
        ArchiveReadError: If the path is a directory or not a valid zip file.
    """
    if not archive.exists():
        return []
    if archive.is_dir():
        raise ArchiveReadError(
            f"Archive path is a directory: {archive}", archive_file=str(archive)
        )
    try:
        with zipfile.ZipFile(archive, "r") as zf:
            return [ArchiveEntry(path=i.filename, is_dir=i.is_dir()) for i in zf.infolist()]
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveReadError(
            f"Failed to read archive {archive}: {e}",
            archive_file=str(archive),
            suggestion="Check that the file is a valid zip archive",
        ) from e


def validate_source(archive: Path, operation: ArchiveOperation) -> Path | None:
    """Check the source of an add operation against its target path.

    Returns the source path, or None for an empty directory add.

    Raises:
        SourcePathError: If the source is missing or its type does not match.
    """
    if operation.op != OpName.ADD:
        return None

    if operation.file_path is None:
        if operation.is_dir_path:
            return None
        raise SourcePathError(
            f"Add of file entry '{operation.path}' requires a filePath",
            archive_file=str(archive),
            operation=operation.op.value,
        )

    source = Path(operation.file_path)
    if not source.exists():
        raise SourcePathError(
            f"Source path for '{operation.path}' does not exist: {source}",
            archive_file=str(archive),
            operation=operation.op.value,
        )
    if operation.is_dir_path and not source.is_dir():
        raise SourcePathError(
            f"Entry '{operation.path}' is a directory but {source} is not",
            archive_file=str(archive),
            operation=operation.op.value,
        )
    if not operation.is_dir_path and not source.is_file():
        raise SourcePathError(
            f"Entry '{operation.path}' is a file but {source} is not",
            archive_file=str(archive),
            operation=operation.op.value,
            suggestion="Use a path ending with '/' to add a directory",
        )
    return source


def clone_zipinfo(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    """Fresh ZipInfo for writing, keeping name, timestamp and attributes."""
    zi = zipfile.ZipInfo(filename=info.filename, date_time=info.date_time)
    zi.compress_type = info.compress_type
    zi.external_attr = info.external_attr
    zi.create_system = info.create_system
    zi.comment = info.comment
    zi.file_size = info.file_size
    zi.CRC = info.CRC  # recomputed by the writer for file entries
    return zi


def swap_into_place(new_file: Path, archive: Path) -> None:
    """Replace archive with new_file.

    Raises:
        WriteError: If the file could not be moved into place.
    """
    try:
        try:
            os.replace(new_file, archive)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            shutil.move(str(new_file), str(archive))
    except OSError as e:
        raise WriteError(
            f"Failed to move {new_file} to {archive}: {e}",
            archive_file=str(archive),
            original_file=str(archive),
            new_file=str(new_file),
        ) from e
    log.debug(f"swapped {new_file} -> {archive}")


class ZipBackendBase:
    """Listing and tree building shared by the in-process backends."""

    async def list_entries(self, archive: Path) -> list[ArchiveEntry]:
        return await asyncio.to_thread(read_zip_entries, archive)

    async def get_entry_tree(self, archive: Path) -> ResultTree:
        return to_result_tree(build_tree(await self.list_entries(archive)))

