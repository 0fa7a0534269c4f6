"""In-memory rewrite backend.

Loads every entry of the archive into an ordered mapping, applies the
collapsed operations to the mapping, then serializes a new archive next to
the original and swaps it into place.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from wktarchive.core.errors import WktArchiveError, WriteError
from wktarchive.core.logging import get_logger

from ..types import ArchiveOperation, OpName
from ..walk import walk_source_directory
from .base import ZipBackendBase, clone_zipinfo, read_zip_entries, swap_into_place, validate_source

log = get_logger(__name__)


@dataclass
class _Pending:
    info: zipfile.ZipInfo | None = None  # original entry
    data: bytes | None = None
    source: str | None = None  # file to add from disk


def _load_entries(archive: Path) -> dict[str, _Pending]:
    entries: dict[str, _Pending] = {}
    if not read_zip_entries(archive):
        return entries
    with zipfile.ZipFile(archive, "r") as zf:
        for info in zf.infolist():
            if info.filename in entries:
                continue
            data = None if info.is_dir() else zf.read(info)
            entries[info.filename] = _Pending(info=info, data=data)
    return entries


def _apply(entries: dict[str, _Pending], op: ArchiveOperation, source: Path | None) -> None:
    if op.op == OpName.REMOVE:
        if op.is_dir_path:
            for name in [n for n in entries if n.startswith(op.path)]:
                del entries[name]
        else:
            entries.pop(op.path, None)
        return

    if not op.is_dir_path:
        entries[op.path] = _Pending(source=str(source))
    elif source is None:
        entries[op.path] = _Pending()
    else:
        for item in walk_source_directory(source, op.path):
            entries[item.archive_path] = _Pending(source=item.source_path)


def _write(entries: dict[str, _Pending], new_file: Path) -> None:
    with zipfile.ZipFile(new_file, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, entry in entries.items():
            if entry.source is not None:
                zf.write(entry.source, arcname=name)
            elif name.endswith("/"):
                zf.mkdir(clone_zipinfo(entry.info) if entry.info is not None else name)
            elif entry.info is not None and entry.data is not None:
                zf.writestr(clone_zipinfo(entry.info), entry.data)


class InMemoryBackend(ZipBackendBase):
    """Rewrite the whole archive from memory."""

    async def apply_operations(self, archive: Path, operations: Sequence[ArchiveOperation]) -> None:
        await asyncio.to_thread(self._apply_sync, archive, list(operations))

    def _apply_sync(self, archive: Path, operations: list[ArchiveOperation]) -> None:
        sources = [validate_source(archive, op) for op in operations]

        entries = _load_entries(archive)
        for op, source in zip(operations, sources, strict=True):
            _apply(entries, op, source)
        log.debug(f"in_memory: {len(operations)} operation(s), {len(entries)} entries to write")

        archive.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{archive.stem}-", suffix=".zip", dir=archive.parent)
        os.close(fd)
        new_file = Path(tmp_name)
        try:
            _write(entries, new_file)
            swap_into_place(new_file, archive)
        except Exception as e:
            try:
                new_file.unlink(missing_ok=True)
            except OSError as cleanup_error:
                log.warning(f"Failed to remove temporary file {new_file}: {cleanup_error}")
            if isinstance(e, WktArchiveError):
                raise
            raise WriteError(
                f"Failed to write archive {archive}: {e}",
                archive_file=str(archive),
                original_file=str(archive),
                new_file=str(new_file),
            ) from e
