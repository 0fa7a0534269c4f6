"""Streaming merge backend.

The original archive is read twice: once for its listing (to plan the merge)
and once to stream surviving entries into a new archive built in a private
temporary directory. The new archive replaces the original only after it has
been written and closed completely.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import zipfile
from collections.abc import Sequence
from pathlib import Path

from wktarchive.core.errors import WktArchiveError, WriteError
from wktarchive.core.logging import get_logger

from ..tree import build_tree, find_node, flatten_leaves, remove_path
from ..types import ArchiveOperation, OpName
from ..walk import walk_source_directory
from .base import ZipBackendBase, clone_zipinfo, read_zip_entries, swap_into_place, validate_source

log = get_logger(__name__)

# archive path -> source file (None for directory entries)
AddSet = dict[str, str | None]
# archive path -> is_dir
CopySet = dict[str, bool]


def plan_merge(
    archive: Path, operations: Sequence[ArchiveOperation]
) -> tuple[CopySet, AddSet]:
    """Split the result into entries copied from the original and entries added."""
    sources = [validate_source(archive, op) for op in operations]
    entries = read_zip_entries(archive)
    tree = build_tree(entries)
    adds: AddSet = {}

    for op, source in zip(operations, sources, strict=True):
        if op.op == OpName.REMOVE:
            remove_path(tree, op.path)
            if op.is_dir_path:
                for name in [n for n in adds if n.startswith(op.path)]:
                    del adds[name]
            else:
                adds.pop(op.path, None)
            continue

        if not op.is_dir_path:
            remove_path(tree, op.path)
            adds[op.path] = str(source)
        elif source is None:
            adds[op.path] = None
        else:
            for item in walk_source_directory(source, op.path):
                adds[item.archive_path] = item.source_path

    copies = {e.path: e.is_dir for e in flatten_leaves(tree) if e.path not in adds}
    # directory markers with children are folded into Branch nodes
    for e in entries:
        if e.is_dir and e.path not in copies and e.path not in adds:
            if find_node(tree, e.path) is not None:
                copies[e.path] = True
    return copies, adds


def write_merged_archive(archive: Path, new_file: Path, copies: CopySet, adds: AddSet) -> int:
    """Write copies (streamed from the original) then adds into new_file.

    Returns the number of entries written.
    """
    written: set[str] = set()
    with zipfile.ZipFile(new_file, "w", compression=zipfile.ZIP_DEFLATED) as dst:
        if copies and archive.exists():
            with zipfile.ZipFile(archive, "r") as src:
                for info in src.infolist():
                    name = info.filename
                    if name not in copies or name in written:
                        continue
                    if copies[name]:
                        dst.mkdir(clone_zipinfo(info))
                    else:
                        with src.open(info) as fin, dst.open(clone_zipinfo(info), "w") as fout:
                            shutil.copyfileobj(fin, fout)
                    written.add(name)

        for name, source in adds.items():
            if name in written:
                continue
            if source is None:
                dst.mkdir(name)
            else:
                dst.write(source, arcname=name)
            written.add(name)
    return len(written)


class StreamingBackend(ZipBackendBase):
    """Rebuild the archive by streaming entries into a new file."""

    def __init__(self, tmp_dir: str | Path | None = None) -> None:
        self._tmp_dir = str(tmp_dir) if tmp_dir else None

    async def apply_operations(self, archive: Path, operations: Sequence[ArchiveOperation]) -> None:
        copies, adds = await asyncio.to_thread(plan_merge, archive, list(operations))
        log.debug(f"streaming: {len(copies)} entries to copy, {len(adds)} entries to add")
        await asyncio.to_thread(self._rewrite, archive, copies, adds)

    def _rewrite(self, archive: Path, copies: CopySet, adds: AddSet) -> None:
        try:
            tmp_dir = Path(tempfile.mkdtemp(prefix=f"{archive.stem}-", dir=self._tmp_dir))
        except OSError as e:
            raise WriteError(
                f"Failed to create temporary directory in {self._tmp_dir or tempfile.gettempdir()}: {e}",
                archive_file=str(archive),
            ) from e
        log.debug(f"Created temporary directory {tmp_dir} for writing updated archive file")

        new_file = tmp_dir / archive.name
        try:
            count = write_merged_archive(archive, new_file, copies, adds)
            log.debug(f"Created updated archive file {new_file} ({count} entries)")
            archive.parent.mkdir(parents=True, exist_ok=True)
            swap_into_place(new_file, archive)
        except WktArchiveError:
            raise
        except Exception as e:
            raise WriteError(
                f"Failed to write updated archive {new_file}: {e}",
                archive_file=str(archive),
                original_file=str(archive),
                new_file=str(new_file),
            ) from e
        finally:
            try:
                shutil.rmtree(tmp_dir)
            except FileNotFoundError:
                pass
            except OSError as cleanup_error:
                log.warning(f"Failed to remove temporary directory {tmp_dir}: {cleanup_error}")
