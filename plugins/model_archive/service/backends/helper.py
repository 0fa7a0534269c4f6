"""Out-of-process archive helper backend.

Delegates listing and mutation to the archive helper script:

    <script> wktui update -archive_file <archive> -input_json_file <in> -output_json_file <out>
    <script> wktui list -archive_file <archive> -output_json_file <out>

The input file holds {"operations": [...]} in the wire format. The output
file holds the resulting listing as {"files": {<entry path>: ...}}.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from wktarchive.core.errors import ArchiveReadError, ExternalProcessError
from wktarchive.core.logging import get_logger

from ..tree import build_tree, flatten_leaves, iter_result_paths, to_result_tree
from ..types import ArchiveEntry, ArchiveOperation, ResultTree

log = get_logger(__name__)

SCRIPT_BASENAME = "archiveHelper"
SUCCESS_EXIT_CODES = frozenset({0, 1})  # 1: completed with warnings


def default_script_name() -> str:
    return f"{SCRIPT_BASENAME}.cmd" if os.name == "nt" else f"{SCRIPT_BASENAME}.sh"


def parse_helper_output(raw: Any) -> ResultTree:
    """Convert helper output JSON to a result tree.

    Accepts {"files": {path: ...}} or {"files": [path, ...]}; a document
    without "files" is taken as an already nested result tree.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"expected a JSON object, got {type(raw).__name__}")

    if "files" not in raw:
        return raw

    files = raw["files"]
    if isinstance(files, dict):
        names = [str(k) for k in files]
    elif isinstance(files, list):
        names = [str(f["path"]) if isinstance(f, dict) else str(f) for f in files]
    else:
        raise ValueError(f"'files' must be an object or a list, got {type(files).__name__}")
    return to_result_tree(build_tree(names))


class HelperBackend:
    """Run the archive helper tool for every read and update."""

    def __init__(
        self,
        script: str | None = None,
        java_home: str | None = None,
        project_dir: Path | None = None,
    ) -> None:
        self._script = script
        self._java_home = java_home or os.environ.get("JAVA_HOME")
        self._project_dir = project_dir
        self._update_results: dict[str, ResultTree] = {}

    def _resolve_script(self) -> str:
        if self._script:
            return self._script
        found = shutil.which(default_script_name())
        if found is None:
            raise ExternalProcessError(
                f"Archive helper script {default_script_name()} not found",
                suggestion="Set archive.helper.script or add the helper to PATH",
            )
        return found

    def _work_dir(self, archive: Path) -> Path:
        if archive.parent.is_dir():
            return archive.parent
        if self._project_dir is not None:
            return self._project_dir
        return Path.cwd()

    def _temp_file(self, archive: Path, kind: str) -> Path:
        return self._work_dir(archive) / f".{archive.stem}-{uuid.uuid4().hex}-{kind}.json"

    async def _run(self, archive: Path, command: str, args: list[str]) -> None:
        script = self._resolve_script()
        cmd = [script, "wktui", command, *args]

        env = dict(os.environ)
        if self._java_home:
            env["JAVA_HOME"] = self._java_home

        if log.is_debug_enabled():
            log.debug(f"Invoking {script} with args {cmd[1:]} (JAVA_HOME={self._java_home})")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise ExternalProcessError(
                f"Failed to run archive helper {script}: {e}",
                archive_file=str(archive),
                operation=command,
            ) from e

        for line in stdout.decode(errors="replace").splitlines():
            log.verbose(line)

        if proc.returncode not in SUCCESS_EXIT_CODES:
            error_msg = stderr.decode(errors="replace").strip() if stderr else ""
            raise ExternalProcessError(
                f"Archive helper {command} failed with exit code {proc.returncode}"
                + (f": {error_msg}" if error_msg else ""),
                archive_file=str(archive),
                operation=command,
                exit_code=proc.returncode,
            )
        if proc.returncode == 1:
            log.warning(f"Archive helper {command} completed with warnings for {archive}")

    def _read_output(self, archive: Path, output_file: Path, command: str) -> ResultTree:
        if not output_file.exists():
            return {}
        try:
            raw = json.loads(output_file.read_text(encoding="utf-8"))
            return parse_helper_output(raw)
        except ValueError as e:
            raise ExternalProcessError(
                f"Failed to read archive helper output {output_file}: {e}",
                archive_file=str(archive),
                operation=command,
            ) from e

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Failed to remove temporary file {path}: {e}")

    async def apply_operations(self, archive: Path, operations: Sequence[ArchiveOperation]) -> None:
        self._update_results.pop(str(archive), None)
        input_file = self._temp_file(archive, "input")
        output_file = self._temp_file(archive, "output")
        payload = json.dumps({"operations": [op.to_dict() for op in operations]}, indent=2)

        try:
            await asyncio.to_thread(input_file.write_text, payload, encoding="utf-8")
            await self._run(
                archive,
                "update",
                [
                    "-archive_file",
                    str(archive),
                    "-input_json_file",
                    str(input_file),
                    "-output_json_file",
                    str(output_file),
                ],
            )
            tree = await asyncio.to_thread(self._read_output, archive, output_file, "update")
        finally:
            self._remove(input_file)
            self._remove(output_file)

        self._update_results[str(archive)] = tree

    async def _list_tree(self, archive: Path) -> ResultTree:
        if not archive.exists():
            return {}
        if archive.is_dir():
            raise ArchiveReadError(
                f"Archive path is a directory: {archive}", archive_file=str(archive)
            )

        output_file = self._temp_file(archive, "output")
        try:
            await self._run(
                archive,
                "list",
                ["-archive_file", str(archive), "-output_json_file", str(output_file)],
            )
            return await asyncio.to_thread(self._read_output, archive, output_file, "list")
        finally:
            self._remove(output_file)

    async def list_entries(self, archive: Path) -> list[ArchiveEntry]:
        tree = await self._list_tree(archive)
        return flatten_leaves(build_tree(list(iter_result_paths(tree))))

    async def get_entry_tree(self, archive: Path) -> ResultTree:
        cached = self._update_results.pop(str(archive), None)
        if cached is not None:
            return cached
        return await self._list_tree(archive)
