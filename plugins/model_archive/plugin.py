"""Model archive plugin - read and update zip archives of a project.

Entry points:
- get_contents_of_archive_files: entry trees of one or more archives
- save_contents_of_archive_files: apply add/remove batches, return new trees
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from wktarchive.core.config import ConfigResolver
from wktarchive.core.diagnostics import observe_operation
from wktarchive.core.errors import ArchiveError, WktArchiveError
from wktarchive.core.logging import get_logger

from .service import collapse_operations, create_backend
from .service.backends import ArchiveBackend
from .service.types import ResultTree

log = get_logger(__name__)

COMPONENT = "model_archive"


def resolve_archive_path(archive_file: str | Path, project_dir: str | Path | None) -> Path:
    """Absolute archive path; relative paths resolve against project_dir."""
    path = Path(archive_file).expanduser()
    if path.is_absolute() or project_dir is None:
        return path
    return Path(project_dir).expanduser() / path


def _annotate(e: WktArchiveError, archive: Path) -> None:
    if isinstance(e, ArchiveError) and e.archive_file is None:
        e.archive_file = str(archive)


class ModelArchivePlugin:
    """Archive facade.

    Selects the configured backend, collapses each archive's operation batch
    and processes archives one after another.
    """

    def __init__(
        self,
        config: dict | None = None,
        *,
        resolver: ConfigResolver | None = None,
        backend: ArchiveBackend | None = None,
    ) -> None:
        """Initialize plugin.

        Args:
            config: Optional plugin configuration ({"backend": ...} overrides
                archive.backend)
            resolver: Config resolver (defaults to a fresh ConfigResolver)
            backend: Explicit backend instance, mainly for tests
        """
        self.config = config or {}
        self._resolver = resolver or ConfigResolver(cli_args={})
        self._backend = backend

    @property
    def backend_name(self) -> str:
        if self._backend is not None:
            return type(self._backend).__name__
        override = self.config.get("backend")
        if isinstance(override, str) and override:
            return override
        return self._resolver.resolve_backend_name()

    def _create_backend(self, project_dir: str | Path | None) -> ArchiveBackend:
        if self._backend is not None:
            return self._backend
        return create_backend(
            self.backend_name,
            resolver=self._resolver,
            project_dir=Path(project_dir) if project_dir is not None else None,
        )

    async def get_contents_of_archive_files(
        self,
        project_dir: str | Path | None,
        archive_files: Iterable[str] | None,
    ) -> dict[str, ResultTree] | None:
        """Return the entry tree of every archive, keyed as given.

        Returns None when no archive files are given.
        """
        names = list(archive_files or [])
        if not names:
            return None

        backend = self._create_backend(project_dir)
        contents: dict[str, ResultTree] = {}
        for name in names:
            archive = resolve_archive_path(name, project_dir)
            base = {"archive_file": str(archive), "backend": self.backend_name}
            try:
                with observe_operation(component=COMPONENT, operation="archive.read", base=base) as summary:
                    tree = await backend.get_entry_tree(archive)
                    summary["top_level_entries"] = len(tree)
            except WktArchiveError as e:
                _annotate(e, archive)
                raise
            except Exception as e:
                raise ArchiveError(
                    f"Failed to read archive file {archive}: {e}", archive_file=str(archive)
                ) from e
            contents[name] = tree
        return contents

    async def save_contents_of_archive_files(
        self,
        project_dir: str | Path | None,
        updates: Mapping[str, Iterable[Any]] | None,
    ) -> dict[str, ResultTree]:
        """Apply operation batches and return the new tree of each updated archive.

        The first failing archive aborts the call; later archives are not touched.
        """
        if not updates:
            return {}

        backend = self._create_backend(project_dir)
        contents: dict[str, ResultTree] = {}
        for name, raw_operations in updates.items():
            archive = resolve_archive_path(name, project_dir)
            try:
                operations = collapse_operations(raw_operations or [])
                if not operations:
                    log.debug(f"No operations for archive file {archive}")
                    continue

                base = {
                    "archive_file": str(archive),
                    "backend": self.backend_name,
                    "operations_count": len(operations),
                }
                with observe_operation(component=COMPONENT, operation="archive.update", base=base) as summary:
                    log.debug(f"saving archive file {archive}")
                    await backend.apply_operations(archive, operations)
                    tree = await backend.get_entry_tree(archive)
                    summary["top_level_entries"] = len(tree)
            except WktArchiveError as e:
                _annotate(e, archive)
                raise
            except Exception as e:
                raise ArchiveError(
                    f"Failed to save archive file {archive}: {e}", archive_file=str(archive)
                ) from e

            log.info(f"Saved archive file {archive} ({len(operations)} operations)")
            contents[name] = tree
        return contents
