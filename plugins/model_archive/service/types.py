"""Archive mutation types for model_archive.

Entry paths always use forward slashes; a trailing slash marks a directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

from wktarchive.core.errors import InvalidOperationError, UnknownOperationError


class BackendType(StrEnum):
    IN_MEMORY = "in_memory"
    STREAMING = "streaming"
    HELPER = "helper"


class OpName(StrEnum):
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class ArchiveOperation:
    op: OpName
    path: str
    file_path: str | None = None

    @property
    def is_dir_path(self) -> bool:
        return self.path.endswith("/")

    @classmethod
    def from_dict(cls, raw: Any) -> ArchiveOperation:
        """Parse a wire operation: {"op": ..., "path": ..., "filePath": ...}."""
        if isinstance(raw, ArchiveOperation):
            return raw
        if not isinstance(raw, dict):
            raise InvalidOperationError(f"Operation must be an object, got {type(raw).__name__}")

        op_raw = raw.get("op")
        path = raw.get("path")
        file_path = raw.get("filePath")

        try:
            op = OpName(str(op_raw))
        except ValueError:
            raise UnknownOperationError(
                f"Unknown archive operation: {op_raw!r}",
                operation=str(op_raw),
                suggestion="Use 'add' or 'remove'",
            ) from None

        if not isinstance(path, str) or not path:
            raise InvalidOperationError(
                f"Archive operation '{op}' requires a non-empty path", operation=op.value
            )
        if file_path is not None and not isinstance(file_path, str):
            raise InvalidOperationError(
                f"filePath of '{path}' must be a string", operation=op.value
            )
        if op == OpName.REMOVE and file_path:
            raise InvalidOperationError(
                f"Remove operation for '{path}' must not carry a filePath", operation=op.value
            )

        return cls(op=op, path=path, file_path=file_path or None)

    def to_dict(self) -> dict[str, str]:
        out = {"op": self.op.value, "path": self.path}
        if self.file_path is not None:
            out["filePath"] = self.file_path
        return out


@dataclass(frozen=True)
class ArchiveEntry:
    path: str
    is_dir: bool


@dataclass(frozen=True)
class SourceItem:
    """One leaf of a source directory walk, mapped to its archive path."""

    archive_path: str
    source_path: str | None  # None for empty directory entries

    @property
    def is_dir(self) -> bool:
        return self.archive_path.endswith("/")


@dataclass
class Leaf:
    is_dir: bool


@dataclass
class Branch:
    children: dict[str, TreeNode] = field(default_factory=dict)


TreeNode: TypeAlias = Leaf | Branch

ResultTree: TypeAlias = dict[str, Any]
