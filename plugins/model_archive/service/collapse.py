"""Operation collapsing.

Reduces a batch of add/remove requests to the minimal ordered set that is
safe to apply once.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .types import ArchiveOperation, OpName


def parse_operations(raw_operations: Iterable[Any]) -> list[ArchiveOperation]:
    return [ArchiveOperation.from_dict(raw) for raw in raw_operations]


def collapse_operations(operations: Iterable[ArchiveOperation | dict[str, Any]]) -> list[ArchiveOperation]:
    """Collapse operations: last operation per path wins.

    Paths keep the position of their first occurrence. Every surviving
    directory add is preceded by a remove of the same path so the directory
    is replaced rather than merged.
    """
    last_by_path: dict[str, ArchiveOperation] = {}
    for op in parse_operations(operations):
        last_by_path[op.path] = op

    result: list[ArchiveOperation] = []
    for op in last_by_path.values():
        if op.op == OpName.ADD and op.is_dir_path:
            result.append(ArchiveOperation(op=OpName.REMOVE, path=op.path))
        result.append(op)
    return result
