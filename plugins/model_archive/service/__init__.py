"""Archive mutation service for model_archive."""

from .backends import create_backend
from .collapse import collapse_operations
from .tree import build_tree, flatten_leaves, remove_path, to_result_tree
from .types import ArchiveEntry, ArchiveOperation, BackendType, Branch, Leaf

__all__ = [
    "ArchiveEntry",
    "ArchiveOperation",
    "BackendType",
    "Branch",
    "Leaf",
    "build_tree",
    "collapse_operations",
    "create_backend",
    "flatten_leaves",
    "remove_path",
    "to_result_tree",
]
