"""Source directory walking for recursive directory adds."""

from __future__ import annotations

from pathlib import Path

from wktarchive.core.errors import SourcePathError

from .types import SourceItem


def walk_source_directory(root: Path | str, target: str) -> list[SourceItem]:
    """Map every file and empty directory under root to an archive path.

    Depth-first, children sorted by name. Empty directories map to
    '<target><rel>/'; an empty root maps to the target directory itself.

    Raises:
        SourcePathError: If an entry is neither a regular file nor a directory.
    """
    root_path = Path(root)
    target_dir = target if target.endswith("/") else f"{target}/"
    items: list[SourceItem] = []

    def _walk(directory: Path, rel_prefix: str) -> None:
        for child in sorted(directory.iterdir(), key=lambda p: p.name):
            rel = f"{rel_prefix}{child.name}"
            if child.is_dir():
                if any(child.iterdir()):
                    _walk(child, f"{rel}/")
                else:
                    items.append(SourceItem(archive_path=f"{target_dir}{rel}/", source_path=None))
            elif child.is_file():
                items.append(SourceItem(archive_path=f"{target_dir}{rel}", source_path=str(child)))
            else:
                raise SourcePathError(
                    f"Unsupported source entry (not a file or directory): {child}",
                    operation="add",
                )

    _walk(root_path, "")
    if not items:
        items.append(SourceItem(archive_path=target_dir, source_path=None))
    return items
