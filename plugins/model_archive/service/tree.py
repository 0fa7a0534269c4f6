"""Entry tree construction for archive listings.

The tree is rebuilt for every batch from a flat list of entries:
- intermediate path segments become Branch nodes
- the last segment becomes a Leaf (is_dir when the path ends with '/')
- a directory Leaf that receives children is promoted to a Branch
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .types import ArchiveEntry, Branch, Leaf, ResultTree, TreeNode

ROOT_ENTRY = "/"


def _split(path: str) -> tuple[list[str], bool]:
    is_dir = path.endswith("/")
    return path.rstrip("/").split("/"), is_dir


def _insert(root: Branch, path: str) -> None:
    parts, is_dir = _split(path)
    node = root
    for seg in parts[:-1]:
        child = node.children.get(seg)
        if not isinstance(child, Branch):
            child = Branch()
            node.children[seg] = child
        node = child

    last = parts[-1]
    existing = node.children.get(last)
    if is_dir and isinstance(existing, Branch):
        # explicit directory marker is subsumed by its children
        return
    node.children[last] = Leaf(is_dir=is_dir)


def build_tree(entries: Iterable[ArchiveEntry | str]) -> Branch:
    """Build an entry tree from archive entries or raw entry names."""
    paths = [e.path if isinstance(e, ArchiveEntry) else e for e in entries]
    if len(paths) > 1:
        paths = [p for p in paths if p != ROOT_ENTRY]

    root = Branch()
    for path in paths:
        if path:
            _insert(root, path)
    return root


def flatten_leaves(tree: Branch) -> list[ArchiveEntry]:
    """Return every Leaf as an entry, depth-first in insertion order."""
    out: list[ArchiveEntry] = []

    def _walk(node: Branch, prefix: str) -> None:
        for name, child in node.children.items():
            path = f"{prefix}{name}"
            if isinstance(child, Leaf):
                out.append(ArchiveEntry(path=f"{path}/" if child.is_dir else path, is_dir=child.is_dir))
            else:
                _walk(child, f"{path}/")

    _walk(tree, "")
    return out


def to_result_tree(tree: Branch) -> ResultTree:
    """Convert to the caller-facing nested dict: dirs are dicts, files are ''."""
    out: ResultTree = {}
    for name, child in tree.children.items():
        if not name and isinstance(child, Leaf):
            # root-only "/" entry
            continue
        if isinstance(child, Branch):
            out[name] = to_result_tree(child)
        elif child.is_dir:
            out[name] = {}
        else:
            out[name] = ""
    return out


def iter_result_paths(result: ResultTree, prefix: str = "") -> Iterator[str]:
    """Yield entry paths of a result tree; empty directories end with '/'."""
    for name, child in result.items():
        path = f"{prefix}{name}"
        if isinstance(child, dict):
            if child:
                yield from iter_result_paths(child, f"{path}/")
            else:
                yield f"{path}/"
        else:
            yield path


def _find_parent(tree: Branch, parts: list[str]) -> Branch | None:
    node = tree
    for seg in parts[:-1]:
        child = node.children.get(seg)
        if not isinstance(child, Branch):
            return None
        node = child
    return node


def find_node(tree: Branch, path: str) -> TreeNode | None:
    parts, _is_dir = _split(path)
    parent = _find_parent(tree, parts)
    if parent is None:
        return None
    return parent.children.get(parts[-1])


def remove_path(tree: Branch, path: str) -> bool:
    """Remove a file leaf or a whole directory subtree.

    Returns True when something was removed. Missing paths are a no-op.
    """
    parts, is_dir = _split(path)
    parent = _find_parent(tree, parts)
    if parent is None:
        return False

    node = parent.children.get(parts[-1])
    if node is None:
        return False
    if not is_dir and not (isinstance(node, Leaf) and not node.is_dir):
        return False

    del parent.children[parts[-1]]
    return True
