from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from fileprompt.gitignore import relative_posix
from fileprompt.models import DirectoryNode, FileLeaf, FileRecord, TreeNode

FILE_ICON = "📄"
DIR_ICON = "📁"


def format_size(size: int) -> str:
    """Human readable size: bytes under 1 KiB, otherwise KB to one decimal."""
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.1f} KB"


def display_path(path: str, root: Path) -> str:
    """Workspace-relative POSIX path, or the absolute POSIX path for files outside the workspace."""
    rel = relative_posix(path, root)
    return rel if rel else Path(path).as_posix()


def build_tree(records: Iterable[FileRecord], root: Path) -> DirectoryNode:
    """Build an owned node tree from flat records, creating intermediate directories."""
    scratch: Dict[str, Union[dict, FileRecord]] = {}
    for record in records:
        parts = [p for p in display_path(record.path, root).split("/") if p]
        level = scratch
        for part in parts[:-1]:
            level = level.setdefault(part, {})
        level[parts[-1]] = record
    return _freeze("", scratch)


def _freeze(name: str, scratch: dict) -> DirectoryNode:
    children: Dict[str, TreeNode] = {}
    for child_name, value in scratch.items():
        if isinstance(value, FileRecord):
            children[child_name] = FileLeaf(name=child_name, record=value)
        else:
            children[child_name] = _freeze(child_name, value)
    return DirectoryNode(name=name, children=children)


def prune(node: TreeNode) -> Optional[TreeNode]:
    """Return a copy of `node` without directories that hold no leaves, or None if nothing survives."""
    if isinstance(node, FileLeaf):
        return node
    kept = {}
    for name, child in node.children.items():
        survivor = prune(child)
        if survivor is not None:
            kept[name] = survivor
    if not kept:
        return None
    return DirectoryNode(name=node.name, children=kept)


class TreeRenderer:
    """
    TreeRenderer takes the FileRecords of one job and produces the tree section:
      - single-child directory chains are collapsed into one `a/b/c/` line
      - children are sorted by name at every level
      - leaves carry their size
    """
    def __init__(self, records: Iterable[FileRecord], root: Path):
        self.records = list(records)
        self.root = root

    def render_tree(self) -> str:
        tree = prune(build_tree(self.records, self.root))
        lines: List[str] = []
        if tree is not None:
            self._format_children(tree, prefix="", top_level=True, lines=lines)
        return "\n".join(lines)

    def total_bytes(self) -> int:
        return sum(record.size for record in self.records)

    def _format_children(self, node: DirectoryNode, prefix: str, top_level: bool, lines: List[str]) -> None:
        """Recursively format child nodes with ASCII connectors."""
        kids = sorted(node.children.values(), key=lambda child: child.name)
        count = len(kids)
        for index, child in enumerate(kids):
            label, current = self._collapse(child)
            is_last = (index == count - 1)
            if top_level:
                connector, next_prefix = "", ""
            else:
                connector = prefix + ("└── " if is_last else "├── ")
                next_prefix = prefix + ("    " if is_last else "│   ")

            if isinstance(current, FileLeaf):
                lines.append(f"{connector}{FILE_ICON} {label} ({format_size(current.record.size)})")
            else:
                lines.append(f"{connector}{DIR_ICON} {label}/")
                self._format_children(current, next_prefix, top_level=False, lines=lines)

    @staticmethod
    def _collapse(node: TreeNode) -> Tuple[str, TreeNode]:
        """Follow a chain of directories whose only child is another directory."""
        label, current = node.name, node
        while isinstance(current, DirectoryNode) and len(current.children) == 1:
            only = next(iter(current.children.values()))
            if isinstance(only, FileLeaf):
                break
            label = f"{label}/{only.name}"
            current = only
        return label, current


def render(records: Iterable[FileRecord], root: Path) -> Tuple[str, int]:
    """Return the rendered tree text and the summed size of every leaf."""
    renderer = TreeRenderer(records, root)
    return renderer.render_tree(), renderer.total_bytes()
