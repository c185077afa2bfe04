#!/usr/bin/env python3
"""Tree Renderer - Draw a flat list of vault entries as a `tree`-style listing.

Each entry carries a path of one or more segments. Every segment but the last
is a folder; the last one is the item itself. Folders are merged by name and
sorted, items keep the order they were given in.

Example:
    >>> render_tree("Jordan Doyle (my)", [Entry(("Personal", "SoundCloud"))])
    ['Jordan Doyle (my)', '└── Personal', '    └── SoundCloud']
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE = "│   "
BLANK = "    "


class TreeError(ValueError):
    """Base class for malformed renderer input."""


class EmptyPathError(TreeError):
    """An entry has a path with zero segments."""


class DuplicateSiblingError(TreeError):
    """Two siblings resolve to the same name (strict mode only)."""


@dataclass(frozen=True)
class Entry:
    """A single item to place in the tree."""

    path: Tuple[str, ...]
    details: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any sequence, store tuples so entries stay hashable
        object.__setattr__(self, "path", tuple(self.path))
        object.__setattr__(self, "details", tuple(self.details))

    @property
    def name(self) -> str:
        return self.path[-1]


@dataclass
class TreeNode:
    """A folder or item in the rendered tree."""

    name: str
    leaf: bool = False
    details: Tuple[str, ...] = ()
    folders: Dict[str, "TreeNode"] = field(default_factory=dict)
    leaves: List["TreeNode"] = field(default_factory=list)

    @property
    def children(self) -> List["TreeNode"]:
        """Folders first, sorted by name, then items in insertion order."""
        folders = sorted(self.folders.values(), key=lambda n: (n.name.lower(), n.name))
        return folders + self.leaves

    def folder(self, name: str, strict: bool = False) -> "TreeNode":
        """Get or create the child folder called name."""
        if strict and any(leaf.name == name for leaf in self.leaves):
            raise DuplicateSiblingError(f"Folder '{name}' collides with an item under '{self.name}'")

        node = self.folders.get(name)
        if node is None:
            node = TreeNode(name)
            self.folders[name] = node
        return node

    def add_leaf(self, name: str, details: Tuple[str, ...] = (), strict: bool = False) -> "TreeNode":
        if strict and (name in self.folders or any(leaf.name == name for leaf in self.leaves)):
            raise DuplicateSiblingError(f"Item '{name}' already exists under '{self.name}'")

        node = TreeNode(name, leaf=True, details=details)
        self.leaves.append(node)
        return node


def build_tree(label: str, entries: Iterable[Entry], strict: bool = False) -> TreeNode:
    """Build the folder hierarchy for entries under a root called label.

    Args:
        label: Root label, printed unprefixed (e.g. the account name)
        entries: Items to insert, each with at least one path segment
        strict: Reject duplicate sibling names instead of merging folders
            and keeping same-named items side by side

    Raises:
        EmptyPathError: If any entry has an empty path
        DuplicateSiblingError: If strict and two siblings share a name

    """
    entries = list(entries)

    # Validate everything up front so a bad entry never yields a partial tree
    for index, entry in enumerate(entries):
        if not entry.path:
            raise EmptyPathError(f"Entry #{index} has an empty path")

    root = TreeNode(label)
    for entry in entries:
        node = root
        for segment in entry.path[:-1]:
            node = node.folder(segment, strict=strict)
        node.add_leaf(entry.path[-1], entry.details, strict=strict)

    return root


def render_lines(root: TreeNode) -> List[str]:
    """Render a built tree into terminal lines, root first."""
    lines = [root.name]

    def render_children(node, prefix):
        children = node.children
        for i, child in enumerate(children):
            is_last = i == len(children) - 1
            connector = LAST_BRANCH if is_last else BRANCH
            lines.append(f"{prefix}{connector}{child.name}")

            extension = BLANK if is_last else PIPE
            for detail in child.details:
                lines.append(f"{prefix}{extension}{detail}")

            if not child.leaf:
                render_children(child, prefix + extension)

    render_children(root, "")
    return lines


def render_tree(label: str, entries: Iterable[Entry], strict: bool = False) -> List[str]:
    """Build and render entries in one step. Pure: performs no I/O."""
    return render_lines(build_tree(label, entries, strict=strict))
