"""
Workspace Tree - the in-memory model every tool operates on.

A workspace is an ordered tuple of top-level nodes. Nodes are frozen
dataclasses and folders hold their children as tuples, so a tree value
can be shared freely between concurrent readers: every change produces a
new tree and the old one stays intact.
"""

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from pyworkbench.errors import ConflictError, ValidationError


class NodeType(str, Enum):
    """Kinds of workspace node."""
    FILE = "file"
    FOLDER = "folder"


def generate_id() -> str:
    """Generate a fresh, globally unique node id."""
    return f"node_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class WorkspaceNode:
    """
    A file or folder in the workspace.

    - id: opaque and immutable, assigned at creation
    - name: unique among siblings, never empty
    - content: text of a file (None for folders)
    - children: ordered children of a folder (None for files)
    - expanded: UI hint only
    """
    id: str
    name: str
    type: NodeType
    content: str | None = None
    children: tuple["WorkspaceNode", ...] | None = None
    expanded: bool = False

    @property
    def is_file(self) -> bool:
        return self.type == NodeType.FILE

    @property
    def is_folder(self) -> bool:
        return self.type == NodeType.FOLDER

    @property
    def size(self) -> int:
        return len(self.content or "") if self.is_file else 0

    def with_content(self, content: str) -> "WorkspaceNode":
        return replace(self, content=content)

    def with_name(self, name: str) -> "WorkspaceNode":
        return replace(self, name=name)

    def with_children(self, children: tuple["WorkspaceNode", ...]) -> "WorkspaceNode":
        return replace(self, children=children)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (recursively for folders)."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
        }
        if self.is_file:
            result["content"] = self.content or ""
        else:
            result["children"] = [child.to_dict() for child in self.children or ()]
        result["expanded"] = self.expanded
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkspaceNode":
        """Create from a plain dict. Missing ids are generated."""
        try:
            node_type = NodeType(data.get("type", "file"))
        except ValueError as e:
            raise ValidationError(f"Invalid node type: {data.get('type')!r}") from e
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError("Node name must be a non-empty string")
        if node_type == NodeType.FILE:
            return cls(
                id=data.get("id") or generate_id(),
                name=name,
                type=node_type,
                content=data.get("content") or "",
                expanded=bool(data.get("expanded", False)),
            )
        return cls(
            id=data.get("id") or generate_id(),
            name=name,
            type=node_type,
            children=tuple(cls.from_dict(c) for c in data.get("children") or []),
            expanded=bool(data.get("expanded", False)),
        )


# The workspace itself: the ordered top-level sequence.
Tree = tuple[WorkspaceNode, ...]


def new_file(name: str, content: str = "") -> WorkspaceNode:
    return WorkspaceNode(id=generate_id(), name=name, type=NodeType.FILE, content=content)


def new_folder(name: str, children: tuple[WorkspaceNode, ...] = ()) -> WorkspaceNode:
    return WorkspaceNode(id=generate_id(), name=name, type=NodeType.FOLDER, children=tuple(children))


def root_node(tree: Tree) -> WorkspaceNode:
    """
    Build the root pseudo-folder for a tree.

    The root has an empty id and name and is never stored in the tree; its
    children are exactly the top-level sequence.
    """
    return WorkspaceNode(id="", name="", type=NodeType.FOLDER, children=tuple(tree))


def clone_node(node: WorkspaceNode) -> WorkspaceNode:
    """Deep-clone a node, giving it and every descendant a fresh id."""
    if node.is_folder:
        return replace(
            node,
            id=generate_id(),
            children=tuple(clone_node(child) for child in node.children or ()),
        )
    return replace(node, id=generate_id())


def walk(node: WorkspaceNode) -> Iterator[WorkspaceNode]:
    """Yield a node and all of its descendants, depth first."""
    yield node
    for child in node.children or ():
        yield from walk(child)


def collect_ids(tree: Tree) -> set[str]:
    """Every node id present in the tree."""
    return {n.id for top in tree for n in walk(top)}


def flatten_files(tree: Tree, base_path: str = "") -> list[dict[str, str]]:
    """List every file as {"path", "content"}, in tree order."""
    files: list[dict[str, str]] = []
    for node in tree:
        path = f"{base_path}/{node.name}" if base_path else node.name
        if node.is_file:
            files.append({"path": path, "content": node.content or ""})
        elif node.children:
            files.extend(flatten_files(node.children, path))
    return files


def tree_from_dicts(items: list[dict[str, Any]]) -> Tree:
    tree = tuple(WorkspaceNode.from_dict(item) for item in items)
    check_tree(tree)
    return tree


def tree_to_dicts(tree: Tree) -> list[dict[str, Any]]:
    return [node.to_dict() for node in tree]


def check_tree(tree: Tree) -> None:
    """
    Verify the structural invariants of a tree.

    Raises ConflictError on the first violation found: duplicate sibling
    names, duplicate ids (which is how a node appearing as its own
    descendant shows up in a value tree), files carrying children, or
    folders missing their children tuple.
    """
    seen_ids: set[str] = set()

    def check_level(nodes: tuple[WorkspaceNode, ...], where: str) -> None:
        names: set[str] = set()
        for node in nodes:
            if not node.name:
                raise ConflictError(f"Empty node name in {where}")
            if node.name in names:
                raise ConflictError(f"Duplicate name '{node.name}' in {where}")
            names.add(node.name)
            if node.id in seen_ids:
                raise ConflictError(f"Duplicate node id '{node.id}' at {where}/{node.name}")
            seen_ids.add(node.id)
            if node.is_file and node.children is not None:
                raise ConflictError(f"File '{node.name}' cannot have children")
            if node.is_folder:
                if node.children is None:
                    raise ConflictError(f"Folder '{node.name}' has no children sequence")
                child_where = f"{where}/{node.name}" if where != "/" else f"/{node.name}"
                check_level(node.children, child_where)

    check_level(tuple(tree), "/")
