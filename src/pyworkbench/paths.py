"""
Path Resolver - maps slash-delimited paths to workspace nodes.

Paths are relative to the workspace root. Empty segments and "." are
ignored, so "", "/" and "." all name the root. Resolution is a plain walk
over the tree value: nothing is cached, since every call may see a
different tree.
"""

from pyworkbench.tree import Tree, WorkspaceNode, root_node


def split_path(path: str | None) -> list[str]:
    """Split a path into its meaningful segments."""
    if not path:
        return []
    return [part for part in path.split("/") if part and part != "."]


def join_path(*parts: str) -> str:
    segments: list[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "/".join(segments)


def normalize_path(path: str | None) -> str:
    """Canonical form of a path: no leading/trailing or doubled slashes."""
    return "/".join(split_path(path))


def is_root(path: str | None) -> bool:
    return not split_path(path)


def split_parent(path: str) -> tuple[str, str]:
    """
    Split a path into (parent_path, name).

    The parent of a top-level item is "" (the root). The name of the root
    itself is "".
    """
    segments = split_path(path)
    if not segments:
        return "", ""
    return "/".join(segments[:-1]), segments[-1]


def is_same_or_descendant(ancestor: str, path: str) -> bool:
    """
    True if path equals ancestor or lies somewhere beneath it.

    Compared on normalized path strings rather than node ids: a node's
    path is what changes when it moves, so the check has to be made on
    paths as they are at the time of the call.
    """
    ancestor = normalize_path(ancestor)
    path = normalize_path(path)
    if not ancestor:
        return True
    return path == ancestor or path.startswith(ancestor + "/")


def resolve(tree: Tree, path: str | None) -> WorkspaceNode | None:
    """
    Resolve a path against a tree.

    Returns the node, the root pseudo-folder for a root path, or None when
    any segment fails to match or an intermediate segment is a file.
    """
    segments = split_path(path)
    current = root_node(tree)
    for segment in segments:
        if not current.is_folder:
            return None
        match = None
        for child in current.children or ():
            if child.name == segment:
                match = child
                break
        if match is None:
            return None
        current = match
    return current
