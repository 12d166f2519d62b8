"""
Workspace Tree Mutator - pure structural operations on a tree value.

Every operation takes a tree and returns a Mutation: the new tree plus a
payload describing what happened (reported as ToolResult.data). The input
tree is never modified. Only the spine from the root down to the changed
folder is rebuilt; untouched subtrees are shared between old and new tree.

Failures raise the typed errors from pyworkbench.errors instead of
coercing a bad request into something that "works".
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pyworkbench.errors import ConflictError, NotFoundError, ValidationError
from pyworkbench.paths import (
    is_root,
    is_same_or_descendant,
    join_path,
    normalize_path,
    resolve,
    split_parent,
    split_path,
)
from pyworkbench.tree import (
    NodeType,
    Tree,
    WorkspaceNode,
    clone_node,
    new_file,
    new_folder,
    walk,
)

ChildrenUpdate = Callable[[tuple[WorkspaceNode, ...]], tuple[WorkspaceNode, ...]]


@dataclass(frozen=True)
class Mutation:
    """A new tree plus the payload describing the change."""
    tree: Tree
    data: dict[str, Any] = field(default_factory=dict)


# =========================================================================
# Spine rewriting
# =========================================================================

def _replace_children(
    nodes: tuple[WorkspaceNode, ...],
    parent_segments: list[str],
    update: ChildrenUpdate,
) -> tuple[WorkspaceNode, ...]:
    """Apply update to the children of the folder at parent_segments."""
    if not parent_segments:
        return tuple(update(tuple(nodes)))

    head, rest = parent_segments[0], parent_segments[1:]
    rebuilt: list[WorkspaceNode] = []
    found = False
    for node in nodes:
        if not found and node.name == head and node.is_folder:
            rebuilt.append(node.with_children(_replace_children(node.children or (), rest, update)))
            found = True
        else:
            rebuilt.append(node)
    if not found:
        raise NotFoundError(f"Directory not found: {head}")
    return tuple(rebuilt)


def _replace_node(
    tree: Tree,
    path: str,
    update: Callable[[WorkspaceNode], WorkspaceNode],
) -> Tree:
    parent_path, name = split_parent(path)

    def update_siblings(siblings: tuple[WorkspaceNode, ...]) -> tuple[WorkspaceNode, ...]:
        return tuple(update(n) if n.name == name else n for n in siblings)

    return _replace_children(tree, split_path(parent_path), update_siblings)


def _append_child(tree: Tree, parent_path: str, node: WorkspaceNode) -> Tree:
    return _replace_children(tree, split_path(parent_path), lambda siblings: siblings + (node,))


def _remove_child(tree: Tree, path: str) -> Tree:
    parent_path, name = split_parent(path)
    return _replace_children(
        tree,
        split_path(parent_path),
        lambda siblings: tuple(n for n in siblings if n.name != name),
    )


# =========================================================================
# Lookups with typed failures
# =========================================================================

def _require_item(tree: Tree, path: str, what: str = "Item") -> WorkspaceNode:
    if is_root(path):
        raise ValidationError(f"{what} path must name an item, not the workspace root")
    node = resolve(tree, path)
    if node is None:
        raise NotFoundError(f"{what} not found: {path}")
    return node


def _require_file(tree: Tree, path: str) -> WorkspaceNode:
    if is_root(path):
        raise ValidationError("File path must name a file, not the workspace root")
    node = resolve(tree, path)
    if node is None:
        raise NotFoundError(f"File not found: {path}")
    if not node.is_file:
        raise ValidationError(f"Path is not a file: {path}")
    return node


def _require_parent_folder(tree: Tree, parent_path: str) -> WorkspaceNode:
    node = resolve(tree, parent_path)
    if node is None:
        raise NotFoundError(f"Parent directory not found: {parent_path}")
    if not node.is_folder:
        raise ValidationError(f"Parent path is not a directory: {parent_path}")
    return node


def _require_target_folder(tree: Tree, target_path: str) -> WorkspaceNode:
    node = resolve(tree, target_path)
    if node is None:
        raise NotFoundError(f"Target directory not found: {target_path}")
    if not node.is_folder:
        raise ValidationError(f"Target path is not a directory: {target_path}")
    return node


def validate_name(name: str) -> str:
    """Check an item name and return it stripped of surrounding whitespace."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name cannot be empty")
    name = name.strip()
    if "/" in name:
        raise ValidationError(f"Name cannot contain '/': {name}")
    if name in (".", ".."):
        raise ValidationError(f"Name is reserved: {name}")
    return name


def _coerce_type(node_type: NodeType | str) -> NodeType:
    try:
        return NodeType(node_type)
    except ValueError as e:
        raise ValidationError(
            f"Invalid item type '{node_type}': expected 'file' or 'folder'"
        ) from e


def _display_root(path: str) -> str:
    return path or "/"


# =========================================================================
# Structural operations
# =========================================================================

def create_item(
    tree: Tree,
    path: str,
    node_type: NodeType | str,
    content: str = "",
) -> Mutation:
    """Create a file or folder at path, appended as the last child of its parent."""
    node_type = _coerce_type(node_type)
    if is_root(path):
        raise ValidationError("Path must include the name of the item to create")

    parent_path, name = split_parent(path)
    name = validate_name(name)
    full_path = join_path(parent_path, name)

    if resolve(tree, full_path) is not None:
        raise ConflictError(f"Item already exists at path: {full_path}")
    _require_parent_folder(tree, parent_path)

    if node_type == NodeType.FILE:
        node = new_file(name, content or "")
    else:
        node = new_folder(name)

    return Mutation(
        tree=_append_child(tree, parent_path, node),
        data={
            "path": full_path,
            "name": name,
            "type": node_type.value,
            "id": node.id,
            "parentPath": _display_root(parent_path),
        },
    )


def delete_item(tree: Tree, path: str) -> Mutation:
    """Remove the item at path together with its whole subtree."""
    node = _require_item(tree, path)
    removed_ids = [n.id for n in walk(node)]
    return Mutation(
        tree=_remove_child(tree, path),
        data={
            "path": normalize_path(path),
            "name": node.name,
            "type": node.type.value,
            "id": node.id,
            "removedIds": removed_ids,
        },
    )


def rename_item(tree: Tree, path: str, new_name: str) -> Mutation:
    """Change the name of an item; id and children are untouched."""
    node = _require_item(tree, path)
    new_name = validate_name(new_name)
    parent_path, old_name = split_parent(path)

    parent = resolve(tree, parent_path)
    siblings = parent.children or () if parent is not None else ()
    for sibling in siblings:
        if sibling.name == new_name and sibling.id != node.id:
            raise ConflictError(
                f"Item with name '{new_name}' already exists in the same directory"
            )

    return Mutation(
        tree=_replace_node(tree, path, lambda n: n.with_name(new_name)),
        data={
            "oldPath": normalize_path(path),
            "newPath": join_path(parent_path, new_name),
            "oldName": old_name,
            "newName": new_name,
            "type": node.type.value,
            "id": node.id,
        },
    )


def move_item(tree: Tree, source_path: str, target_path: str | None) -> Mutation:
    """
    Move an item into another folder (None or "" for the root).

    The node keeps its id, content and children. Moving a folder into
    itself or any of its descendants is refused.
    """
    node = _require_item(tree, source_path, "Source item")
    source_path = normalize_path(source_path)
    target_path = normalize_path(target_path)
    target = _require_target_folder(tree, target_path)

    if node.is_folder and is_same_or_descendant(source_path, target_path) and target_path:
        raise ConflictError("Cannot move a folder into itself or its descendants")

    if any(child.name == node.name for child in target.children or ()):
        raise ConflictError(
            f"Item with name '{node.name}' already exists in target directory"
        )

    without_source = _remove_child(tree, source_path)
    return Mutation(
        tree=_append_child(without_source, target_path, node),
        data={
            "sourcePath": source_path,
            "targetPath": _display_root(target_path),
            "newPath": join_path(target_path, node.name),
            "name": node.name,
            "type": node.type.value,
            "id": node.id,
        },
    )


def copy_item(
    tree: Tree,
    source_path: str,
    target_path: str | None,
    new_name: str | None = None,
) -> Mutation:
    """
    Deep-copy an item into a folder, optionally under a new name.

    Every node in the copy gets a fresh id. The clone is taken from the
    tree as it was before the copy, so copying a folder into one of its own
    descendants produces a single copy rather than recursing.
    """
    node = _require_item(tree, source_path, "Source item")
    source_path = normalize_path(source_path)
    target_path = normalize_path(target_path)
    target = _require_target_folder(tree, target_path)

    copy_name = validate_name(new_name) if new_name else node.name
    if any(child.name == copy_name for child in target.children or ()):
        raise ConflictError(
            f"Item with name '{copy_name}' already exists in target directory"
        )

    copied = clone_node(node)
    if copy_name != node.name:
        copied = copied.with_name(copy_name)

    return Mutation(
        tree=_append_child(tree, target_path, copied),
        data={
            "sourcePath": source_path,
            "targetPath": _display_root(target_path),
            "newPath": join_path(target_path, copy_name),
            "originalName": node.name,
            "copyName": copy_name,
            "type": node.type.value,
            "sourceId": node.id,
            "copyId": copied.id,
            "nodesCopied": sum(1 for _ in walk(copied)),
        },
    )


def write_file(tree: Tree, path: str, content: str) -> Mutation:
    """Replace the content of an existing file, or create it."""
    if is_root(path):
        raise ValidationError("File path must name a file, not the workspace root")
    existing = resolve(tree, path)
    if existing is not None:
        if not existing.is_file:
            raise ConflictError(f"Path exists but is not a file: {path}")
        return Mutation(
            tree=_replace_node(tree, path, lambda n: n.with_content(content)),
            data={
                "path": normalize_path(path),
                "size": len(content),
                "created": False,
                "id": existing.id,
            },
        )

    created = create_item(tree, path, NodeType.FILE, content)
    return Mutation(
        tree=created.tree,
        data={
            "path": created.data["path"],
            "size": len(content),
            "created": True,
            "id": created.data["id"],
        },
    )


# =========================================================================
# Text operations
# =========================================================================

def _set_content(tree: Tree, path: str, content: str) -> Tree:
    return _replace_node(tree, path, lambda n: n.with_content(content))


def modify_text(
    tree: Tree,
    path: str,
    new_content: str | None = None,
    find_text: str | None = None,
    replace_text: str | None = None,
    replace_all: bool = False,
) -> Mutation:
    """
    Modify a file either wholesale or by find-and-replace.

    Exactly one mode applies: new_content replaces the whole file;
    find_text/replace_text replaces the first occurrence, or every
    non-overlapping occurrence with replace_all. A find_text that does not
    occur is an error and leaves the file unchanged.
    """
    has_new = new_content is not None
    has_find = find_text is not None
    if has_new and has_find:
        raise ValidationError("Provide either newContent or findText/replaceText, not both")
    if not has_new and not has_find:
        raise ValidationError("Provide either newContent or findText with replaceText")
    if has_find:
        if find_text == "":
            raise ValidationError("findText cannot be empty")
        if replace_text is None:
            raise ValidationError("replaceText is required when findText is given")

    node = _require_file(tree, path)
    original = node.content or ""

    if has_new:
        updated = new_content or ""
        data: dict[str, Any] = {"mode": "replace_content", "replacementCount": None}
    else:
        if find_text not in original:
            raise NotFoundError(f'Text not found in file: "{find_text}"')
        if replace_all:
            count = original.count(find_text)
            updated = original.replace(find_text, replace_text)
        else:
            count = 1
            updated = original.replace(find_text, replace_text, 1)
        data = {
            "mode": "find_replace",
            "replacementCount": count,
            "findText": find_text,
            "replaceText": replace_text,
        }

    data.update(
        filePath=normalize_path(path),
        originalLength=len(original),
        newLength=len(updated),
    )
    return Mutation(tree=_set_content(tree, path, updated), data=data)


def insert_lines(tree: Tree, path: str, line_number: int, content: str) -> Mutation:
    """Insert content as a new line at a 1-based line number."""
    if not content:
        raise ValidationError("Content is required")
    if isinstance(line_number, bool) or not isinstance(line_number, int) or line_number < 1:
        raise ValidationError("Line number must be a positive integer")

    node = _require_file(tree, path)
    lines = (node.content or "").split("\n")
    if line_number > len(lines) + 1:
        raise ValidationError(
            f"Line number {line_number} exceeds file length ({len(lines)} lines)"
        )

    original_count = len(lines)
    lines.insert(line_number - 1, content)
    return Mutation(
        tree=_set_content(tree, path, "\n".join(lines)),
        data={
            "filePath": normalize_path(path),
            "lineNumber": line_number,
            "insertedContent": content,
            "originalLineCount": original_count,
            "newLineCount": len(lines),
        },
    )


def delete_lines(
    tree: Tree,
    path: str,
    start_line: int,
    end_line: int | None = None,
) -> Mutation:
    """Delete an inclusive, 1-based range of lines."""
    if end_line is None:
        end_line = start_line
    for value in (start_line, end_line):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError("Line numbers must be positive integers")
    if start_line > end_line:
        raise ValidationError("Start line cannot be greater than end line")

    node = _require_file(tree, path)
    lines = (node.content or "").split("\n")
    if end_line > len(lines):
        raise ValidationError(f"Line numbers exceed file length ({len(lines)} lines)")

    deleted = lines[start_line - 1:end_line]
    remaining = lines[:start_line - 1] + lines[end_line:]
    return Mutation(
        tree=_set_content(tree, path, "\n".join(remaining)),
        data={
            "filePath": normalize_path(path),
            "startLine": start_line,
            "endLine": end_line,
            "deletedLinesCount": len(deleted),
            "deletedContent": "\n".join(deleted),
            "originalLineCount": len(lines),
            "newLineCount": len(remaining),
        },
    )


def append_text(tree: Tree, path: str, content: str, add_newline: bool = True) -> Mutation:
    """Append text, separated by a newline unless the file already ends with one."""
    if not content:
        raise ValidationError("Content is required")
    node = _require_file(tree, path)
    original = node.content or ""
    separator = "\n" if add_newline and original and not original.endswith("\n") else ""
    updated = original + separator + content
    return Mutation(
        tree=_set_content(tree, path, updated),
        data={
            "filePath": normalize_path(path),
            "appendedContent": content,
            "originalLength": len(original),
            "newLength": len(updated),
            "addedNewline": bool(separator),
        },
    )


def prepend_text(tree: Tree, path: str, content: str, add_newline: bool = True) -> Mutation:
    """Prepend text, followed by a newline when add_newline is set."""
    if not content:
        raise ValidationError("Content is required")
    node = _require_file(tree, path)
    original = node.content or ""
    separator = "\n" if add_newline else ""
    updated = content + separator + original
    return Mutation(
        tree=_set_content(tree, path, updated),
        data={
            "filePath": normalize_path(path),
            "prependedContent": content,
            "originalLength": len(original),
            "newLength": len(updated),
            "addedNewline": bool(separator),
        },
    )
