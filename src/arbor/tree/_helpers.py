"""Traversal and copy helpers shared by the registry, mutator and query engine.

All traversals use an explicit stack so arbitrarily deep input cannot hit
the interpreter's recursion limit.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

# Field names the core reads or writes on records
ID_FIELD = "id"
CHILDREN_FIELD = "children"
INTERNAL_ID_FIELD = "_internal_id"

Node = dict[str, Any]
Forest = list[Node]


def children_of(node: Mapping[str, Any]) -> list[Node]:
    """Return the node's children list, or an empty list for leaves.

    A missing ``children`` field, ``None`` and ``[]`` are all leaves.
    """
    children = node.get(CHILDREN_FIELD)
    if isinstance(children, list):
        return children
    return []


def has_children(node: Mapping[str, Any]) -> bool:
    """True if the node has at least one child."""
    return len(children_of(node)) > 0


def walk(forest: list[Node]) -> Iterator[tuple[Node, Node | None, int]]:
    """Yield ``(node, parent, level)`` for every node in pre-order.

    Root nodes have ``parent=None`` and ``level=0``.
    """
    stack: list[tuple[Node, Node | None, int]] = [(node, None, 0) for node in reversed(forest)]
    while stack:
        node, parent, level = stack.pop()
        yield node, parent, level
        children = children_of(node)
        if children:
            stack.extend((child, node, level + 1) for child in reversed(children))


def iter_subtree(node: Node) -> Iterator[Node]:
    """Yield the node and all of its descendants in pre-order."""
    yield node
    for child, _, _ in walk(children_of(node)):
        yield child


def locate(forest: list[Node], target: Node) -> tuple[list[Node], int] | None:
    """Find the list containing *target* (by identity) and its index in it.

    Returns None if the node is not part of the forest.
    """
    stack = [forest]
    while stack:
        siblings = stack.pop()
        for index, node in enumerate(siblings):
            if node is target:
                return siblings, index
            children = children_of(node)
            if children:
                stack.append(children)
    return None


def find_parent(forest: list[Node], target: Node) -> tuple[bool, Node | None]:
    """Find the parent of *target*.

    Returns:
        ``(found, parent)`` where ``parent`` is None for root nodes.
        ``found`` is False when the node is not in the forest.
    """
    for node, parent, _ in walk(forest):
        if node is target:
            return True, parent
    return False, None


def node_level(forest: list[Node], target: Node) -> int:
    """Return the 0-based depth of *target*, or -1 if it is not in the forest."""
    for node, _, level in walk(forest):
        if node is target:
            return level
    return -1


def is_in_subtree(root: Node, candidate: Node) -> bool:
    """True if *candidate* is *root* or one of its descendants."""
    return any(node is candidate for node in iter_subtree(root))


def copy_structure(record: Mapping[str, Any], *, drop_internal_ids: bool = False) -> Node:
    """Copy every dict and children list of a record tree.

    Field values other than ``children`` are shared, not copied. The caller's
    record can be mutated afterwards without affecting the copy's structure.

    Args:
        record: Root record to copy
        drop_internal_ids: Remove ``_internal_id`` from every copied node
    """
    root = dict(record)
    stack = [root]
    while stack:
        node = stack.pop()
        if drop_internal_ids:
            node.pop(INTERNAL_ID_FIELD, None)
        children = node.get(CHILDREN_FIELD)
        if isinstance(children, list):
            copied = [dict(child) for child in children]
            node[CHILDREN_FIELD] = copied
            stack.extend(copied)
    return root
