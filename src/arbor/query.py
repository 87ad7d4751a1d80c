"""Search, filtering and natural-key derivation over a forest.

Everything here is a pure function of its arguments: nothing mutates the
forest, the selection or the expanded set.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from arbor._utils import alnum_prefix, canonical_json
from arbor.tree._helpers import (
    CHILDREN_FIELD,
    ID_FIELD,
    INTERNAL_ID_FIELD,
    Node,
    children_of,
    walk,
)

if TYPE_CHECKING:
    from arbor.tree.registry import NodeRegistry

logger = logging.getLogger(__name__)

DERIVED_KEY_PREFIX = "node_"
DERIVED_KEY_LENGTH = 10

_DONE = object()


@dataclass(frozen=True)
class NodeMatch:
    """A node found by id or predicate, paired with its internal id."""

    internal_id: str
    node: Node


def derive_natural_key(node: Node) -> str:
    """Compute the fallback key for a node without a usable ``id``.

    The node's own fields (without ``children`` and ``_internal_id``) are
    serialized canonically; the key is ``"node_"`` plus the first ten
    alphanumeric characters. Distinct nodes can share a derived key.

    Example:
        >>> derive_natural_key({"name": "Alpha", "children": []})
        'node_nameAlpha'
    """
    own = {k: v for k, v in node.items() if k not in (CHILDREN_FIELD, INTERNAL_ID_FIELD)}
    return DERIVED_KEY_PREFIX + alnum_prefix(canonical_json(own), DERIVED_KEY_LENGTH)


def natural_key(node: Node) -> str:
    """Return the caller's ``id`` as a string, or the derived key if absent."""
    value = node.get(ID_FIELD)
    if value is None or value == "":
        return derive_natural_key(node)
    return str(value)


def display_value(node: Node, display_field: str) -> str:
    """Return the display field as a string ("" when missing)."""
    value = node.get(display_field)
    if value is None:
        return ""
    return str(value)


def node_matches(node: Node, needle: str, display_field: str) -> bool:
    """Case-insensitive substring test against the display field.

    *needle* must already be lower-cased.
    """
    if display_field not in node:
        return False
    return needle in display_value(node, display_field).lower()


def filter_forest(forest: list[Node], term: str, display_field: str) -> list[Node]:
    """Return the sub-forest of nodes that match *term* or have matching descendants.

    A node is kept if its display value contains *term* (case-insensitive)
    or if any descendant is kept. Kept nodes only keep kept children;
    sibling order is preserved.

    Nodes whose children list is unchanged are shared with *forest*. Nodes
    that lost children are shallow copies with a new ``children`` list
    (``id`` and ``_internal_id`` carry over).

    An empty term returns *forest* itself.

    Example:
        >>> forest = [{"id": "a", "name": "A", "children": [{"id": "b", "name": "B"}]}]
        >>> filter_forest(forest, "b", "name") == forest
        True
        >>> filter_forest(forest, "z", "name")
        []
    """
    if not term:
        return forest

    needle = term.lower()
    kept_roots: list[Node] = []
    # Frames: (node, child iterator, kept children, parent's kept list).
    # The sentinel frame (node=None) collects the roots.
    stack: list[tuple[Node | None, Any, list[Node], list[Node] | None]] = [
        (None, iter(forest), kept_roots, None)
    ]
    while stack:
        node, children, kept, out = stack[-1]
        child = next(children, _DONE)
        if child is not _DONE:
            stack.append((child, iter(children_of(child)), [], kept))
            continue
        stack.pop()
        if node is None or out is None:
            continue
        if kept or node_matches(node, needle, display_field):
            out.append(_with_children(node, kept))
    return kept_roots


def _with_children(node: Node, kept: list[Node]) -> Node:
    """Share *node* when nothing was pruned, else copy it with *kept* children."""
    original = children_of(node)
    if len(original) == len(kept) and all(a is b for a, b in zip(original, kept)):
        return node
    return {**node, CHILDREN_FIELD: kept}


def expansion_set_for_matches(filtered: list[Node]) -> list[str]:
    """Natural keys of every node in a filtered forest, in pre-order.

    Marking these as expanded reveals every search hit and its ancestors.
    Only apply this for a non-empty search term.
    """
    return list(dict.fromkeys(natural_key(node) for node, _, _ in walk(filtered)))


def count_matches(filtered: list[Node], term: str, display_field: str) -> int:
    """Count nodes in *filtered* that match *term* directly (not just via descendants)."""
    if not term:
        return 0
    needle = term.lower()
    return sum(1 for node, _, _ in walk(filtered) if node_matches(node, needle, display_field))


def find_nodes(
    registry: NodeRegistry,
    predicate: Callable[[Node, str], Any],
) -> list[NodeMatch]:
    """Return every indexed node for which ``predicate(node, internal_id)`` is truthy.

    A predicate that raises for a node is logged and counts as no match.
    """
    results: list[NodeMatch] = []
    for internal_id, node in registry.items():
        try:
            matched = predicate(node, internal_id)
        except Exception:
            logger.warning("Predicate failed for node %s", internal_id, exc_info=True)
            continue
        if matched:
            results.append(NodeMatch(internal_id, node))
    return results


def lookup_many(registry: NodeRegistry, internal_ids: Iterable[str]) -> tuple[list[NodeMatch], list[str]]:
    """Resolve several internal ids at once.

    Returns:
        ``(found, missing)``: matches in request order and the ids that did not resolve
    """
    found: list[NodeMatch] = []
    missing: list[str] = []
    for internal_id in internal_ids:
        node = registry.lookup_by_internal_id(internal_id)
        if node is None:
            missing.append(internal_id)
        else:
            found.append(NodeMatch(internal_id, node))
    return found, missing
