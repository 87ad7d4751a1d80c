"""Projections of a forest to plain data: records, JSON, CSV and NetworkX."""

from __future__ import annotations

import copy
import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import networkx as nx

from arbor.exceptions import InvalidArgumentError
from arbor.query import display_value, natural_key
from arbor.tree._helpers import INTERNAL_ID_FIELD, Node, children_of, iter_subtree, walk
from arbor.tree.validation import validate_forest

if TYPE_CHECKING:
    from arbor.tree.registry import NodeRegistry

CSV_HEADER = "Level,Parent,Name,HasChildren,Children Count"


def export_records(forest: Sequence[Node], *, include_internal_ids: bool = False) -> list[Node]:
    """Deep-copy the forest, optionally keeping ``_internal_id`` fields.

    The result never aliases live nodes, so callers may mutate it freely.
    """
    exported = copy.deepcopy(list(forest))
    if not include_internal_ids:
        strip_internal_ids(exported)
    return exported


def strip_internal_ids(forest: list[Node]) -> list[Node]:
    """Remove ``_internal_id`` from every node, in place. Returns *forest*."""
    for node, _, _ in walk(forest):
        node.pop(INTERNAL_ID_FIELD, None)
    return forest


def to_json(
    forest: Sequence[Node],
    *,
    include_internal_ids: bool = False,
    pretty: bool = True,
) -> str:
    """Serialize the forest to JSON text.

    Values JSON cannot represent are written with ``str()``.
    """
    records = export_records(forest, include_internal_ids=include_internal_ids)
    indent = 2 if pretty else None
    return json.dumps(records, indent=indent, ensure_ascii=False, default=str)


def parse_records(payload: str | bytes | Sequence[Any]) -> list[Node]:
    """Turn an import payload into a list of records.

    Accepts JSON text, UTF-8 bytes, or an already parsed list.

    Raises:
        InvalidArgumentError: On malformed JSON, a top level that is not a
            list, or elements that are not records
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidArgumentError("payload", f"Import payload is not valid UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidArgumentError("payload", f"Import payload is not valid JSON: {e}") from e
    if isinstance(payload, tuple):
        payload = list(payload)
    validate_forest(payload, argument="payload")
    return payload


def to_csv(forest: Sequence[Node], display_field: str) -> str:
    """Flatten the forest into CSV text, one pre-order row per node.

    Columns: ``Level,Parent,Name,HasChildren,Children Count``. Parent and
    name are quoted; commas inside them are removed rather than escaped,
    so values containing commas do not survive a round trip.

    Example:
        >>> print(to_csv([{"name": "A", "children": [{"name": "B, b"}]}], "name"), end="")
        Level,Parent,Name,HasChildren,Children Count
        0,"","A",true,1
        1,"A","B b",false,0
    """
    lines = [CSV_HEADER]
    for node, parent, level in walk(list(forest)):
        name = display_value(node, display_field).replace(",", "")
        parent_name = display_value(parent, display_field).replace(",", "") if parent is not None else ""
        count = len(children_of(node))
        has_children = "true" if count else "false"
        lines.append(f'{level},"{parent_name}","{name}",{has_children},{count}')
    return "\n".join(lines) + "\n"


def to_networkx(
    forest: Sequence[Node],
    registry: NodeRegistry,
    display_field: str,
) -> nx.DiGraph:
    """Project the forest into a NetworkX DiGraph keyed by internal id.

    Node attributes: ``parent`` (internal id or None), ``level``,
    ``natural_key``, ``label`` and ``order`` (index among siblings).
    Edges run parent -> child.
    """
    G = nx.DiGraph()
    order: dict[int, int] = {}
    for siblings in _sibling_lists(forest):
        for index, node in enumerate(siblings):
            order[id(node)] = index

    for node, parent, level in walk(list(forest)):
        node_id = registry.internal_id_of(node)
        parent_id = registry.internal_id_of(parent) if parent is not None else None
        G.add_node(
            node_id,
            parent=parent_id,
            level=level,
            natural_key=natural_key(node),
            label=display_value(node, display_field),
            order=order[id(node)],
        )
        if parent_id is not None:
            G.add_edge(parent_id, node_id)
    return G


def _sibling_lists(forest: Sequence[Node]) -> list[Sequence[Node]]:
    lists: list[Sequence[Node]] = [forest]
    for root in forest:
        for node in iter_subtree(root):
            children = children_of(node)
            if children:
                lists.append(children)
    return lists
