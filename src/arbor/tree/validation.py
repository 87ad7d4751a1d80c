"""Record and argument validation.

Validators raise InvalidArgumentError; public operations decide whether
that becomes a soft failure or propagates.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from arbor.exceptions import InvalidArgumentError
from arbor.tree._helpers import CHILDREN_FIELD


class Position(str, Enum):
    """Where a node goes relative to its target list or reference node."""

    FIRST = "first"
    LAST = "last"
    BEFORE = "before"
    AFTER = "after"

    @property
    def is_relative(self) -> bool:
        """True for positions that need a reference node."""
        return self in (Position.BEFORE, Position.AFTER)


def parse_position(position: Position | str) -> Position:
    """Coerce a string or Position into a Position."""
    if isinstance(position, Position):
        return position
    try:
        return Position(str(position).lower())
    except ValueError:
        valid = ", ".join(p.value for p in Position)
        raise InvalidArgumentError(
            "position",
            f"Invalid position: '{position}'\n\n"
            f"  -> Valid positions: {valid}",
        ) from None


def validate_forest(data: Any, *, argument: str = "data") -> None:
    """Check that *data* is a list of dict records with list children.

    Also rejects record objects that appear more than once (shared
    subtrees or cycles), since each node object gets exactly one
    internal id.

    Raises:
        InvalidArgumentError: On the first problem found
    """
    if not isinstance(data, list):
        raise InvalidArgumentError(
            argument,
            f"Invalid {argument}: expected a list of records, got {type(data).__name__}\n\n"
            f"How to fix:\n"
            f"  Wrap a single record in a list: [record]",
        )
    seen: set[int] = set()
    stack: list[tuple[Any, str]] = [(item, f"{argument}[{i}]") for i, item in enumerate(data)]
    while stack:
        node, path = stack.pop()
        if not isinstance(node, dict):
            raise InvalidArgumentError(
                argument,
                f"Invalid record at {path}: expected a dict, got {type(node).__name__}",
            )
        if id(node) in seen:
            raise InvalidArgumentError(
                argument,
                f"Invalid record at {path}: the same record object appears more than once\n\n"
                f"How to fix:\n"
                f"  Copy shared records before building the tree",
            )
        seen.add(id(node))
        children = node.get(CHILDREN_FIELD)
        if children is None:
            continue
        if not isinstance(children, list):
            raise InvalidArgumentError(
                argument,
                f"Invalid record at {path}: '{CHILDREN_FIELD}' must be a list, "
                f"got {type(children).__name__}",
            )
        stack.extend((child, f"{path}.{CHILDREN_FIELD}[{i}]") for i, child in enumerate(children))


def validate_record(record: Any, *, argument: str = "record") -> None:
    """Check a single record (and its children) passed to insert."""
    if not isinstance(record, Mapping):
        raise InvalidArgumentError(
            argument,
            f"Invalid {argument}: expected a mapping, got {type(record).__name__}",
        )
    validate_forest([dict(record)], argument=argument)


def validate_changes(changes: Any) -> None:
    """Check the partial record passed to update."""
    if not isinstance(changes, Mapping):
        raise InvalidArgumentError(
            "changes",
            f"Invalid changes: expected a mapping, got {type(changes).__name__}",
        )

