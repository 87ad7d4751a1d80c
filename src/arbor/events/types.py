"""Event types emitted when a tree model changes."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field


def _generate_event_id() -> str:
    """Generate a unique event ID."""
    return uuid.uuid4().hex[:16]


def _now() -> float:
    """Current timestamp."""
    return time.time()


@dataclass(frozen=True)
class BaseEvent:
    """Base class for all tree events.

    Attributes:
        event_id: Unique identifier for this event.
        timestamp: Unix timestamp when the event was created.
    """

    event_id: str = field(default_factory=_generate_event_id)
    timestamp: float = field(default_factory=_now)


@dataclass(frozen=True)
class NodeInsertedEvent(BaseEvent):
    """Emitted after a node (and any children it carried) was inserted.

    Attributes:
        internal_id: Internal id of the new node.
        parent_id: Internal id of the parent, or None for the root level.
        position: Position value used for the insert.
        subtree_size: Number of nodes added, including the node itself.
    """

    internal_id: str = ""
    parent_id: str | None = None
    position: str = "last"
    subtree_size: int = 1


@dataclass(frozen=True)
class NodeRemovedEvent(BaseEvent):
    """Emitted after a node and its descendants were removed.

    Attributes:
        internal_id: Internal id of the removed node.
        natural_key: Natural key of the removed node.
        removed_keys: Natural keys of every removed node, in pre-order.
    """

    internal_id: str = ""
    natural_key: str = ""
    removed_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeUpdatedEvent(BaseEvent):
    """Emitted after fields were merged onto a node.

    Attributes:
        internal_id: Internal id of the updated node.
        fields: Names of the fields that were written.
        old_key: Natural key before the update.
        new_key: Natural key after the update.
    """

    internal_id: str = ""
    fields: tuple[str, ...] = ()
    old_key: str = ""
    new_key: str = ""


@dataclass(frozen=True)
class NodeMovedEvent(BaseEvent):
    """Emitted after a node was relocated.

    Attributes:
        internal_id: Internal id of the moved node.
        old_parent_id: Parent before the move (None for root).
        new_parent_id: Parent after the move (None for root).
        index: Index of the node in its new sibling list.
    """

    internal_id: str = ""
    old_parent_id: str | None = None
    new_parent_id: str | None = None
    index: int = 0


@dataclass(frozen=True)
class StructureChangedEvent(BaseEvent):
    """Emitted after any successful mutation, once indexes are consistent.

    Attributes:
        operation: "insert", "remove", "update", "move" or "replace".
        node_count: Number of indexed nodes after the change.
    """

    operation: str = ""
    node_count: int = 0


@dataclass(frozen=True)
class DataReplacedEvent(BaseEvent):
    """Emitted when the whole forest was replaced (update_data / import).

    Attributes:
        root_count: Number of root nodes in the new forest.
        node_count: Total number of nodes in the new forest.
    """

    root_count: int = 0
    node_count: int = 0


@dataclass(frozen=True)
class SelectionChangedEvent(BaseEvent):
    """Emitted when a node's selection state changes.

    Attributes:
        natural_key: Key of the node the gesture targeted.
        selected: New selection state of that node.
        affected_keys: Every key whose state changed (cascade included).
    """

    natural_key: str = ""
    selected: bool = False
    affected_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExpansionChangedEvent(BaseEvent):
    """Emitted when nodes are expanded or collapsed.

    Attributes:
        natural_keys: Keys whose expansion state changed.
        expanded: True for expand, False for collapse.
    """

    natural_keys: tuple[str, ...] = ()
    expanded: bool = True


@dataclass(frozen=True)
class SearchAppliedEvent(BaseEvent):
    """Emitted after a search term was applied.

    Attributes:
        term: Lower-cased search term ("" clears the search).
        match_count: Nodes matching the term directly.
        root_count: Root-level entries in the filtered forest.
    """

    term: str = ""
    match_count: int = 0
    root_count: int = 0


@dataclass(frozen=True)
class PageChangedEvent(BaseEvent):
    """Emitted when the current page or page size changes.

    Attributes:
        current_page: 1-based current page.
        total_pages: Total number of pages.
        page_size: Items per page.
    """

    current_page: int = 1
    total_pages: int = 1
    page_size: int = 0


Event = (
    NodeInsertedEvent
    | NodeRemovedEvent
    | NodeUpdatedEvent
    | NodeMovedEvent
    | StructureChangedEvent
    | DataReplacedEvent
    | SelectionChangedEvent
    | ExpansionChangedEvent
    | SearchAppliedEvent
    | PageChangedEvent
)
