"""TreeModel: one forest with its indexes, search, pages, selection and expansion."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import networkx as nx

from arbor._utils import ensure_tuple
from arbor.config import TreeConfig
from arbor.events import (
    DataReplacedEvent,
    EventDispatcher,
    EventProcessor,
    ExpansionChangedEvent,
    PageChangedEvent,
    SearchAppliedEvent,
    SelectionChangedEvent,
    StructureChangedEvent,
)
from arbor.exceptions import InvalidArgumentError
from arbor.identity import IdentityAllocator
from arbor.pagination import PageInfo, Paginator
from arbor.query import (
    NodeMatch,
    count_matches,
    display_value,
    expansion_set_for_matches,
    filter_forest,
    find_nodes,
    lookup_many,
    natural_key,
)
from arbor.selection import ExpandedSet, SelectionTracker
from arbor.serializers import export_records, parse_records, to_csv, to_json, to_networkx
from arbor.tree._helpers import Node, find_parent, has_children, iter_subtree, node_level, walk
from arbor.tree.mutator import TreeMutator
from arbor.tree.registry import NodeRegistry
from arbor.tree.validation import Position, validate_forest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedItem:
    """A selected node with the details a checkbox list needs."""

    natural_key: str
    record: Node
    display_value: str
    has_children: bool
    level: int


@dataclass(frozen=True)
class TreeStats:
    """Counts describing the model's current state.

    Attributes:
        total_nodes: Nodes in the whole forest
        total_levels: Deepest 0-based level (0 for a flat forest)
        selected_nodes: Selected natural keys
        expanded_nodes: Expanded natural keys
        filtered_nodes: Root-level entries after the search filter
        current_page: 1-based current page
        total_pages: Number of pages
    """

    total_nodes: int
    total_levels: int
    selected_nodes: int
    expanded_nodes: int
    filtered_nodes: int
    current_page: int
    total_pages: int

    def to_dict(self) -> dict[str, int]:
        """JSON-serializable dict."""
        return {
            "total_nodes": self.total_nodes,
            "total_levels": self.total_levels,
            "selected_nodes": self.selected_nodes,
            "expanded_nodes": self.expanded_nodes,
            "filtered_nodes": self.filtered_nodes,
            "current_page": self.current_page,
            "total_pages": self.total_pages,
        }


class TreeModel:
    """The data core behind a tree view.

    A TreeModel owns one forest (a list of dict records with optional
    ``children`` lists) and keeps everything derived from it consistent:
    the node registry, the search-filtered forest, the current page, the
    selection and the expanded set.

    Records passed to the constructor or to ``update_data`` become owned by
    the model: internal ids are written onto them as ``_internal_id``.
    Records passed to ``insert`` are copied first.

    Attributes:
        config: Immutable settings (display field, paging, selection mode)
        registry: Natural-key and internal-id indexes
        mutator: Structural mutation operations
        selection: Selected natural keys
        expanded: Expanded natural keys

    Example:
        >>> model = TreeModel(
        ...     [{"id": "a", "name": "Fruit", "children": [{"id": "b", "name": "Apple"}]},
        ...      {"id": "c", "name": "Veg"}],
        ...     page_size=1,
        ... )
        >>> [n["name"] for n in model.page()]
        ['Fruit']
        >>> [n["name"] for n in model.search("apple")]
        ['Fruit']
        >>> model.expanded_keys
        ['a', 'b']
    """

    def __init__(
        self,
        data: list[Node] | None = None,
        *,
        config: TreeConfig | None = None,
        display_field: str = "name",
        page_size: int = 10,
        multi_select: bool = False,
        show_pagination: bool = True,
        expand_all: bool = False,
        event_processors: list[EventProcessor] | None = None,
        allocator: IdentityAllocator | None = None,
    ) -> None:
        """Create a model over *data*.

        Args:
            data: Root records; None means an empty forest
            config: Settings object. When given, the individual keyword
                settings are ignored.
            display_field: Record field used for labels and search
            page_size: Root items per page
            multi_select: Click selection adds instead of replacing
            show_pagination: When False, ``page()`` returns everything
            expand_all: Expand the first page after construction
            event_processors: Receivers for change events
            allocator: Internal id source (mainly for tests)

        Raises:
            TreeConfigError: On invalid settings
            InvalidArgumentError: If *data* is not a list of dict records
        """
        self.config = config or TreeConfig(
            display_field=display_field,
            page_size=page_size,
            multi_select=multi_select,
            show_pagination=show_pagination,
            expand_all=expand_all,
        )
        records = [] if data is None else data
        validate_forest(records)

        self._forest: list[Node] = list(records)
        self._dispatcher = EventDispatcher(event_processors)
        self.registry = NodeRegistry(allocator)
        self.selection = SelectionTracker(multi_select=self.config.multi_select)
        self.expanded = ExpandedSet()
        self.mutator = TreeMutator(
            self._forest,
            self.registry,
            selection=self.selection,
            expanded=self.expanded,
            dispatcher=self._dispatcher,
        )
        self._paginator = Paginator(self.config.page_size, enabled=self.config.show_pagination)
        self._search_term = ""
        self._filtered: list[Node] = self._forest

        self.registry.rebuild(self._forest)
        self._paginator.recompute(len(self._filtered))
        if self.config.expand_all:
            self.expand_all()

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    @property
    def data(self) -> list[Node]:
        """Root nodes of the backing forest (a new list; nodes are live)."""
        return list(self._forest)

    @property
    def filtered_data(self) -> list[Node]:
        """Root entries of the search-filtered forest."""
        return list(self._filtered)

    @property
    def display_field(self) -> str:
        return self.config.display_field

    @property
    def dispatcher(self) -> EventDispatcher:
        """Dispatcher for change events; add processors at any time."""
        return self._dispatcher

    def __len__(self) -> int:
        """Number of nodes in the forest."""
        return len(self.registry)

    def refresh(self) -> None:
        """Recompute the filtered forest and clamp the page after a change."""
        self._filtered = filter_forest(self._forest, self._search_term, self.display_field)
        self._paginator.recompute(len(self._filtered))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_node(self, internal_id: str) -> Node | None:
        """Node with *internal_id*, or None (with a warning)."""
        if not internal_id:
            logger.warning("Internal ID is required")
            return None
        node = self.registry.lookup_by_internal_id(internal_id)
        if node is None:
            logger.warning("Node with internal ID '%s' not found", internal_id)
        return node

    def get_nodes(self, internal_ids: str | Sequence[str]) -> list[NodeMatch]:
        """Resolve several internal ids; unknown ones are skipped with a warning."""
        found, missing = lookup_many(self.registry, ensure_tuple(internal_ids))
        if missing:
            logger.warning("Nodes not found for internal IDs: %s", ", ".join(missing))
        return found

    def get_by_key(self, key: str) -> Node | None:
        """Node last indexed under natural key *key*, or None."""
        return self.registry.lookup_by_natural_key(key)

    def has_internal_id(self, internal_id: str) -> bool:
        return self.registry.has_internal_id(internal_id)

    def internal_ids(self) -> list[str]:
        """Every internal id currently in the tree."""
        return self.registry.internal_ids()

    def internal_id_of(self, node: Node) -> str | None:
        """Internal id of a live node object, or None."""
        if node is None:
            logger.warning("Node is required")
            return None
        internal_id = self.registry.internal_id_of(node)
        if internal_id is None:
            logger.warning("Node not found in tree or missing internal ID")
        return internal_id

    def find_nodes(self, predicate: Callable[[Node, str], Any]) -> list[NodeMatch]:
        """Every node for which ``predicate(node, internal_id)`` is truthy."""
        if not callable(predicate):
            logger.warning("Predicate must be callable, got %s", type(predicate).__name__)
            return []
        return find_nodes(self.registry, predicate)

    def node_level(self, node: Node) -> int:
        """0-based depth of a live node, or -1 if it is not in the tree."""
        return node_level(self._forest, node)

    def parent_of(self, internal_id: str) -> Node | None:
        """Parent node of *internal_id*; None for roots and unknown ids."""
        node = self.registry.lookup_by_internal_id(internal_id)
        if node is None:
            return None
        _, parent = find_parent(self._forest, node)
        return parent

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(
        self,
        parent_id: str | None,
        record: Mapping[str, Any],
        position: Position | str = Position.LAST,
        reference: str | None = None,
    ) -> str | None:
        """Insert a copy of *record*; see ``TreeMutator.insert``."""
        internal_id = self.mutator.insert(parent_id, record, position, reference)
        if internal_id is not None:
            self.refresh()
        return internal_id

    def insert_adjacent(
        self,
        reference_id: str,
        record: Mapping[str, Any],
        position: Position | str = Position.AFTER,
    ) -> str | None:
        """Insert next to an existing node; see ``TreeMutator.insert_adjacent``."""
        internal_id = self.mutator.insert_adjacent(reference_id, record, position)
        if internal_id is not None:
            self.refresh()
        return internal_id

    def remove(self, internal_id: str) -> bool:
        """Remove a node and its subtree; see ``TreeMutator.remove``."""
        if not internal_id:
            logger.warning("Internal ID is required for removal")
            return False
        removed = self.mutator.remove(internal_id)
        if removed:
            self.refresh()
        return removed

    def update(self, internal_id: str, changes: Mapping[str, Any]) -> bool:
        """Merge fields onto a node; see ``TreeMutator.update``."""
        if not internal_id:
            logger.warning("Internal ID is required for update")
            return False
        updated = self.mutator.update(internal_id, changes)
        if updated:
            self.refresh()
        return updated

    def move(
        self,
        internal_id: str,
        target: str | None,
        position: Position | str = Position.AFTER,
    ) -> bool:
        """Relocate a node; see ``TreeMutator.move``."""
        moved = self.mutator.move(internal_id, target, position)
        if moved:
            self.refresh()
        return moved

    def update_data(self, records: list[Node]) -> bool:
        """Replace the whole forest with *records* and rebuild the indexes.

        Clears the search, goes back to page 1 and drops selection and
        expansion entries whose keys no longer exist.

        The indexes are rebuilt against *records* before the forest is
        swapped, so an allocation failure leaves the model unchanged.

        Returns:
            False (with a warning) if *records* is not a list of dict records

        Raises:
            AllocationExhaustedError: If no internal id can be allocated
        """
        try:
            validate_forest(records)
        except InvalidArgumentError as e:
            logger.warning("Cannot replace data: %s", e.message)
            return False

        self.registry.rebuild(records)
        self._forest[:] = records
        live_keys = set(self.registry.natural_keys())
        self.selection.discard([k for k in self.selection.keys() if k not in live_keys])
        self.expanded.discard([k for k in self.expanded.keys() if k not in live_keys])
        self._search_term = ""
        self._paginator.reset()
        self.refresh()

        self._dispatcher.emit(DataReplacedEvent(root_count=len(self._forest), node_count=len(self.registry)))
        self._dispatcher.emit(StructureChangedEvent(operation="replace", node_count=len(self.registry)))
        return True

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    @property
    def search_term(self) -> str:
        return self._search_term

    def search(self, term: str) -> list[Node]:
        """Filter the tree by *term* and return the filtered roots.

        Resets to page 1. A non-empty term also expands every node in the
        result so matches are visible; an empty term clears the filter
        without touching the expanded set.
        """
        self._search_term = (term or "").lower()
        self._paginator.reset()
        self.refresh()

        if self._search_term:
            added = self.expanded.add(expansion_set_for_matches(self._filtered))
            if added:
                self._dispatcher.emit(ExpansionChangedEvent(natural_keys=tuple(added), expanded=True))

        self._dispatcher.emit(
            SearchAppliedEvent(
                term=self._search_term,
                match_count=count_matches(self._filtered, self._search_term, self.display_field),
                root_count=len(self._filtered),
            )
        )
        return self.filtered_data

    def clear_search(self) -> list[Node]:
        """Remove the filter. Returns the (unfiltered) roots."""
        return self.search("")

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    @property
    def current_page(self) -> int:
        return self._paginator.current_page

    @property
    def total_pages(self) -> int:
        return self._paginator.total_pages

    @property
    def page_size(self) -> int:
        return self._paginator.page_size

    def page(self) -> list[Node]:
        """Root entries on the current page (everything if pagination is off)."""
        return self._paginator.page(self._filtered)

    def page_info(self) -> PageInfo:
        return self._paginator.info(len(self._filtered))

    def set_page_size(self, page_size: int) -> bool:
        """Change the page size and go to page 1. Non-positive sizes are rejected."""
        if not self._paginator.set_page_size(page_size):
            return False
        self._page_changed()
        return True

    def go_to_page(self, page: int) -> int:
        """Go to *page*, clamped into ``[1, total_pages]``. Returns the new page."""
        before = self.current_page
        current = self._paginator.go_to_page(page, len(self._filtered))
        if current != before:
            self._page_changed()
        return current

    def next_page(self) -> bool:
        moved = self._paginator.next_page(len(self._filtered))
        if moved:
            self._page_changed()
        return moved

    def previous_page(self) -> bool:
        moved = self._paginator.previous_page(len(self._filtered))
        if moved:
            self._page_changed()
        return moved

    def first_page(self) -> None:
        self.go_to_page(1)

    def last_page(self) -> None:
        self.go_to_page(self.total_pages)

    def _page_changed(self) -> None:
        self._paginator.recompute(len(self._filtered))
        self._dispatcher.emit(
            PageChangedEvent(
                current_page=self.current_page,
                total_pages=self.total_pages,
                page_size=self.page_size,
            )
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_keys(self) -> list[str]:
        return self.selection.keys()

    def toggle_selection(self, internal_id: str) -> bool | None:
        """Checkbox toggle with cascade to descendants.

        Returns:
            The node's new state, or None if the id does not resolve
        """
        node = self.get_node(internal_id)
        if node is None:
            return None
        key = natural_key(node)
        if self.selection.is_selected(key):
            changed = self.selection.deselect_cascade(node)
            selected = False
        else:
            changed = self.selection.select_cascade(node)
            selected = True
        self._dispatcher.emit(SelectionChangedEvent(natural_key=key, selected=selected, affected_keys=tuple(changed)))
        return selected

    def select(self, internal_id: str) -> bool:
        """Click selection: selects only this node (replacing unless multi-select)."""
        node = self.get_node(internal_id)
        if node is None:
            return False
        changed = self.selection.select(node)
        if changed:
            self._dispatcher.emit(
                SelectionChangedEvent(natural_key=natural_key(node), selected=True, affected_keys=tuple(changed))
            )
        return True

    def clear_selection(self) -> None:
        keys = self.selection.keys()
        self.selection.clear()
        if keys:
            self._dispatcher.emit(SelectionChangedEvent(selected=False, affected_keys=tuple(keys)))

    def selected_records(self) -> list[Node]:
        """Live records of the selected keys (keys with no node are skipped)."""
        records = []
        for key in self.selection.keys():
            node = self.registry.lookup_by_natural_key(key)
            if node is not None:
                records.append(node)
        return records

    def selected_details(self) -> list[SelectedItem]:
        """Selected records with display value, child flag and depth."""
        items = []
        for key in self.selection.keys():
            node = self.registry.lookup_by_natural_key(key)
            if node is None:
                continue
            items.append(
                SelectedItem(
                    natural_key=key,
                    record=node,
                    display_value=display_value(node, self.display_field),
                    has_children=has_children(node),
                    level=self.node_level(node),
                )
            )
        return items

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    @property
    def expanded_keys(self) -> list[str]:
        return self.expanded.keys()

    def is_expanded(self, key: str) -> bool:
        return key in self.expanded

    def expand(self, key: str) -> bool:
        """Mark a natural key as expanded. Returns False if it already was."""
        return self._set_expanded([key], True)

    def collapse(self, key: str) -> bool:
        """Unmark a natural key. Returns False if it was not expanded."""
        return self._set_expanded([key], False)

    def toggle_expanded(self, key: str) -> bool:
        """Flip a key's expansion. Returns the new state."""
        expanded = key not in self.expanded
        self._set_expanded([key], expanded)
        return expanded

    def expand_all(self) -> None:
        """Expand every node on the current page (subtrees included)."""
        keys = [natural_key(node) for root in self.page() for node in iter_subtree(root)]
        self._set_expanded(keys, True)

    def collapse_all(self) -> None:
        self._set_expanded(self.expanded.keys(), False)

    def _set_expanded(self, keys: Sequence[str], expanded: bool) -> bool:
        changed = self.expanded.add(keys) if expanded else self.expanded.discard(keys)
        if changed:
            self._dispatcher.emit(ExpansionChangedEvent(natural_keys=tuple(changed), expanded=expanded))
        return bool(changed)

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export(self, *, include_internal_ids: bool = False, only_visible: bool = False) -> list[Node]:
        """Deep copy of the forest (or of the filtered forest with ``only_visible``)."""
        source = self._filtered if only_visible else self._forest
        return export_records(source, include_internal_ids=include_internal_ids)

    def to_json(
        self,
        *,
        include_internal_ids: bool = False,
        only_visible: bool = False,
        pretty: bool = True,
    ) -> str:
        source = self._filtered if only_visible else self._forest
        return to_json(source, include_internal_ids=include_internal_ids, pretty=pretty)

    def to_csv(self) -> str:
        """The whole forest as CSV (see ``arbor.serializers.to_csv``)."""
        return to_csv(self._forest, self.display_field)

    def export_selected(self) -> list[Node]:
        """Deep copies of the selected records, internal ids stripped."""
        return export_records(self.selected_records())

    def import_data(self, payload: str | bytes | Sequence[Any]) -> bool:
        """Replace the forest from JSON text or a parsed list.

        Returns:
            True on success; False (with a warning) on malformed input, in
            which case the current forest is kept
        """
        try:
            records = parse_records(payload)
        except InvalidArgumentError as e:
            logger.warning("Error importing tree data: %s", e.message)
            return False
        return self.update_data(records)

    def to_networkx(self) -> nx.DiGraph:
        """The forest as a DiGraph keyed by internal id."""
        return to_networkx(self._forest, self.registry, self.display_field)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> TreeStats:
        total = 0
        deepest = 0
        for _, _, level in walk(self._forest):
            total += 1
            deepest = max(deepest, level)
        return TreeStats(
            total_nodes=total,
            total_levels=deepest,
            selected_nodes=len(self.selection),
            expanded_nodes=len(self.expanded),
            filtered_nodes=len(self._filtered),
            current_page=self.current_page,
            total_pages=self.total_pages,
        )

    def close(self) -> None:
        """Shut down event processors."""
        self._dispatcher.shutdown()
