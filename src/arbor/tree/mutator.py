"""Structural mutation of a forest.

Every operation either completes fully (structure change plus index
repair) or leaves everything as it was. Expected failures (unknown ids,
malformed input) are logged and reported as ``None`` / ``False``; only
``AllocationExhaustedError`` propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from arbor.events import (
    EventDispatcher,
    NodeInsertedEvent,
    NodeMovedEvent,
    NodeRemovedEvent,
    NodeUpdatedEvent,
    StructureChangedEvent,
)
from arbor.exceptions import InvalidArgumentError
from arbor.query import natural_key
from arbor.selection import ExpandedSet, SelectionTracker
from arbor.tree._helpers import (
    CHILDREN_FIELD,
    INTERNAL_ID_FIELD,
    Node,
    children_of,
    copy_structure,
    find_parent,
    is_in_subtree,
    iter_subtree,
    locate,
)
from arbor.tree.registry import NodeRegistry
from arbor.tree.validation import (
    Position,
    parse_position,
    validate_changes,
    validate_record,
)

logger = logging.getLogger(__name__)

# Fields update() never writes
_PROTECTED_FIELDS = frozenset({CHILDREN_FIELD, INTERNAL_ID_FIELD})


class TreeMutator:
    """Insert, remove, update and move nodes while keeping the registry consistent.

    The mutator works on the forest list it is given, in place. Removal also
    purges the removed keys from the selection and the expanded set.

    Args:
        forest: Root list to mutate
        registry: Registry indexing *forest*
        selection: Selection to purge on removal
        expanded: Expanded set to purge on removal
        dispatcher: Receives change events
    """

    def __init__(
        self,
        forest: list[Node],
        registry: NodeRegistry,
        *,
        selection: SelectionTracker | None = None,
        expanded: ExpandedSet | None = None,
        dispatcher: EventDispatcher | None = None,
    ) -> None:
        self.forest = forest
        self.registry = registry
        self.selection = selection if selection is not None else SelectionTracker()
        self.expanded = expanded if expanded is not None else ExpandedSet()
        self.dispatcher = dispatcher or EventDispatcher()

    # ------------------------------------------------------------------
    # Insert
    # ------------------------------------------------------------------

    def insert(
        self,
        parent_id: str | None,
        record: Mapping[str, Any],
        position: Position | str = Position.LAST,
        reference: str | None = None,
    ) -> str | None:
        """Insert a copy of *record* under *parent_id* (None for the root level).

        ``first`` and ``last`` place the node at either end of the target
        list. ``before`` and ``after`` place it next to the *reference*
        node, inside the reference's own parent list. If the reference is
        missing or does not resolve, the node is appended to the target
        list instead.

        Args:
            parent_id: Internal id of the parent, or None for the root level
            record: Record to copy into the tree (may carry children)
            position: "first", "last", "before" or "after"
            reference: Internal id of the sibling for "before"/"after"

        Returns:
            Internal id of the new node, or None if the parent does not
            resolve or the input is invalid

        Raises:
            AllocationExhaustedError: If no internal id can be allocated
        """
        try:
            validate_record(record)
            pos = parse_position(position)
        except InvalidArgumentError as e:
            logger.warning("Cannot insert: %s", e.message)
            return None

        if parent_id is None:
            target = self.forest
        else:
            parent = self.registry.lookup_by_internal_id(parent_id)
            if parent is None:
                logger.warning("Cannot insert: parent node with internal ID '%s' not found", parent_id)
                return None
            target = children_of(parent)

        siblings, index = self._insertion_point(target, pos, reference)
        node = copy_structure(record, drop_internal_ids=True)
        ids = self.registry.reserve_ids(node)

        if parent_id is not None and siblings is target and parent.get(CHILDREN_FIELD) is not target:
            parent[CHILDREN_FIELD] = target
        siblings.insert(index, node)
        self._index_new_subtree(node, ids)

        internal_id = ids[id(node)]
        logger.debug("Inserted node %s at %s (parent=%s)", internal_id, pos.value, parent_id)
        self.dispatcher.emit(
            NodeInsertedEvent(
                internal_id=internal_id,
                parent_id=self._parent_id_of(siblings),
                position=pos.value,
                subtree_size=len(ids),
            )
        )
        self._structure_changed("insert")
        return internal_id

    def insert_adjacent(
        self,
        reference_id: str,
        record: Mapping[str, Any],
        position: Position | str = Position.AFTER,
    ) -> str | None:
        """Insert a copy of *record* directly before or after a reference node.

        Unlike ``insert``, an unresolvable reference is a failure.

        Returns:
            Internal id of the new node, or None
        """
        try:
            pos = parse_position(position)
        except InvalidArgumentError as e:
            logger.warning("Cannot insert: %s", e.message)
            return None
        if not pos.is_relative:
            logger.warning("Cannot insert: position must be 'before' or 'after', got '%s'", pos.value)
            return None
        if self.registry.lookup_by_internal_id(reference_id) is None:
            logger.warning("Cannot insert: reference node with internal ID '%s' not found", reference_id)
            return None
        return self.insert(None, record, pos, reference=reference_id)

    def _insertion_point(
        self,
        target: list[Node],
        position: Position,
        reference: str | None,
    ) -> tuple[list[Node], int]:
        if position is Position.FIRST:
            return target, 0
        if position is Position.LAST:
            return target, len(target)

        ref_node = self.registry.lookup_by_internal_id(reference) if reference is not None else None
        located = locate(self.forest, ref_node) if ref_node is not None else None
        if located is None:
            logger.warning(
                "Reference node '%s' not found for '%s' insert; appending to the end instead",
                reference,
                position.value,
            )
            return target, len(target)
        siblings, index = located
        return siblings, index if position is Position.BEFORE else index + 1

    def _index_new_subtree(self, node: Node, ids: dict[int, str]) -> None:
        new_keys = [natural_key(n) for n in iter_subtree(node)]
        collides = any(self.registry.lookup_by_natural_key(k) is not None for k in new_keys)
        self.registry.index_subtree(node, ids)
        if collides:
            # Last-write-wins depends on pre-order position
            self.registry.reindex_natural_keys(self.forest)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, internal_id: str) -> bool:
        """Remove a node and its whole subtree.

        The removed nodes disappear from every index, the selection and the
        expanded set. Their internal ids are never issued again.

        Returns:
            True on success, False if the id does not resolve
        """
        node = self.registry.lookup_by_internal_id(internal_id)
        if node is None:
            logger.warning("Cannot remove: node with internal ID '%s' not found", internal_id)
            return False
        located = locate(self.forest, node)
        if located is None:
            logger.warning("Cannot remove: node with internal ID '%s' is not attached to the tree", internal_id)
            return False

        siblings, index = located
        del siblings[index]
        removed_keys = self.registry.purge_subtree(node)
        self.selection.discard(removed_keys)
        self.expanded.discard(removed_keys)
        self.registry.rebuild(self.forest)

        logger.debug("Removed node %s (%d nodes)", internal_id, len(removed_keys))
        self.dispatcher.emit(
            NodeRemovedEvent(
                internal_id=internal_id,
                natural_key=removed_keys[0],
                removed_keys=tuple(removed_keys),
            )
        )
        self._structure_changed("remove")
        return True

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, internal_id: str, changes: Mapping[str, Any]) -> bool:
        """Merge *changes* onto the node in place.

        ``children`` and ``_internal_id`` in *changes* are ignored; use
        insert, remove and move to restructure. If the natural key changes,
        selection and expansion follow the node to its new key.

        Returns:
            True on success, False on an unknown id or invalid changes
        """
        try:
            validate_changes(changes)
        except InvalidArgumentError as e:
            logger.warning("Cannot update: %s", e.message)
            return False
        node = self.registry.lookup_by_internal_id(internal_id)
        if node is None:
            logger.warning("Cannot update: node with internal ID '%s' not found", internal_id)
            return False

        old_key = natural_key(node)
        fields = tuple(k for k in changes if k not in _PROTECTED_FIELDS)
        for field_name in fields:
            node[field_name] = changes[field_name]
        new_key = natural_key(node)

        if new_key != old_key:
            self.registry.reindex_natural_keys(self.forest)
            self.selection.rename(old_key, new_key)
            self.expanded.rename(old_key, new_key)

        logger.debug("Updated node %s fields=%s", internal_id, fields)
        self.dispatcher.emit(
            NodeUpdatedEvent(internal_id=internal_id, fields=fields, old_key=old_key, new_key=new_key)
        )
        self._structure_changed("update")
        return True

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    def move(
        self,
        internal_id: str,
        target: str | None,
        position: Position | str = Position.AFTER,
    ) -> bool:
        """Relocate a node (with its subtree) in one step.

        For "before"/"after", *target* is the internal id of the sibling to
        move next to. For "first"/"last", *target* is the internal id of the
        new parent, or None for the root level. Internal ids are kept.

        Moving a node next to itself or into its own subtree is refused.

        Returns:
            True on success, False otherwise
        """
        try:
            pos = parse_position(position)
        except InvalidArgumentError as e:
            logger.warning("Cannot move: %s", e.message)
            return False

        node = self.registry.lookup_by_internal_id(internal_id)
        if node is None:
            logger.warning("Cannot move: node with internal ID '%s' not found", internal_id)
            return False

        target_node = None
        if target is not None:
            target_node = self.registry.lookup_by_internal_id(target)
            if target_node is None:
                logger.warning("Cannot move: target node with internal ID '%s' not found", target)
                return False
        elif pos.is_relative:
            logger.warning("Cannot move: '%s' requires a reference node", pos.value)
            return False

        if target_node is not None and is_in_subtree(node, target_node):
            logger.warning("Cannot move node '%s' relative to itself or into its own subtree", internal_id)
            return False

        _, old_parent = find_parent(self.forest, node)
        source, source_index = locate(self.forest, node)
        del source[source_index]

        if pos.is_relative:
            siblings, ref_index = locate(self.forest, target_node)
            index = ref_index if pos is Position.BEFORE else ref_index + 1
        else:
            siblings = self.forest if target_node is None else _ensure_children(target_node)
            index = 0 if pos is Position.FIRST else len(siblings)
        siblings.insert(index, node)
        self.registry.reindex_natural_keys(self.forest)

        old_parent_id = self.registry.internal_id_of(old_parent) if old_parent is not None else None
        new_parent_id = self._parent_id_of(siblings)
        logger.debug("Moved node %s from %s to %s[%d]", internal_id, old_parent_id, new_parent_id, index)
        self.dispatcher.emit(
            NodeMovedEvent(
                internal_id=internal_id,
                old_parent_id=old_parent_id,
                new_parent_id=new_parent_id,
                index=index,
            )
        )
        self._structure_changed("move")
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _parent_id_of(self, siblings: list[Node]) -> str | None:
        """Internal id of the node owning *siblings* (None for the root list)."""
        if siblings is self.forest:
            return None
        for internal_id, candidate in self.registry.items():
            if candidate.get(CHILDREN_FIELD) is siblings:
                return internal_id
        return None

    def _structure_changed(self, operation: str) -> None:
        self.dispatcher.emit(StructureChangedEvent(operation=operation, node_count=len(self.registry)))


def _ensure_children(node: Node) -> list[Node]:
    """Return the node's children list, creating an empty one for leaves."""
    children = node.get(CHILDREN_FIELD)
    if not isinstance(children, list):
        children = []
        node[CHILDREN_FIELD] = children
    return children
