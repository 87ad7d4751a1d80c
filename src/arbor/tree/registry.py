"""Node registry: the three indexes kept over a forest.

The registry is the only place internal ids are attached to nodes. It
owns:

- natural key -> node (last write wins on collision, in pre-order)
- internal id -> node
- node identity -> internal id

Contract: after any public mutation completes, calling ``rebuild`` on the
same forest changes nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from arbor.identity import IdentityAllocator
from arbor.query import natural_key
from arbor.tree._helpers import INTERNAL_ID_FIELD, Node, iter_subtree, walk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    """Comparable copy of the registry's indexes.

    Nodes are represented by ``id()`` so two snapshots are equal only when
    the same node objects are indexed under the same keys. Entries are
    sorted, so insertion order does not affect equality.
    """

    by_natural_key: tuple[tuple[str, int], ...]
    by_internal_id: tuple[tuple[str, int], ...]
    internal_id_by_node: tuple[tuple[int, str], ...]


class NodeRegistry:
    """Indexes a forest by natural key and internal id.

    Args:
        allocator: Source of fresh internal ids. A registry creates its own
            when none is given.

    Example:
        >>> forest = [{"id": "a", "name": "A", "children": [{"id": "b", "name": "B"}]}]
        >>> registry = NodeRegistry()
        >>> registry.rebuild(forest)
        >>> registry.lookup_by_natural_key("b")["name"]
        'B'
        >>> iid = registry.internal_id_of(forest[0])
        >>> registry.lookup_by_internal_id(iid) is forest[0]
        True
    """

    def __init__(self, allocator: IdentityAllocator | None = None) -> None:
        self._allocator = allocator if allocator is not None else IdentityAllocator()
        self._by_key: dict[str, Node] = {}
        self._by_internal_id: dict[str, Node] = {}
        # Keyed by id(node): records are unhashable dicts. Entries are only
        # trusted when _by_internal_id maps back to the same object.
        self._id_by_node: dict[int, str] = {}

    @property
    def allocator(self) -> IdentityAllocator:
        """The allocator issuing this registry's internal ids."""
        return self._allocator

    def __len__(self) -> int:
        return len(self._by_internal_id)

    def __contains__(self, internal_id: object) -> bool:
        return internal_id in self._by_internal_id

    def items(self) -> Iterator[tuple[str, Node]]:
        """Iterate ``(internal_id, node)`` pairs in indexing order."""
        return iter(list(self._by_internal_id.items()))

    def internal_ids(self) -> list[str]:
        """All currently indexed internal ids."""
        return list(self._by_internal_id)

    def natural_keys(self) -> list[str]:
        """All currently indexed natural keys."""
        return list(self._by_key)

    # ------------------------------------------------------------------
    # Lookups (never raise)
    # ------------------------------------------------------------------

    def lookup_by_natural_key(self, key: str) -> Node | None:
        """Node last indexed under *key*, or None."""
        return self._by_key.get(key)

    def lookup_by_internal_id(self, internal_id: str) -> Node | None:
        """Node carrying *internal_id*, or None."""
        if not isinstance(internal_id, str):
            return None
        return self._by_internal_id.get(internal_id)

    def internal_id_of(self, node: Node) -> str | None:
        """Internal id of this exact node object, or None if it is not indexed."""
        internal_id = self._id_by_node.get(id(node))
        if internal_id is None or self._by_internal_id.get(internal_id) is not node:
            return None
        return internal_id

    def has_internal_id(self, internal_id: str) -> bool:
        """True if *internal_id* is currently indexed."""
        return internal_id in self._by_internal_id

    def natural_key_of(self, node: Node) -> str:
        """Natural key of *node* (caller ``id`` or derived key)."""
        return natural_key(node)

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    def rebuild(self, forest: list[Node]) -> None:
        """Clear and repopulate every index from *forest*.

        Each node keeps the ``_internal_id`` it carries when that id is still
        valid for it; otherwise a fresh id is allocated and written onto the
        node. A carried id is valid when no other node claimed it earlier in
        this pass and it is one of:

        - never issued by this allocator (imported data)
        - currently indexed to this same node
        - currently indexed to a node that is no longer in *forest*, so the
          record replacing it takes over its id

        Ids of removed nodes are issued but no longer indexed, so they are
        never valid again.

        The new indexes are built on the side and swapped in at the end. If
        allocation fails, the registry and the nodes are left unchanged.

        Raises:
            AllocationExhaustedError: If the allocator cannot produce an id
        """
        nodes = [node for node, _, _ in walk(forest)]
        present = {id(node) for node in nodes}

        kept: dict[str, Node] = {}
        for node in nodes:
            carried = node.get(INTERNAL_ID_FIELD)
            if self._can_keep(node, carried, kept, present):
                kept[carried] = node

        # Allocate before reserving kept ids: a failed pass must not mark
        # imported ids as issued, or a retry would refuse them.
        keep_ids = {id(node): internal_id for internal_id, node in kept.items()}
        assigned: dict[int, str] = {}
        for node in nodes:
            if id(node) not in keep_ids:
                internal_id = self._allocator.allocate()
                while internal_id in kept:
                    internal_id = self._allocator.allocate()
                assigned[id(node)] = internal_id
        for internal_id in kept:
            self._allocator.reserve(internal_id)

        by_key: dict[str, Node] = {}
        by_internal_id: dict[str, Node] = {}
        id_by_node: dict[int, str] = {}
        for node in nodes:
            internal_id = keep_ids.get(id(node))
            if internal_id is None:
                internal_id = assigned[id(node)]
                node[INTERNAL_ID_FIELD] = internal_id
            by_key[natural_key(node)] = node
            by_internal_id[internal_id] = node
            id_by_node[id(node)] = internal_id
        self._by_key = by_key
        self._by_internal_id = by_internal_id
        self._id_by_node = id_by_node

        if assigned:
            logger.debug("Registry rebuilt: %d nodes, %d new internal ids", len(self), len(assigned))

    def _can_keep(self, node: Node, carried: object, kept: dict[str, Node], present: set[int]) -> bool:
        if not isinstance(carried, str) or not carried or carried in kept:
            return False
        if not self._allocator.is_issued(carried):
            return True
        owner = self._by_internal_id.get(carried)
        if owner is None:
            return False
        return owner is node or id(owner) not in present

    def _index(self, node: Node, internal_id: str) -> None:
        self._by_key[natural_key(node)] = node
        self._by_internal_id[internal_id] = node
        self._id_by_node[id(node)] = internal_id

    # ------------------------------------------------------------------
    # Incremental repair (used by the mutator)
    # ------------------------------------------------------------------

    def reserve_ids(self, root: Node) -> dict[int, str]:
        """Allocate ids for every node of a new, not yet spliced subtree.

        Nothing is written to the nodes or indexes, so a failure here leaves
        the registry untouched.

        Returns:
            Map of ``id(node)`` to its new internal id

        Raises:
            AllocationExhaustedError: If the allocator cannot produce an id
        """
        return {id(node): self._allocator.allocate() for node in iter_subtree(root)}

    def index_subtree(self, root: Node, ids: dict[int, str]) -> None:
        """Write reserved ids onto a freshly spliced subtree and index it."""
        for node in iter_subtree(root):
            internal_id = ids[id(node)]
            node[INTERNAL_ID_FIELD] = internal_id
            self._index(node, internal_id)

    def purge_subtree(self, root: Node) -> list[str]:
        """Remove a node and its descendants from every index.

        Natural-key entries are only dropped when they point at a purged
        node, so a colliding survivor keeps its entry.

        Returns:
            Natural keys of the purged nodes, in pre-order
        """
        keys: list[str] = []
        for node in iter_subtree(root):
            internal_id = self.internal_id_of(node)
            if internal_id is not None:
                del self._by_internal_id[internal_id]
                del self._id_by_node[id(node)]
            key = natural_key(node)
            if self._by_key.get(key) is node:
                del self._by_key[key]
            keys.append(key)
        return keys

    def reindex_natural_keys(self, forest: list[Node]) -> None:
        """Recompute the natural-key index in pre-order without touching ids."""
        self._by_key = {natural_key(node): node for node, _, _ in walk(forest)}

    def snapshot(self) -> RegistrySnapshot:
        """Capture the current indexes for comparison."""
        return RegistrySnapshot(
            by_natural_key=tuple(sorted((k, id(n)) for k, n in self._by_key.items())),
            by_internal_id=tuple(sorted((k, id(n)) for k, n in self._by_internal_id.items())),
            internal_id_by_node=tuple(sorted(self._id_by_node.items())),
        )
