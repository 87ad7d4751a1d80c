"""Selection tracking by natural key."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from arbor.query import natural_key
from arbor.tree._helpers import Node, iter_subtree


class SelectionTracker:
    """Ordered set of selected natural keys.

    ``toggle`` is the checkbox gesture: it cascades to every descendant.
    ``select`` is the click gesture: it only touches the node itself and,
    unless ``multi_select`` is set, replaces the previous selection.

    There is no upward propagation: selecting every child does not select
    the parent.

    Example:
        >>> tree = {"id": "a", "children": [{"id": "b"}, {"id": "c"}]}
        >>> tracker = SelectionTracker()
        >>> tracker.toggle(tree)
        True
        >>> tracker.keys()
        ['a', 'b', 'c']
        >>> tracker.toggle(tree)
        False
        >>> tracker.keys()
        []
    """

    def __init__(
        self,
        *,
        multi_select: bool = False,
        key: Callable[[Node], str] = natural_key,
    ) -> None:
        self.multi_select = multi_select
        self._key = key
        self._selected: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, key: object) -> bool:
        return key in self._selected

    def keys(self) -> list[str]:
        """Selected keys in selection order."""
        return list(self._selected)

    def is_selected(self, key: str) -> bool:
        return key in self._selected

    def toggle(self, node: Node) -> bool:
        """Flip the node's state and cascade it to all descendants.

        Returns:
            The node's new selection state
        """
        if self._key(node) in self._selected:
            self.deselect_cascade(node)
            return False
        self.select_cascade(node)
        return True

    def select_cascade(self, node: Node) -> list[str]:
        """Select the node and every descendant. Returns keys that changed."""
        changed = []
        for member in iter_subtree(node):
            key = self._key(member)
            if key not in self._selected:
                self._selected[key] = None
                changed.append(key)
        return changed

    def deselect_cascade(self, node: Node) -> list[str]:
        """Deselect the node and every descendant. Returns keys that changed."""
        changed = []
        for member in iter_subtree(node):
            key = self._key(member)
            if key in self._selected:
                del self._selected[key]
                changed.append(key)
        return changed

    def select(self, node: Node) -> list[str]:
        """Select only this node; clears others first in single-select mode.

        Returns:
            Keys whose state changed (deselected ones included)
        """
        key = self._key(node)
        changed = []
        if not self.multi_select:
            changed = [k for k in self._selected if k != key]
            self._selected = {k: None for k in self._selected if k == key}
        if key not in self._selected:
            self._selected[key] = None
            changed.append(key)
        return changed

    def deselect(self, node: Node) -> bool:
        """Deselect only this node. Returns False if it was not selected."""
        key = self._key(node)
        if key not in self._selected:
            return False
        del self._selected[key]
        return True

    def discard(self, keys: Iterable[str]) -> None:
        """Forget keys, e.g. of removed nodes."""
        for key in keys:
            self._selected.pop(key, None)

    def rename(self, old: str, new: str) -> None:
        """Carry a selection over when a node's natural key changes."""
        if old == new or old not in self._selected:
            return
        self._selected = {(new if k == old else k): None for k in self._selected}

    def clear(self) -> None:
        """Deselect everything."""
        self._selected.clear()


class ExpandedSet:
    """Ordered set of natural keys marked as expanded.

    Only presentation state: it never changes the forest.
    """

    def __init__(self) -> None:
        self._keys: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def keys(self) -> list[str]:
        return list(self._keys)

    def add(self, keys: Iterable[str]) -> list[str]:
        """Mark keys as expanded. Returns the keys that were not already."""
        added = [key for key in dict.fromkeys(keys) if key not in self._keys]
        self._keys.update(dict.fromkeys(added))
        return added

    def discard(self, keys: Iterable[str]) -> list[str]:
        """Unmark keys. Returns the keys that were expanded."""
        removed = [key for key in dict.fromkeys(keys) if key in self._keys]
        for key in removed:
            del self._keys[key]
        return removed

    def rename(self, old: str, new: str) -> None:
        if old == new or old not in self._keys:
            return
        self._keys = {(new if k == old else k): None for k in self._keys}

    def clear(self) -> list[str]:
        """Unmark everything. Returns the keys that were expanded."""
        removed = list(self._keys)
        self._keys.clear()
        return removed
