"""Tests for TreeMutator: insert, remove, update and move."""

import pytest

from arbor.events import (
    EventDispatcher,
    EventProcessor,
    NodeInsertedEvent,
    NodeMovedEvent,
    NodeRemovedEvent,
    NodeUpdatedEvent,
    StructureChangedEvent,
)
from arbor.exceptions import AllocationExhaustedError
from arbor.identity import IdentityAllocator
from arbor.selection import ExpandedSet, SelectionTracker
from arbor.tree.mutator import TreeMutator
from arbor.tree.registry import NodeRegistry


class ListProcessor(EventProcessor):
    """Collects all events for assertion."""

    def __init__(self):
        self.events: list = []

    def on_event(self, event):
        self.events.append(event)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]


def make_mutator(forest, allocator=None):
    registry = NodeRegistry(allocator)
    registry.rebuild(forest)
    lp = ListProcessor()
    mutator = TreeMutator(
        forest,
        registry,
        selection=SelectionTracker(multi_select=True),
        expanded=ExpandedSet(),
        dispatcher=EventDispatcher([lp]),
    )
    return mutator, lp


def make_forest():
    return [
        {"id": "a", "name": "A", "children": [{"id": "a1", "name": "A1"}, {"id": "a2", "name": "A2"}]},
        {"id": "b", "name": "B"},
        {"id": "c", "name": "C"},
    ]


def ids(nodes):
    return [n["id"] for n in nodes]


def assert_consistent(mutator):
    """Rebuilding after a mutation must change nothing."""
    before = mutator.registry.snapshot()
    mutator.registry.rebuild(mutator.forest)
    assert mutator.registry.snapshot() == before


# ---------------------------------------------------------------------------
# Insert
# ---------------------------------------------------------------------------


class TestInsert:
    def test_insert_first_then_remove_restores(self):
        forest = [{"id": "y", "name": "Y"}]
        mutator, _ = make_mutator(forest)

        new_id = mutator.insert(None, {"id": "x", "name": "X"}, "first")
        assert ids(forest) == ["x", "y"]

        assert mutator.remove(new_id)
        assert ids(forest) == ["y"]
        assert mutator.registry.lookup_by_internal_id(new_id) is None

    def test_insert_last_under_parent(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        parent_id = forest[0]["_internal_id"]

        new_id = mutator.insert(parent_id, {"id": "a3"})

        assert ids(forest[0]["children"]) == ["a1", "a2", "a3"]
        assert mutator.registry.lookup_by_internal_id(new_id) is forest[0]["children"][2]
        assert_consistent(mutator)

    def test_insert_under_leaf_creates_children(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)

        mutator.insert(forest[1]["_internal_id"], {"id": "b1"})

        assert ids(forest[1]["children"]) == ["b1"]

    def test_insert_before_and_after_reference(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        ref = forest[0]["children"][1]["_internal_id"]

        mutator.insert(None, {"id": "before"}, "before", reference=ref)
        mutator.insert(None, {"id": "after"}, "after", reference=ref)

        assert ids(forest[0]["children"]) == ["a1", "before", "a2", "after"]
        assert_consistent(mutator)

    def test_unresolved_reference_appends(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)

        new_id = mutator.insert(None, {"id": "z"}, "before", reference="missing")

        assert new_id is not None
        assert ids(forest) == ["a", "b", "c", "z"]

    def test_unknown_parent_fails(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)

        assert mutator.insert("missing", {"id": "z"}) is None
        assert len(forest) == 3
        assert lp.events == []

    def test_invalid_position_fails(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert mutator.insert(None, {"id": "z"}, "middle") is None
        assert len(forest) == 3

    def test_invalid_record_fails(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert mutator.insert(None, "not a record") is None
        assert mutator.insert(None, {"id": "z", "children": "nope"}) is None
        assert len(forest) == 3

    def test_record_is_copied(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        record = {"id": "z", "children": [{"id": "z1"}]}

        mutator.insert(None, record)
        record["children"].append({"id": "z2"})

        assert ids(forest[3]["children"]) == ["z1"]
        assert "_internal_id" not in record

    def test_nested_record_indexes_whole_subtree(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)

        mutator.insert(None, {"id": "z", "children": [{"id": "z1", "children": [{"id": "z2"}]}]})

        assert mutator.registry.lookup_by_natural_key("z2") is forest[3]["children"][0]["children"][0]
        assert lp.of_type(NodeInsertedEvent)[0].subtree_size == 3
        assert_consistent(mutator)

    def test_carried_internal_ids_are_dropped(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        existing = forest[1]["_internal_id"]

        new_id = mutator.insert(None, {"id": "z", "_internal_id": existing})

        assert new_id != existing
        assert mutator.registry.lookup_by_internal_id(existing) is forest[1]

    def test_colliding_natural_key_last_write_wins(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)

        mutator.insert(None, {"id": "b", "name": "B first"}, "first")

        assert mutator.registry.lookup_by_natural_key("b")["name"] == "B"
        assert_consistent(mutator)

    def test_allocation_failure_leaves_tree_untouched(self, monkeypatch):
        allocator = IdentityAllocator(max_attempts=2)
        forest = make_forest()
        mutator, lp = make_mutator(forest, allocator)
        before = mutator.registry.snapshot()
        allocator.reserve("same")
        monkeypatch.setattr(allocator, "_candidate", lambda: "same")

        with pytest.raises(AllocationExhaustedError):
            mutator.insert(None, {"id": "z"})

        assert ids(forest) == ["a", "b", "c"]
        assert mutator.registry.snapshot() == before
        assert lp.events == []

    def test_allocation_failure_under_leaf_adds_no_children(self, monkeypatch):
        allocator = IdentityAllocator(max_attempts=2)
        forest = make_forest()
        mutator, lp = make_mutator(forest, allocator)
        leaf = forest[1]
        allocator.reserve("same")
        monkeypatch.setattr(allocator, "_candidate", lambda: "same")

        with pytest.raises(AllocationExhaustedError):
            mutator.insert(leaf["_internal_id"], {"id": "b1"})

        assert "children" not in leaf
        assert lp.events == []

    def test_emits_inserted_then_structure_changed(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)
        parent_id = forest[0]["_internal_id"]

        mutator.insert(parent_id, {"id": "a3"}, "first")

        inserted, changed = lp.events
        assert isinstance(inserted, NodeInsertedEvent)
        assert inserted.parent_id == parent_id
        assert inserted.position == "first"
        assert isinstance(changed, StructureChangedEvent)
        assert changed.operation == "insert"
        assert changed.node_count == 6


class TestInsertAdjacent:
    def test_inserts_after_reference(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)

        mutator.insert_adjacent(forest[1]["_internal_id"], {"id": "z"})

        assert ids(forest) == ["a", "b", "z", "c"]

    def test_unknown_reference_fails(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert mutator.insert_adjacent("missing", {"id": "z"}) is None
        assert len(forest) == 3

    def test_absolute_position_fails(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert mutator.insert_adjacent(forest[1]["_internal_id"], {"id": "z"}, "first") is None


# ---------------------------------------------------------------------------
# Remove
# ---------------------------------------------------------------------------


class TestRemove:
    def test_removes_subtree_from_every_index(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        child_id = forest[0]["children"][0]["_internal_id"]

        assert mutator.remove(forest[0]["_internal_id"])

        assert ids(forest) == ["b", "c"]
        assert mutator.registry.lookup_by_internal_id(child_id) is None
        assert mutator.registry.lookup_by_natural_key("a1") is None
        assert len(mutator.registry) == 2
        assert_consistent(mutator)

    def test_purges_selection_and_expansion(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        mutator.selection.toggle(forest[0])
        mutator.selection.select(forest[1])
        mutator.expanded.add(["a", "a1", "b"])

        mutator.remove(forest[0]["_internal_id"])

        assert mutator.selection.keys() == ["b"]
        assert mutator.expanded.keys() == ["b"]

    def test_unknown_id_fails(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)
        assert not mutator.remove("missing")
        assert lp.events == []

    def test_removed_id_is_not_reused(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        old_id = forest[2]["_internal_id"]
        mutator.remove(old_id)

        new_ids = {mutator.insert(None, {"id": f"n{i}"}) for i in range(50)}

        assert old_id not in new_ids

    def test_emits_removed_keys(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)

        mutator.remove(forest[0]["_internal_id"])

        event = lp.of_type(NodeRemovedEvent)[0]
        assert event.natural_key == "a"
        assert event.removed_keys == ("a", "a1", "a2")


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_merges_fields_in_place(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        node = forest[1]

        assert mutator.update(node["_internal_id"], {"name": "Bee", "color": "yellow"})

        assert forest[1] is node
        assert node["name"] == "Bee"
        assert node["color"] == "yellow"

    def test_protected_fields_are_ignored(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)
        internal_id = forest[0]["_internal_id"]

        mutator.update(internal_id, {"children": [], "_internal_id": "hijack", "name": "AA"})

        assert forest[0]["_internal_id"] == internal_id
        assert ids(forest[0]["children"]) == ["a1", "a2"]
        assert lp.of_type(NodeUpdatedEvent)[0].fields == ("name",)

    def test_key_change_reindexes_and_migrates_state(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)
        mutator.selection.select(forest[1])
        mutator.expanded.add(["b"])

        mutator.update(forest[1]["_internal_id"], {"id": "bee"})

        assert mutator.registry.lookup_by_natural_key("bee") is forest[1]
        assert mutator.registry.lookup_by_natural_key("b") is None
        assert mutator.selection.keys() == ["bee"]
        assert mutator.expanded.keys() == ["bee"]
        event = lp.of_type(NodeUpdatedEvent)[0]
        assert (event.old_key, event.new_key) == ("b", "bee")
        assert_consistent(mutator)

    def test_unknown_id_fails(self):
        mutator, _ = make_mutator(make_forest())
        assert not mutator.update("missing", {"name": "x"})

    def test_non_mapping_changes_fail(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert not mutator.update(forest[1]["_internal_id"], ["name"])


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------


class TestMove:
    def test_move_after_sibling(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)

        assert mutator.move(forest[0]["_internal_id"], forest[2]["_internal_id"], "after")

        assert ids(forest) == ["b", "c", "a"]
        assert_consistent(mutator)

    def test_move_into_parent_keeps_internal_id(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)
        moving = forest[2]
        internal_id = moving["_internal_id"]

        assert mutator.move(internal_id, forest[0]["_internal_id"], "first")

        assert ids(forest) == ["a", "b"]
        assert forest[0]["children"][0] is moving
        assert moving["_internal_id"] == internal_id
        event = lp.of_type(NodeMovedEvent)[0]
        assert event.old_parent_id is None
        assert event.new_parent_id == forest[0]["_internal_id"]
        assert event.index == 0

    def test_move_to_root_level(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        child = forest[0]["children"][1]

        assert mutator.move(child["_internal_id"], None, "last")

        assert ids(forest) == ["a", "b", "c", "a2"]
        assert ids(forest[0]["children"]) == ["a1"]

    def test_move_into_own_subtree_refused(self):
        forest = make_forest()
        mutator, lp = make_mutator(forest)

        assert not mutator.move(forest[0]["_internal_id"], forest[0]["children"][0]["_internal_id"], "last")
        assert not mutator.move(forest[0]["_internal_id"], forest[0]["_internal_id"], "after")

        assert ids(forest) == ["a", "b", "c"]
        assert lp.events == []

    def test_relative_move_requires_target(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert not mutator.move(forest[0]["_internal_id"], None, "before")

    def test_unknown_target_fails(self):
        forest = make_forest()
        mutator, _ = make_mutator(forest)
        assert not mutator.move(forest[0]["_internal_id"], "missing", "first")
        assert ids(forest) == ["a", "b", "c"]
