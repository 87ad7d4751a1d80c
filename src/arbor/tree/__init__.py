"""Tree package - the forest model, its registry, mutation and validation."""

from arbor.tree.core import SelectedItem, TreeModel, TreeStats
from arbor.tree.mutator import TreeMutator
from arbor.tree.registry import NodeRegistry, RegistrySnapshot
from arbor.tree.validation import Position, parse_position, validate_forest

__all__ = [
    "TreeModel",
    "TreeStats",
    "SelectedItem",
    "TreeMutator",
    "NodeRegistry",
    "RegistrySnapshot",
    "Position",
    "parse_position",
    "validate_forest",
]
