"""Arbor - an indexed, searchable, pageable tree store for tree-view widgets."""

from arbor.tree import (
    NodeRegistry,
    Position,
    RegistrySnapshot,
    SelectedItem,
    TreeModel,
    TreeMutator,
    TreeStats,
)
from arbor.config import TreeConfig
from arbor.events import (
    BaseEvent,
    DataReplacedEvent,
    Event,
    EventDispatcher,
    EventProcessor,
    ExpansionChangedEvent,
    NodeInsertedEvent,
    NodeMovedEvent,
    NodeRemovedEvent,
    NodeUpdatedEvent,
    PageChangedEvent,
    SearchAppliedEvent,
    SelectionChangedEvent,
    StructureChangedEvent,
    TypedEventProcessor,
)
from arbor.exceptions import (
    AllocationExhaustedError,
    InvalidArgumentError,
    TreeConfigError,
)
from arbor.identity import IdentityAllocator
from arbor.pagination import Page, PageInfo, Paginator, paginate, total_pages_for
from arbor.query import (
    NodeMatch,
    derive_natural_key,
    expansion_set_for_matches,
    filter_forest,
    natural_key,
)
from arbor.selection import ExpandedSet, SelectionTracker
from arbor.serializers import export_records, parse_records, to_csv, to_json, to_networkx

__all__ = [
    # Model
    "TreeModel",
    "TreeConfig",
    "TreeStats",
    "SelectedItem",
    # Components
    "IdentityAllocator",
    "NodeRegistry",
    "RegistrySnapshot",
    "TreeMutator",
    "Position",
    "SelectionTracker",
    "ExpandedSet",
    "Paginator",
    "Page",
    "PageInfo",
    # Query
    "NodeMatch",
    "natural_key",
    "derive_natural_key",
    "filter_forest",
    "expansion_set_for_matches",
    "paginate",
    "total_pages_for",
    # Serialization
    "export_records",
    "parse_records",
    "to_json",
    "to_csv",
    "to_networkx",
    # Errors
    "AllocationExhaustedError",
    "InvalidArgumentError",
    "TreeConfigError",
    # Events
    "BaseEvent",
    "Event",
    "EventDispatcher",
    "EventProcessor",
    "TypedEventProcessor",
    "DataReplacedEvent",
    "ExpansionChangedEvent",
    "NodeInsertedEvent",
    "NodeMovedEvent",
    "NodeRemovedEvent",
    "NodeUpdatedEvent",
    "PageChangedEvent",
    "SearchAppliedEvent",
    "SelectionChangedEvent",
    "StructureChangedEvent",
]
