"""Event system for observing tree changes."""

from arbor.events.dispatcher import EventDispatcher
from arbor.events.processor import EventProcessor, TypedEventProcessor
from arbor.events.types import (
    BaseEvent,
    DataReplacedEvent,
    Event,
    ExpansionChangedEvent,
    NodeInsertedEvent,
    NodeMovedEvent,
    NodeRemovedEvent,
    NodeUpdatedEvent,
    PageChangedEvent,
    SearchAppliedEvent,
    SelectionChangedEvent,
    StructureChangedEvent,
)

__all__ = [
    # Event types
    "BaseEvent",
    "Event",
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
    # Processor interfaces
    "EventProcessor",
    "TypedEventProcessor",
    # Dispatcher
    "EventDispatcher",
]
