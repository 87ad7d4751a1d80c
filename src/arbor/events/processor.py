"""Consumers of tree model events.

A processor is handed to ``TreeModel(event_processors=[...])`` and sees
every structural, selection, expansion, search and paging change after
the model's indexes are consistent again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arbor.events.types import (
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


# Event class name -> handler on TypedEventProcessor
_HANDLERS: dict[str, str] = {
    "NodeInsertedEvent": "on_node_inserted",
    "NodeRemovedEvent": "on_node_removed",
    "NodeUpdatedEvent": "on_node_updated",
    "NodeMovedEvent": "on_node_moved",
    "StructureChangedEvent": "on_structure_changed",
    "DataReplacedEvent": "on_data_replaced",
    "SelectionChangedEvent": "on_selection_changed",
    "ExpansionChangedEvent": "on_expansion_changed",
    "SearchAppliedEvent": "on_search_applied",
    "PageChangedEvent": "on_page_changed",
}


class EventProcessor:
    """Receives tree events from a model's dispatcher.

    The default implementation ignores everything. A processor that raises
    is logged and skipped unless the dispatcher is strict.
    """

    def on_event(self, event: Event) -> None:
        """Handle one tree event. Events arrive in emission order."""

    def shutdown(self) -> None:
        """Release whatever the processor holds; ``TreeModel.close`` calls this once."""


class TypedEventProcessor(EventProcessor):
    """Routes each tree event to a handler named after its type.

    A ``NodeInsertedEvent`` goes to ``on_node_inserted``, a
    ``PageChangedEvent`` to ``on_page_changed`` and so on. Handlers that are
    not overridden do nothing.
    """

    def on_event(self, event: Event) -> None:
        name = _HANDLERS.get(type(event).__name__)
        if name is None:
            return
        handler = getattr(self, name, None)
        if handler is not None:
            handler(event)

    # Structure
    def on_node_inserted(self, event: NodeInsertedEvent) -> None: ...
    def on_node_removed(self, event: NodeRemovedEvent) -> None: ...
    def on_node_updated(self, event: NodeUpdatedEvent) -> None: ...
    def on_node_moved(self, event: NodeMovedEvent) -> None: ...
    def on_structure_changed(self, event: StructureChangedEvent) -> None: ...
    def on_data_replaced(self, event: DataReplacedEvent) -> None: ...

    # View state
    def on_selection_changed(self, event: SelectionChangedEvent) -> None: ...
    def on_expansion_changed(self, event: ExpansionChangedEvent) -> None: ...
    def on_search_applied(self, event: SearchAppliedEvent) -> None: ...
    def on_page_changed(self, event: PageChangedEvent) -> None: ...
