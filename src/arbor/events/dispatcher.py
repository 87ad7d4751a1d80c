"""Delivery of tree change events to registered processors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from arbor.events.processor import EventProcessor

if TYPE_CHECKING:
    from arbor.events.types import Event

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Synchronous fan-out of events to a list of processors.

    Events are emitted only after the model's indexes are consistent again,
    so processors may query the model from their handlers. A processor that
    raises is logged and skipped; the tree operation that emitted the event
    is not affected. With ``strict=True`` the error propagates instead.

    Args:
        processors: Initial processors, called in order
        strict: Re-raise processor errors
    """

    def __init__(
        self,
        processors: list[EventProcessor] | None = None,
        *,
        strict: bool = False,
    ) -> None:
        self._processors: list[EventProcessor] = list(processors or ())
        self._strict = strict

    @property
    def active(self) -> bool:
        """True if at least one processor is registered."""
        return bool(self._processors)

    def __len__(self) -> int:
        return len(self._processors)

    def add(self, processor: EventProcessor) -> None:
        """Register a processor. Adding the same object twice is a no-op."""
        if any(p is processor for p in self._processors):
            logger.debug("Processor %r already registered", processor)
            return
        self._processors.append(processor)

    def remove(self, processor: EventProcessor) -> bool:
        """Unregister a processor. Returns False if it was not registered."""
        for index, registered in enumerate(self._processors):
            if registered is processor:
                del self._processors[index]
                return True
        return False

    def emit(self, event: Event) -> None:
        """Hand *event* to every processor, in registration order."""
        if not self._processors:
            return
        event_name = type(event).__name__
        # Processors may add or remove processors from their handlers
        for processor in tuple(self._processors):
            try:
                processor.on_event(event)
            except Exception:
                if self._strict:
                    raise
                logger.warning("Event processor %r failed on %s", processor, event_name, exc_info=True)

    def shutdown(self) -> None:
        """Call ``shutdown`` on every processor.

        Every processor is shut down even if an earlier one fails. In strict
        mode the first failure is re-raised afterwards.
        """
        first_error: Exception | None = None
        for processor in tuple(self._processors):
            try:
                processor.shutdown()
            except Exception as e:
                if not self._strict:
                    logger.warning("Event processor %r failed during shutdown", processor, exc_info=True)
                elif first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
