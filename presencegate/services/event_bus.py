"""
Domain Event Bus.

Synchronous fan-out of ``DomainEvent`` objects to application
subscribers.  Handlers run on the dispatching thread in subscription
order; UI consumers must marshal to their own thread (e.g. via
``widget.after()``).

A failing handler is logged and does not prevent the remaining handlers
from running.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Optional

from presencegate.logger import StructuredLogger
from presencegate.models.enums import EventType
from presencegate.models.events import DomainEvent
from presencegate.protocols import Unsubscribe
from presencegate.services.base_service import BaseService

EventHandler = Callable[[DomainEvent], None]


class EventBus(BaseService):
    """Thread-safe publish/subscribe registry for domain events.

    Example::

        bus = EventBus(logger=get_logger("events"))
        off = bus.subscribe(print, event_type=EventType.CONNECTIVITY_ONLINE)
        bus.dispatch(DomainEvent(type=EventType.CONNECTIVITY_ONLINE))
        off()
    """

    def __init__(self, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._lock: threading.Lock = threading.Lock()
        self._handlers: list[tuple[Optional[EventType], EventHandler]] = []

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[EventType] = None,
    ) -> Unsubscribe:
        """Register *handler* for *event_type* (all events when ``None``).

        Returns
        -------
        Unsubscribe
            Idempotent callable removing this registration.
        """
        entry = (event_type, handler)
        with self._lock:
            self._handlers.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._handlers:
                    self._handlers.remove(entry)

        return unsubscribe

    def dispatch(self, event: DomainEvent) -> DomainEvent:
        """Deliver *event* to every matching handler and return it."""
        with self._lock:
            handlers = [
                handler
                for event_type, handler in self._handlers
                if event_type is None or event_type == event.type
            ]

        self._logger.debug(
            "Dispatching %s to %d handler(s).", event.name, len(handlers),
        )

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self._logger.error(
                    "Event handler failed for %s.", event.name,
                    exc_info=True,
                    extra={"event": event.name},
                )
        return event

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)
