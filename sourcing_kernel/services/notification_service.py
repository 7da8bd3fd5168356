"""
Notification collaborator -- fire-and-forget domain events.

The sourcing services describe what happened (``DomainEvent``); a publisher
decides whether to queue, e-mail or drop it.  Delivery is out of scope, and a
failing publisher is treated like a failing audit sink: logged, never raised.
"""

import threading
from typing import Protocol

from sourcing_kernel.domain.events import DomainEvent
from sourcing_kernel.logging_config import get_logger

logger = get_logger("services.notification")


class EventPublisher(Protocol):
    def publish(self, event: DomainEvent) -> None:
        ...


class InMemoryEventPublisher:
    """Collects events in order. Used by tests and single-process hosts."""

    def __init__(self) -> None:
        self._events: list[DomainEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> tuple[DomainEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingEventPublisher:
    """Writes each event to the structured log."""

    def publish(self, event: DomainEvent) -> None:
        logger.info(
            "domain_event",
            extra={
                "event_name": event.name,
                "event_id": str(event.event_id),
                "entity": event.entity,
                "entity_id": str(event.entity_id),
                "occurred_at": event.occurred_at.isoformat(),
            },
        )


def publish_event(publisher: EventPublisher, event: DomainEvent) -> bool:
    """Publish ``event``; returns False (and logs) if the publisher raised."""
    try:
        publisher.publish(event)
        return True
    except Exception:  # noqa: BLE001 -- delivery must not block the transition
        logger.error(
            "event_publish_failed",
            extra={
                "event_name": event.name,
                "entity": event.entity,
                "entity_id": str(event.entity_id),
            },
            exc_info=True,
        )
        return False
