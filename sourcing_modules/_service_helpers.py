"""
Shared helpers for module service flows.

Used by sourcing_modules/*/service.py and sourcing_services to reduce
duplication around the transaction boundary, audit calls and event
emission after an aggregate has been saved.

Architecture: Modules layer. Imports only from sourcing_kernel.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from sourcing_kernel.domain.events import DomainEvent
from sourcing_kernel.logging_config import LogContext, get_logger
from sourcing_kernel.services.audit_service import AuditSink, record_audit
from sourcing_kernel.services.notification_service import EventPublisher, publish_event
from sourcing_kernel.utils.serialization import to_jsonable

logger = get_logger("modules.service_helpers")


@contextmanager
def owned_transaction(
    session: Session,
    operation: str,
    entity_id: UUID,
    actor_id: UUID | None = None,
) -> Iterator[None]:
    """
    Commit on success; roll back and re-raise on any exception.

    Binds ``aggregate_id`` / ``actor_id`` into the log context for the
    duration of the operation.
    """
    with LogContext.bind(
        aggregate_id=str(entity_id),
        actor_id=str(actor_id) if actor_id is not None else None,
    ):
        try:
            yield
            session.commit()
        except Exception:
            session.rollback()
            logger.info(
                "operation_rolled_back",
                extra={"operation": operation, "entity_id": str(entity_id)},
            )
            raise


@dataclass(frozen=True)
class AuditTrailEntry:
    """What to hand the audit sink after a state change."""
    entity: str
    entity_id: UUID
    user: UUID | None
    description: str
    before: Any = None
    after: Any = None


def audit(sink: AuditSink, entry: AuditTrailEntry) -> bool:
    return record_audit(
        sink,
        entry.entity,
        entry.entity_id,
        entry.user,
        entry.description,
        before_state=to_jsonable(entry.before) if entry.before is not None else None,
        after_state=to_jsonable(entry.after) if entry.after is not None else None,
    )


def emit(
    publisher: EventPublisher,
    name: str,
    entity: str,
    entity_id: UUID,
    occurred_at: datetime,
    actor_id: UUID | None = None,
    **payload: Any,
) -> bool:
    return publish_event(
        publisher,
        DomainEvent(
            name=name,
            entity=entity,
            entity_id=entity_id,
            occurred_at=occurred_at,
            actor_id=actor_id,
            payload=to_jsonable(payload),
        ),
    )


def status_snapshot(dto: Any) -> dict[str, Any]:
    """Compact before/after state for audit rows."""
    return {"status": dto.status.value, "version": dto.version}
