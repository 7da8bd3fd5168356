"""
Audit collaborator -- action log for RFQ and Bid state changes.

Responsibility:
    Defines the audit contract (``AuditSink.log_action``) called after every
    state-changing operation, a SQLAlchemy-backed sink that appends rows to
    ``sourcing_audit_log``, and ``record_audit``, the only place where an
    error is deliberately swallowed in this codebase.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the RFQ/Bid services and
    the award orchestrator after the aggregate has been flushed.

Invariants enforced:
    - Audit failure never fails the business operation: ``record_audit``
      catches, logs ``audit_log_failed`` at ERROR with the traceback, and
      returns False.
    - ``SqlAuditSink`` writes inside a SAVEPOINT, so a failed insert rolls
      back only the audit row and leaves the caller's transaction usable.
    - Audit rows are append-only; nothing in the codebase updates them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import JSON, Index, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from sourcing_kernel.db.base import Base
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.logging_config import get_logger

logger = get_logger("services.audit")


class AuditSink(Protocol):
    """Audit collaborator contract."""

    def log_action(
        self,
        entity: str,
        entity_id: UUID,
        user: UUID | None,
        description: str,
        before_state: dict[str, Any] | None = None,
        after_state: dict[str, Any] | None = None,
    ) -> None:
        ...


class AuditLogEntry(Base):
    """One audited action against an RFQ or Bid."""

    __tablename__ = "sourcing_audit_log"

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
        Index("idx_audit_occurred_at", "occurred_at"),
    )

    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    before_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after_state: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)


@dataclass(frozen=True)
class AuditRecord:
    """Read model for an audit row."""
    entity: str
    entity_id: UUID
    user_id: UUID | None
    description: str
    before_state: dict[str, Any] | None
    after_state: dict[str, Any] | None
    occurred_at: datetime


class SqlAuditSink:
    """
    Appends audit rows through the caller's session.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def log_action(
        self,
        entity: str,
        entity_id: UUID,
        user: UUID | None,
        description: str,
        before_state: dict[str, Any] | None = None,
        after_state: dict[str, Any] | None = None,
    ) -> None:
        savepoint = self._session.begin_nested()
        try:
            self._session.add(
                AuditLogEntry(
                    entity=entity,
                    entity_id=entity_id,
                    user_id=user,
                    description=description,
                    before_state=before_state,
                    after_state=after_state,
                    occurred_at=self._clock.now(),
                )
            )
            self._session.flush()
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise

    def trail(self, entity: str, entity_id: UUID) -> tuple[AuditRecord, ...]:
        """All audit rows for one aggregate, oldest first."""
        rows = self._session.execute(
            select(AuditLogEntry)
            .where(AuditLogEntry.entity == entity, AuditLogEntry.entity_id == entity_id)
            .order_by(AuditLogEntry.occurred_at, AuditLogEntry.description)
        ).scalars()
        return tuple(
            AuditRecord(
                entity=row.entity,
                entity_id=row.entity_id,
                user_id=row.user_id,
                description=row.description,
                before_state=row.before_state,
                after_state=row.after_state,
                occurred_at=row.occurred_at,
            )
            for row in rows
        )


class NullAuditSink:
    """Discards audit actions. For hosts that audit elsewhere."""

    def log_action(self, entity, entity_id, user, description, before_state=None, after_state=None) -> None:
        return None


def record_audit(
    sink: AuditSink,
    entity: str,
    entity_id: UUID,
    user: UUID | None,
    description: str,
    before_state: dict[str, Any] | None = None,
    after_state: dict[str, Any] | None = None,
) -> bool:
    """
    Call ``sink.log_action`` and contain any failure.

    Returns:
        True if the sink accepted the action, False if it raised.
    """
    try:
        sink.log_action(
            entity,
            entity_id,
            user,
            description,
            before_state=before_state,
            after_state=after_state,
        )
        return True
    except Exception:  # noqa: BLE001 -- audit must not block the transition
        logger.error(
            "audit_log_failed",
            extra={
                "entity": entity,
                "entity_id": str(entity_id),
                "description": description,
            },
            exc_info=True,
        )
        return False
