"""
Module: sourcing_kernel.db.repository
Responsibility: Base class for aggregate repositories.  A repository loads an
    aggregate row, hands back a frozen DTO, and writes a DTO back, translating
    database failures into typed sourcing exceptions.
Architecture position: Kernel > DB.  Module repositories (RFQ, Bid) subclass
    it; services own the session and its transaction boundary.

Invariants enforced:
    - Repositories return frozen DTOs, never raw ORM instances.
    - Repositories flush but NEVER commit or roll back the caller's
      transaction; inserts run inside a SAVEPOINT so a unique-constraint
      failure leaves the outer transaction usable.
    - ``StaleDataError`` (optimistic version check) surfaces as
      ``ConcurrencyConflictError``.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from sourcing_kernel.db.base import Base
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.exceptions import ConcurrencyConflictError
from sourcing_kernel.logging_config import get_logger

logger = get_logger("db.repository")

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Shared session handling for aggregate repositories.

    Contract:
        Subclasses set ``entity_type`` and implement load/save in terms of
        ``_flush`` and ``_check_version``.
    """

    entity_type: str = "aggregate"

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _check_version(self, entity_id: UUID, stored: int, expected: int) -> None:
        """Reject a write built from an older snapshot of the row."""
        if stored != expected:
            logger.warning(
                "aggregate_version_conflict",
                extra={
                    "entity_type": self.entity_type,
                    "entity_id": str(entity_id),
                    "stored_version": stored,
                    "expected_version": expected,
                },
            )
            raise ConcurrencyConflictError(self.entity_type, str(entity_id))

    def _flush(self, entity_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "aggregate_stale_write",
                extra={"entity_type": self.entity_type, "entity_id": str(entity_id)},
            )
            raise ConcurrencyConflictError(self.entity_type, str(entity_id)) from exc
