"""
RFQ persistence (``sourcing_modules.rfq.repository``).

Loads and saves the RFQ aggregate through ``RFQModel``.  Time-driven
transitions are applied on every load and every save, so callers always see
the RFQ as of the repository clock.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sourcing_engines.criteria import DEFAULT_WEIGHT_TOLERANCE
from sourcing_kernel.db.repository import BaseRepository
from sourcing_kernel.domain.clock import Clock
from sourcing_kernel.exceptions import DuplicateDocumentNumberError, RFQNotFoundError
from sourcing_kernel.logging_config import get_logger
from sourcing_modules.rfq.lifecycle import recompute_derived, validate_rfq
from sourcing_modules.rfq.models import BIDDING_STATUSES, RFQ, RFQStatus
from sourcing_modules.rfq.orm import RFQModel

logger = get_logger("modules.rfq.repository")

_BIDDING_VALUES = tuple(s.value for s in BIDDING_STATUSES)


class RFQRepository(BaseRepository[RFQModel]):
    """RFQ aggregate store."""

    entity_type = "rfq"

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        weight_tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
    ):
        super().__init__(session, clock)
        self._tolerance = weight_tolerance

    def _to_current(self, model: RFQModel) -> RFQ:
        return recompute_derived(model.to_dto(), self.clock.now())

    def get(self, rfq_id: UUID) -> RFQ:
        model = self.session.get(RFQModel, rfq_id)
        if model is None:
            raise RFQNotFoundError(str(rfq_id))
        return self._to_current(model)

    def find(self, rfq_id: UUID) -> RFQ | None:
        model = self.session.get(RFQModel, rfq_id)
        return self._to_current(model) if model is not None else None

    def get_stored(self, rfq_id: UUID) -> RFQ:
        """RFQ exactly as persisted, without time-driven transitions."""
        model = self.session.get(RFQModel, rfq_id)
        if model is None:
            raise RFQNotFoundError(str(rfq_id))
        return model.to_dto()

    def get_by_number(self, rfq_number: str) -> RFQ:
        model = self.session.execute(
            select(RFQModel).where(RFQModel.rfq_number == rfq_number)
        ).scalar_one_or_none()
        if model is None:
            raise RFQNotFoundError(rfq_number)
        return self._to_current(model)

    def save(self, rfq: RFQ, actor_id: UUID | None = None) -> RFQ:
        """
        Validate and persist ``rfq``; returns the stored state.

        Raises:
            ValidationError: save-time validation failed (nothing written).
            DuplicateDocumentNumberError: ``rfq_number`` already taken.
            ConcurrencyConflictError: ``rfq.version`` is stale.
        """
        rfq = recompute_derived(rfq, self.clock.now())
        validate_rfq(rfq, self._tolerance)

        model = self.session.get(RFQModel, rfq.id)
        if model is None:
            model = RFQModel.from_dto(rfq)
            try:
                with self.session.begin_nested():
                    self.session.add(model)
                    self.session.flush()
            except IntegrityError as exc:
                logger.warning(
                    "rfq_number_conflict",
                    extra={"rfq_id": str(rfq.id), "rfq_number": rfq.rfq_number},
                )
                raise DuplicateDocumentNumberError("rfq", rfq.rfq_number) from exc
        else:
            self._check_version(rfq.id, model.version, rfq.version)
            model.apply_dto(rfq, updated_by_id=actor_id)
            self._flush(rfq.id)

        logger.debug(
            "rfq_saved",
            extra={"rfq_id": str(rfq.id), "status": rfq.status.value, "version": model.version},
        )
        return model.to_dto()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_by_status(self, status: RFQStatus) -> list[RFQ]:
        """RFQs whose stored status is ``status``, newest first."""
        models = self.session.execute(
            select(RFQModel)
            .where(RFQModel.status == status.value)
            .order_by(RFQModel.created_at.desc(), RFQModel.rfq_number.desc())
        ).scalars()
        return [self._to_current(m) for m in models]

    def list_open(self) -> list[RFQ]:
        """Published/open RFQs whose deadline is still ahead, soonest first."""
        now = self.clock.now()
        models = self.session.execute(
            select(RFQModel)
            .where(RFQModel.status.in_(_BIDDING_VALUES), RFQModel.deadline > now)
            .order_by(RFQModel.deadline)
        ).scalars()
        return [self._to_current(m) for m in models]

    def list_needing_attention(self, window_days: int = 7) -> list[RFQ]:
        """Published/open RFQs whose deadline falls within ``window_days``."""
        now = self.clock.now()
        horizon = now + timedelta(days=window_days)
        models = self.session.execute(
            select(RFQModel)
            .where(
                RFQModel.status.in_(_BIDDING_VALUES),
                RFQModel.deadline > now,
                RFQModel.deadline <= horizon,
            )
            .order_by(RFQModel.deadline)
        ).scalars()
        return [self._to_current(m) for m in models]

    def ids_with_pending_transitions(self) -> list[UUID]:
        """RFQs whose stored status may be behind the clock (open or closed)."""
        return list(
            self.session.execute(
                select(RFQModel.id).where(
                    RFQModel.status.in_((RFQStatus.OPEN.value, RFQStatus.CLOSED.value))
                )
            ).scalars()
        )
