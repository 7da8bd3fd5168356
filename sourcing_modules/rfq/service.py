"""
RFQ Module Service (``sourcing_modules.rfq.service``).

Responsibility
--------------
Orchestrates RFQ operations -- creation with a year-scoped number,
publication, bidding, closing, the evaluation committee, evaluation,
cancellation, clarification questions and amendments -- by delegating every
state change to the pure ``sourcing_modules.rfq.lifecycle`` functions and
persistence to ``RFQRepository``.

Architecture position
---------------------
**Modules layer** -- imperative shell.  ``RFQService`` is the public entry
point for single-RFQ operations.  Awarding spans two aggregates and lives
in ``sourcing_services.award_orchestrator``.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).
* At most one mutation per RFQ id is in flight: every write runs under
  ``AggregateLockRegistry.hold("rfq", rfq_id)``.
* Every saved RFQ passes ``validate_rfq`` (weights sum to 100).
* Audit and notification failures are logged and never fail the operation.

Failure modes
-------------
* ``RFQNotFoundError`` -- unknown id.
* ``StateTransitionError`` / ``ValidationError`` / ``ReferentialError`` --
  from the lifecycle manager; session rolled back.
* ``ConcurrencyConflictError`` -- stale version on save; session rolled back.

Usage::

    service = RFQService(session, clock=clock)
    rfq = service.create_rfq(
        title="Office chairs", description="Ergonomic chairs, 200 units",
        category_id=category_id, created_by=buyer_id,
        deadline=clock.now() + timedelta(days=14),
        delivery_date=clock.now() + timedelta(days=45),
        estimated_budget=Decimal("100000"),
    )
    rfq = service.invite_supplier(rfq.id, supplier_id, actor_id=buyer_id)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from sourcing_config import SourcingConfig
from sourcing_engines.criteria import EvaluationCriteria
from sourcing_engines.scoring import BidStanding, DimensionScores, add_rfq_evaluation, rank_standings
from sourcing_kernel.domain import events
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.domain.numbering import year_prefix
from sourcing_kernel.exceptions import BidRFQMismatchError, DuplicateDocumentNumberError
from sourcing_kernel.logging_config import get_logger
from sourcing_kernel.services.aggregate_lock import AggregateLockRegistry, default_lock_registry
from sourcing_kernel.services.audit_service import AuditSink, SqlAuditSink
from sourcing_kernel.services.notification_service import EventPublisher, LoggingEventPublisher
from sourcing_kernel.services.numbering_service import DocumentNumberService
from sourcing_modules._service_helpers import (
    AuditTrailEntry,
    audit,
    emit,
    owned_transaction,
    status_snapshot,
)
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.rfq import lifecycle
from sourcing_modules.rfq.models import RFQ, CommitteeRole, RFQQuestion, RFQStats
from sourcing_modules.rfq.orm import RFQModel
from sourcing_modules.rfq.repository import RFQRepository

logger = get_logger("modules.rfq.service")

NUMBER_ALLOCATION_ATTEMPTS = 3


class RFQService:
    """
    Orchestrates RFQ operations through the lifecycle manager and repository.

    Guarantees
    ----------
    * Session is committed only when the whole operation succeeded.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT award (see ``AwardOrchestrator``).
    * Does NOT check caller permissions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: SourcingConfig | None = None,
        audit_sink: AuditSink | None = None,
        publisher: EventPublisher | None = None,
        locks: AggregateLockRegistry | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or SourcingConfig()
        self._audit = audit_sink or SqlAuditSink(session, self._clock)
        self._publisher = publisher or LoggingEventPublisher()
        self._locks = locks or default_lock_registry()
        self._rfqs = RFQRepository(session, self._clock, self._config.weight_tolerance)
        self._bids = BidRepository(session, self._clock)
        self._numbers = DocumentNumberService(
            session, RFQModel.rfq_number, width=self._config.number_width
        )

    # =========================================================================
    # Creation and reads
    # =========================================================================

    def _default_criteria(self) -> EvaluationCriteria:
        weights = self._config.default_criteria
        return EvaluationCriteria(
            technical_weight=weights.technical,
            financial_weight=weights.financial,
            delivery_weight=weights.delivery,
            quality_weight=weights.quality,
        )

    def create_rfq(
        self,
        *,
        title: str,
        description: str,
        category_id: UUID,
        created_by: UUID,
        deadline: datetime,
        delivery_date: datetime,
        **optional: Any,
    ) -> RFQ:
        """Create a draft RFQ numbered ``RFQ-<year>-NNNN``."""
        optional.setdefault("evaluation_criteria", self._default_criteria())
        optional.setdefault("currency", self._config.default_currency)
        now = self._clock.now()
        prefix = year_prefix(self._config.rfq_prefix, now)

        for attempt in range(1, NUMBER_ALLOCATION_ATTEMPTS + 1):
            rfq_number = self._numbers.next_number(prefix)
            rfq = lifecycle.draft_rfq(
                rfq_number=rfq_number,
                title=title,
                description=description,
                category_id=category_id,
                created_by=created_by,
                deadline=deadline,
                delivery_date=delivery_date,
                now=now,
                tolerance=self._config.weight_tolerance,
                **optional,
            )
            try:
                with owned_transaction(self._session, "create_rfq", rfq.id, created_by):
                    saved = self._rfqs.save(rfq, created_by)
                    audit(self._audit, AuditTrailEntry(
                        "rfq", saved.id, created_by, f"RFQ {saved.rfq_number} created",
                        after=status_snapshot(saved),
                    ))
            except DuplicateDocumentNumberError:
                if attempt == NUMBER_ALLOCATION_ATTEMPTS:
                    raise
                logger.warning(
                    "rfq_number_retry",
                    extra={"rfq_number": rfq_number, "attempt": attempt},
                )
                continue

            logger.info(
                "rfq_created",
                extra={"rfq_id": str(saved.id), "rfq_number": saved.rfq_number},
            )
            emit(self._publisher, events.RFQ_CREATED, "rfq", saved.id, now, created_by,
                 rfq_number=saved.rfq_number)
            return saved
        raise AssertionError("unreachable")

    def get_rfq(self, rfq_id: UUID) -> RFQ:
        """RFQ as of now (time-driven transitions applied, not stored)."""
        return self._rfqs.get(rfq_id)

    def get_by_number(self, rfq_number: str) -> RFQ:
        return self._rfqs.get_by_number(rfq_number)

    def list_open(self) -> list[RFQ]:
        return self._rfqs.list_open()

    def list_needing_attention(self) -> list[RFQ]:
        return self._rfqs.list_needing_attention(self._config.attention_window_days)

    def standings(self, rfq_id: UUID) -> tuple[BidStanding, ...]:
        """Bids ranked by mean overall score across evaluators."""
        return rank_standings(self._rfqs.get(rfq_id).evaluation_results)

    def get_stats(self, rfq_id: UUID) -> RFQStats:
        rfq = self._rfqs.get(rfq_id)
        return lifecycle.rfq_stats(rfq, self._bids.list_by_rfq(rfq_id))

    # =========================================================================
    # Mutations
    # =========================================================================

    def _mutate(
        self,
        rfq_id: UUID,
        actor_id: UUID | None,
        operation: str,
        change: Callable[[RFQ, datetime], RFQ],
        event_name: str | None = None,
        **payload: Any,
    ) -> RFQ:
        """Load, apply ``change``, save, audit and commit under the RFQ lock."""
        with self._locks.hold("rfq", rfq_id):
            with owned_transaction(self._session, operation, rfq_id, actor_id):
                now = self._clock.now()
                before = self._rfqs.get(rfq_id)
                saved = self._rfqs.save(change(before, now), actor_id)
                audit(self._audit, AuditTrailEntry(
                    "rfq", rfq_id, actor_id, f"rfq.{operation}",
                    before=status_snapshot(before), after=status_snapshot(saved),
                ))

        logger.info(
            f"rfq_{operation}",
            extra={"rfq_id": str(rfq_id), "status": saved.status.value},
        )
        if event_name is not None:
            emit(self._publisher, event_name, "rfq", rfq_id, now, actor_id, **payload)
        return saved

    def publish(self, rfq_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "publish",
            lambda rfq, now: lifecycle.publish(rfq, actor_id, now),
            events.RFQ_PUBLISHED,
        )

    def open_bidding(self, rfq_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "open_bidding",
            lambda rfq, now: lifecycle.open_bidding(rfq, actor_id, now),
            events.RFQ_OPENED,
        )

    def close(self, rfq_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "close",
            lambda rfq, now: lifecycle.close(rfq, actor_id, now),
            events.RFQ_CLOSED,
        )

    def start_evaluation(self, rfq_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "start_evaluation",
            lambda rfq, now: lifecycle.start_evaluation(rfq, actor_id, now),
            events.RFQ_EVALUATION_STARTED,
        )

    def cancel(self, rfq_id: UUID, actor_id: UUID, reason: str) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "cancel",
            lambda rfq, now: lifecycle.cancel(rfq, actor_id, reason, now),
            events.RFQ_CANCELLED,
            reason=reason,
        )

    def invite_supplier(self, rfq_id: UUID, supplier_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "invite_supplier",
            lambda rfq, now: lifecycle.invite_supplier(rfq, supplier_id, now),
        )

    def remove_supplier(self, rfq_id: UUID, supplier_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "remove_supplier",
            lambda rfq, now: lifecycle.remove_supplier(rfq, supplier_id, now),
        )

    def add_item(self, rfq_id: UUID, item_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "add_item",
            lambda rfq, now: lifecycle.add_item(rfq, item_id, now),
        )

    def update_criteria(
        self, rfq_id: UUID, criteria: EvaluationCriteria, actor_id: UUID
    ) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "update_criteria",
            lambda rfq, now: lifecycle.update_criteria(
                rfq, criteria, now, self._config.weight_tolerance
            ),
        )

    def issue_amendment(
        self,
        rfq_id: UUID,
        description: str,
        actor_id: UUID,
        effective_date: datetime | None = None,
    ) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "issue_amendment",
            lambda rfq, now: lifecycle.issue_amendment(
                rfq, description, actor_id, now, effective_date
            ),
            events.RFQ_AMENDED,
            description=description,
        )

    def assign_evaluator(
        self,
        rfq_id: UUID,
        user_id: UUID,
        actor_id: UUID,
        role: CommitteeRole = CommitteeRole.MEMBER,
    ) -> RFQ:
        """Seat an evaluator on the committee, or change their role."""
        return self._mutate(
            rfq_id, actor_id, "assign_evaluator",
            lambda rfq, now: lifecycle.assign_evaluator(rfq, user_id, now, role),
        )

    def remove_evaluator(self, rfq_id: UUID, user_id: UUID, actor_id: UUID) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "remove_evaluator",
            lambda rfq, now: lifecycle.remove_evaluator(rfq, user_id, now),
        )

    def add_question(self, rfq_id: UUID, supplier_id: UUID, question: str) -> RFQQuestion:
        """Record a supplier's question; returns the stored question."""
        asked: list[RFQQuestion] = []

        def change(rfq: RFQ, now: datetime) -> RFQ:
            updated, entry = lifecycle.add_question(rfq, supplier_id, question, now)
            asked.append(entry)
            return updated

        self._mutate(
            rfq_id, supplier_id, "add_question", change,
            events.RFQ_QUESTION_ASKED, supplier_id=supplier_id,
        )
        return asked[0]

    def answer_question(
        self,
        rfq_id: UUID,
        question_id: UUID,
        answer: str,
        actor_id: UUID,
        is_public: bool = False,
    ) -> RFQ:
        return self._mutate(
            rfq_id, actor_id, "answer_question",
            lambda rfq, now: lifecycle.answer_question(
                rfq, question_id, answer, actor_id, now, is_public
            ),
            events.RFQ_QUESTION_ANSWERED,
            question_id=question_id,
            is_public=is_public,
        )

    def record_evaluation(
        self,
        rfq_id: UUID,
        bid_id: UUID,
        scores: DimensionScores,
        evaluator_id: UUID,
        comments: str = "",
    ) -> RFQ:
        """
        Record one evaluator's standardized scores for a bid on this RFQ.

        Raises:
            BidNotFoundError: unknown bid.
            BidRFQMismatchError: the bid belongs to another RFQ.
        """
        bid = self._bids.get(bid_id)
        if bid.rfq_id != rfq_id:
            raise BidRFQMismatchError(str(bid_id), str(rfq_id))
        return self._mutate(
            rfq_id, evaluator_id, "record_evaluation",
            lambda rfq, now: add_rfq_evaluation(
                rfq, bid_id, scores, evaluator_id, now, comments
            ),
        )

    def bid_count(self, rfq_id: UUID) -> int:
        return self._bids.count_by_rfq(rfq_id)

    def evaluation_progress(self, rfq_id: UUID) -> Decimal:
        rfq = self._rfqs.get(rfq_id)
        return lifecycle.evaluation_progress(rfq, self._bids.count_by_rfq(rfq_id))
