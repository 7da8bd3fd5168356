"""
Bid Module Service (``sourcing_modules.bid.service``).

Responsibility
--------------
Orchestrates bid operations -- creation, item pricing, securities, submission,
withdrawal, review, disqualification, rejection, per-criterion evaluation
and ranking -- by delegating to ``sourcing_modules.bid.lifecycle`` and
persisting through ``BidRepository``.

Architecture position
---------------------
**Modules layer** -- imperative shell.  Reads the owning RFQ through
``RFQRepository`` to check that it accepts bids and that the supplier was
invited.  Awarding lives in ``sourcing_services.award_orchestrator``.

Invariants enforced
-------------------
* One bid per supplier per RFQ (``DuplicateBidError``).
* A bid can only be created or submitted while its RFQ is accepting bids,
  and only by an invited supplier.
* Each public write method owns the transaction boundary and runs under
  ``AggregateLockRegistry.hold("bid", bid_id)``.

Failure modes
-------------
* ``BidNotFoundError`` / ``RFQNotFoundError`` -- unknown ids.
* ``SupplierNotInvitedError`` -- supplier not on the RFQ's invite list.
* ``StateTransitionError`` -- RFQ not accepting bids, or the bid action is
  not valid from its current status.
* ``ConcurrencyConflictError`` -- stale version on save.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from sourcing_config import SourcingConfig
from sourcing_engines.scoring import add_bid_evaluation, rank_bids
from sourcing_kernel.domain import events
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.domain.numbering import year_prefix
from sourcing_kernel.exceptions import (
    DuplicateDocumentNumberError,
    StateTransitionError,
    SupplierNotInvitedError,
)
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
from sourcing_modules.bid import lifecycle
from sourcing_modules.bid.models import (
    Bid,
    BidItem,
    BidSecurity,
    BidStats,
    PerformanceSecurity,
)
from sourcing_modules.bid.orm import BidModel
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.rfq.lifecycle import is_bidding_open
from sourcing_modules.rfq.models import RFQ
from sourcing_modules.rfq.repository import RFQRepository

logger = get_logger("modules.bid.service")

NUMBER_ALLOCATION_ATTEMPTS = 3


class BidService:
    """
    Orchestrates bid operations through the lifecycle manager and repository.

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
        self._bids = BidRepository(session, self._clock)
        self._rfqs = RFQRepository(session, self._clock, self._config.weight_tolerance)
        self._numbers = DocumentNumberService(
            session, BidModel.bid_number, width=self._config.number_width
        )

    def _require_accepting(self, rfq: RFQ, supplier_id: UUID, action: str) -> None:
        if not is_bidding_open(rfq, self._clock.now()):
            raise StateTransitionError(
                "rfq", str(rfq.id), rfq.status.value, action, "RFQ is not accepting bids"
            )
        if supplier_id not in rfq.suppliers:
            raise SupplierNotInvitedError(str(rfq.id), str(supplier_id))

    # =========================================================================
    # Creation and reads
    # =========================================================================

    def create_bid(
        self,
        *,
        rfq_id: UUID,
        supplier_id: UUID,
        created_by: UUID,
        **optional: Any,
    ) -> Bid:
        """
        Create a draft bid numbered ``BID-<year>-NNNN``.

        Raises:
            RFQNotFoundError: unknown RFQ.
            StateTransitionError: the RFQ is not accepting bids.
            SupplierNotInvitedError: supplier not invited to the RFQ.
            DuplicateBidError: the supplier already bid on this RFQ.
        """
        rfq = self._rfqs.get(rfq_id)
        self._require_accepting(rfq, supplier_id, "create_bid")
        optional.setdefault("currency", rfq.currency)
        optional.setdefault("validity_period_days", self._config.default_validity_period_days)
        now = self._clock.now()
        prefix = year_prefix(self._config.bid_prefix, now)

        for attempt in range(1, NUMBER_ALLOCATION_ATTEMPTS + 1):
            bid_number = self._numbers.next_number(prefix)
            bid = lifecycle.draft_bid(
                bid_number=bid_number,
                rfq_id=rfq_id,
                supplier_id=supplier_id,
                created_by=created_by,
                now=now,
                **optional,
            )
            try:
                with owned_transaction(self._session, "create_bid", bid.id, created_by):
                    saved = self._bids.save(bid, created_by)
                    audit(self._audit, AuditTrailEntry(
                        "bid", saved.id, created_by, f"Bid {saved.bid_number} created",
                        after=status_snapshot(saved),
                    ))
            except DuplicateDocumentNumberError:
                if attempt == NUMBER_ALLOCATION_ATTEMPTS:
                    raise
                logger.warning(
                    "bid_number_retry",
                    extra={"bid_number": bid_number, "attempt": attempt},
                )
                continue

            logger.info(
                "bid_created",
                extra={
                    "bid_id": str(saved.id),
                    "bid_number": saved.bid_number,
                    "rfq_id": str(rfq_id),
                    "supplier_id": str(supplier_id),
                },
            )
            emit(self._publisher, events.BID_CREATED, "bid", saved.id, now, created_by,
                 rfq_id=rfq_id, supplier_id=supplier_id)
            return saved
        raise AssertionError("unreachable")

    def get_bid(self, bid_id: UUID) -> Bid:
        return self._bids.get(bid_id)

    def list_by_rfq(self, rfq_id: UUID) -> list[Bid]:
        return self._bids.list_by_rfq(rfq_id)

    def list_by_supplier(self, supplier_id: UUID) -> list[Bid]:
        return self._bids.list_by_supplier(supplier_id)

    def list_awarded(self) -> list[Bid]:
        return self._bids.list_awarded()

    def list_expiring(self, days: int | None = None) -> list[Bid]:
        return self._bids.list_expiring(
            days if days is not None else self._config.expiring_bid_window_days
        )

    def get_stats(self, bid_id: UUID) -> BidStats:
        return lifecycle.bid_stats(self._bids.get(bid_id))

    def is_compliant(self, bid_id: UUID) -> bool:
        return lifecycle.is_compliant(self._bids.get(bid_id), self._config.compliance_threshold)

    # =========================================================================
    # Mutations
    # =========================================================================

    def _mutate(
        self,
        bid_id: UUID,
        actor_id: UUID | None,
        operation: str,
        change: Callable[[Bid, datetime], Bid],
        event_name: str | None = None,
        **payload: Any,
    ) -> Bid:
        """Load, apply ``change``, save, audit and commit under the bid lock."""
        with self._locks.hold("bid", bid_id):
            with owned_transaction(self._session, operation, bid_id, actor_id):
                now = self._clock.now()
                before = self._bids.get(bid_id)
                saved = self._bids.save(change(before, now), actor_id)
                audit(self._audit, AuditTrailEntry(
                    "bid", bid_id, actor_id, f"bid.{operation}",
                    before=status_snapshot(before), after=status_snapshot(saved),
                ))

        logger.info(
            f"bid_{operation}",
            extra={"bid_id": str(bid_id), "status": saved.status.value},
        )
        if event_name is not None:
            emit(self._publisher, event_name, "bid", bid_id, now, actor_id,
                 rfq_id=saved.rfq_id, **payload)
        return saved

    def update_items(self, bid_id: UUID, items: tuple[BidItem, ...], actor_id: UUID) -> Bid:
        return self._mutate(
            bid_id, actor_id, "update_items",
            lambda bid, now: lifecycle.update_items(bid, items, now),
        )

    def update_securities(
        self,
        bid_id: UUID,
        actor_id: UUID,
        bid_security: BidSecurity | None = None,
        performance_security: PerformanceSecurity | None = None,
    ) -> Bid:
        return self._mutate(
            bid_id, actor_id, "update_securities",
            lambda bid, now: lifecycle.update_securities(
                bid, bid_security, performance_security, now
            ),
        )

    def submit(self, bid_id: UUID, actor_id: UUID) -> Bid:
        """
        Submit a draft bid; starts its validity window.

        Raises:
            StateTransitionError: RFQ no longer accepting bids, bid not in
                draft, or bid has no items.
        """
        def change(bid: Bid, now: datetime) -> Bid:
            self._require_accepting(self._rfqs.get(bid.rfq_id), bid.supplier_id, "submit")
            return lifecycle.submit(bid, actor_id, now)

        return self._mutate(bid_id, actor_id, "submit", change, events.BID_SUBMITTED)

    def withdraw(self, bid_id: UUID, actor_id: UUID, reason: str) -> Bid:
        return self._mutate(
            bid_id, actor_id, "withdraw",
            lambda bid, now: lifecycle.withdraw(bid, reason, now),
            events.BID_WITHDRAWN,
            reason=reason,
        )

    def disqualify(self, bid_id: UUID, actor_id: UUID, reason: str) -> Bid:
        return self._mutate(
            bid_id, actor_id, "disqualify",
            lambda bid, now: lifecycle.disqualify(bid, actor_id, reason, now),
            events.BID_DISQUALIFIED,
            reason=reason,
        )

    def start_review(self, bid_id: UUID, actor_id: UUID) -> Bid:
        return self._mutate(
            bid_id, actor_id, "start_review",
            lambda bid, now: lifecycle.start_review(bid, actor_id, now),
        )

    def qualify(self, bid_id: UUID, actor_id: UUID) -> Bid:
        return self._mutate(
            bid_id, actor_id, "qualify",
            lambda bid, now: lifecycle.qualify(bid, actor_id, now),
        )

    def recommend(self, bid_id: UUID, actor_id: UUID) -> Bid:
        return self._mutate(
            bid_id, actor_id, "recommend",
            lambda bid, now: lifecycle.recommend(bid, actor_id, now),
            events.BID_RECOMMENDED,
        )

    def reject(self, bid_id: UUID, actor_id: UUID, reason: str) -> Bid:
        return self._mutate(
            bid_id, actor_id, "reject",
            lambda bid, now: lifecycle.reject(bid, actor_id, reason, now),
            events.BID_REJECTED,
            reason=reason,
        )

    def add_evaluation(
        self,
        bid_id: UUID,
        criterion: str,
        score: Decimal,
        weight: Decimal,
        evaluator_id: UUID,
        comments: str = "",
    ) -> Bid:
        """Record or replace one evaluator's score for a named criterion."""
        return self._mutate(
            bid_id, evaluator_id, "add_evaluation",
            lambda bid, now: add_bid_evaluation(
                bid, criterion, score, weight, evaluator_id, now, comments
            ),
        )

    def rank_bids_for_rfq(self, rfq_id: UUID, actor_id: UUID | None = None) -> list[Bid]:
        """
        Rank every bid on an RFQ by overall score, cheapest first on ties,
        and persist the ranks.
        """
        self._rfqs.get(rfq_id)
        while True:
            keys = {("bid", b.id) for b in self._bids.list_by_rfq(rfq_id)}
            with self._locks.hold_many(*keys):
                with owned_transaction(self._session, "rank_bids", rfq_id, actor_id):
                    # Rank what is stored once every bid lock is held.
                    bids = self._bids.list_by_rfq(rfq_id)
                    if {("bid", b.id) for b in bids} == keys:
                        ranked = [self._bids.save(b, actor_id) for b in rank_bids(bids)]
                        break
            logger.info("rank_bids_retry", extra={"rfq_id": str(rfq_id)})

        logger.info(
            "bids_ranked",
            extra={"rfq_id": str(rfq_id), "bid_count": len(ranked)},
        )
        return ranked
