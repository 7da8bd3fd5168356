"""
AwardOrchestrator -- finalize an RFQ award and its winning bid together.

Responsibility:
    Award spans two aggregates.  The winning bid moves ``recommended ->
    awarded`` and the RFQ moves ``closed | under_evaluation -> awarded`` with
    savings computed against the estimated budget.  Both writes share one
    transaction: either both are stored or neither is.

Architecture position:
    Services -- stateful orchestration over the RFQ and Bid modules.

Invariants enforced:
    - The bid must belong to the RFQ (``BidRFQMismatchError``).
    - Both aggregate locks are held for the whole operation, acquired in a
      stable order.
    - Events are published only after the commit.

Failure modes:
    - ``StateTransitionError`` from either lifecycle; nothing persisted.
    - ``SupplierNotInvitedError`` if the bidder is no longer invited.
    - ``ConcurrencyConflictError`` on a stale version of either aggregate.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from sourcing_config import SourcingConfig
from sourcing_kernel.domain import events
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.exceptions import BidRFQMismatchError
from sourcing_kernel.logging_config import get_logger
from sourcing_kernel.services.aggregate_lock import AggregateLockRegistry, default_lock_registry
from sourcing_kernel.services.audit_service import AuditSink, SqlAuditSink
from sourcing_kernel.services.notification_service import EventPublisher, LoggingEventPublisher
from sourcing_modules._service_helpers import (
    AuditTrailEntry,
    audit,
    emit,
    owned_transaction,
    status_snapshot,
)
from sourcing_modules.bid import lifecycle as bid_lifecycle
from sourcing_modules.bid.models import Bid
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.rfq import lifecycle as rfq_lifecycle
from sourcing_modules.rfq.models import RFQ
from sourcing_modules.rfq.repository import RFQRepository

logger = get_logger("services.award_orchestrator")


class AwardOrchestrator:
    """Awards an RFQ to one of its bids in a single transaction."""

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
        config = config or SourcingConfig()
        self._audit = audit_sink or SqlAuditSink(session, self._clock)
        self._publisher = publisher or LoggingEventPublisher()
        self._locks = locks or default_lock_registry()
        self._rfqs = RFQRepository(session, self._clock, config.weight_tolerance)
        self._bids = BidRepository(session, self._clock)

    def award(
        self,
        rfq_id: UUID,
        bid_id: UUID,
        awarded_by: UUID,
        award_amount: Decimal,
        contract_terms: str = "",
    ) -> tuple[RFQ, Bid]:
        """
        Award ``bid_id`` and close out ``rfq_id`` with it.

        Returns:
            The stored ``(rfq, bid)`` pair.
        """
        with self._locks.hold_many(("rfq", rfq_id), ("bid", bid_id)):
            with owned_transaction(self._session, "award", rfq_id, awarded_by):
                now = self._clock.now()
                rfq_before = self._rfqs.get(rfq_id)
                bid_before = self._bids.get(bid_id)
                if bid_before.rfq_id != rfq_id:
                    raise BidRFQMismatchError(str(bid_id), str(rfq_id))

                bid = bid_lifecycle.award(
                    bid_before, awarded_by, award_amount, now, contract_terms
                )
                rfq = rfq_lifecycle.award(
                    rfq_before, bid.supplier_id, bid_id, awarded_by, award_amount, now
                )
                saved_bid = self._bids.save(bid, awarded_by)
                saved_rfq = self._rfqs.save(rfq, awarded_by)

                audit(self._audit, AuditTrailEntry(
                    "bid", bid_id, awarded_by, f"Bid {saved_bid.bid_number} awarded",
                    before=status_snapshot(bid_before), after=status_snapshot(saved_bid),
                ))
                audit(self._audit, AuditTrailEntry(
                    "rfq", rfq_id, awarded_by,
                    f"RFQ {saved_rfq.rfq_number} awarded to bid {saved_bid.bid_number}",
                    before=status_snapshot(rfq_before), after=status_snapshot(saved_rfq),
                ))

        logger.info(
            "rfq_awarded",
            extra={
                "rfq_id": str(rfq_id),
                "bid_id": str(bid_id),
                "supplier_id": str(saved_bid.supplier_id),
                "award_amount": str(award_amount),
                "cost_savings": str(saved_rfq.cost_savings),
            },
        )
        emit(self._publisher, events.BID_AWARDED, "bid", bid_id, now, awarded_by,
             rfq_id=rfq_id, award_amount=award_amount)
        emit(self._publisher, events.RFQ_AWARDED, "rfq", rfq_id, now, awarded_by,
             bid_id=bid_id, supplier_id=saved_bid.supplier_id,
             award_amount=award_amount, cost_savings=saved_rfq.cost_savings,
             savings_percentage=saved_rfq.savings_percentage)
        return saved_rfq, saved_bid
