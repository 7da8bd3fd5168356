"""
TimeTransitionSweep -- persist clock-driven transitions that are due.

Responsibility:
    Time-driven transitions (RFQ auto-close and expiry, bid validity expiry)
    are applied lazily whenever an aggregate is loaded or saved, so stored
    rows can lag behind the clock.  ``run()`` brings every lagging row up to
    date and publishes the matching events.

Architecture position:
    Services -- invoked explicitly by the host.  Nothing schedules it.

Invariants enforced:
    - Only aggregates whose status actually changes are written.
    - Each aggregate is saved under its own lock and its own transaction;
      one failure does not undo the rest of the sweep.
"""

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from sourcing_config import SourcingConfig
from sourcing_kernel.domain import events
from sourcing_kernel.domain.clock import Clock, SystemClock
from sourcing_kernel.exceptions import SourcingError
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
from sourcing_modules.bid.models import BidStatus
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.rfq.models import RFQStatus
from sourcing_modules.rfq.repository import RFQRepository

logger = get_logger("services.time_sweep")

_RFQ_EVENTS = {
    RFQStatus.CLOSED: events.RFQ_CLOSED,
    RFQStatus.EXPIRED: events.RFQ_EXPIRED,
}


@dataclass
class SweepResult:
    """Ids whose stored status was advanced, and ids that failed."""
    rfqs_closed: list[UUID] = field(default_factory=list)
    rfqs_expired: list[UUID] = field(default_factory=list)
    bids_expired: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.rfqs_closed) + len(self.rfqs_expired) + len(self.bids_expired)


class TimeTransitionSweep:
    """Writes pending auto-close / expiry transitions to storage."""

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

    def run(self) -> SweepResult:
        result = SweepResult()
        for rfq_id in self._rfqs.ids_with_pending_transitions():
            self._sweep_rfq(rfq_id, result)
        for bid_id in self._bids.ids_with_pending_expiry():
            self._sweep_bid(bid_id, result)

        logger.info(
            "time_sweep_completed",
            extra={
                "rfqs_closed": len(result.rfqs_closed),
                "rfqs_expired": len(result.rfqs_expired),
                "bids_expired": len(result.bids_expired),
                "failed": len(result.failed),
            },
        )
        return result

    def _sweep_rfq(self, rfq_id: UUID, result: SweepResult) -> None:
        try:
            with self._locks.hold("rfq", rfq_id):
                with owned_transaction(self._session, "time_sweep", rfq_id):
                    stored = self._rfqs.get_stored(rfq_id)
                    current = self._rfqs.get(rfq_id)
                    if current.status == stored.status:
                        return
                    saved = self._rfqs.save(current)
                    audit(self._audit, AuditTrailEntry(
                        "rfq", rfq_id, None, f"rfq.auto_{saved.status.value}",
                        before=status_snapshot(stored), after=status_snapshot(saved),
                    ))
        except SourcingError:
            logger.exception("time_sweep_rfq_failed", extra={"rfq_id": str(rfq_id)})
            result.failed.append(rfq_id)
            return

        now = self._clock.now()
        if stored.status == RFQStatus.OPEN:
            result.rfqs_closed.append(rfq_id)
            emit(self._publisher, _RFQ_EVENTS[RFQStatus.CLOSED], "rfq", rfq_id, now,
                 automatic=True)
        if saved.status == RFQStatus.EXPIRED:
            result.rfqs_expired.append(rfq_id)
            emit(self._publisher, _RFQ_EVENTS[RFQStatus.EXPIRED], "rfq", rfq_id, now,
                 automatic=True)

    def _sweep_bid(self, bid_id: UUID, result: SweepResult) -> None:
        try:
            with self._locks.hold("bid", bid_id):
                with owned_transaction(self._session, "time_sweep", bid_id):
                    stored = self._bids.get_stored(bid_id)
                    saved = self._bids.save(stored)
                    if saved.status != BidStatus.EXPIRED:
                        return
                    audit(self._audit, AuditTrailEntry(
                        "bid", bid_id, None, "bid.auto_expired",
                        before=status_snapshot(stored), after=status_snapshot(saved),
                    ))
        except SourcingError:
            logger.exception("time_sweep_bid_failed", extra={"bid_id": str(bid_id)})
            result.failed.append(bid_id)
            return

        result.bids_expired.append(bid_id)
        emit(self._publisher, events.BID_EXPIRED, "bid", bid_id, self._clock.now(),
             rfq_id=saved.rfq_id, automatic=True)
