"""
Tests for TimeTransitionSweep.

Validates:
- Lagging rows are written with their due status
- Matching events carry ``automatic=True``
- Rows already current are left alone
"""

from datetime import timedelta

from conftest import SUPPLIER_A
from sourcing_kernel.domain import events
from sourcing_modules.bid.models import BidStatus
from sourcing_modules.rfq.models import RFQStatus
from sourcing_modules.rfq.repository import RFQRepository
from sourcing_modules.bid.repository import BidRepository


def test_nothing_due(time_sweep, create_open_rfq, submit_bid):
    submit_bid(create_open_rfq(), SUPPLIER_A)
    result = time_sweep.run()
    assert result.total == 0
    assert result.failed == []


def test_auto_close_persisted(time_sweep, create_open_rfq, deterministic_clock, session, publisher):
    rfq = create_open_rfq()
    deterministic_clock.advance(days=15)
    publisher.clear()

    result = time_sweep.run()

    assert result.rfqs_closed == [rfq.id]
    assert result.rfqs_expired == []
    stored = RFQRepository(session, deterministic_clock).get_stored(rfq.id)
    assert stored.status == RFQStatus.CLOSED
    assert stored.closed_at == deterministic_clock.now()

    [event] = publisher.events
    assert event.name == events.RFQ_CLOSED
    assert event.payload == {"automatic": True}


def test_closed_rfq_expires_on_later_run(time_sweep, create_open_rfq, deterministic_clock, session):
    rfq = create_open_rfq()
    deterministic_clock.advance(days=15)
    time_sweep.run()

    deterministic_clock.advance(days=31)
    result = time_sweep.run()

    assert result.rfqs_expired == [rfq.id]
    assert result.rfqs_closed == []
    assert RFQRepository(session, deterministic_clock).get_stored(rfq.id).status == RFQStatus.EXPIRED


def test_bid_expiry(time_sweep, create_open_rfq, submit_bid, deterministic_clock, session,
                    publisher, audit_sink):
    rfq = create_open_rfq()
    bid = submit_bid(rfq, SUPPLIER_A)
    deterministic_clock.advance(days=31)
    publisher.clear()

    result = time_sweep.run()

    assert result.bids_expired == [bid.id]
    assert BidRepository(session, deterministic_clock).get_stored(bid.id).status == BidStatus.EXPIRED
    bid_events = [e for e in publisher.events if e.name == events.BID_EXPIRED]
    assert bid_events[0].payload == {"rfq_id": str(rfq.id), "automatic": True}
    assert any(r.description == "bid.auto_expired" for r in audit_sink.trail("bid", bid.id))


def test_second_run_is_noop(time_sweep, create_open_rfq, submit_bid, deterministic_clock):
    submit_bid(create_open_rfq(), SUPPLIER_A)
    deterministic_clock.advance(days=31)
    first = time_sweep.run()
    second = time_sweep.run()
    assert first.total == 2
    assert second.total == 0


def test_logs_summary(time_sweep, captured_logs):
    time_sweep.run()
    [summary] = [r for r in captured_logs() if r["message"] == "time_sweep_completed"]
    assert summary["failed"] == 0
