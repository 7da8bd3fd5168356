"""
Tests for AwardOrchestrator.

Validates:
- Bid and RFQ are awarded together, savings computed from the budget
- Cross-aggregate failures persist nothing and publish nothing
- Events follow the commit
"""

from decimal import Decimal

import pytest

from conftest import BUYER_ID, EVALUATOR_1, SUPPLIER_A, SUPPLIER_B
from sourcing_kernel.domain import events
from sourcing_kernel.exceptions import BidRFQMismatchError, StateTransitionError
from sourcing_modules.bid.models import BidStatus
from sourcing_modules.rfq.models import RFQStatus


@pytest.fixture
def recommend(bid_service):
    def _recommend(bid):
        bid_service.start_review(bid.id, actor_id=EVALUATOR_1)
        bid_service.qualify(bid.id, actor_id=EVALUATOR_1)
        return bid_service.recommend(bid.id, actor_id=EVALUATOR_1)

    return _recommend


@pytest.fixture
def evaluated_rfq(rfq_service, create_open_rfq, submit_bid, recommend):
    """Closed RFQ under evaluation with one recommended bid from supplier A."""
    rfq = create_open_rfq(estimated_budget=Decimal("100000"))
    bid = recommend(submit_bid(rfq, SUPPLIER_A))
    other = submit_bid(rfq, SUPPLIER_B)
    rfq_service.close(rfq.id, actor_id=BUYER_ID)
    rfq = rfq_service.start_evaluation(rfq.id, actor_id=BUYER_ID)
    return rfq, bid, other


class TestAward:

    def test_awards_both_with_savings(self, award_orchestrator, evaluated_rfq, rfq_service, bid_service):
        rfq, bid, _ = evaluated_rfq
        awarded_rfq, awarded_bid = award_orchestrator.award(
            rfq.id, bid.id, BUYER_ID, Decimal("85000"), contract_terms="Net 45"
        )

        assert awarded_rfq.status == RFQStatus.AWARDED
        assert awarded_rfq.awarded_to == SUPPLIER_A
        assert awarded_rfq.awarded_bid == bid.id
        assert awarded_rfq.cost_savings == Decimal("15000")
        assert awarded_rfq.savings_percentage == Decimal("15")

        assert awarded_bid.status == BidStatus.AWARDED
        assert awarded_bid.award_amount == Decimal("85000")
        assert awarded_bid.contract_terms == "Net 45"

        assert rfq_service.get_rfq(rfq.id).status == RFQStatus.AWARDED
        assert [b.id for b in bid_service.list_awarded()] == [bid.id]

    def test_over_budget_award_is_negative_savings(self, award_orchestrator, evaluated_rfq):
        rfq, bid, _ = evaluated_rfq
        awarded_rfq, _ = award_orchestrator.award(rfq.id, bid.id, BUYER_ID, Decimal("110000"))
        assert awarded_rfq.cost_savings == Decimal("-10000")
        assert awarded_rfq.savings_percentage == Decimal("-10")

    def test_events_after_commit(self, award_orchestrator, evaluated_rfq, publisher):
        rfq, bid, _ = evaluated_rfq
        publisher.clear()
        award_orchestrator.award(rfq.id, bid.id, BUYER_ID, Decimal("85000"))

        bid_event, rfq_event = publisher.events
        assert bid_event.name == events.BID_AWARDED
        assert rfq_event.name == events.RFQ_AWARDED
        assert rfq_event.payload["bid_id"] == str(bid.id)
        assert Decimal(rfq_event.payload["cost_savings"]) == Decimal("15000")

    def test_audit_rows_for_both(self, award_orchestrator, evaluated_rfq, audit_sink):
        rfq, bid, _ = evaluated_rfq
        award_orchestrator.award(rfq.id, bid.id, BUYER_ID, Decimal("85000"))
        assert any("awarded" in r.description for r in audit_sink.trail("bid", bid.id))
        assert any("awarded to bid" in r.description for r in audit_sink.trail("rfq", rfq.id))


class TestAwardFailures:

    def test_bid_not_recommended(self, award_orchestrator, evaluated_rfq, rfq_service,
                                 bid_service, publisher):
        rfq, _, other = evaluated_rfq
        publisher.clear()
        with pytest.raises(StateTransitionError, match="only recommended"):
            award_orchestrator.award(rfq.id, other.id, BUYER_ID, Decimal("90000"))

        assert rfq_service.get_rfq(rfq.id).status == RFQStatus.UNDER_EVALUATION
        assert bid_service.get_bid(other.id).status == BidStatus.SUBMITTED
        assert publisher.events == ()

    def test_rfq_still_open(self, award_orchestrator, create_open_rfq, submit_bid, recommend,
                            bid_service):
        rfq = create_open_rfq()
        bid = recommend(submit_bid(rfq, SUPPLIER_A))
        with pytest.raises(StateTransitionError, match="closed or under evaluation"):
            award_orchestrator.award(rfq.id, bid.id, BUYER_ID, Decimal("1000"))
        assert bid_service.get_bid(bid.id).status == BidStatus.RECOMMENDED

    def test_bid_from_other_rfq(self, award_orchestrator, evaluated_rfq, create_open_rfq,
                                submit_bid):
        rfq, _, _ = evaluated_rfq
        foreign = submit_bid(create_open_rfq(), SUPPLIER_A)
        with pytest.raises(BidRFQMismatchError):
            award_orchestrator.award(rfq.id, foreign.id, BUYER_ID, Decimal("1000"))
