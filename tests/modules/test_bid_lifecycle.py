"""
Tests for the Bid lifecycle manager (pure functions, no database).

Validates:
- Item pricing and total_amount derivation
- submit sets the validity window; lazy expiry strictly after it
- withdraw / review / qualify / recommend / reject / award
- disqualify is accepted from any status
- Compliance and delivery helpers
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from sourcing_engines.scoring import add_bid_evaluation
from sourcing_kernel.exceptions import StateTransitionError, ValidationError
from sourcing_modules.bid import lifecycle
from sourcing_modules.bid.models import (
    BidItem,
    BidSecurity,
    BidSecurityType,
    BidStatus,
    Compliance,
    PerformanceSecurity,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
SUPPLIER = uuid4()
REVIEWER = uuid4()


def item(unit_price="100", quantity="2", **kwargs) -> BidItem:
    return BidItem(
        rfq_item_id=kwargs.pop("rfq_item_id", uuid4()),
        unit_price=Decimal(unit_price),
        quantity=Decimal(quantity),
        **kwargs,
    )


def make_bid(items=None, **overrides):
    values = dict(
        bid_number="BID-2024-0001",
        rfq_id=uuid4(),
        supplier_id=SUPPLIER,
        created_by=SUPPLIER,
        now=NOW,
        items=(item(),) if items is None else tuple(items),
    )
    values.update(overrides)
    return lifecycle.draft_bid(**values)


def submitted_bid(**overrides):
    return lifecycle.submit(make_bid(**overrides), SUPPLIER, NOW)


def recommended_bid():
    bid = lifecycle.start_review(submitted_bid(), REVIEWER, NOW)
    bid = lifecycle.qualify(bid, REVIEWER, NOW)
    return lifecycle.recommend(bid, REVIEWER, NOW)


class TestItemBid:

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError, match=r"bid_item\.unit_price"):
            item(unit_price="-1")

    def test_non_positive_quantity_rejected(self):
        with pytest.raises(ValidationError, match=r"bid_item\.quantity"):
            item(quantity="0")

    def test_negative_delivery_time_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            item(delivery_time_days=-3)
        assert exc_info.value.field == "delivery_time_days"
        assert exc_info.value.code == "VALIDATION_ERROR"


class TestSecurities:

    def test_bid_security_amount_cannot_be_negative(self):
        with pytest.raises(ValidationError, match=r"bid_security\.amount"):
            BidSecurity(provided=True, amount=Decimal("-1"))

    def test_performance_percentage_bounded(self):
        with pytest.raises(ValidationError, match=r"performance_security\.percentage"):
            PerformanceSecurity(offered=True, percentage=Decimal("120"))
        assert PerformanceSecurity(percentage=Decimal("100")).percentage == Decimal("100")

    def test_update_securities_only_while_draft(self):
        security = BidSecurity(provided=True, security_type=BidSecurityType.CASH)
        bid = lifecycle.update_securities(make_bid(), security, None, NOW)
        assert bid.bid_security == security
        assert bid.performance_security is None
        with pytest.raises(StateTransitionError):
            lifecycle.update_securities(submitted_bid(), security, None, NOW)


class TestDerivedTotals:

    def test_totals(self):
        bid = make_bid(items=[item("100", "2"), item("12.50", "4")])
        assert [i.total for i in bid.items] == [Decimal("200"), Decimal("50.00")]
        assert bid.total_amount == Decimal("250.00")

    def test_stale_total_is_corrected(self):
        bid = make_bid()
        stale = replace(bid, items=(replace(bid.items[0], total=Decimal("1")),))
        assert lifecycle.recompute_derived(stale, NOW).total_amount == Decimal("200")

    def test_touch_flag(self):
        bid = make_bid()
        later = NOW + timedelta(hours=1)
        assert lifecycle.recompute_derived(bid, later).last_modified_at == later
        assert lifecycle.recompute_derived(bid, later, touch=False).last_modified_at == NOW

    def test_duplicate_item_lines_rejected(self):
        line = uuid4()
        with pytest.raises(ValidationError, match="more than once"):
            make_bid(items=[item(rfq_item_id=line), item(rfq_item_id=line)])


class TestSubmit:

    def test_validity_window(self):
        bid = submitted_bid()
        assert bid.status == BidStatus.SUBMITTED
        assert bid.submitted_at == NOW
        assert bid.validity_expiry == datetime(2024, 1, 31, tzinfo=timezone.utc)

    def test_requires_items(self):
        with pytest.raises(StateTransitionError, match="without items"):
            lifecycle.submit(make_bid(items=[]), SUPPLIER, NOW)

    def test_only_from_draft(self):
        with pytest.raises(StateTransitionError):
            lifecycle.submit(submitted_bid(), SUPPLIER, NOW)

    def test_expires_strictly_after_expiry(self):
        bid = submitted_bid()
        assert lifecycle.apply_time_transitions(bid, bid.validity_expiry).status == BidStatus.SUBMITTED
        expired = lifecycle.apply_time_transitions(bid, bid.validity_expiry + timedelta(seconds=1))
        assert expired.status == BidStatus.EXPIRED

    def test_reviewed_bid_does_not_expire(self):
        bid = lifecycle.start_review(submitted_bid(), REVIEWER, NOW)
        later = NOW + timedelta(days=90)
        assert lifecycle.apply_time_transitions(bid, later).status == BidStatus.UNDER_REVIEW

    def test_items_frozen_after_submit(self):
        with pytest.raises(StateTransitionError, match="only draft"):
            lifecycle.update_items(submitted_bid(), (item(),), NOW)


class TestReviewPath:

    def test_full_path_to_award(self):
        bid = recommended_bid()
        assert bid.status == BidStatus.RECOMMENDED
        assert bid.reviewed_by == bid.qualified_by == bid.recommended_by == REVIEWER

        awarded = lifecycle.award(bid, REVIEWER, Decimal("190"), NOW, contract_terms="Net 30")
        assert awarded.status == BidStatus.AWARDED
        assert awarded.award_amount == Decimal("190")
        assert awarded.contract_terms == "Net 30"

    @pytest.mark.parametrize(
        "builder",
        [make_bid, submitted_bid, lambda: lifecycle.start_review(submitted_bid(), REVIEWER, NOW)],
    )
    def test_award_requires_recommended(self, builder):
        with pytest.raises(StateTransitionError, match="only recommended"):
            lifecycle.award(builder(), REVIEWER, Decimal("1"), NOW)

    def test_withdraw(self):
        bid = lifecycle.withdraw(submitted_bid(), "pricing error", NOW)
        assert bid.status == BidStatus.WITHDRAWN
        assert bid.withdrawal_reason == "pricing error"

    def test_withdraw_after_qualification_rejected(self):
        bid = lifecycle.qualify(lifecycle.start_review(submitted_bid(), REVIEWER, NOW), REVIEWER, NOW)
        with pytest.raises(StateTransitionError):
            lifecycle.withdraw(bid, "too late", NOW)

    def test_reject_from_recommended(self):
        bid = lifecycle.reject(recommended_bid(), REVIEWER, "outbid", NOW)
        assert bid.status == BidStatus.REJECTED
        assert bid.rejection_reason == "outbid"

    def test_reject_draft_rejected(self):
        with pytest.raises(StateTransitionError):
            lifecycle.reject(make_bid(), REVIEWER, "no", NOW)


class TestDisqualify:

    @pytest.mark.parametrize("builder", [make_bid, submitted_bid, recommended_bid])
    def test_from_any_status(self, builder):
        bid = lifecycle.disqualify(builder(), REVIEWER, "conflict of interest", NOW)
        assert bid.status == BidStatus.DISQUALIFIED
        assert bid.disqualified_reason == "conflict of interest"

    def test_even_from_terminal_status(self, captured_logs):
        awarded = lifecycle.award(recommended_bid(), REVIEWER, Decimal("1"), NOW)
        bid = lifecycle.disqualify(awarded, REVIEWER, "fraud", NOW)
        assert bid.status == BidStatus.DISQUALIFIED
        assert any(
            r["message"] == "bid_disqualified_from_terminal_status" for r in captured_logs()
        )


class TestHelpers:

    def test_compliance_rate(self):
        bid = make_bid(items=[
            item(compliance=Compliance.FULLY_COMPLIANT),
            item(compliance=Compliance.FULLY_COMPLIANT),
            item(compliance=Compliance.FULLY_COMPLIANT),
            item(compliance=Compliance.PARTIALLY_COMPLIANT),
        ])
        assert lifecycle.compliance_rate(bid) == Decimal("75")
        assert not lifecycle.is_compliant(bid)
        assert lifecycle.is_compliant(bid, threshold=Decimal("75"))

    def test_empty_bid_helpers(self):
        bid = make_bid(items=[])
        assert lifecycle.compliance_rate(bid) == Decimal("0")
        assert lifecycle.average_delivery_time(bid) == Decimal("0")

    def test_days_until_expiry(self):
        assert lifecycle.days_until_expiry(make_bid(), NOW) is None
        bid = submitted_bid()
        assert lifecycle.days_until_expiry(bid, NOW + timedelta(hours=12)) == 30
        assert lifecycle.is_valid(bid, NOW)
        assert not lifecycle.is_valid(bid, bid.validity_expiry)

    def test_stats(self):
        bid = make_bid(items=[
            item(delivery_time_days=10, warranty_months=12),
            item(delivery_time_days=20, after_sales_support=True,
                 compliance=Compliance.NON_COMPLIANT),
        ])
        bid = add_bid_evaluation(bid, "price", Decimal("80"), Decimal("50"), REVIEWER, NOW)
        stats = lifecycle.bid_stats(bid)
        assert stats.total_items == 2
        assert stats.compliant_items == 1
        assert stats.compliance_rate == Decimal("50")
        assert stats.items_with_warranty == 1
        assert stats.items_with_support == 1
        assert stats.average_delivery_time == Decimal("15")
        assert stats.evaluation_score == Decimal("40")
