"""
Tests for Bid persistence.

Validates:
- Securities and custom fields survive a reload
- One bid per supplier per RFQ
- Ordering of list_by_rfq (score, then price)
- Expiring-soon and pending-expiry queries
- Lazy validity expiry on load
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import BUYER_ID, CATEGORY_ID, START_TIME, SUPPLIER_A, SUPPLIER_B, SUPPLIER_C
from sourcing_kernel.exceptions import (
    BidNotFoundError,
    DuplicateBidError,
    DuplicateDocumentNumberError,
)
from sourcing_modules.bid import lifecycle
from sourcing_modules.bid.models import (
    BidItem,
    BidSecurity,
    BidSecurityType,
    BidStatus,
    PerformanceSecurity,
    PerformanceSecurityType,
)
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.rfq import lifecycle as rfq_lifecycle
from sourcing_modules.rfq.repository import RFQRepository


@pytest.fixture
def rfq(session, deterministic_clock):
    draft = rfq_lifecycle.draft_rfq(
        rfq_number="RFQ-2024-0001",
        title="Laptops",
        description="Developer laptops",
        category_id=CATEGORY_ID,
        created_by=BUYER_ID,
        deadline=START_TIME + timedelta(days=14),
        delivery_date=START_TIME + timedelta(days=45),
        now=START_TIME,
    )
    return RFQRepository(session, deterministic_clock).save(draft)


@pytest.fixture
def repo(session, deterministic_clock):
    return BidRepository(session, deterministic_clock)


def make_bid(rfq, supplier_id, number, unit_price="100", **optional):
    return lifecycle.draft_bid(
        bid_number=number,
        rfq_id=rfq.id,
        supplier_id=supplier_id,
        created_by=supplier_id,
        now=START_TIME,
        items=(BidItem(rfq_item_id=uuid4(), unit_price=Decimal(unit_price), quantity=Decimal("10")),),
        **optional,
    )


class TestSave:

    def test_round_trip(self, repo, rfq, session):
        bid = lifecycle.submit(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"), SUPPLIER_A, START_TIME)
        repo.save(bid)
        session.expunge_all()

        loaded = repo.get(bid.id)
        assert loaded.status == BidStatus.SUBMITTED
        assert loaded.total_amount == Decimal("1000")
        assert loaded.items[0].total == Decimal("1000")
        assert loaded.validity_expiry == START_TIME + timedelta(days=30)
        assert loaded.version == 1

    def test_custom_fields_keep_json_types(self, repo, rfq, session):
        custom = {"discount": 2.5, "local_supplier": True, "lots": [1, 2], "contact": {"ext": 42}}
        bid = repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0001", custom_fields=custom))
        session.expunge_all()
        assert repo.get(bid.id).custom_fields == custom

    def test_securities_round_trip(self, repo, rfq, session):
        bid_security = BidSecurity(
            provided=True,
            amount=Decimal("2500.00"),
            security_type=BidSecurityType.BANK_GUARANTEE,
            reference="BG-778",
            expiry_date=START_TIME + timedelta(days=90),
        )
        performance = PerformanceSecurity(
            offered=True, percentage=Decimal("10"),
            security_type=PerformanceSecurityType.INSURANCE_BOND,
        )
        bid = repo.save(make_bid(
            rfq, SUPPLIER_A, "BID-2024-0001",
            bid_security=bid_security, performance_security=performance,
        ))
        unsecured = repo.save(make_bid(rfq, SUPPLIER_B, "BID-2024-0002"))
        session.expunge_all()

        loaded = repo.get(bid.id)
        assert loaded.bid_security == bid_security
        assert loaded.performance_security == performance
        assert repo.get(unsecured.id).bid_security is None

    def test_one_bid_per_supplier(self, repo, rfq):
        repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"))
        with pytest.raises(DuplicateBidError):
            repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0002"))

    def test_duplicate_number(self, repo, rfq):
        first = repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"))
        with pytest.raises(DuplicateDocumentNumberError):
            repo.save(make_bid(rfq, SUPPLIER_B, "BID-2024-0001"))
        assert repo.get(first.id).supplier_id == SUPPLIER_A

    def test_missing_bid(self, repo):
        assert repo.find(uuid4()) is None
        with pytest.raises(BidNotFoundError):
            repo.get_stored(uuid4())


class TestQueries:

    def test_list_by_rfq_ordering(self, repo, rfq):
        cheap = repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0001", unit_price="90"))
        pricey = repo.save(make_bid(rfq, SUPPLIER_B, "BID-2024-0002", unit_price="120"))
        best = repo.save(replace(
            make_bid(rfq, SUPPLIER_C, "BID-2024-0003", unit_price="150"),
            overall_score=Decimal("88"),
        ))
        assert [b.id for b in repo.list_by_rfq(rfq.id)] == [best.id, cheap.id, pricey.id]
        assert repo.count_by_rfq(rfq.id) == 3

    def test_list_expiring(self, repo, rfq, deterministic_clock):
        bid = repo.save(
            lifecycle.submit(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"), SUPPLIER_A, START_TIME)
        )
        assert repo.list_expiring(days=7) == []

        deterministic_clock.advance(days=25)
        assert [b.id for b in repo.list_expiring(days=7)] == [bid.id]

        deterministic_clock.advance(days=10)
        assert repo.list_expiring(days=7) == []

    def test_list_by_supplier(self, repo, rfq):
        bid = repo.save(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"))
        assert [b.id for b in repo.list_by_supplier(SUPPLIER_A)] == [bid.id]
        assert repo.list_by_supplier(SUPPLIER_B) == []


class TestLazyExpiry:

    def test_expired_on_load_but_not_stored(self, repo, rfq, deterministic_clock):
        bid = repo.save(
            lifecycle.submit(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"), SUPPLIER_A, START_TIME)
        )
        deterministic_clock.advance(days=31)

        assert repo.get(bid.id).status == BidStatus.EXPIRED
        assert repo.get_stored(bid.id).status == BidStatus.SUBMITTED
        assert repo.ids_with_pending_expiry() == [bid.id]

    def test_not_expired_at_boundary(self, repo, rfq, deterministic_clock):
        bid = repo.save(
            lifecycle.submit(make_bid(rfq, SUPPLIER_A, "BID-2024-0001"), SUPPLIER_A, START_TIME)
        )
        deterministic_clock.set_time(bid.validity_expiry)
        assert repo.get(bid.id).status == BidStatus.SUBMITTED
        assert repo.ids_with_pending_expiry() == []
