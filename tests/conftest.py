"""
Pytest fixtures for the sourcing kernel test suite.

Provides:
- In-memory SQLite engine with every table created, one per test
- Deterministic clock and well-known actor ids
- Service fixtures wired to an in-memory event publisher
- Captured structured logs

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are created and dropped around every test.
"""

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from sourcing_config import SourcingConfig
from sourcing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from sourcing_kernel.domain.clock import DeterministicClock
from sourcing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sourcing_kernel.services.aggregate_lock import AggregateLockRegistry
from sourcing_kernel.services.audit_service import SqlAuditSink
from sourcing_kernel.services.notification_service import InMemoryEventPublisher

# Well-known actors.
BUYER_ID = UUID("00000000-0000-4000-a000-000000000001")
EVALUATOR_1 = UUID("00000000-0000-4000-a000-000000000002")
EVALUATOR_2 = UUID("00000000-0000-4000-a000-000000000003")
SUPPLIER_A = UUID("00000000-0000-4000-b000-00000000000a")
SUPPLIER_B = UUID("00000000-0000-4000-b000-00000000000b")
SUPPLIER_C = UUID("00000000-0000-4000-b000-00000000000c")
CATEGORY_ID = UUID("00000000-0000-4000-c000-000000000001")

START_TIME = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sourcing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rfq_service):
            rfq_service.publish(rfq_id, actor_id=BUYER_ID)
            logs = captured_logs()
            assert any(r["message"] == "rfq_publish" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sourcing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture
def db_engine():
    """Fresh engine and schema for each test."""
    engine = init_engine_from_url(get_database_url())
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(START_TIME)


@pytest.fixture
def config():
    return SourcingConfig()


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def audit_sink(session, deterministic_clock):
    return SqlAuditSink(session, deterministic_clock)


@pytest.fixture
def lock_registry():
    return AggregateLockRegistry()


@pytest.fixture
def service_kwargs(session, deterministic_clock, config, audit_sink, publisher, lock_registry):
    """Constructor arguments shared by every sourcing service."""
    return {
        "session": session,
        "clock": deterministic_clock,
        "config": config,
        "audit_sink": audit_sink,
        "publisher": publisher,
        "locks": lock_registry,
    }


@pytest.fixture
def rfq_service(service_kwargs):
    from sourcing_modules.rfq.service import RFQService

    return RFQService(**service_kwargs)


@pytest.fixture
def bid_service(service_kwargs):
    from sourcing_modules.bid.service import BidService

    return BidService(**service_kwargs)


@pytest.fixture
def award_orchestrator(service_kwargs):
    from sourcing_services.award_orchestrator import AwardOrchestrator

    return AwardOrchestrator(**service_kwargs)


@pytest.fixture
def time_sweep(service_kwargs):
    from sourcing_services.time_sweep import TimeTransitionSweep

    return TimeTransitionSweep(**service_kwargs)


# =============================================================================
# Scenario helpers
# =============================================================================


@pytest.fixture
def create_open_rfq(rfq_service, deterministic_clock):
    """
    Factory: create, invite, add an item, publish and open an RFQ.

    Returns the stored RFQ.  The deadline is 14 days out.
    """

    def _create(
        suppliers=(SUPPLIER_A, SUPPLIER_B),
        estimated_budget=Decimal("100000"),
        **optional,
    ):
        now = deterministic_clock.now()
        rfq = rfq_service.create_rfq(
            title="Office chairs",
            description="Ergonomic office chairs, 200 units",
            category_id=CATEGORY_ID,
            created_by=BUYER_ID,
            deadline=now + timedelta(days=14),
            delivery_date=now + timedelta(days=45),
            estimated_budget=estimated_budget,
            **optional,
        )
        for supplier_id in suppliers:
            rfq_service.invite_supplier(rfq.id, supplier_id, actor_id=BUYER_ID)
        rfq_service.add_item(rfq.id, uuid4(), actor_id=BUYER_ID)
        rfq_service.publish(rfq.id, actor_id=BUYER_ID)
        return rfq_service.open_bidding(rfq.id, actor_id=BUYER_ID)

    return _create


@pytest.fixture
def submit_bid(bid_service):
    """Factory: create and submit a one-item bid for ``supplier_id``."""
    from sourcing_modules.bid.models import BidItem

    def _submit(rfq, supplier_id, unit_price=Decimal("400"), quantity=Decimal("200")):
        bid = bid_service.create_bid(
            rfq_id=rfq.id,
            supplier_id=supplier_id,
            created_by=supplier_id,
            items=(
                BidItem(
                    rfq_item_id=rfq.items[0],
                    unit_price=unit_price,
                    quantity=quantity,
                    delivery_time_days=21,
                ),
            ),
        )
        return bid_service.submit(bid.id, actor_id=supplier_id)

    return _submit
