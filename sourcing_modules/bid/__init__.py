"""
Bid Module (``sourcing_modules.bid``).

Responsibility
--------------
Supplier bids against an RFQ: priced items, submission and validity window,
review, qualification, recommendation, rejection, disqualification,
per-criterion evaluation and ranking.

Invariants enforced
-------------------
* ``total_amount`` is the sum of ``unit_price * quantity`` over items.
* One bid per supplier per RFQ.
* A submitted bid past its validity expiry reads as ``expired``.
"""

from sourcing_modules.bid.models import (
    Bid,
    BidItem,
    BidSecurity,
    BidSecurityType,
    BidStats,
    BidStatus,
    Compliance,
    Incoterms,
    PaymentTerms,
    PerformanceSecurity,
    PerformanceSecurityType,
)
from sourcing_modules.bid.repository import BidRepository
from sourcing_modules.bid.workflows import BID_WORKFLOW

__all__ = [
    "BID_WORKFLOW",
    "Bid",
    "BidItem",
    "BidSecurity",
    "BidSecurityType",
    "BidRepository",
    "BidStats",
    "BidStatus",
    "Compliance",
    "Incoterms",
    "PaymentTerms",
    "PerformanceSecurity",
    "PerformanceSecurityType",
]
