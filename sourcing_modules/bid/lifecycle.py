"""
Bid Lifecycle Manager (``sourcing_modules.bid.lifecycle``).

Responsibility
--------------
Owns the Bid aggregate's status, its derived totals and validity window.
Functions are pure: they take a ``Bid`` and the current time and return a
new ``Bid``.

Architecture position
---------------------
**Modules layer** -- functional core.  Called by ``BidService`` and the
award orchestrator.  No session, no clock, no I/O.

Invariants enforced
-------------------
* ``item.total == unit_price * quantity`` and
  ``total_amount == sum(item.total)`` after every recompute.
* ``validity_expiry == submitted_at + validity_period_days`` once submitted.
* A ``submitted`` bid past ``validity_expiry`` is ``expired``; never before.
* ``overall_score`` equals the sum of evaluation weighted scores whenever
  evaluation results exist.
* ``disqualify`` is accepted from any status, terminal ones included.
  Every other status change resolves through ``BID_WORKFLOW``.

Failure modes
-------------
* ``StateTransitionError`` -- action not valid from the current status, or
  submit without items.
* ``ValidationError`` -- invalid validity period, currency, duplicate item
  lines or a negative award amount.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sourcing_engines.scoring import bid_overall_score
from sourcing_kernel.domain.workflow import require_transition
from sourcing_kernel.exceptions import StateTransitionError, ValidationError
from sourcing_kernel.logging_config import get_logger
from sourcing_modules.bid.models import (
    Bid,
    BidItem,
    BidSecurity,
    BidStats,
    BidStatus,
    Compliance,
    PerformanceSecurity,
)
from sourcing_modules.bid.workflows import BID_WORKFLOW

logger = get_logger("modules.bid.lifecycle")

DEFAULT_COMPLIANCE_THRESHOLD = Decimal("80")
SECONDS_PER_DAY = 86400
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _transition(bid: Bid, action: str, reason: str | None = None) -> BidStatus:
    transition = require_transition(BID_WORKFLOW, bid.id, bid.status.value, action, reason)
    return BidStatus(transition.to_state)


# =============================================================================
# Creation and validation
# =============================================================================


def draft_bid(
    *,
    bid_number: str,
    rfq_id: UUID,
    supplier_id: UUID,
    created_by: UUID,
    now: datetime,
    bid_id: UUID | None = None,
    **optional: Any,
) -> Bid:
    """Build a new draft bid with derived totals, and validate it."""
    bid = Bid(
        id=bid_id or uuid4(),
        bid_number=bid_number,
        rfq_id=rfq_id,
        supplier_id=supplier_id,
        created_by=created_by,
        **optional,
    )
    bid = recompute_derived(bid, now)
    validate_bid(bid)
    return bid


def validate_bid(bid: Bid) -> None:
    """Save-time gate.  Raises on the first violated rule."""
    if bid.validity_period_days < 1:
        raise ValidationError(
            "bid", "validity_period_days", "must be at least 1 day",
            value=bid.validity_period_days,
        )
    if len(bid.currency) != 3:
        raise ValidationError("bid", "currency", "must be a 3-letter code", value=bid.currency)
    seen: set[UUID] = set()
    for item in bid.items:
        if item.rfq_item_id in seen:
            raise ValidationError(
                "bid", "items", "RFQ item quoted more than once", value=str(item.rfq_item_id)
            )
        seen.add(item.rfq_item_id)
    if bid.delivery_time_days is not None and bid.delivery_time_days < 0:
        raise ValidationError("bid", "delivery_time_days", "cannot be negative")
    if bid.award_amount is not None and bid.award_amount < 0:
        raise ValidationError(
            "bid", "award_amount", "cannot be negative", value=str(bid.award_amount)
        )


# =============================================================================
# Derived state
# =============================================================================


def price_items(items: tuple[BidItem, ...]) -> tuple[BidItem, ...]:
    """Set ``total = unit_price * quantity`` on every item."""
    return tuple(
        item if item.total == item.unit_price * item.quantity
        else replace(item, total=item.unit_price * item.quantity)
        for item in items
    )


def apply_time_transitions(bid: Bid, now: datetime) -> Bid:
    """Expire a submitted bid whose validity window has passed."""
    if (
        bid.status == BidStatus.SUBMITTED
        and bid.validity_expiry is not None
        and now > bid.validity_expiry
    ):
        logger.info(
            "bid_auto_expired",
            extra={"bid_id": str(bid.id), "validity_expiry": bid.validity_expiry.isoformat()},
        )
        return replace(bid, status=BidStatus.EXPIRED)
    return bid


def recompute_derived(bid: Bid, now: datetime, touch: bool = True) -> Bid:
    """
    Bring totals, validity expiry, overall score and status up to date.

    ``touch=False`` leaves ``last_modified_at`` alone; used when a bid is
    only being read.
    """
    items = price_items(bid.items)
    changes: dict[str, Any] = {
        "items": items,
        "total_amount": sum((i.total for i in items), ZERO),
    }
    if bid.submitted_at is not None and bid.validity_expiry is None:
        changes["validity_expiry"] = bid.submitted_at + timedelta(days=bid.validity_period_days)
    if bid.evaluation_results:
        changes["overall_score"] = bid_overall_score(bid.evaluation_results)
    if touch:
        changes["last_modified_at"] = now
    return apply_time_transitions(replace(bid, **changes), now)


# =============================================================================
# Transitions
# =============================================================================


def submit(bid: Bid, by: UUID, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "submit", "only draft bids can be submitted")
    if not bid.items:
        raise StateTransitionError(
            "bid", str(bid.id), bid.status.value, "submit", "cannot submit bid without items"
        )
    return replace(
        bid,
        status=status,
        submitted_by=by,
        submitted_at=now,
        validity_expiry=now + timedelta(days=bid.validity_period_days),
    )


def withdraw(bid: Bid, reason: str, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "withdraw", "bid cannot be withdrawn in current status")
    return replace(bid, status=status, withdrawal_reason=reason, withdrawn_at=now)


def disqualify(bid: Bid, by: UUID, reason: str, now: datetime) -> Bid:
    """Disqualify from any status.  No precondition is applied."""
    bid = recompute_derived(bid, now)
    if bid.is_terminal:
        logger.warning(
            "bid_disqualified_from_terminal_status",
            extra={"bid_id": str(bid.id), "status": bid.status.value},
        )
    return replace(
        bid,
        status=BidStatus.DISQUALIFIED,
        disqualified_by=by,
        disqualified_reason=reason,
        disqualified_at=now,
    )


def start_review(bid: Bid, by: UUID, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "start_review")
    return replace(bid, status=status, reviewed_by=by, reviewed_at=now)


def qualify(bid: Bid, by: UUID, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "qualify")
    return replace(bid, status=status, qualified_by=by, qualified_at=now)


def recommend(bid: Bid, by: UUID, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "recommend")
    return replace(bid, status=status, recommended_by=by, recommended_at=now)


def reject(bid: Bid, by: UUID, reason: str, now: datetime) -> Bid:
    bid = recompute_derived(bid, now)
    status = _transition(bid, "reject")
    return replace(
        bid, status=status, rejected_by=by, rejected_at=now, rejection_reason=reason
    )


def award(
    bid: Bid,
    by: UUID,
    amount: Decimal,
    now: datetime,
    contract_terms: str = "",
) -> Bid:
    """
    Award a recommended bid.

    Raises:
        StateTransitionError: status is not ``recommended``.
        ValidationError: negative amount.
    """
    bid = recompute_derived(bid, now)
    status = _transition(bid, "award", "only recommended bids can be awarded")
    if amount < 0:
        raise ValidationError("bid", "award_amount", "cannot be negative", value=str(amount))
    return replace(
        bid,
        status=status,
        award_amount=amount,
        awarded_by=by,
        awarded_at=now,
        contract_terms=contract_terms,
    )


def update_items(bid: Bid, items: tuple[BidItem, ...], now: datetime) -> Bid:
    """Replace the priced items of a draft bid."""
    if bid.status != BidStatus.DRAFT:
        raise StateTransitionError(
            "bid", str(bid.id), bid.status.value, "update_items", "only draft bids can be modified"
        )
    return recompute_derived(replace(bid, items=tuple(items)), now)


def update_securities(
    bid: Bid,
    bid_security: BidSecurity | None,
    performance_security: PerformanceSecurity | None,
    now: datetime,
) -> Bid:
    """Replace the bid bond and offered performance guarantee of a draft bid."""
    if bid.status != BidStatus.DRAFT:
        raise StateTransitionError(
            "bid", str(bid.id), bid.status.value, "update_securities",
            "only draft bids can be modified",
        )
    return recompute_derived(
        replace(bid, bid_security=bid_security, performance_security=performance_security),
        now,
    )


# =============================================================================
# Read-side helpers
# =============================================================================


def compliance_rate(bid: Bid) -> Decimal:
    """Percentage of items that are fully compliant; 0 for a bid with no items."""
    if not bid.items:
        return ZERO
    compliant = sum(1 for i in bid.items if i.compliance == Compliance.FULLY_COMPLIANT)
    return Decimal(compliant) / Decimal(len(bid.items)) * HUNDRED


def is_compliant(bid: Bid, threshold: Decimal = DEFAULT_COMPLIANCE_THRESHOLD) -> bool:
    return compliance_rate(bid) >= threshold


def average_delivery_time(bid: Bid) -> Decimal:
    if not bid.items:
        return ZERO
    return Decimal(sum(i.delivery_time_days for i in bid.items)) / Decimal(len(bid.items))


def days_until_expiry(bid: Bid, now: datetime) -> int | None:
    """Whole days until validity expiry, rounded up; None before submission."""
    if bid.validity_expiry is None:
        return None
    return math.ceil((bid.validity_expiry - now).total_seconds() / SECONDS_PER_DAY)


def is_valid(bid: Bid, now: datetime) -> bool:
    return bid.validity_expiry is not None and now < bid.validity_expiry


def can_be_modified(bid: Bid) -> bool:
    return bid.status == BidStatus.DRAFT


def bid_stats(bid: Bid) -> BidStats:
    return BidStats(
        total_items=len(bid.items),
        compliant_items=sum(1 for i in bid.items if i.compliance == Compliance.FULLY_COMPLIANT),
        compliance_rate=compliance_rate(bid),
        items_with_warranty=sum(1 for i in bid.items if (i.warranty_months or 0) > 0),
        items_with_support=sum(1 for i in bid.items if i.after_sales_support),
        average_delivery_time=average_delivery_time(bid),
        evaluation_score=bid.overall_score or ZERO,
        rank=bid.rank,
    )
