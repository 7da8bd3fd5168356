"""
RFQ Lifecycle Manager (``sourcing_modules.rfq.lifecycle``).

Responsibility
--------------
Owns the RFQ aggregate's status and every legal change to it.  All
functions are pure: they take an ``RFQ`` and the current time and return a
new ``RFQ`` (``dataclasses.replace``), raising a typed ``SourcingError``
when the change is not allowed.

Architecture position
---------------------
**Modules layer** -- functional core.  Called by ``RFQService`` (imperative
shell) and by the award orchestrator.  No session, no clock, no I/O.

Invariants enforced
-------------------
* Every status change resolves through ``RFQ_WORKFLOW``; an action with no
  transition from the current status raises ``StateTransitionError``.
* Every operation starts with ``recompute_derived`` so time-driven
  transitions and savings figures are current before the action runs.
* Auto-close applies only to stored status ``open`` once ``now`` is past the
  deadline.  ``published`` is shown as open by ``bidding_status`` but its
  stored value is never flipped by the clock.
* Auto-expiry applies to ``closed`` RFQs whose validity period (counted from
  ``closed_at``) has elapsed.
* Savings are recomputed whenever the RFQ is awarded and both inputs exist.
* ``validate_rfq`` gates every save: criteria weights, dates, budget,
  validity period and field lengths.

Failure modes
-------------
* ``StateTransitionError`` -- action not valid from the current status, or
  a guard failed (e.g. publish without suppliers).
* ``SupplierNotInvitedError`` -- award to a supplier outside the invited set.
* ``QuestionNotFoundError`` -- answering an unknown question.
* ``ValidationError`` / ``CriteriaWeightError`` -- save-time validation.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sourcing_engines.criteria import (
    DEFAULT_WEIGHT_TOLERANCE,
    EvaluationCriteria,
    validate_criteria,
)
from sourcing_engines.savings import compute_savings
from sourcing_kernel.domain.workflow import require_transition
from sourcing_kernel.exceptions import (
    QuestionNotFoundError,
    StateTransitionError,
    SupplierNotInvitedError,
    ValidationError,
)
from sourcing_kernel.logging_config import get_logger
from sourcing_modules.rfq.models import (
    BIDDING_STATUSES,
    CommitteeMember,
    CommitteeRole,
    MODIFIABLE_STATUSES,
    RFQ,
    RFQAmendment,
    RFQQuestion,
    RFQStats,
    RFQStatus,
)
from sourcing_modules.rfq.workflows import RFQ_WORKFLOW

logger = get_logger("modules.rfq.lifecycle")

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
TERMS_MAX_LENGTH = 5000
INSTRUCTIONS_MAX_LENGTH = 2000
SECONDS_PER_DAY = 86400


def _transition(rfq: RFQ, action: str, reason: str | None = None) -> RFQStatus:
    """Resolve ``action`` from the RFQ's current status; return the target."""
    transition = require_transition(RFQ_WORKFLOW, rfq.id, rfq.status.value, action, reason)
    return RFQStatus(transition.to_state)


def _require_modifiable(rfq: RFQ, action: str) -> None:
    if rfq.status not in MODIFIABLE_STATUSES:
        raise StateTransitionError(
            "rfq", str(rfq.id), rfq.status.value, action,
            "only draft or published RFQs can be modified",
        )


def _require_not_terminal(rfq: RFQ, action: str) -> None:
    if rfq.is_terminal:
        raise StateTransitionError("rfq", str(rfq.id), rfq.status.value, action)


# =============================================================================
# Creation and validation
# =============================================================================


def draft_rfq(
    *,
    rfq_number: str,
    title: str,
    description: str,
    category_id: UUID,
    created_by: UUID,
    deadline: datetime,
    delivery_date: datetime,
    now: datetime,
    rfq_id: UUID | None = None,
    tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
    **optional: Any,
) -> RFQ:
    """
    Build a new draft RFQ and validate it.

    The deadline must lie in the future at creation time; later saves do not
    re-check this, since every RFQ's deadline eventually passes.
    """
    if deadline <= now:
        raise ValidationError("rfq", "deadline", "deadline must be in the future", value=deadline)
    rfq = RFQ(
        id=rfq_id or uuid4(),
        rfq_number=rfq_number,
        title=title,
        description=description,
        category_id=category_id,
        created_by=created_by,
        deadline=deadline,
        delivery_date=delivery_date,
        **optional,
    )
    validate_rfq(rfq, tolerance)
    return rfq


def validate_rfq(rfq: RFQ, tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE) -> None:
    """Save-time gate.  Raises on the first violated rule."""
    validate_criteria(rfq.evaluation_criteria, tolerance)

    if not rfq.title or not rfq.title.strip():
        raise ValidationError("rfq", "title", "title is required")
    if len(rfq.title) > TITLE_MAX_LENGTH:
        raise ValidationError("rfq", "title", f"cannot exceed {TITLE_MAX_LENGTH} characters")
    if not rfq.description or not rfq.description.strip():
        raise ValidationError("rfq", "description", "description is required")
    if len(rfq.description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            "rfq", "description", f"cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
        )
    if len(rfq.terms_and_conditions) > TERMS_MAX_LENGTH:
        raise ValidationError(
            "rfq", "terms_and_conditions", f"cannot exceed {TERMS_MAX_LENGTH} characters"
        )
    if len(rfq.special_instructions) > INSTRUCTIONS_MAX_LENGTH:
        raise ValidationError(
            "rfq", "special_instructions", f"cannot exceed {INSTRUCTIONS_MAX_LENGTH} characters"
        )
    if rfq.estimated_budget < 0:
        raise ValidationError(
            "rfq", "estimated_budget", "cannot be negative", value=str(rfq.estimated_budget)
        )
    if len(rfq.currency) != 3:
        raise ValidationError("rfq", "currency", "must be a 3-letter code", value=rfq.currency)
    if rfq.delivery_date <= rfq.deadline:
        raise ValidationError("rfq", "delivery_date", "must be after the deadline")
    if rfq.bid_opening_date is not None and rfq.bid_opening_date < rfq.deadline:
        raise ValidationError("rfq", "bid_opening_date", "must be on or after the deadline")
    if rfq.validity_period_days < 1:
        raise ValidationError(
            "rfq", "validity_period_days", "must be at least 1 day",
            value=rfq.validity_period_days,
        )
    if len(set(rfq.suppliers)) != len(rfq.suppliers):
        raise ValidationError("rfq", "suppliers", "supplier invited more than once")
    if rfq.actual_award_amount is not None and rfq.actual_award_amount < 0:
        raise ValidationError(
            "rfq", "actual_award_amount", "cannot be negative",
            value=str(rfq.actual_award_amount),
        )


# =============================================================================
# Derived state
# =============================================================================


def apply_time_transitions(rfq: RFQ, now: datetime) -> RFQ:
    """
    Apply clock-driven transitions that are due.

    ``open`` past its deadline closes (``closed_at = now``); a ``closed`` RFQ
    whose validity period has elapsed since closing expires.  A freshly
    auto-closed RFQ is stamped ``closed_at = now`` and so cannot also expire
    in the same call.
    """
    if rfq.status == RFQStatus.OPEN and now > rfq.deadline:
        rfq = replace(rfq, status=RFQStatus.CLOSED, closed_at=now)
        logger.info(
            "rfq_auto_closed",
            extra={"rfq_id": str(rfq.id), "deadline": rfq.deadline.isoformat()},
        )

    if rfq.status == RFQStatus.CLOSED and rfq.closed_at is not None:
        expires_at = rfq.closed_at + timedelta(days=rfq.validity_period_days)
        if now > expires_at:
            rfq = replace(rfq, status=RFQStatus.EXPIRED)
            logger.info(
                "rfq_auto_expired",
                extra={"rfq_id": str(rfq.id), "expired_after": expires_at.isoformat()},
            )
    return rfq


def recompute_derived(rfq: RFQ, now: datetime) -> RFQ:
    """Bring time-driven status and savings figures up to date."""
    rfq = apply_time_transitions(rfq, now)
    if rfq.status == RFQStatus.AWARDED and rfq.actual_award_amount is not None:
        savings = compute_savings(rfq.estimated_budget, rfq.actual_award_amount)
        if (savings.cost_savings, savings.savings_percentage) != (
            rfq.cost_savings,
            rfq.savings_percentage,
        ):
            rfq = replace(
                rfq,
                cost_savings=savings.cost_savings,
                savings_percentage=savings.savings_percentage,
            )
    return rfq


# =============================================================================
# Transitions
# =============================================================================


def publish(rfq: RFQ, by: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "publish", "only draft RFQs can be published")
    if not rfq.suppliers:
        raise StateTransitionError(
            "rfq", str(rfq.id), rfq.status.value, "publish", "cannot publish RFQ without suppliers"
        )
    if not rfq.items:
        raise StateTransitionError(
            "rfq", str(rfq.id), rfq.status.value, "publish", "cannot publish RFQ without items"
        )
    return replace(rfq, status=status, published_by=by, published_at=now)


def open_bidding(rfq: RFQ, by: UUID, now: datetime) -> RFQ:
    """Move a published RFQ into active bidding."""
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "open_bidding")
    if now > rfq.deadline:
        raise StateTransitionError(
            "rfq", str(rfq.id), rfq.status.value, "open_bidding", "deadline has passed"
        )
    return replace(rfq, status=status, opened_at=now)


def close(rfq: RFQ, by: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "close")
    return replace(rfq, status=status, closed_by=by, closed_at=now)


def start_evaluation(rfq: RFQ, by: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "start_evaluation")
    return replace(
        rfq, status=status, evaluation_started_by=by, evaluation_started_at=now
    )


def cancel(rfq: RFQ, by: UUID, reason: str, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "cancel")
    return replace(
        rfq, status=status, cancelled_by=by, cancelled_at=now, cancellation_reason=reason
    )


def award(
    rfq: RFQ,
    supplier_id: UUID,
    bid_id: UUID,
    awarded_by: UUID,
    award_amount: Decimal,
    now: datetime,
) -> RFQ:
    """
    Award the RFQ to ``supplier_id`` through ``bid_id`` and compute savings.

    Raises:
        StateTransitionError: status is not closed or under evaluation.
        SupplierNotInvitedError: supplier is not in the invited set.
        ValidationError: negative award amount.
    """
    rfq = recompute_derived(rfq, now)
    status = _transition(rfq, "award", "only closed or under evaluation RFQs can be awarded")
    if supplier_id not in rfq.suppliers:
        raise SupplierNotInvitedError(str(rfq.id), str(supplier_id))
    if award_amount < 0:
        raise ValidationError(
            "rfq", "actual_award_amount", "cannot be negative", value=str(award_amount)
        )
    savings = compute_savings(rfq.estimated_budget, award_amount)
    return replace(
        rfq,
        status=status,
        awarded_to=supplier_id,
        awarded_bid=bid_id,
        awarded_by=awarded_by,
        awarded_at=now,
        actual_award_amount=award_amount,
        cost_savings=savings.cost_savings,
        savings_percentage=savings.savings_percentage,
    )


# =============================================================================
# Draft editing
# =============================================================================


def invite_supplier(rfq: RFQ, supplier_id: UUID, now: datetime) -> RFQ:
    """Add a supplier to the invited set; inviting twice is a no-op."""
    rfq = recompute_derived(rfq, now)
    _require_modifiable(rfq, "invite_supplier")
    if supplier_id in rfq.suppliers:
        return rfq
    return replace(rfq, suppliers=rfq.suppliers + (supplier_id,))


def remove_supplier(rfq: RFQ, supplier_id: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    _require_modifiable(rfq, "remove_supplier")
    return replace(rfq, suppliers=tuple(s for s in rfq.suppliers if s != supplier_id))


def add_item(rfq: RFQ, item_id: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    _require_modifiable(rfq, "add_item")
    if item_id in rfq.items:
        return rfq
    return replace(rfq, items=rfq.items + (item_id,))


def update_criteria(
    rfq: RFQ,
    criteria: EvaluationCriteria,
    now: datetime,
    tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
) -> RFQ:
    rfq = recompute_derived(rfq, now)
    _require_modifiable(rfq, "update_criteria")
    validate_criteria(criteria, tolerance)
    return replace(rfq, evaluation_criteria=criteria)


# =============================================================================
# Questions and amendments
# =============================================================================


def add_question(rfq: RFQ, supplier_id: UUID, question: str, now: datetime) -> tuple[RFQ, RFQQuestion]:
    """Record a supplier's clarification question; returns the RFQ and the new question."""
    rfq = recompute_derived(rfq, now)
    _require_not_terminal(rfq, "add_question")
    if not question or not question.strip():
        raise ValidationError("rfq_question", "question", "question is required")
    entry = RFQQuestion(
        id=uuid4(), supplier_id=supplier_id, question=question.strip(), asked_at=now
    )
    return replace(rfq, questions=rfq.questions + (entry,)), entry


def answer_question(
    rfq: RFQ,
    question_id: UUID,
    answer: str,
    answered_by: UUID,
    now: datetime,
    is_public: bool = False,
) -> RFQ:
    rfq = recompute_derived(rfq, now)
    if not answer or not answer.strip():
        raise ValidationError("rfq_question", "answer", "answer is required")
    found = False
    questions = []
    for q in rfq.questions:
        if q.id == question_id:
            q = replace(
                q,
                answer=answer.strip(),
                answered_by=answered_by,
                answered_at=now,
                is_public=is_public,
            )
            found = True
        questions.append(q)
    if not found:
        raise QuestionNotFoundError(str(rfq.id), str(question_id))
    return replace(rfq, questions=tuple(questions))


def issue_amendment(
    rfq: RFQ,
    description: str,
    issued_by: UUID,
    now: datetime,
    effective_date: datetime | None = None,
    document: str | None = None,
) -> RFQ:
    """Append amendment number ``len(amendments) + 1``."""
    rfq = recompute_derived(rfq, now)
    _require_not_terminal(rfq, "issue_amendment")
    if not description or not description.strip():
        raise ValidationError("rfq_amendment", "description", "description is required")
    amendment = RFQAmendment(
        number=len(rfq.amendments) + 1,
        description=description.strip(),
        issued_by=issued_by,
        issued_at=now,
        effective_date=effective_date,
        document=document,
    )
    return replace(rfq, amendments=rfq.amendments + (amendment,))


# =============================================================================
# Evaluation committee
# =============================================================================


def assign_evaluator(
    rfq: RFQ,
    user_id: UUID,
    now: datetime,
    role: CommitteeRole = CommitteeRole.MEMBER,
) -> RFQ:
    """Seat ``user_id`` on the committee; reassigning an evaluator only changes the role."""
    rfq = recompute_derived(rfq, now)
    _require_not_terminal(rfq, "assign_evaluator")
    for member in rfq.evaluation_committee:
        if member.user_id == user_id:
            if member.role == role:
                return rfq
            return replace(rfq, evaluation_committee=tuple(
                replace(m, role=role) if m.user_id == user_id else m
                for m in rfq.evaluation_committee
            ))
    member = CommitteeMember(user_id=user_id, assigned_at=now, role=role)
    return replace(rfq, evaluation_committee=rfq.evaluation_committee + (member,))


def remove_evaluator(rfq: RFQ, user_id: UUID, now: datetime) -> RFQ:
    rfq = recompute_derived(rfq, now)
    _require_not_terminal(rfq, "remove_evaluator")
    return replace(rfq, evaluation_committee=tuple(
        m for m in rfq.evaluation_committee if m.user_id != user_id
    ))


# =============================================================================
# Read-side helpers
# =============================================================================


def bidding_status(rfq: RFQ, now: datetime) -> str:
    """
    Status as shown to suppliers.

    Terminal and draft statuses show as themselves.  A published or open RFQ
    before its deadline shows as ``open``; anything else shows as ``closed``.
    """
    if rfq.status in (RFQStatus.DRAFT, RFQStatus.CANCELLED, RFQStatus.AWARDED, RFQStatus.EXPIRED):
        return rfq.status.value
    if rfq.status in BIDDING_STATUSES and now < rfq.deadline:
        return "open"
    return "closed"


def is_bidding_open(rfq: RFQ, now: datetime) -> bool:
    return bidding_status(rfq, now) == "open"


def days_remaining(rfq: RFQ, now: datetime) -> int:
    """Whole days until the deadline, rounded up; negative once past."""
    return math.ceil((rfq.deadline - now).total_seconds() / SECONDS_PER_DAY)


def can_be_modified(rfq: RFQ) -> bool:
    return rfq.status in MODIFIABLE_STATUSES


def evaluated_bid_ids(rfq: RFQ) -> frozenset[UUID]:
    return frozenset(r.bid_id for r in rfq.evaluation_results)


def evaluation_progress(rfq: RFQ, bid_count: int) -> Decimal:
    """Percentage of bids with at least one evaluation."""
    if not rfq.evaluation_results or bid_count == 0:
        return Decimal("0")
    return Decimal(len(evaluated_bid_ids(rfq))) / Decimal(bid_count) * Decimal("100")


def rfq_stats(rfq: RFQ, bids: Sequence[Any]) -> RFQStats:
    """Bid counts by status, evaluation coverage and Q&A activity."""
    by_status = Counter(getattr(b.status, "value", b.status) for b in bids)
    return RFQStats(
        total_bids=len(bids),
        bids_by_status=dict(by_status),
        participating_suppliers=len({b.supplier_id for b in bids}),
        evaluated_bids=len(evaluated_bid_ids(rfq)),
        evaluation_progress=evaluation_progress(rfq, len(bids)),
        questions_count=len(rfq.questions),
        answered_questions=sum(1 for q in rfq.questions if q.is_answered),
    )
