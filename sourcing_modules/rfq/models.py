"""
RFQ Domain Models.

The nouns of competitive sourcing on the buyer side: a Request for
Quotation, the clarification questions suppliers ask about it, the
amendments issued against it and the committee that evaluates its bids.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sourcing_engines.criteria import EvaluationCriteria, SpecificCriterion
from sourcing_engines.scoring import RFQEvaluationResult
from sourcing_kernel.logging_config import get_logger

logger = get_logger("modules.rfq.models")


class RFQStatus(Enum):
    """RFQ lifecycle states."""
    DRAFT = "draft"
    PUBLISHED = "published"
    OPEN = "open"
    CLOSED = "closed"
    UNDER_EVALUATION = "under_evaluation"
    AWARDED = "awarded"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({RFQStatus.AWARDED, RFQStatus.CANCELLED, RFQStatus.EXPIRED})
BIDDING_STATUSES = frozenset({RFQStatus.PUBLISHED, RFQStatus.OPEN})
MODIFIABLE_STATUSES = frozenset({RFQStatus.DRAFT, RFQStatus.PUBLISHED})
AWARDABLE_STATUSES = frozenset({RFQStatus.CLOSED, RFQStatus.UNDER_EVALUATION})


@dataclass(frozen=True)
class RFQQuestion:
    """A supplier's clarification question, and the buyer's answer."""
    id: UUID
    supplier_id: UUID
    question: str
    asked_at: datetime
    answer: str | None = None
    answered_by: UUID | None = None
    answered_at: datetime | None = None
    is_public: bool = False

    @property
    def is_answered(self) -> bool:
        return bool(self.answer)


@dataclass(frozen=True)
class RFQAmendment:
    """A numbered change notice issued against a published RFQ."""
    number: int
    description: str
    issued_by: UUID
    issued_at: datetime
    effective_date: datetime | None = None
    document: str | None = None


class CommitteeRole(Enum):
    CHAIRPERSON = "chairperson"
    MEMBER = "member"
    TECHNICAL_EXPERT = "technical_expert"
    FINANCIAL_EXPERT = "financial_expert"


@dataclass(frozen=True)
class CommitteeMember:
    """An evaluator seated on the RFQ's evaluation committee."""
    user_id: UUID
    assigned_at: datetime
    role: CommitteeRole = CommitteeRole.MEMBER


@dataclass(frozen=True)
class RFQ:
    """A Request for Quotation."""
    id: UUID
    rfq_number: str
    title: str
    description: str
    category_id: UUID
    created_by: UUID
    deadline: datetime
    delivery_date: datetime
    status: RFQStatus = RFQStatus.DRAFT
    suppliers: tuple[UUID, ...] = field(default_factory=tuple)
    items: tuple[UUID, ...] = field(default_factory=tuple)
    estimated_budget: Decimal = Decimal("0")
    currency: str = "USD"
    bid_opening_date: datetime | None = None
    validity_period_days: int = 30
    evaluation_criteria: EvaluationCriteria = field(default_factory=EvaluationCriteria)
    evaluation_results: tuple[RFQEvaluationResult, ...] = field(default_factory=tuple)
    terms_and_conditions: str = ""
    special_instructions: str = ""
    # Transition stamps
    published_by: UUID | None = None
    published_at: datetime | None = None
    opened_at: datetime | None = None
    closed_by: UUID | None = None
    closed_at: datetime | None = None
    evaluation_started_by: UUID | None = None
    evaluation_started_at: datetime | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    # Award outcome
    awarded_to: UUID | None = None
    awarded_bid: UUID | None = None
    awarded_by: UUID | None = None
    awarded_at: datetime | None = None
    actual_award_amount: Decimal | None = None
    cost_savings: Decimal | None = None
    savings_percentage: Decimal | None = None
    questions: tuple[RFQQuestion, ...] = field(default_factory=tuple)
    amendments: tuple[RFQAmendment, ...] = field(default_factory=tuple)
    evaluation_committee: tuple[CommitteeMember, ...] = field(default_factory=tuple)
    custom_fields: dict[str, Any] = field(default_factory=dict)
    # Optimistic concurrency token; 0 until first persisted.
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class RFQStats:
    """Summary of bidding and evaluation activity on one RFQ."""
    total_bids: int
    bids_by_status: dict[str, int]
    participating_suppliers: int
    evaluated_bids: int
    evaluation_progress: Decimal
    questions_count: int
    answered_questions: int


__all__ = [
    "AWARDABLE_STATUSES",
    "BIDDING_STATUSES",
    "CommitteeMember",
    "CommitteeRole",
    "EvaluationCriteria",
    "MODIFIABLE_STATUSES",
    "RFQ",
    "RFQAmendment",
    "RFQEvaluationResult",
    "RFQQuestion",
    "RFQStats",
    "RFQStatus",
    "SpecificCriterion",
    "TERMINAL_STATUSES",
]
