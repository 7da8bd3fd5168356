"""
SQLAlchemy ORM persistence model for the RFQ module.

Responsibility
--------------
Provide database-backed persistence for the RFQ aggregate.  Embedded
collections (invited suppliers, items, criteria, evaluation results,
questions, amendments, evaluation committee, custom fields) are stored as
JSON columns on the RFQ row: the aggregate is always loaded and saved whole.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``RFQRepository``.  Inherits from
``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``rfq_number`` is unique (``uq_rfq_number``).
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.  In
  JSON columns, Decimals are stored as strings.
* Status is stored as String(50).
* ``version`` is the optimistic-lock column: a flush against a stale row
  raises ``StaleDataError``, which the repository maps to
  ``ConcurrencyConflictError``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sourcing_kernel.db.base import TrackedBase
from sourcing_kernel.utils.serialization import (
    datetime_or_none,
    decimal_or_none,
    to_jsonable,
    uuid_or_none,
)


# ---------------------------------------------------------------------------
# JSON codecs for embedded collections
# ---------------------------------------------------------------------------


def criteria_from_json(data: dict[str, Any] | None):
    from sourcing_modules.rfq.models import EvaluationCriteria, SpecificCriterion

    if not data:
        return EvaluationCriteria()
    return EvaluationCriteria(
        technical_weight=Decimal(data["technical_weight"]),
        financial_weight=Decimal(data["financial_weight"]),
        delivery_weight=Decimal(data["delivery_weight"]),
        quality_weight=Decimal(data["quality_weight"]),
        specific_criteria=tuple(
            SpecificCriterion(
                criterion=c["criterion"],
                weight=Decimal(c["weight"]),
                description=c.get("description", ""),
            )
            for c in data.get("specific_criteria", [])
        ),
    )


def evaluation_results_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.rfq.models import RFQEvaluationResult

    return tuple(
        RFQEvaluationResult(
            bid_id=UUID(r["bid_id"]),
            evaluated_by=UUID(r["evaluated_by"]),
            evaluated_at=datetime.fromisoformat(r["evaluated_at"]),
            technical_score=decimal_or_none(r.get("technical_score")),
            financial_score=decimal_or_none(r.get("financial_score")),
            delivery_score=decimal_or_none(r.get("delivery_score")),
            quality_score=decimal_or_none(r.get("quality_score")),
            overall_score=Decimal(r["overall_score"]),
            rank=r.get("rank"),
            comments=r.get("comments", ""),
        )
        for r in data or []
    )


def questions_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.rfq.models import RFQQuestion

    return tuple(
        RFQQuestion(
            id=UUID(q["id"]),
            supplier_id=UUID(q["supplier_id"]),
            question=q["question"],
            asked_at=datetime.fromisoformat(q["asked_at"]),
            answer=q.get("answer"),
            answered_by=uuid_or_none(q.get("answered_by")),
            answered_at=datetime_or_none(q.get("answered_at")),
            is_public=bool(q.get("is_public", False)),
        )
        for q in data or []
    )


def amendments_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.rfq.models import RFQAmendment

    return tuple(
        RFQAmendment(
            number=int(a["number"]),
            description=a["description"],
            issued_by=UUID(a["issued_by"]),
            issued_at=datetime.fromisoformat(a["issued_at"]),
            effective_date=datetime_or_none(a.get("effective_date")),
            document=a.get("document"),
        )
        for a in data or []
    )


def committee_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.rfq.models import CommitteeMember, CommitteeRole

    return tuple(
        CommitteeMember(
            user_id=UUID(m["user_id"]),
            assigned_at=datetime.fromisoformat(m["assigned_at"]),
            role=CommitteeRole(m.get("role", CommitteeRole.MEMBER.value)),
        )
        for m in data or []
    )


# ---------------------------------------------------------------------------
# RFQModel
# ---------------------------------------------------------------------------


class RFQModel(TrackedBase):
    """
    A Request for Quotation.

    Maps to the ``RFQ`` DTO in ``sourcing_modules.rfq.models``.
    ``created_by_id`` carries the RFQ's ``created_by``.

    Guarantees:
        - ``rfq_number`` is unique.
        - ``status`` follows ``RFQ_WORKFLOW``.
    """

    __tablename__ = "sourcing_rfqs"

    __table_args__ = (
        UniqueConstraint("rfq_number", name="uq_rfq_number"),
        Index("idx_rfq_status", "status"),
        Index("idx_rfq_category", "category_id"),
        Index("idx_rfq_deadline", "deadline"),
        Index("idx_rfq_status_deadline", "status", "deadline"),
        Index("idx_rfq_awarded_to", "awarded_to"),
    )

    rfq_number: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    suppliers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    estimated_budget: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    deadline: Mapped[datetime] = mapped_column(nullable=False)
    delivery_date: Mapped[datetime] = mapped_column(nullable=False)
    bid_opening_date: Mapped[datetime | None]
    validity_period_days: Mapped[int] = mapped_column(nullable=False, default=30)
    evaluation_criteria: Mapped[dict] = mapped_column(JSON, nullable=False)
    evaluation_results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    terms_and_conditions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    special_instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")

    published_by: Mapped[UUID | None]
    published_at: Mapped[datetime | None]
    opened_at: Mapped[datetime | None]
    closed_by: Mapped[UUID | None]
    closed_at: Mapped[datetime | None]
    evaluation_started_by: Mapped[UUID | None]
    evaluation_started_at: Mapped[datetime | None]
    cancelled_by: Mapped[UUID | None]
    cancelled_at: Mapped[datetime | None]
    cancellation_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    awarded_to: Mapped[UUID | None]
    awarded_bid: Mapped[UUID | None]
    awarded_by: Mapped[UUID | None]
    awarded_at: Mapped[datetime | None]
    actual_award_amount: Mapped[Decimal | None]
    cost_savings: Mapped[Decimal | None]
    savings_percentage: Mapped[Decimal | None]

    questions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    amendments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    evaluation_committee: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    custom_fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from sourcing_modules.rfq.models import RFQ, RFQStatus

        return RFQ(
            id=self.id,
            rfq_number=self.rfq_number,
            title=self.title,
            description=self.description,
            category_id=self.category_id,
            created_by=self.created_by_id,
            deadline=self.deadline,
            delivery_date=self.delivery_date,
            status=RFQStatus(self.status),
            suppliers=tuple(UUID(s) for s in self.suppliers),
            items=tuple(UUID(i) for i in self.items),
            estimated_budget=self.estimated_budget,
            currency=self.currency,
            bid_opening_date=self.bid_opening_date,
            validity_period_days=self.validity_period_days,
            evaluation_criteria=criteria_from_json(self.evaluation_criteria),
            evaluation_results=evaluation_results_from_json(self.evaluation_results),
            terms_and_conditions=self.terms_and_conditions,
            special_instructions=self.special_instructions,
            published_by=self.published_by,
            published_at=self.published_at,
            opened_at=self.opened_at,
            closed_by=self.closed_by,
            closed_at=self.closed_at,
            evaluation_started_by=self.evaluation_started_by,
            evaluation_started_at=self.evaluation_started_at,
            cancelled_by=self.cancelled_by,
            cancelled_at=self.cancelled_at,
            cancellation_reason=self.cancellation_reason,
            awarded_to=self.awarded_to,
            awarded_bid=self.awarded_bid,
            awarded_by=self.awarded_by,
            awarded_at=self.awarded_at,
            actual_award_amount=self.actual_award_amount,
            cost_savings=self.cost_savings,
            savings_percentage=self.savings_percentage,
            questions=questions_from_json(self.questions),
            amendments=amendments_from_json(self.amendments),
            evaluation_committee=committee_from_json(self.evaluation_committee),
            custom_fields=dict(self.custom_fields or {}),
            version=self.version,
        )

    def apply_dto(self, dto, updated_by_id: UUID | None = None) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.rfq_number = dto.rfq_number
        self.title = dto.title
        self.description = dto.description
        self.category_id = dto.category_id
        self.status = dto.status.value
        self.suppliers = [str(s) for s in dto.suppliers]
        self.items = [str(i) for i in dto.items]
        self.estimated_budget = dto.estimated_budget
        self.currency = dto.currency
        self.deadline = dto.deadline
        self.delivery_date = dto.delivery_date
        self.bid_opening_date = dto.bid_opening_date
        self.validity_period_days = dto.validity_period_days
        self.evaluation_criteria = to_jsonable(dto.evaluation_criteria)
        self.evaluation_results = to_jsonable(dto.evaluation_results)
        self.terms_and_conditions = dto.terms_and_conditions
        self.special_instructions = dto.special_instructions
        self.published_by = dto.published_by
        self.published_at = dto.published_at
        self.opened_at = dto.opened_at
        self.closed_by = dto.closed_by
        self.closed_at = dto.closed_at
        self.evaluation_started_by = dto.evaluation_started_by
        self.evaluation_started_at = dto.evaluation_started_at
        self.cancelled_by = dto.cancelled_by
        self.cancelled_at = dto.cancelled_at
        self.cancellation_reason = dto.cancellation_reason
        self.awarded_to = dto.awarded_to
        self.awarded_bid = dto.awarded_bid
        self.awarded_by = dto.awarded_by
        self.awarded_at = dto.awarded_at
        self.actual_award_amount = dto.actual_award_amount
        self.cost_savings = dto.cost_savings
        self.savings_percentage = dto.savings_percentage
        self.questions = to_jsonable(dto.questions)
        self.amendments = to_jsonable(dto.amendments)
        self.evaluation_committee = to_jsonable(dto.evaluation_committee)
        self.custom_fields = dict(dto.custom_fields)
        if updated_by_id is not None:
            self.updated_by_id = updated_by_id

    @classmethod
    def from_dto(cls, dto) -> "RFQModel":
        model = cls(id=dto.id, created_by_id=dto.created_by)
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<RFQModel {self.rfq_number} [{self.status}]>"
