"""
SQLAlchemy ORM persistence model for the Bid module.

Responsibility
--------------
Provide database-backed persistence for the Bid aggregate.  Priced items,
evaluation results and the bid and performance securities are stored as
JSON columns on the bid row.

Architecture position
---------------------
**Modules layer** -- ORM model consumed by ``BidRepository``.  Inherits from
``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``bid_number`` is unique (``uq_bid_number``).
* One bid per supplier per RFQ (``uq_bid_rfq_supplier``).
* ``rfq_id`` references ``sourcing_rfqs.id``.
* All monetary fields use ``Decimal`` (Numeric(38,9)); Decimals inside JSON
  columns are strings.
* ``version`` is the optimistic-lock column.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sourcing_kernel.db.base import TrackedBase
from sourcing_kernel.utils.serialization import (
    datetime_or_none,
    decimal_or_none,
    to_jsonable,
)


def items_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.bid.models import BidItem, Compliance

    return tuple(
        BidItem(
            rfq_item_id=UUID(i["rfq_item_id"]),
            unit_price=Decimal(i["unit_price"]),
            quantity=Decimal(i["quantity"]),
            total=Decimal(i["total"]),
            delivery_time_days=int(i.get("delivery_time_days", 0)),
            compliance=Compliance(i.get("compliance", Compliance.FULLY_COMPLIANT.value)),
            compliance_notes=i.get("compliance_notes", ""),
            notes=i.get("notes", ""),
            warranty_months=i.get("warranty_months"),
            after_sales_support=bool(i.get("after_sales_support", False)),
        )
        for i in data or []
    )


def bid_results_from_json(data: list[dict[str, Any]] | None) -> tuple:
    from sourcing_modules.bid.models import BidEvaluationResult

    return tuple(
        BidEvaluationResult(
            criterion=r["criterion"],
            score=Decimal(r["score"]),
            weight=Decimal(r["weight"]),
            weighted_score=Decimal(r["weighted_score"]),
            evaluated_by=UUID(r["evaluated_by"]),
            evaluated_at=datetime.fromisoformat(r["evaluated_at"]),
            comments=r.get("comments", ""),
        )
        for r in data or []
    )


def bid_security_from_json(data: dict[str, Any] | None):
    from sourcing_modules.bid.models import BidSecurity, BidSecurityType

    if data is None:
        return None
    kind = data.get("security_type")
    return BidSecurity(
        provided=bool(data.get("provided", False)),
        amount=decimal_or_none(data.get("amount")),
        security_type=BidSecurityType(kind) if kind else None,
        reference=data.get("reference"),
        expiry_date=datetime_or_none(data.get("expiry_date")),
        document=data.get("document"),
    )


def performance_security_from_json(data: dict[str, Any] | None):
    from sourcing_modules.bid.models import PerformanceSecurity, PerformanceSecurityType

    if data is None:
        return None
    kind = data.get("security_type")
    return PerformanceSecurity(
        offered=bool(data.get("offered", False)),
        amount=decimal_or_none(data.get("amount")),
        percentage=decimal_or_none(data.get("percentage")),
        security_type=PerformanceSecurityType(kind) if kind else None,
    )


class BidModel(TrackedBase):
    """
    A supplier's bid against an RFQ.

    Maps to the ``Bid`` DTO in ``sourcing_modules.bid.models``.
    ``created_by_id`` carries the bid's ``created_by``.
    """

    __tablename__ = "sourcing_bids"

    __table_args__ = (
        UniqueConstraint("bid_number", name="uq_bid_number"),
        UniqueConstraint("rfq_id", "supplier_id", name="uq_bid_rfq_supplier"),
        Index("idx_bid_rfq_status", "rfq_id", "status"),
        Index("idx_bid_supplier_status", "supplier_id", "status"),
        Index("idx_bid_rfq_score", "rfq_id", "overall_score"),
        Index("idx_bid_validity_expiry", "validity_expiry"),
    )

    bid_number: Mapped[str] = mapped_column(String(50), nullable=False)
    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("sourcing_rfqs.id"), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    validity_period_days: Mapped[int] = mapped_column(nullable=False, default=30)
    validity_expiry: Mapped[datetime | None]
    delivery_time_days: Mapped[int | None]
    payment_terms: Mapped[str] = mapped_column(String(20), nullable=False, default="net_30")
    incoterms: Mapped[str] = mapped_column(String(3), nullable=False, default="FOB")
    bid_security: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    performance_security: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    evaluation_results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    overall_score: Mapped[Decimal | None]
    rank: Mapped[int | None]
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    submitted_by: Mapped[UUID | None]
    submitted_at: Mapped[datetime | None]
    withdrawal_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    withdrawn_at: Mapped[datetime | None]
    disqualified_by: Mapped[UUID | None]
    disqualified_at: Mapped[datetime | None]
    disqualified_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    reviewed_by: Mapped[UUID | None]
    reviewed_at: Mapped[datetime | None]
    qualified_by: Mapped[UUID | None]
    qualified_at: Mapped[datetime | None]
    recommended_by: Mapped[UUID | None]
    recommended_at: Mapped[datetime | None]
    rejected_by: Mapped[UUID | None]
    rejected_at: Mapped[datetime | None]
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    award_amount: Mapped[Decimal | None]
    awarded_by: Mapped[UUID | None]
    awarded_at: Mapped[datetime | None]
    contract_terms: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_modified_at: Mapped[datetime | None]
    custom_fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        from sourcing_modules.bid.models import Bid, BidStatus, Incoterms, PaymentTerms

        return Bid(
            id=self.id,
            bid_number=self.bid_number,
            rfq_id=self.rfq_id,
            supplier_id=self.supplier_id,
            created_by=self.created_by_id,
            status=BidStatus(self.status),
            items=items_from_json(self.items),
            total_amount=self.total_amount,
            currency=self.currency,
            validity_period_days=self.validity_period_days,
            validity_expiry=self.validity_expiry,
            delivery_time_days=self.delivery_time_days,
            payment_terms=PaymentTerms(self.payment_terms),
            incoterms=Incoterms(self.incoterms),
            bid_security=bid_security_from_json(self.bid_security),
            performance_security=performance_security_from_json(self.performance_security),
            evaluation_results=bid_results_from_json(self.evaluation_results),
            overall_score=self.overall_score,
            rank=self.rank,
            notes=self.notes,
            submitted_by=self.submitted_by,
            submitted_at=self.submitted_at,
            withdrawal_reason=self.withdrawal_reason,
            withdrawn_at=self.withdrawn_at,
            disqualified_by=self.disqualified_by,
            disqualified_at=self.disqualified_at,
            disqualified_reason=self.disqualified_reason,
            reviewed_by=self.reviewed_by,
            reviewed_at=self.reviewed_at,
            qualified_by=self.qualified_by,
            qualified_at=self.qualified_at,
            recommended_by=self.recommended_by,
            recommended_at=self.recommended_at,
            rejected_by=self.rejected_by,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
            award_amount=self.award_amount,
            awarded_by=self.awarded_by,
            awarded_at=self.awarded_at,
            contract_terms=self.contract_terms,
            last_modified_at=self.last_modified_at,
            custom_fields=dict(self.custom_fields or {}),
            version=self.version,
        )

    def apply_dto(self, dto, updated_by_id: UUID | None = None) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.bid_number = dto.bid_number
        self.rfq_id = dto.rfq_id
        self.supplier_id = dto.supplier_id
        self.status = dto.status.value
        self.items = to_jsonable(dto.items)
        self.total_amount = dto.total_amount
        self.currency = dto.currency
        self.validity_period_days = dto.validity_period_days
        self.validity_expiry = dto.validity_expiry
        self.delivery_time_days = dto.delivery_time_days
        self.payment_terms = dto.payment_terms.value
        self.incoterms = dto.incoterms.value
        self.bid_security = to_jsonable(dto.bid_security)
        self.performance_security = to_jsonable(dto.performance_security)
        self.evaluation_results = to_jsonable(dto.evaluation_results)
        self.overall_score = dto.overall_score
        self.rank = dto.rank
        self.notes = dto.notes
        self.submitted_by = dto.submitted_by
        self.submitted_at = dto.submitted_at
        self.withdrawal_reason = dto.withdrawal_reason
        self.withdrawn_at = dto.withdrawn_at
        self.disqualified_by = dto.disqualified_by
        self.disqualified_at = dto.disqualified_at
        self.disqualified_reason = dto.disqualified_reason
        self.reviewed_by = dto.reviewed_by
        self.reviewed_at = dto.reviewed_at
        self.qualified_by = dto.qualified_by
        self.qualified_at = dto.qualified_at
        self.recommended_by = dto.recommended_by
        self.recommended_at = dto.recommended_at
        self.rejected_by = dto.rejected_by
        self.rejected_at = dto.rejected_at
        self.rejection_reason = dto.rejection_reason
        self.award_amount = dto.award_amount
        self.awarded_by = dto.awarded_by
        self.awarded_at = dto.awarded_at
        self.contract_terms = dto.contract_terms
        self.last_modified_at = dto.last_modified_at
        self.custom_fields = dict(dto.custom_fields)
        if updated_by_id is not None:
            self.updated_by_id = updated_by_id

    @classmethod
    def from_dto(cls, dto) -> "BidModel":
        model = cls(id=dto.id, created_by_id=dto.created_by)
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<BidModel {self.bid_number} [{self.status}]>"
