"""
Bid Domain Models.

The supplier side of competitive sourcing: a priced response to an RFQ,
its line items and the evaluators' scores against it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sourcing_engines.scoring import BidEvaluationResult
from sourcing_kernel.exceptions import ValidationError
from sourcing_kernel.logging_config import get_logger

logger = get_logger("modules.bid.models")


class BidStatus(Enum):
    """Bid lifecycle states."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    QUALIFIED = "qualified"
    DISQUALIFIED = "disqualified"
    RECOMMENDED = "recommended"
    AWARDED = "awarded"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset(
    {BidStatus.AWARDED, BidStatus.REJECTED, BidStatus.WITHDRAWN, BidStatus.EXPIRED}
)


class Compliance(Enum):
    """How closely a bid item meets the RFQ item's specification."""
    FULLY_COMPLIANT = "fully_compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    NON_COMPLIANT = "non_compliant"
    ALTERNATIVE_OFFERED = "alternative_offered"


class PaymentTerms(Enum):
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_45 = "net_45"
    NET_60 = "net_60"
    DUE_ON_RECEIPT = "due_on_receipt"
    CUSTOM = "custom"


class Incoterms(Enum):
    EXW = "EXW"
    FCA = "FCA"
    FAS = "FAS"
    FOB = "FOB"
    CFR = "CFR"
    CIF = "CIF"
    CPT = "CPT"
    CIP = "CIP"
    DPU = "DPU"
    DAP = "DAP"
    DDP = "DDP"


@dataclass(frozen=True)
class BidItem:
    """A priced line on a bid, answering one RFQ item."""
    rfq_item_id: UUID
    unit_price: Decimal
    quantity: Decimal = Decimal("1")
    total: Decimal = Decimal("0")  # derived: unit_price * quantity
    delivery_time_days: int = 0
    compliance: Compliance = Compliance.FULLY_COMPLIANT
    compliance_notes: str = ""
    notes: str = ""
    warranty_months: int | None = None
    after_sales_support: bool = False

    def __post_init__(self):
        if self.unit_price < 0:
            logger.warning(
                "bid_item_negative_price",
                extra={"rfq_item_id": str(self.rfq_item_id), "unit_price": str(self.unit_price)},
            )
            raise ValidationError(
                "bid_item", "unit_price", "cannot be negative", value=str(self.unit_price)
            )
        if self.quantity <= 0:
            raise ValidationError(
                "bid_item", "quantity", "must be positive", value=str(self.quantity)
            )
        if self.delivery_time_days < 0:
            raise ValidationError(
                "bid_item", "delivery_time_days", "cannot be negative",
                value=self.delivery_time_days,
            )


class BidSecurityType(Enum):
    BID_BOND = "bid_bond"
    BANK_GUARANTEE = "bank_guarantee"
    CASH = "cash"
    OTHER = "other"


class PerformanceSecurityType(Enum):
    BANK_GUARANTEE = "bank_guarantee"
    INSURANCE_BOND = "insurance_bond"
    CASH = "cash"
    OTHER = "other"


@dataclass(frozen=True)
class BidSecurity:
    """Bid bond or guarantee lodged with the bid."""
    provided: bool = False
    amount: Decimal | None = None
    security_type: BidSecurityType | None = None
    reference: str | None = None
    expiry_date: datetime | None = None
    document: str | None = None

    def __post_init__(self):
        if self.amount is not None and self.amount < 0:
            raise ValidationError(
                "bid_security", "amount", "cannot be negative", value=str(self.amount)
            )


@dataclass(frozen=True)
class PerformanceSecurity:
    """Performance guarantee the supplier offers should the bid be awarded."""
    offered: bool = False
    amount: Decimal | None = None
    percentage: Decimal | None = None
    security_type: PerformanceSecurityType | None = None

    def __post_init__(self):
        if self.amount is not None and self.amount < 0:
            raise ValidationError(
                "performance_security", "amount", "cannot be negative",
                value=str(self.amount),
            )
        if self.percentage is not None and not (0 <= self.percentage <= 100):
            raise ValidationError(
                "performance_security", "percentage", "must be between 0 and 100",
                value=str(self.percentage),
            )


@dataclass(frozen=True)
class Bid:
    """A supplier's bid against one RFQ."""
    id: UUID
    bid_number: str
    rfq_id: UUID
    supplier_id: UUID
    created_by: UUID
    status: BidStatus = BidStatus.DRAFT
    items: tuple[BidItem, ...] = field(default_factory=tuple)
    total_amount: Decimal = Decimal("0")
    currency: str = "USD"
    validity_period_days: int = 30
    validity_expiry: datetime | None = None
    delivery_time_days: int | None = None
    payment_terms: PaymentTerms = PaymentTerms.NET_30
    incoterms: Incoterms = Incoterms.FOB
    bid_security: BidSecurity | None = None
    performance_security: PerformanceSecurity | None = None
    evaluation_results: tuple[BidEvaluationResult, ...] = field(default_factory=tuple)
    overall_score: Decimal | None = None
    rank: int | None = None
    notes: str = ""
    # Transition stamps
    submitted_by: UUID | None = None
    submitted_at: datetime | None = None
    withdrawal_reason: str | None = None
    withdrawn_at: datetime | None = None
    disqualified_by: UUID | None = None
    disqualified_at: datetime | None = None
    disqualified_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    qualified_by: UUID | None = None
    qualified_at: datetime | None = None
    recommended_by: UUID | None = None
    recommended_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    # Award outcome
    award_amount: Decimal | None = None
    awarded_by: UUID | None = None
    awarded_at: datetime | None = None
    contract_terms: str = ""
    last_modified_at: datetime | None = None
    custom_fields: dict[str, Any] = field(default_factory=dict)
    # Optimistic concurrency token; 0 until first persisted.
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class BidStats:
    """Item-level summary of a bid."""
    total_items: int
    compliant_items: int
    compliance_rate: Decimal
    items_with_warranty: int
    items_with_support: int
    average_delivery_time: Decimal
    evaluation_score: Decimal
    rank: int | None


__all__ = [
    "Bid",
    "BidEvaluationResult",
    "BidItem",
    "BidSecurity",
    "BidSecurityType",
    "BidStats",
    "BidStatus",
    "Compliance",
    "Incoterms",
    "PaymentTerms",
    "PerformanceSecurity",
    "PerformanceSecurityType",
    "TERMINAL_STATUSES",
]
