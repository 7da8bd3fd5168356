"""
sourcing_engines.criteria -- Evaluation criteria and the weight-sum gate.

Responsibility:
    Define the evaluation criteria value objects carried by an RFQ and the
    pure validator that every RFQ save passes through: the four standard
    dimension weights plus all specific-criterion weights must sum to 100.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``sourcing_modules.rfq.lifecycle.validate_rfq`` and by the
    scoring engine (dimension weights).

Invariants enforced:
    - Each weight lies in [0, 100].
    - Total weight equals 100 within ``tolerance`` (default 0.01).
    - Specific-criterion names are non-empty.

Failure modes:
    - ``CriteriaWeightError`` when the total is outside tolerance.
    - ``ValidationError`` when a single weight is out of range or a
      specific criterion has no name.

Usage:
    from sourcing_engines.criteria import EvaluationCriteria, validate_criteria

    criteria = EvaluationCriteria(technical_weight=Decimal("30"),
                                  financial_weight=Decimal("70"))
    validate_criteria(criteria)   # passes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sourcing_engines.tracer import traced_engine
from sourcing_kernel.exceptions import CriteriaWeightError, ValidationError
from sourcing_kernel.logging_config import get_logger

logger = get_logger("engines.criteria")

HUNDRED = Decimal("100")
DEFAULT_WEIGHT_TOLERANCE = Decimal("0.01")


class Dimension:
    """Standard RFQ scoring dimensions, in evaluation order."""

    TECHNICAL = "technical"
    FINANCIAL = "financial"
    DELIVERY = "delivery"
    QUALITY = "quality"

    ALL = (TECHNICAL, FINANCIAL, DELIVERY, QUALITY)


@dataclass(frozen=True)
class SpecificCriterion:
    """An RFQ-specific named criterion with its own weight."""
    criterion: str
    weight: Decimal
    description: str = ""


@dataclass(frozen=True)
class EvaluationCriteria:
    """Weights (percent) used to score bids at RFQ level."""
    technical_weight: Decimal = Decimal("40")
    financial_weight: Decimal = Decimal("60")
    delivery_weight: Decimal = Decimal("0")
    quality_weight: Decimal = Decimal("0")
    specific_criteria: tuple[SpecificCriterion, ...] = field(default_factory=tuple)

    def weight_for(self, dimension: str) -> Decimal:
        return getattr(self, f"{dimension}_weight")

    @property
    def total_weight(self) -> Decimal:
        return total_weight(self)


def total_weight(criteria: EvaluationCriteria) -> Decimal:
    """Sum of all dimension weights and specific-criterion weights."""
    total = sum((criteria.weight_for(d) for d in Dimension.ALL), Decimal("0"))
    total += sum((c.weight for c in criteria.specific_criteria), Decimal("0"))
    return total


def _check_range(label: str, weight: Decimal) -> None:
    if weight < 0 or weight > HUNDRED:
        raise ValidationError(
            "rfq",
            f"evaluation_criteria.{label}",
            "weight must be between 0 and 100",
            value=str(weight),
        )


@traced_engine("criteria", "1.0")
def validate_criteria(
    criteria: EvaluationCriteria,
    tolerance: Decimal = DEFAULT_WEIGHT_TOLERANCE,
) -> Decimal:
    """
    Gate an RFQ save on its criteria.

    Returns:
        The total weight (for callers that want to log it).

    Raises:
        ValidationError: a weight is outside [0, 100] or a criterion is unnamed.
        CriteriaWeightError: the total differs from 100 by more than ``tolerance``.
    """
    for dimension in Dimension.ALL:
        _check_range(f"{dimension}_weight", criteria.weight_for(dimension))
    for specific in criteria.specific_criteria:
        if not specific.criterion or not specific.criterion.strip():
            raise ValidationError(
                "rfq",
                "evaluation_criteria.specific_criteria",
                "criterion name is required",
            )
        _check_range(specific.criterion, specific.weight)

    total = total_weight(criteria)
    if abs(total - HUNDRED) > tolerance:
        logger.warning(
            "criteria_weights_invalid",
            extra={"total_weight": str(total), "tolerance": str(tolerance)},
        )
        raise CriteriaWeightError(str(total), str(tolerance))
    return total
