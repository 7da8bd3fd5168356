"""
sourcing_engines.savings -- Cost savings from estimated budget vs. award.

Responsibility:
    Compute ``cost_savings = estimated_budget - actual_award_amount`` and
    ``savings_percentage = cost_savings / estimated_budget * 100``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Runs as the tail of an RFQ
    award and again from ``recompute_derived`` so stored figures never drift
    from their inputs.

Invariants enforced:
    - Deterministic: identical inputs give identical outputs.
    - Division-by-zero safe: a zero budget yields ``savings_percentage=None``.
    - An award above budget is reported as negative savings, not rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sourcing_engines.tracer import traced_engine

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SavingsResult:
    """Savings figures for one award."""
    cost_savings: Decimal
    savings_percentage: Decimal | None

    @property
    def is_over_budget(self) -> bool:
        return self.cost_savings < 0


@traced_engine("savings", "1.0", fingerprint_fields=("estimated_budget", "actual_award_amount"))
def compute_savings(estimated_budget: Decimal, actual_award_amount: Decimal) -> SavingsResult:
    cost_savings = estimated_budget - actual_award_amount
    if estimated_budget == 0:
        return SavingsResult(cost_savings=cost_savings, savings_percentage=None)
    return SavingsResult(
        cost_savings=cost_savings,
        savings_percentage=cost_savings / estimated_budget * HUNDRED,
    )
