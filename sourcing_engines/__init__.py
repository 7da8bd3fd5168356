"""
Pure calculation engines for RFQ sourcing.

No I/O, no clock access, no session.  Every function is deterministic and
returns new values instead of mutating its inputs.
"""

from sourcing_engines.criteria import (
    Dimension,
    EvaluationCriteria,
    SpecificCriterion,
    total_weight,
    validate_criteria,
)
from sourcing_engines.savings import SavingsResult, compute_savings
from sourcing_engines.scoring import (
    BidEvaluationResult,
    BidStanding,
    DimensionScores,
    RFQEvaluationResult,
    add_bid_evaluation,
    add_rfq_evaluation,
    bid_overall_score,
    rank_bids,
    rank_standings,
    update_evaluation_ranks,
    weighted_overall,
)

__all__ = [
    "BidEvaluationResult",
    "BidStanding",
    "Dimension",
    "DimensionScores",
    "EvaluationCriteria",
    "RFQEvaluationResult",
    "SavingsResult",
    "SpecificCriterion",
    "add_bid_evaluation",
    "add_rfq_evaluation",
    "bid_overall_score",
    "compute_savings",
    "rank_bids",
    "rank_standings",
    "total_weight",
    "update_evaluation_ranks",
    "validate_criteria",
    "weighted_overall",
]
