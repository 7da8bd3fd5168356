"""
sourcing_engines.scoring -- Multi-evaluator weighted scoring and ranking.

Responsibility:
    Two independent scoring mechanisms, reproduced as-is:

    (a) RFQ-level standardized scoring.  Evaluators score a bid on the four
        standard dimensions; the overall score is the weight-adjusted sum of
        the dimensions that were supplied.  Results are upserted per
        ``(bid_id, evaluated_by)`` and bids are ranked by the *mean* overall
        score across their evaluators.

    (b) Bid-level ad-hoc scoring.  Evaluators score a bid against arbitrary
        named criteria; results are upserted per ``(criterion, evaluated_by)``
        and the bid's overall score is the *sum* of all weighted scores.

    The two overall scores are never reconciled; callers choose which one
    drives an award decision.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Aggregates are accepted structurally (any frozen dataclass with the
    named fields) and returned as new instances via ``dataclasses.replace``.

Invariants enforced:
    - Scores and ad-hoc weights lie in [0, 100].
    - Upsert replaces, never duplicates: at most one result per key.  A
      replaced entry moves to the end, matching insertion order of a fresh
      result.
    - Ranking is a stable sort descending by mean overall score; bids with
      equal means keep first-appearance order.  Every result for a bid
      carries that bid's rank.
    - Bid-level ``overall_score`` always equals the sum of ``weighted_score``.

Failure modes:
    - ``ValidationError`` for out-of-range scores or weights, or an empty
      criterion name.

Usage:
    from sourcing_engines.scoring import DimensionScores, add_rfq_evaluation

    rfq = add_rfq_evaluation(
        rfq, bid_id, DimensionScores(technical=Decimal("90"), financial=Decimal("80")),
        evaluated_by=evaluator_id, now=clock.now(),
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sourcing_engines.criteria import HUNDRED, Dimension, EvaluationCriteria
from sourcing_engines.tracer import traced_engine
from sourcing_kernel.exceptions import ValidationError
from sourcing_kernel.logging_config import get_logger

logger = get_logger("engines.scoring")

ZERO = Decimal("0")


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class DimensionScores:
    """Scores (0-100) submitted by one evaluator; ``None`` means not scored."""
    technical: Decimal | None = None
    financial: Decimal | None = None
    delivery: Decimal | None = None
    quality: Decimal | None = None

    def get(self, dimension: str) -> Decimal | None:
        return getattr(self, dimension)

    def present(self) -> tuple[tuple[str, Decimal], ...]:
        return tuple(
            (d, self.get(d)) for d in Dimension.ALL if self.get(d) is not None
        )


@dataclass(frozen=True)
class RFQEvaluationResult:
    """One evaluator's standardized scores for one bid on an RFQ."""
    bid_id: UUID
    evaluated_by: UUID
    evaluated_at: datetime
    technical_score: Decimal | None = None
    financial_score: Decimal | None = None
    delivery_score: Decimal | None = None
    quality_score: Decimal | None = None
    overall_score: Decimal = ZERO
    rank: int | None = None
    comments: str = ""

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.bid_id, self.evaluated_by)

    def score_for(self, dimension: str) -> Decimal | None:
        return getattr(self, f"{dimension}_score")


@dataclass(frozen=True)
class BidStanding:
    """Per-bid averages across evaluators, with the resulting rank."""
    bid_id: UUID
    average_technical: Decimal
    average_financial: Decimal
    average_delivery: Decimal
    average_quality: Decimal
    average_overall: Decimal
    evaluator_count: int
    rank: int


@dataclass(frozen=True)
class BidEvaluationResult:
    """One evaluator's score for one named criterion on a bid."""
    criterion: str
    score: Decimal
    weight: Decimal
    weighted_score: Decimal
    evaluated_by: UUID
    evaluated_at: datetime
    comments: str = ""

    @property
    def key(self) -> tuple[str, UUID]:
        return (self.criterion, self.evaluated_by)


@dataclass
class _Accumulator:
    bid_id: UUID
    dimensions: dict[str, list[Decimal]] = field(
        default_factory=lambda: {d: [] for d in Dimension.ALL}
    )
    overall: list[Decimal] = field(default_factory=list)


# =============================================================================
# Helpers
# =============================================================================


def _require_percent(entity: str, label: str, value: Decimal) -> None:
    if value < 0 or value > HUNDRED:
        raise ValidationError(entity, label, "must be between 0 and 100", value=str(value))


def _mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / Decimal(len(values))


def _upsert(results: Iterable[Any], new_result: Any) -> tuple[Any, ...]:
    """Replace-or-append ``new_result`` by its ``key``, through an ordered map."""
    by_key = {r.key: r for r in results}
    by_key.pop(new_result.key, None)
    by_key[new_result.key] = new_result
    return tuple(by_key.values())


def weighted_overall(criteria: EvaluationCriteria, scores: DimensionScores) -> Decimal:
    """``sum(score * weight / 100)`` over the dimensions that were scored."""
    return sum(
        (score * criteria.weight_for(d) / HUNDRED for d, score in scores.present()),
        ZERO,
    )


# =============================================================================
# (a) RFQ-level standardized scoring
# =============================================================================


def rank_standings(results: Sequence[RFQEvaluationResult]) -> tuple[BidStanding, ...]:
    """
    Group results by bid and rank bids by mean overall score.

    Dimension means cover only evaluators who scored that dimension; a
    dimension nobody scored averages to 0.
    """
    groups: dict[UUID, _Accumulator] = {}
    for result in results:
        acc = groups.get(result.bid_id)
        if acc is None:
            acc = _Accumulator(bid_id=result.bid_id)
            groups[result.bid_id] = acc
        for d in Dimension.ALL:
            score = result.score_for(d)
            if score is not None:
                acc.dimensions[d].append(score)
        acc.overall.append(result.overall_score)

    averaged = [
        (acc, _mean(acc.overall)) for acc in groups.values()
    ]
    # sorted() is stable with reverse=True: ties keep first-appearance order.
    ordered = sorted(averaged, key=lambda pair: pair[1], reverse=True)

    return tuple(
        BidStanding(
            bid_id=acc.bid_id,
            average_technical=_mean(acc.dimensions[Dimension.TECHNICAL]),
            average_financial=_mean(acc.dimensions[Dimension.FINANCIAL]),
            average_delivery=_mean(acc.dimensions[Dimension.DELIVERY]),
            average_quality=_mean(acc.dimensions[Dimension.QUALITY]),
            average_overall=mean_overall,
            evaluator_count=len(acc.overall),
            rank=position + 1,
        )
        for position, (acc, mean_overall) in enumerate(ordered)
    )


def update_evaluation_ranks(
    results: Sequence[RFQEvaluationResult],
) -> tuple[RFQEvaluationResult, ...]:
    """Write each bid's rank into every one of its results (order preserved)."""
    rank_by_bid = {s.bid_id: s.rank for s in rank_standings(results)}
    return tuple(replace(r, rank=rank_by_bid[r.bid_id]) for r in results)


@traced_engine("scoring.rfq", "1.0", fingerprint_fields=("bid_id", "evaluated_by", "scores"))
def add_rfq_evaluation(
    rfq: Any,
    bid_id: UUID,
    scores: DimensionScores,
    evaluated_by: UUID,
    now: datetime,
    comments: str = "",
) -> Any:
    """
    Record one evaluator's standardized scores for a bid and re-rank.

    ``rfq`` is any dataclass exposing ``evaluation_criteria`` and
    ``evaluation_results``; a new instance is returned.
    """
    for dimension, score in scores.present():
        _require_percent("rfq_evaluation", f"{dimension}_score", score)

    result = RFQEvaluationResult(
        bid_id=bid_id,
        evaluated_by=evaluated_by,
        evaluated_at=now,
        technical_score=scores.technical,
        financial_score=scores.financial,
        delivery_score=scores.delivery,
        quality_score=scores.quality,
        overall_score=weighted_overall(rfq.evaluation_criteria, scores),
        comments=comments,
    )
    results = update_evaluation_ranks(_upsert(rfq.evaluation_results, result))

    logger.info(
        "rfq_evaluation_recorded",
        extra={
            "bid_id": str(bid_id),
            "evaluated_by": str(evaluated_by),
            "overall_score": str(result.overall_score),
            "result_count": len(results),
        },
    )
    return replace(rfq, evaluation_results=results)


# =============================================================================
# (b) Bid-level ad-hoc scoring
# =============================================================================


def bid_overall_score(results: Iterable[BidEvaluationResult]) -> Decimal:
    """Sum (not mean) of weighted scores across every result."""
    return sum((r.weighted_score for r in results), ZERO)


@traced_engine("scoring.bid", "1.0", fingerprint_fields=("criterion", "score", "weight"))
def add_bid_evaluation(
    bid: Any,
    criterion: str,
    score: Decimal,
    weight: Decimal,
    evaluated_by: UUID,
    now: datetime,
    comments: str = "",
) -> Any:
    """
    Record one evaluator's score for a named criterion on a bid.

    ``bid`` is any dataclass exposing ``evaluation_results`` and
    ``overall_score``; a new instance is returned.
    """
    if not criterion or not criterion.strip():
        raise ValidationError("bid_evaluation", "criterion", "criterion name is required")
    _require_percent("bid_evaluation", "score", score)
    _require_percent("bid_evaluation", "weight", weight)

    result = BidEvaluationResult(
        criterion=criterion,
        score=score,
        weight=weight,
        weighted_score=score * weight / HUNDRED,
        evaluated_by=evaluated_by,
        evaluated_at=now,
        comments=comments,
    )
    results = _upsert(bid.evaluation_results, result)
    overall = bid_overall_score(results)

    logger.info(
        "bid_evaluation_recorded",
        extra={
            "criterion": criterion,
            "evaluated_by": str(evaluated_by),
            "weighted_score": str(result.weighted_score),
            "overall_score": str(overall),
        },
    )
    return replace(bid, evaluation_results=results, overall_score=overall)


def rank_bids(bids: Iterable[Any]) -> tuple[Any, ...]:
    """
    Order bids by ``overall_score`` descending, then ``total_amount``
    ascending, and write ``rank``.  Unscored bids sort as 0.
    """
    ordered = sorted(
        bids,
        key=lambda b: (-(b.overall_score or ZERO), b.total_amount),
    )
    return tuple(replace(b, rank=position + 1) for position, b in enumerate(ordered))
