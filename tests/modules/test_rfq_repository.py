"""
Tests for RFQ persistence.

Validates:
- Full aggregate round trip (criteria, questions, amendments, evaluations,
  committee, JSON-typed custom fields)
- Save-time validation blocks the write
- Optimistic concurrency on stale snapshots
- Unique RFQ numbers, savepoint leaves the session usable
- Deadline queries and lazy time transitions on load
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import BUYER_ID, CATEGORY_ID, EVALUATOR_1, START_TIME, SUPPLIER_A, SUPPLIER_B
from sourcing_engines.criteria import EvaluationCriteria, SpecificCriterion
from sourcing_engines.scoring import DimensionScores, add_rfq_evaluation
from sourcing_kernel.exceptions import (
    ConcurrencyConflictError,
    CriteriaWeightError,
    DuplicateDocumentNumberError,
    RFQNotFoundError,
)
from sourcing_modules.rfq import lifecycle
from sourcing_modules.rfq.models import CommitteeRole, RFQStatus
from sourcing_modules.rfq.repository import RFQRepository


@pytest.fixture
def repo(session, deterministic_clock):
    return RFQRepository(session, deterministic_clock)


def make_rfq(number="RFQ-2024-0001", deadline_days=14, **optional):
    return lifecycle.draft_rfq(
        rfq_number=number,
        title="Laptops",
        description="Developer laptops",
        category_id=CATEGORY_ID,
        created_by=BUYER_ID,
        deadline=START_TIME + timedelta(days=deadline_days),
        delivery_date=START_TIME + timedelta(days=deadline_days + 30),
        now=START_TIME,
        **optional,
    )


class TestRoundTrip:

    def test_aggregate_survives_reload(self, repo, session):
        criteria = EvaluationCriteria(
            technical_weight=Decimal("30"),
            financial_weight=Decimal("50"),
            quality_weight=Decimal("10"),
            specific_criteria=(SpecificCriterion("sustainability", Decimal("10"), "ISO 14001"),),
        )
        rfq = make_rfq(
            evaluation_criteria=criteria,
            suppliers=(SUPPLIER_A, SUPPLIER_B),
            items=(uuid4(),),
            estimated_budget=Decimal("1234.56"),
            custom_fields={
                "cost_center": "R&D",
                "contingency_rate": 0.15,
                "capex": True,
                "approvers": [{"level": 2, "limit": 50000}],
            },
        )
        rfq = lifecycle.assign_evaluator(rfq, EVALUATOR_1, START_TIME, CommitteeRole.TECHNICAL_EXPERT)
        rfq, question = lifecycle.add_question(rfq, SUPPLIER_A, "Which OS?", START_TIME)
        rfq = lifecycle.answer_question(rfq, question.id, "Linux", BUYER_ID, START_TIME, is_public=True)
        rfq = lifecycle.issue_amendment(rfq, "Added docking stations", BUYER_ID, START_TIME)
        bid_id = uuid4()
        rfq = add_rfq_evaluation(
            rfq, bid_id, DimensionScores(technical=Decimal("80"), financial=Decimal("90")),
            EVALUATOR_1, START_TIME,
        )
        repo.save(rfq)
        session.expunge_all()

        loaded = repo.get(rfq.id)
        assert loaded.version == 1
        assert loaded.evaluation_criteria == criteria
        assert loaded.suppliers == (SUPPLIER_A, SUPPLIER_B)
        assert loaded.items == rfq.items
        assert loaded.estimated_budget == Decimal("1234.56")
        assert loaded.custom_fields == rfq.custom_fields
        assert isinstance(loaded.custom_fields["contingency_rate"], float)
        assert loaded.evaluation_committee == rfq.evaluation_committee
        assert loaded.evaluation_committee[0].role == CommitteeRole.TECHNICAL_EXPERT
        assert loaded.deadline == rfq.deadline
        assert loaded.deadline.tzinfo is not None

        [stored_question] = loaded.questions
        assert stored_question.answer == "Linux"
        assert stored_question.is_public
        assert loaded.amendments[0].number == 1

        [result] = loaded.evaluation_results
        assert result.bid_id == bid_id
        assert result.overall_score == rfq.evaluation_results[0].overall_score
        assert result.rank == 1

    def test_get_by_number(self, repo):
        rfq = repo.save(make_rfq())
        assert repo.get_by_number("RFQ-2024-0001").id == rfq.id
        with pytest.raises(RFQNotFoundError):
            repo.get_by_number("RFQ-2024-9999")

    def test_missing_rfq(self, repo):
        assert repo.find(uuid4()) is None
        with pytest.raises(RFQNotFoundError):
            repo.get(uuid4())


class TestSaveRules:

    def test_bad_weights_block_save(self, repo):
        saved = repo.save(make_rfq())
        skewed = EvaluationCriteria(technical_weight=Decimal("50"), financial_weight=Decimal("40"))
        with pytest.raises(CriteriaWeightError):
            repo.save(replace(saved, evaluation_criteria=skewed))
        assert repo.get(saved.id).evaluation_criteria == EvaluationCriteria()

    def test_stale_version_rejected(self, repo):
        saved = repo.save(make_rfq())
        repo.save(replace(saved, title="Laptops (revised)"))
        with pytest.raises(ConcurrencyConflictError):
            repo.save(replace(saved, title="Laptops (stale)"))
        assert repo.get(saved.id).title == "Laptops (revised)"

    def test_version_increments(self, repo):
        saved = repo.save(make_rfq())
        updated = repo.save(replace(saved, title="Laptops (revised)"))
        assert updated.version == saved.version + 1

    def test_duplicate_number_keeps_session_usable(self, repo):
        first = repo.save(make_rfq())
        with pytest.raises(DuplicateDocumentNumberError):
            repo.save(make_rfq())
        assert repo.get(first.id).rfq_number == "RFQ-2024-0001"


class TestQueries:

    def test_list_open_soonest_deadline_first(self, repo):
        late = repo.save(replace(make_rfq("RFQ-2024-0001", 20), status=RFQStatus.OPEN))
        soon = repo.save(replace(make_rfq("RFQ-2024-0002", 5), status=RFQStatus.PUBLISHED))
        repo.save(make_rfq("RFQ-2024-0003", 3))  # draft
        assert [r.id for r in repo.list_open()] == [soon.id, late.id]

    def test_list_needing_attention(self, repo):
        soon = repo.save(replace(make_rfq("RFQ-2024-0001", 3), status=RFQStatus.OPEN))
        repo.save(replace(make_rfq("RFQ-2024-0002", 10), status=RFQStatus.OPEN))
        repo.save(make_rfq("RFQ-2024-0003", 2))
        assert [r.id for r in repo.list_needing_attention()] == [soon.id]
        assert len(repo.list_needing_attention(window_days=30)) == 2

    def test_list_by_status(self, repo):
        repo.save(make_rfq("RFQ-2024-0001"))
        repo.save(replace(make_rfq("RFQ-2024-0002"), status=RFQStatus.OPEN))
        assert [r.rfq_number for r in repo.list_by_status(RFQStatus.DRAFT)] == ["RFQ-2024-0001"]


class TestLazyTransitions:

    def test_auto_close_visible_on_load_only(self, repo, deterministic_clock):
        saved = repo.save(replace(make_rfq(deadline_days=1), status=RFQStatus.OPEN))
        deterministic_clock.advance(days=2)

        assert repo.get(saved.id).status == RFQStatus.CLOSED
        assert repo.get_stored(saved.id).status == RFQStatus.OPEN
        assert repo.ids_with_pending_transitions() == [saved.id]
        assert repo.list_open() == []

    def test_save_persists_due_transition(self, repo, deterministic_clock):
        saved = repo.save(replace(make_rfq(deadline_days=1), status=RFQStatus.OPEN))
        deterministic_clock.advance(days=2)
        repo.save(repo.get(saved.id))
        stored = repo.get_stored(saved.id)
        assert stored.status == RFQStatus.CLOSED
        assert stored.closed_at == deterministic_clock.now()
