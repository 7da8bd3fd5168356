"""
RFQ Module (``sourcing_modules.rfq``).

Responsibility
--------------
Requests for quotation: drafting, supplier invitations, publication, the
bidding window, closing, the evaluation committee, evaluation, cancellation,
clarification questions, amendments and award bookkeeping (savings against
the estimated budget).

Architecture position
---------------------
**Modules layer** -- pure lifecycle functions plus a repository and a
service facade that owns the transaction boundary.

Invariants enforced
-------------------
* Evaluation criteria weights total 100 within tolerance.
* Stored ``open`` RFQs past their deadline read as ``closed``; ``closed``
  RFQs past closing plus the validity period read as ``expired``.
* ``cost_savings`` / ``savings_percentage`` follow the award amount.
"""

from sourcing_modules.rfq.models import (
    CommitteeMember,
    CommitteeRole,
    RFQ,
    RFQAmendment,
    RFQQuestion,
    RFQStats,
    RFQStatus,
)
from sourcing_modules.rfq.repository import RFQRepository
from sourcing_modules.rfq.service import RFQService
from sourcing_modules.rfq.workflows import RFQ_WORKFLOW

__all__ = [
    "CommitteeMember",
    "CommitteeRole",
    "RFQ",
    "RFQAmendment",
    "RFQQuestion",
    "RFQRepository",
    "RFQService",
    "RFQStats",
    "RFQStatus",
    "RFQ_WORKFLOW",
]
