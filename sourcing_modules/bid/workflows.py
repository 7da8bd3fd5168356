"""
Bid Workflow.

State machine for a supplier bid, from draft through review to award.
``disqualify`` is accepted from every state, terminal ones included; the
lifecycle manager applies it without consulting this table.
"""

from sourcing_kernel.domain.workflow import Guard, Transition, Workflow
from sourcing_kernel.logging_config import get_logger

logger = get_logger("modules.bid.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_ITEMS = Guard(
    name="has_items",
    description="Bid carries at least one priced item",
)

VALIDITY_ELAPSED = Guard(
    name="validity_elapsed",
    description="Current time is past the bid's validity expiry",
)


# -----------------------------------------------------------------------------
# Bid Workflow
# -----------------------------------------------------------------------------

_REJECTABLE = ("submitted", "under_review", "qualified", "recommended")

BID_WORKFLOW = Workflow(
    name="bid",
    description="Supplier bid lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "submitted",
        "under_review",
        "qualified",
        "disqualified",
        "recommended",
        "awarded",
        "rejected",
        "withdrawn",
        "expired",
    ),
    transitions=(
        Transition("draft", "submitted", action="submit", guard=HAS_ITEMS),
        Transition("submitted", "withdrawn", action="withdraw"),
        Transition("under_review", "withdrawn", action="withdraw"),
        Transition("submitted", "under_review", action="start_review"),
        Transition("under_review", "qualified", action="qualify"),
        Transition("qualified", "recommended", action="recommend"),
        Transition("recommended", "awarded", action="award"),
        Transition("submitted", "expired", action="expire", guard=VALIDITY_ELAPSED, system=True),
        *(Transition(state, "rejected", action="reject") for state in _REJECTABLE),
    ),
    terminal_states=("awarded", "rejected", "withdrawn", "expired"),
)

logger.debug(
    "bid_workflow_registered",
    extra={
        "workflow_name": BID_WORKFLOW.name,
        "state_count": len(BID_WORKFLOW.states),
        "transition_count": len(BID_WORKFLOW.transitions),
        "initial_state": BID_WORKFLOW.initial_state,
    },
)
