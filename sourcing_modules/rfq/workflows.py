"""
RFQ Workflow.

State machine for a Request for Quotation, from draft through bidding and
evaluation to award.  Time-driven edges are marked ``system=True``: they are
applied lazily from the clock, never requested by a user.
"""

from sourcing_kernel.domain.workflow import Guard, Transition, Workflow
from sourcing_kernel.logging_config import get_logger

logger = get_logger("modules.rfq.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_SUPPLIERS_AND_ITEMS = Guard(
    name="has_suppliers_and_items",
    description="At least one supplier invited and one item attached",
)

DEADLINE_PASSED = Guard(
    name="deadline_passed",
    description="Current time is past the bidding deadline",
)

VALIDITY_LAPSED = Guard(
    name="validity_lapsed",
    description="Validity period elapsed since the RFQ closed",
)

SUPPLIER_INVITED = Guard(
    name="supplier_invited",
    description="Awarded supplier is in the invited set",
)


# -----------------------------------------------------------------------------
# RFQ Workflow
# -----------------------------------------------------------------------------

RFQ_WORKFLOW = Workflow(
    name="rfq",
    description="Request for Quotation lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "published",
        "open",
        "closed",
        "under_evaluation",
        "awarded",
        "cancelled",
        "expired",
    ),
    transitions=(
        Transition("draft", "published", action="publish", guard=HAS_SUPPLIERS_AND_ITEMS),
        Transition("published", "open", action="open_bidding"),
        Transition("published", "closed", action="close"),
        Transition("open", "closed", action="close"),
        Transition("open", "closed", action="auto_close", guard=DEADLINE_PASSED, system=True),
        Transition("closed", "under_evaluation", action="start_evaluation"),
        Transition("closed", "awarded", action="award", guard=SUPPLIER_INVITED),
        Transition("under_evaluation", "awarded", action="award", guard=SUPPLIER_INVITED),
        Transition("closed", "expired", action="expire", guard=VALIDITY_LAPSED, system=True),
        Transition("draft", "cancelled", action="cancel"),
        Transition("published", "cancelled", action="cancel"),
        Transition("open", "cancelled", action="cancel"),
        Transition("closed", "cancelled", action="cancel"),
        Transition("under_evaluation", "cancelled", action="cancel"),
    ),
    terminal_states=("awarded", "cancelled", "expired"),
)

logger.debug(
    "rfq_workflow_registered",
    extra={
        "workflow_name": RFQ_WORKFLOW.name,
        "state_count": len(RFQ_WORKFLOW.states),
        "transition_count": len(RFQ_WORKFLOW.transitions),
        "initial_state": RFQ_WORKFLOW.initial_state,
    },
)
