"""
Typed Exception Hierarchy for the Sourcing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Sourcing decisions are contestable: a supplier that loses an award will ask
why.  Callers (API layer, batch jobs, tests) must be able to tell a rejected
transition from a malformed RFQ without parsing message strings.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        rfq = publish(rfq, by=user_id, now=now)
    except Exception as e:
        if "without suppliers" in str(e):  # FRAGILE - message might change
            ...

Example - RIGHT way (what this module enables):
    try:
        rfq = publish(rfq, by=user_id, now=now)
    except StateTransitionError as e:
        api_response(code=e.code, status=e.current_state, action=e.action)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    SourcingError (base)
    |
    +-- ValidationError
    |   +-- CriteriaWeightError
    |   +-- DuplicateBidError
    |   +-- DuplicateDocumentNumberError
    |
    +-- StateTransitionError
    |
    +-- ReferentialError
    |   +-- SupplierNotInvitedError
    |   +-- BidRFQMismatchError
    |
    +-- NotFoundError
    |   +-- RFQNotFoundError
    |   +-- BidNotFoundError
    |   +-- QuestionNotFoundError
    |
    +-- ConcurrencyConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Malformed field (negative price, dates)
                | CRITERIA_WEIGHTS_INVALID    | Evaluation weights do not sum to 100
                | DUPLICATE_BID               | Second bid for same (rfq, supplier)
                | DUPLICATE_DOCUMENT_NUMBER   | rfq_number / bid_number already used
----------------|-----------------------------|-----------------------------------------
State           | INVALID_STATE_TRANSITION    | Operation not allowed from status
----------------|-----------------------------|-----------------------------------------
Referential     | REFERENTIAL_ERROR           | Reference does not resolve
                | SUPPLIER_NOT_INVITED        | Award to a supplier outside the RFQ
                | BID_RFQ_MISMATCH            | Bid does not belong to the RFQ
----------------|-----------------------------|-----------------------------------------
Not found       | NOT_FOUND                   | Generic missing aggregate
                | RFQ_NOT_FOUND               | RFQ id does not exist
                | BID_NOT_FOUND               | Bid id does not exist
                | QUESTION_NOT_FOUND          | Question id not on the RFQ
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_CONFLICT        | Stale write detected (optimistic lock)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS first, then the category:

    try:
        orchestrator.award(rfq_id, bid_id, awarded_by=user, award_amount=amt)
    except SupplierNotInvitedError as e:
        notify_buyer(f"Supplier {e.supplier_id} was never invited")
    except StateTransitionError as e:
        log.warning("award_rejected", extra={"code": e.code})

2. CONCURRENCY CONFLICTS are retryable: reload the aggregate and re-apply.

3. The core never swallows these.  The only sanctioned local recovery is
   audit / notification delivery failure, handled in
   ``sourcing_kernel.services.audit_service``.

===============================================================================
"""

from typing import Any


class SourcingError(Exception):
    """
    Base exception for all sourcing engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SOURCING_ERROR"


# Validation exceptions


class ValidationError(SourcingError):
    """A field or combination of fields violates an aggregate rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, entity_type: str, field: str, reason: str, value: Any = None):
        self.entity_type = entity_type
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid {entity_type}.{field}: {reason}")


class CriteriaWeightError(ValidationError):
    """
    Evaluation criteria weights do not sum to 100.

    Blocks every save of the RFQ, not only publication.
    """

    code: str = "CRITERIA_WEIGHTS_INVALID"

    def __init__(self, total_weight: str, tolerance: str):
        self.total_weight = total_weight
        self.tolerance = tolerance
        super().__init__(
            "rfq",
            "evaluation_criteria",
            f"weights must sum to 100 (+/-{tolerance}), got {total_weight}",
            value=total_weight,
        )


class DuplicateBidError(ValidationError):
    """A bid already exists for this (rfq, supplier) pair."""

    code: str = "DUPLICATE_BID"

    def __init__(self, rfq_id: str, supplier_id: str):
        self.rfq_id = rfq_id
        self.supplier_id = supplier_id
        super().__init__(
            "bid",
            "supplier_id",
            f"supplier {supplier_id} already has a bid on RFQ {rfq_id}",
            value=supplier_id,
        )


class DuplicateDocumentNumberError(ValidationError):
    """An rfq_number or bid_number is already taken."""

    code: str = "DUPLICATE_DOCUMENT_NUMBER"

    def __init__(self, entity_type: str, number: str):
        self.number = number
        super().__init__(
            entity_type,
            "number",
            f"document number {number} already exists",
            value=number,
        )


# State machine exceptions


class StateTransitionError(SourcingError):
    """Operation invoked from a status that does not permit it."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
        reason: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        self.reason = reason
        message = f"Cannot {action} {entity_type} {entity_id} in status '{current_state}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# Referential exceptions


class ReferentialError(SourcingError):
    """A referenced entity is not valid in this context."""

    code: str = "REFERENTIAL_ERROR"

    def __init__(self, entity_type: str, entity_id: str, reference: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reference = reference
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id}: {reason} ({reference})")


class SupplierNotInvitedError(ReferentialError):
    """Supplier is outside the RFQ's invited set (bidding or award)."""

    code: str = "SUPPLIER_NOT_INVITED"

    def __init__(self, rfq_id: str, supplier_id: str):
        self.rfq_id = rfq_id
        self.supplier_id = supplier_id
        super().__init__("rfq", rfq_id, supplier_id, "supplier was not invited to this RFQ")


class BidRFQMismatchError(ReferentialError):
    """Bid does not belong to the RFQ it is being awarded under."""

    code: str = "BID_RFQ_MISMATCH"

    def __init__(self, bid_id: str, rfq_id: str):
        self.bid_id = bid_id
        self.rfq_id = rfq_id
        super().__init__("bid", bid_id, rfq_id, "bid was not placed against this RFQ")


# Lookup exceptions


class NotFoundError(SourcingError):
    """Aggregate with given ID was not found."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class RFQNotFoundError(NotFoundError):
    """RFQ with given ID was not found."""

    code: str = "RFQ_NOT_FOUND"

    def __init__(self, rfq_id: str):
        super().__init__("rfq", rfq_id)


class BidNotFoundError(NotFoundError):
    """Bid with given ID was not found."""

    code: str = "BID_NOT_FOUND"

    def __init__(self, bid_id: str):
        super().__init__("bid", bid_id)


class QuestionNotFoundError(NotFoundError):
    """Clarification question is not on this RFQ."""

    code: str = "QUESTION_NOT_FOUND"

    def __init__(self, rfq_id: str, question_id: str):
        self.rfq_id = rfq_id
        super().__init__("rfq_question", question_id)


# Concurrency exceptions


class ConcurrencyConflictError(SourcingError):
    """Concurrent write to the same aggregate detected."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            "aggregate was modified by another transaction"
        )
