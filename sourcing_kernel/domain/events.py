"""
Domain event descriptors.

The core never delivers notifications; it only describes what happened.
``EventPublisher`` implementations in ``sourcing_kernel.services`` decide what
to do with them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

# Event names emitted by the sourcing services.
RFQ_CREATED = "rfq.created"
RFQ_PUBLISHED = "rfq.published"
RFQ_OPENED = "rfq.opened"
RFQ_CLOSED = "rfq.closed"
RFQ_EVALUATION_STARTED = "rfq.evaluation_started"
RFQ_CANCELLED = "rfq.cancelled"
RFQ_EXPIRED = "rfq.expired"
RFQ_AWARDED = "rfq.awarded"
RFQ_AMENDED = "rfq.amended"
RFQ_QUESTION_ASKED = "rfq.question_asked"
RFQ_QUESTION_ANSWERED = "rfq.question_answered"

BID_CREATED = "bid.created"
BID_SUBMITTED = "bid.submitted"
BID_WITHDRAWN = "bid.withdrawn"
BID_DISQUALIFIED = "bid.disqualified"
BID_REJECTED = "bid.rejected"
BID_RECOMMENDED = "bid.recommended"
BID_EXPIRED = "bid.expired"
BID_AWARDED = "bid.awarded"


@dataclass(frozen=True)
class DomainEvent:
    """A fire-and-forget notification descriptor."""
    name: str
    entity: str
    entity_id: UUID
    occurred_at: datetime
    actor_id: UUID | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)
