"""
Pure domain layer.

Value objects and pure helpers with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (other than SystemClock)
"""

from sourcing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from sourcing_kernel.domain.events import DomainEvent
from sourcing_kernel.domain.numbering import format_number, next_number, parse_sequence, year_prefix
from sourcing_kernel.domain.workflow import (
    Guard,
    Transition,
    Workflow,
    require_transition,
    validate_workflow,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "DomainEvent",
    "Guard",
    "SystemClock",
    "Transition",
    "Workflow",
    "format_number",
    "next_number",
    "parse_sequence",
    "require_transition",
    "validate_workflow",
    "year_prefix",
]
