"""Collaborator services for the sourcing kernel (write side)."""

from sourcing_kernel.services.aggregate_lock import AggregateLockRegistry, default_lock_registry
from sourcing_kernel.services.audit_service import (
    AuditLogEntry,
    AuditSink,
    NullAuditSink,
    SqlAuditSink,
    record_audit,
)
from sourcing_kernel.services.notification_service import (
    EventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    publish_event,
)
from sourcing_kernel.services.numbering_service import DocumentNumberService

__all__ = [
    "AggregateLockRegistry",
    "AuditLogEntry",
    "AuditSink",
    "DocumentNumberService",
    "EventPublisher",
    "InMemoryEventPublisher",
    "LoggingEventPublisher",
    "NullAuditSink",
    "SqlAuditSink",
    "default_lock_registry",
    "publish_event",
    "record_audit",
]
