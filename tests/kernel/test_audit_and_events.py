"""
Tests for the audit and notification collaborators.

Audit and publish failures are contained: logged, never raised.
"""

from uuid import uuid4

from sourcing_kernel.domain.events import DomainEvent
from sourcing_kernel.services.audit_service import NullAuditSink, SqlAuditSink, record_audit
from sourcing_kernel.services.notification_service import (
    InMemoryEventPublisher,
    LoggingEventPublisher,
    publish_event,
)


class _FailingSink:
    def log_action(self, *args, **kwargs):
        raise RuntimeError("audit store down")


class _FailingPublisher:
    def publish(self, event):
        raise RuntimeError("broker down")


def _event(name="rfq.published"):
    from datetime import datetime, timezone

    return DomainEvent(
        name=name,
        entity="rfq",
        entity_id=uuid4(),
        occurred_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestAudit:

    def test_sql_sink_writes_trail(self, session, deterministic_clock):
        sink = SqlAuditSink(session, deterministic_clock)
        entity_id = uuid4()
        actor = uuid4()

        assert record_audit(sink, "rfq", entity_id, actor, "a created", after_state={"status": "draft"})
        assert record_audit(
            sink, "rfq", entity_id, actor, "b published",
            before_state={"status": "draft"}, after_state={"status": "published"},
        )

        trail = sink.trail("rfq", entity_id)
        assert [r.description for r in trail] == ["a created", "b published"]
        assert trail[1].before_state == {"status": "draft"}
        assert trail[1].user_id == actor
        assert trail[0].occurred_at == deterministic_clock.now()

    def test_failure_is_logged_not_raised(self, captured_logs):
        assert record_audit(_FailingSink(), "bid", uuid4(), None, "bid.submit") is False
        assert any(r["message"] == "audit_log_failed" for r in captured_logs())

    def test_null_sink_accepts_everything(self):
        assert record_audit(NullAuditSink(), "bid", uuid4(), None, "noop") is True


class TestNotifications:

    def test_in_memory_publisher_records(self):
        publisher = InMemoryEventPublisher()
        assert publish_event(publisher, _event("rfq.published"))
        assert publish_event(publisher, _event("rfq.closed"))
        assert publisher.names() == ["rfq.published", "rfq.closed"]
        publisher.clear()
        assert publisher.events == ()

    def test_logging_publisher_logs(self, captured_logs):
        assert publish_event(LoggingEventPublisher(), _event("bid.awarded"))
        assert any(r.get("event_name") == "bid.awarded" for r in captured_logs())

    def test_failure_is_logged_not_raised(self, captured_logs):
        assert publish_event(_FailingPublisher(), _event()) is False
        assert any(r["message"] == "event_publish_failed" for r in captured_logs())
