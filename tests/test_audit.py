"""Unit tests for the append-only audit log."""

from datetime import datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from cts_engine.models import (
    AuditEvent,
    AuditEventType,
    Priority,
    Role,
    Ticket,
    TicketStatus,
    User,
)
from cts_engine.services import AuditLog, IdGenerator, ValidationError


ACTOR = User(id="s1", name="Sarah Admin", email="sarah@cts.com", phone="+10000000001",
             role=Role.COMPLIANCE_MANAGER)


def _ticket(ticket_id="TKT-1", reference_id="REF-1"):
    return Ticket(
        id=ticket_id, reference_id=reference_id, client_id="c1",
        title="t", description="d",
        contact_email="c1@example.com", contact_phone="+15550000000",
    )


@pytest.fixture
def audit():
    return AuditLog(IdGenerator())


class TestBuildAndRecord:

    def test_record_assigns_increasing_sequence(self, audit):
        ticket = _ticket()
        first = audit.record(audit.build(
            ticket, AuditEventType.PRIORITY_CHANGED, ACTOR, Priority.LOW, Priority.HIGH, "client escalated"
        ))
        second = audit.record(audit.build(
            ticket, AuditEventType.PRIORITY_CHANGED, ACTOR, Priority.HIGH, Priority.URGENT, "deadline moved"
        ))
        assert (first.sequence, second.sequence) == (1, 2)
        assert first.actor_role == Role.COMPLIANCE_MANAGER
        assert first.reference_id == "REF-1"

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_build_rejects_empty_reason(self, audit, reason):
        with pytest.raises(ValidationError):
            audit.build(_ticket(), AuditEventType.PRIORITY_CHANGED, ACTOR,
                        Priority.LOW, Priority.HIGH, reason)
        assert len(audit) == 0

    def test_record_rejects_empty_reason(self, audit):
        event = AuditEvent(
            id="EVT-X", ticket_id="TKT-1", reference_id="REF-1",
            type=AuditEventType.SUBSCRIPTION_TOGGLED, actor_id="s1",
            actor_role=Role.COMPLIANCE_MANAGER, old_value=False, new_value=True, reason="",
        )
        with pytest.raises(ValidationError):
            audit.record(event)
        assert len(audit) == 0

    def test_payload_shape_is_enforced(self, audit):
        with pytest.raises(PydanticValidationError):
            audit.build(_ticket(), AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR,
                        "no", "yes", "wrong payload")

    def test_events_are_frozen(self, audit):
        event = audit.record(audit.build(
            _ticket(), AuditEventType.GLOBAL_STATUS_CHANGED, ACTOR,
            TicketStatus.READY_TO_CLOSE, TicketStatus.CLOSED, "all done"
        ))
        with pytest.raises(PydanticValidationError):
            event.reason = "rewritten"

    def test_no_mutation_methods(self, audit):
        for name in ("update", "delete", "remove", "clear"):
            assert not hasattr(audit, name)


class TestQueries:

    def test_query_by_ticket_and_lineage(self, audit):
        first = _ticket("TKT-1", "REF-1")
        reopened = _ticket("TKT-2", "REF-1")
        unrelated = _ticket("TKT-3", "REF-2")
        audit.record(audit.build(first, AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR, False, True, "sub"))
        audit.record(audit.build(reopened, AuditEventType.TICKET_REOPENED, ACTOR, "TKT-1", "TKT-2", "again"))
        audit.record(audit.build(unrelated, AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR, False, True, "sub"))

        assert [e.ticket_id for e in audit.query_by_ticket("TKT-1")] == ["TKT-1"]
        assert [e.ticket_id for e in audit.query_by_lineage("REF-1")] == ["TKT-1", "TKT-2"]
        assert audit.query_by_ticket("TKT-404") == []

    def test_ties_on_created_at_break_by_sequence(self, audit):
        ticket = _ticket()
        instant = datetime(2026, 5, 1, 12, 0, 0)
        for reason in ("first", "second", "third"):
            event = audit.build(ticket, AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR, False, True, reason)
            audit.record(event.model_copy(update={"created_at": instant}))

        assert [e.reason for e in audit.query_by_ticket("TKT-1")] == ["first", "second", "third"]
        assert [e.reason for e in audit.timeline(ticket_id="TKT-1")] == ["third", "second", "first"]

    def test_timeline_since_filter(self, audit):
        ticket = _ticket()
        old = audit.build(ticket, AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR, False, True, "old")
        audit.record(old.model_copy(update={"created_at": datetime(2020, 1, 1)}))
        audit.record(audit.build(ticket, AuditEventType.SUBSCRIPTION_TOGGLED, ACTOR, True, False, "new"))

        recent = audit.timeline(since=datetime(2025, 1, 1))
        assert [e.reason for e in recent] == ["new"]

    def test_log_record_is_json_friendly(self, audit):
        event = audit.record(audit.build(
            _ticket(), AuditEventType.PRIORITY_CHANGED, ACTOR, Priority.LOW, Priority.URGENT, "sla"
        ))
        record = event.to_log_record()
        assert record["old_value"] == "low"
        assert record["new_value"] == "urgent"
        assert record["type"] == "PRIORITY_CHANGED"

    def test_log_record_replays_into_typed_payload(self, audit):
        ticket = _ticket()
        event = audit.record(audit.build(
            ticket, AuditEventType.TICKET_CREATED, ACTOR, None, ticket, "Initial creation"
        ))
        replayed = AuditEvent.model_validate(event.to_log_record())

        assert isinstance(replayed.new_value, Ticket)
        assert replayed.new_value.id == "TKT-1"
        assert replayed.type == AuditEventType.TICKET_CREATED
        assert replayed.sequence == event.sequence
