"""
CTS Audit Log

The only way to answer "who did what and why".

- Append-only: there are no update or delete methods
- Every event carries actor, role, reason and a typed before/after pair
- Replay order is (created_at, sequence); display order is newest first
- Each recorded event is mirrored as one JSON line to the
  "cts_engine.audit" logger for forensic shipping
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..models.audit import AuditEvent, AuditEventType
from ..models.ticket import Ticket, User
from .errors import ValidationError
from .identifiers import IdGenerator

logger = logging.getLogger(__name__)

# Dedicated stream, one JSON object per line
audit_logger = logging.getLogger("cts_engine.audit")


class AuditLog:
    """
    Shared-read, append-only event store keyed by ticket and lineage.
    """

    def __init__(self, ids: IdGenerator):
        self.ids = ids
        self._events: List[AuditEvent] = []
        self._by_ticket: Dict[str, List[AuditEvent]] = {}
        self._by_lineage: Dict[str, List[AuditEvent]] = {}
        self._lock = threading.Lock()

    def build(
        self,
        ticket: Ticket,
        event_type: AuditEventType,
        actor: User,
        old_value: Any,
        new_value: Any,
        reason: str
    ) -> AuditEvent:
        """
        Create (but do not append) an event for a ticket.

        Commands build all their events before committing, so a malformed
        event rejects the command with nothing written.
        """
        if not reason or not reason.strip():
            raise ValidationError("Audit events require a non-empty reason.")
        return AuditEvent(
            id=self.ids.event_id(),
            ticket_id=ticket.id,
            reference_id=ticket.reference_id,
            type=event_type,
            actor_id=actor.id,
            actor_role=actor.role,
            old_value=old_value,
            new_value=new_value,
            reason=reason.strip(),
        )

    def record(self, event: AuditEvent) -> AuditEvent:
        """
        Append one event.

        Only fails on an empty reason. Assigns the insertion sequence.
        """
        if not event.reason or not event.reason.strip():
            raise ValidationError("Audit events require a non-empty reason.")

        with self._lock:
            stored = event.model_copy(update={"sequence": len(self._events) + 1})
            self._events.append(stored)
            self._by_ticket.setdefault(stored.ticket_id, []).append(stored)
            self._by_lineage.setdefault(stored.reference_id, []).append(stored)

        audit_logger.info(json.dumps(stored.to_log_record(), default=str))
        return stored

    def record_many(self, events: Iterable[AuditEvent]) -> List[AuditEvent]:
        return [self.record(event) for event in events]

    def query_by_ticket(self, ticket_id: str) -> List[AuditEvent]:
        """Events for one ticket, in replay order."""
        with self._lock:
            events = list(self._by_ticket.get(ticket_id, []))
        return sorted(events, key=lambda e: e.replay_key)

    def query_by_lineage(self, reference_id: str) -> List[AuditEvent]:
        """Events for every ticket sharing a reference id, in replay order."""
        with self._lock:
            events = list(self._by_lineage.get(reference_id, []))
        return sorted(events, key=lambda e: e.replay_key)

    def timeline(
        self,
        ticket_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        since: Optional[datetime] = None
    ) -> List[AuditEvent]:
        """
        Display view: newest first.

        Args:
            ticket_id: Limit to one ticket
            reference_id: Limit to one lineage (ignored if ticket_id is set)
            since: Drop events created before this instant
        """
        if ticket_id:
            events = self.query_by_ticket(ticket_id)
        elif reference_id:
            events = self.query_by_lineage(reference_id)
        else:
            with self._lock:
                events = sorted(self._events, key=lambda e: e.replay_key)

        if since is not None:
            events = [e for e in events if e.created_at >= since]

        events.reverse()
        return events

    def __len__(self) -> int:
        return len(self._events)
