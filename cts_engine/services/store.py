"""
CTS Ticket Store

The single authoritative in-process state holder, owned by the serving
layer (no module-level global).

- Writers serialize per ticket through lock(ticket_id)
- Committed Ticket objects are never mutated in place; a commit swaps in
  a new object, so readers always see a whole committed version
- Readers get deep copies and never take a lock
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..models.ticket import Ticket
from .errors import NotFoundError

logger = logging.getLogger(__name__)


class TicketStore:
    """In-memory ticket collection with per-ticket write locks."""

    def __init__(self):
        self._tickets: Dict[str, Ticket] = {}
        self._order: List[str] = []
        self._lineages: Dict[str, List[str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock(self, ticket_id: str) -> asyncio.Lock:
        """
        Per-ticket lock. asyncio.Lock wakes waiters in FIFO order, so
        commands on one ticket apply in arrival order.
        """
        lock = self._locks.get(ticket_id)
        if lock is None:
            lock = self._locks[ticket_id] = asyncio.Lock()
        return lock

    def get(self, ticket_id: str) -> Ticket:
        """Private copy of the committed ticket."""
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found.")
        return ticket.model_copy(deep=True)

    def exists(self, ticket_id: str) -> bool:
        return ticket_id in self._tickets

    def commit(self, ticket: Ticket) -> Ticket:
        """
        Publish a new version of a ticket.

        Must be called with no await between validation and the matching
        audit append so readers never see one without the other.
        """
        committed = ticket.model_copy(deep=True)
        if committed.id not in self._tickets:
            self._order.append(committed.id)
            self._lineages.setdefault(committed.reference_id, []).append(committed.id)
        self._tickets[committed.id] = committed
        return committed.model_copy(deep=True)

    def current_id(self, reference_id: str) -> Optional[str]:
        """Most recently created ticket of a lineage."""
        members = self._lineages.get(reference_id)
        return members[-1] if members else None

    def is_current(self, ticket: Ticket) -> bool:
        return self.current_id(ticket.reference_id) == ticket.id

    def lineage(self, reference_id: str) -> List[Ticket]:
        """Tickets of a lineage, oldest first."""
        return [
            self._tickets[ticket_id].model_copy(deep=True)
            for ticket_id in self._lineages.get(reference_id, [])
        ]

    def snapshot(self) -> List[Ticket]:
        """All tickets, newest first."""
        return [
            self._tickets[ticket_id].model_copy(deep=True)
            for ticket_id in reversed(list(self._order))
        ]

    def __len__(self) -> int:
        return len(self._tickets)
