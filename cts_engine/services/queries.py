"""
CTS Query Service

Read-only projections over the ticket collection, scoped by who is asking.

Nothing is cached: every call works on a fresh store snapshot, so results
always reflect the latest committed state and never block writers.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel

from ..models.ticket import Priority, Role, Ticket, TicketStatus, User
from .access import Action, can_perform, require, routed_to
from .errors import NotFoundError
from .store import TicketStore


class DashboardStats(BaseModel):
    """Headline counters for a set of tickets."""
    total: int = 0
    active: int = 0
    urgent_active: int = 0
    closed: int = 0
    in_compliance_review: int = 0
    warning_flagged: int = 0


class QueryService:
    """
    Role-scoped views.

    - Client: own tickets
    - Dept manager / team lead: tickets routed to their department/branch
    - Compliance: everything, plus the triage queue
    """

    def __init__(self, store: TicketStore, sla_hours_urgent: int = 4):
        self.store = store
        self.sla_hours_urgent = sla_hours_urgent

    def client_view(self, actor: User) -> List[Ticket]:
        return [t for t in self.store.snapshot() if t.client_id == actor.id]

    def work_view(self, actor: User) -> List[Ticket]:
        return [t for t in self.store.snapshot() if routed_to(actor, t)]

    def compliance_queue(self) -> List[Ticket]:
        return [
            t for t in self.store.snapshot()
            if t.status == TicketStatus.COMPLIANCE_REVIEW
        ]

    def dashboard(self, actor: User, search: Optional[str] = None) -> List[Ticket]:
        """
        The ticket list an actor lands on, optionally narrowed by a search
        term matched against title, ticket id and reference id.
        """
        if actor.role == Role.CLIENT:
            tickets = self.client_view(actor)
        elif actor.role in (Role.DEPT_MANAGER, Role.TEAM_LEAD):
            tickets = self.work_view(actor)
        else:
            tickets = self.store.snapshot()

        if search:
            term = search.strip().lower()
            tickets = [
                t for t in tickets
                if term in t.title.lower()
                or term in t.id.lower()
                or term in t.reference_id.lower()
            ]
        return tickets

    @staticmethod
    def dashboard_stats(tickets: List[Ticket]) -> DashboardStats:
        open_tickets = [t for t in tickets if t.status != TicketStatus.CLOSED]
        return DashboardStats(
            total=len(tickets),
            active=len(open_tickets),
            urgent_active=sum(1 for t in open_tickets if t.priority == Priority.URGENT),
            closed=len(tickets) - len(open_tickets),
            in_compliance_review=sum(
                1 for t in tickets if t.status == TicketStatus.COMPLIANCE_REVIEW
            ),
            warning_flagged=sum(1 for t in tickets if t.warning_flag),
        )

    def ticket_for(self, actor: User, ticket_id: str) -> Ticket:
        """One ticket, if the actor may see it."""
        ticket = self.store.get(ticket_id)
        require(actor, Action.VIEW_TICKET, ticket)
        return ticket

    def lineage_for(self, actor: User, reference_id: str) -> List[Ticket]:
        """
        A whole lineage, visible when the actor may see any of its tickets.

        Raises NotFoundError for an unknown reference id.
        """
        tickets = self.store.lineage(reference_id)
        if not tickets:
            raise NotFoundError(f"Lineage {reference_id} not found.")
        if not any(can_perform(actor, Action.VIEW_TICKET, t) for t in tickets):
            require(actor, Action.VIEW_TICKET, tickets[-1])
        return tickets

    def lineage(self, reference_id: str) -> List[Ticket]:
        """Every ticket sharing a reference id, oldest first."""
        return self.store.lineage(reference_id)

    def current_ticket(self, reference_id: str) -> Optional[Ticket]:
        members = self.store.lineage(reference_id)
        return members[-1] if members else None

    # =========================================================================
    # SLA
    # =========================================================================

    def sla_deadline(self, ticket: Ticket) -> Optional[datetime]:
        """Response deadline; only urgent tickets carry one."""
        if ticket.priority != Priority.URGENT:
            return None
        return ticket.created_at + timedelta(hours=self.sla_hours_urgent)

    def is_sla_breached(self, ticket: Ticket, now: Optional[datetime] = None) -> bool:
        deadline = self.sla_deadline(ticket)
        if deadline is None or ticket.status == TicketStatus.CLOSED:
            return False
        return (now or datetime.utcnow()) >= deadline

