"""
CTS Ticket Service

The ticket state machine.

    compliance_review -> in_resolution -> ready_to_close -> closed
                              |  ^
                              v  |
                         waiting_client

Every command follows the same shape:
1. Check input (reason, fields, phone) before touching anything
2. Take the per-ticket lock and check out a private copy
3. Access policy gate
4. Mutate the copy, build the audit events
5. Commit ticket + events with no await in between, then notify

Reopen never edits the closed ticket: it creates a NEW ticket in the same
lineage, and the old one becomes an immutable historical record.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set, Tuple

from ..models.audit import AuditEvent, AuditEventType, assignment_list
from ..models.ticket import (
    AssignmentStatus,
    ContactSnapshot,
    Department,
    MarketingBranch,
    Priority,
    Ticket,
    TicketStatus,
    User,
)
from .access import Action, require
from .assignment import AssignmentResolver
from .audit import AuditLog
from .directory import StaffDirectory
from .errors import ConflictError
from .identifiers import IdGenerator
from .notifications import NotificationDispatcher
from .store import TicketStore
from .validation import require_reason, require_text

logger = logging.getLogger(__name__)


class TicketService:
    """
    Owns tickets and their embedded assignments.

    Orchestrates the AssignmentResolver and the AuditLog; the only writer
    of the TicketStore.
    """

    # Manual moves allowed through update_ticket_status besides closing
    MANUAL_TRANSITIONS: Set[Tuple[TicketStatus, TicketStatus]] = {
        (TicketStatus.IN_RESOLUTION, TicketStatus.WAITING_CLIENT),
        (TicketStatus.WAITING_CLIENT, TicketStatus.IN_RESOLUTION),
    }

    CREATION_REASON = "Initial creation"
    WARNING_REASON = "Reopen count > 1"

    def __init__(
        self,
        store: TicketStore,
        audit: AuditLog,
        resolver: AssignmentResolver,
        directory: StaffDirectory,
        notifier: NotificationDispatcher,
        ids: IdGenerator
    ):
        self.store = store
        self.audit = audit
        self.resolver = resolver
        self.directory = directory
        self.notifier = notifier
        self.ids = ids

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.store.get(ticket_id)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_ticket(
        self,
        actor: User,
        title: str,
        description: str,
        priority: Priority,
        contact_email: str,
        contact_phone: str,
        client_id: Optional[str] = None
    ) -> Ticket:
        """
        Client opens a new engagement request.

        Starts in compliance review with no assignments, subscribed only by
        the client. The contact pair is a snapshot, not a link to the User.
        """
        title = require_text(title, "title")
        description = require_text(description, "description")
        contact_email = require_text(contact_email, "contact_email")
        contact_phone = self.directory.normalize_phone(contact_phone)
        client_id = client_id or actor.id

        ticket = Ticket(
            id=self.ids.ticket_id(),
            reference_id=self.ids.reference_id(),
            client_id=client_id,
            title=title,
            description=description,
            priority=Priority(priority),
            status=TicketStatus.COMPLIANCE_REVIEW,
            reopen_count=0,
            contact_email=contact_email,
            contact_phone=contact_phone,
            subscribed_users={client_id},
        )
        require(actor, Action.CREATE_TICKET, ticket)

        event = self.audit.build(
            ticket, AuditEventType.TICKET_CREATED, actor,
            None, ticket.model_copy(deep=True), self.CREATION_REASON
        )
        return self._commit(ticket, [event])

    # =========================================================================
    # Assignments
    # =========================================================================

    async def add_department_assignment(
        self,
        actor: User,
        ticket_id: str,
        department: Department,
        branch: Optional[MarketingBranch] = None,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Compliance routes the ticket to one more department (and branch).

        The first routing moves the ticket out of compliance review.
        """
        reason = require_reason(reason)
        department = Department(department)
        branch = MarketingBranch(branch) if branch is not None else None

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            require(actor, Action.ADD_ASSIGNMENT, ticket)

            before = assignment_list(ticket.assignments)
            before_status = ticket.status

            self.resolver.add(ticket, department, branch)
            ticket.status = self.resolver.derive_status(ticket)
            self._touch(ticket)

            events = [self.audit.build(
                ticket, AuditEventType.DEPT_ASSIGNED, actor,
                before, assignment_list(ticket.assignments), reason
            )]
            events.extend(self._derived_status_events(ticket, actor, before_status, reason))
            return self._commit(ticket, events)

    async def assign_team_lead(
        self,
        actor: User,
        ticket_id: str,
        assignment_id: str,
        team_lead_id: str,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Dept manager hands an assignment to a team lead of their department.

        A lead is assigned ONCE; a second call is a ConflictError and the
        assignment is left as it was.
        """
        reason = require_reason(reason)

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            assignment = self.resolver.get(ticket, assignment_id)
            self.resolver.require_unassigned(assignment)
            require(actor, Action.ASSIGN_TEAM_LEAD, ticket, assignment)
            team_lead = self.directory.require_team_lead(team_lead_id, assignment)

            before = assignment.model_copy(deep=True)
            self.resolver.assign_team_lead(assignment, team_lead, actor)
            self._touch(ticket)

            event = self.audit.build(
                ticket, AuditEventType.TEAM_LEAD_ASSIGNED, actor,
                before, assignment.model_copy(deep=True), reason
            )
            return self._commit(ticket, [event])

    async def update_assignment(
        self,
        actor: User,
        ticket_id: str,
        assignment_id: str,
        status: AssignmentStatus,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Move an assignment along (in progress, waiting on client, resolved).

        Only the assigned team lead resolves. Ticket closure readiness is
        recomputed afterwards whatever the target status was.
        """
        reason = require_reason(reason)
        status = AssignmentStatus(status)

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            assignment = self.resolver.get(ticket, assignment_id)

            if status == AssignmentStatus.RESOLVED:
                if assignment.status == AssignmentStatus.RESOLVED:
                    raise ConflictError(f"Assignment {assignment.id} is already resolved.")
                require(actor, Action.RESOLVE_ASSIGNMENT, ticket, assignment)
            else:
                require(actor, Action.UPDATE_ASSIGNMENT, ticket, assignment)

            before = assignment_list(ticket.assignments)
            before_status = ticket.status

            self.resolver.set_status(assignment, status)
            ticket.status = self.resolver.derive_status(ticket)
            self._touch(ticket)

            events = [self.audit.build(
                ticket, AuditEventType.ASSIGNMENT_UPDATED, actor,
                before, assignment_list(ticket.assignments), reason
            )]
            events.extend(self._derived_status_events(ticket, actor, before_status, reason))
            return self._commit(ticket, events)

    # =========================================================================
    # Ticket fields
    # =========================================================================

    async def update_ticket_priority(
        self,
        actor: User,
        ticket_id: str,
        priority: Priority,
        reason: Optional[str] = None
    ) -> Ticket:
        reason = require_reason(reason)
        priority = Priority(priority)

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            require(actor, Action.CHANGE_PRIORITY, ticket)
            if ticket.priority == priority:
                raise ConflictError(f"Ticket {ticket.id} is already {priority.value} priority.")

            old = ticket.priority
            ticket.priority = priority
            self._touch(ticket)

            event = self.audit.build(
                ticket, AuditEventType.PRIORITY_CHANGED, actor, old, priority, reason
            )
            return self._commit(ticket, [event])

    async def update_ticket_status(
        self,
        actor: User,
        ticket_id: str,
        new_status: TicketStatus,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Manual status change.

        Closing needs compliance and a ready_to_close ticket. Otherwise only
        the in_resolution <-> waiting_client side branch is manual; every
        other move is driven by assignments.
        """
        reason = require_reason(reason)
        new_status = TicketStatus(new_status)

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            if ticket.status == new_status:
                raise ConflictError(f"Ticket {ticket.id} is already {new_status.value}.")

            if new_status == TicketStatus.CLOSED:
                require(actor, Action.CLOSE_TICKET, ticket)
            else:
                if (ticket.status, new_status) not in self.MANUAL_TRANSITIONS:
                    raise ConflictError(
                        f"Cannot move ticket {ticket.id} from "
                        f"{ticket.status.value} to {new_status.value}."
                    )
                require(actor, Action.CHANGE_STATUS, ticket)

            old = ticket.status
            ticket.status = new_status
            self._touch(ticket)
            if new_status == TicketStatus.CLOSED:
                ticket.closed_at = ticket.updated_at

            event = self.audit.build(
                ticket, AuditEventType.GLOBAL_STATUS_CHANGED, actor, old, new_status, reason
            )
            return self._commit(ticket, [event])

    async def update_ticket_contact(
        self,
        actor: User,
        ticket_id: str,
        email: str,
        phone: str,
        reason: Optional[str] = None
    ) -> Ticket:
        """Overwrite the ticket's contact snapshot; the User record is untouched."""
        reason = require_reason(reason)
        email = require_text(email, "email")
        phone = self.directory.normalize_phone(phone)

        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            require(actor, Action.UPDATE_CONTACT, ticket)

            old = ContactSnapshot(email=ticket.contact_email, phone=ticket.contact_phone)
            ticket.contact_email = email
            ticket.contact_phone = phone
            self._touch(ticket)

            event = self.audit.build(
                ticket, AuditEventType.CONTACT_INFO_UPDATED, actor,
                old, ContactSnapshot(email=email, phone=phone), reason
            )
            return self._commit(ticket, [event])

    async def toggle_ticket_subscription(self, actor: User, ticket_id: str) -> Ticket:
        """Flip the actor's membership in subscribed_users. No reason needed."""
        async with self.store.lock(ticket_id):
            ticket = self._checkout(ticket_id)
            require(actor, Action.TOGGLE_SUBSCRIPTION, ticket)

            was_subscribed = actor.id in ticket.subscribed_users
            if was_subscribed:
                ticket.subscribed_users.discard(actor.id)
                reason = "User unsubscribed from updates"
            else:
                ticket.subscribed_users.add(actor.id)
                reason = "User subscribed to updates"
            self._touch(ticket)

            event = self.audit.build(
                ticket, AuditEventType.SUBSCRIPTION_TOGGLED, actor,
                was_subscribed, not was_subscribed, reason
            )
            return self._commit(ticket, [event])

    # =========================================================================
    # Reopen
    # =========================================================================

    async def reopen_ticket(
        self,
        actor: User,
        ticket_id: str,
        reason: Optional[str] = None
    ) -> Ticket:
        """
        Client reopens a closed ticket.

        Creates a NEW ticket in the same lineage. Only the current ticket of
        a lineage can be reopened, so a lineage never forks.
        """
        reason = require_reason(reason)

        async with self.store.lock(ticket_id):
            source = self.store.get(ticket_id)
            require(actor, Action.REOPEN_TICKET, source)
            if not self.store.is_current(source):
                raise ConflictError(
                    f"Ticket {source.id} was already reopened as "
                    f"{self.store.current_id(source.reference_id)}."
                )

            reopened = Ticket(
                id=self.ids.ticket_id(),
                reference_id=source.reference_id,
                parent_ticket_id=source.id,
                client_id=source.client_id,
                title=source.title,
                description=source.description,
                priority=source.priority,
                status=TicketStatus.COMPLIANCE_REVIEW,
                reopen_count=source.reopen_count + 1,
                contact_email=source.contact_email,
                contact_phone=source.contact_phone,
                subscribed_users={actor.id},
            )

            events = [self.audit.build(
                reopened, AuditEventType.TICKET_REOPENED, actor,
                source.id, reopened.id, reason
            )]
            if reopened.warning_flag:
                events.append(self.audit.build(
                    reopened, AuditEventType.WARNING_FLAG_TRIGGERED, actor,
                    False, True, self.WARNING_REASON
                ))
            return self._commit(reopened, events)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _checkout(self, ticket_id: str) -> Ticket:
        """Private copy of the CURRENT ticket of its lineage."""
        ticket = self.store.get(ticket_id)
        if not self.store.is_current(ticket):
            raise ConflictError(
                f"Ticket {ticket.id} is superseded by "
                f"{self.store.current_id(ticket.reference_id)} and is read-only."
            )
        return ticket

    @staticmethod
    def _touch(ticket: Ticket) -> None:
        ticket.updated_at = datetime.utcnow()

    def _derived_status_events(
        self,
        ticket: Ticket,
        actor: User,
        before_status: TicketStatus,
        reason: str
    ) -> List[AuditEvent]:
        """Secondary event when an assignment change moved the ticket status."""
        if ticket.status == before_status:
            return []
        return [self.audit.build(
            ticket, AuditEventType.GLOBAL_STATUS_CHANGED, actor,
            before_status, ticket.status, reason
        )]

    def _commit(self, ticket: Ticket, events: List[AuditEvent]) -> Ticket:
        """
        Publish ticket and events together.

        No await in here: the state change and its audit trail become
        visible to readers at the same time.
        """
        committed = self.store.commit(ticket)
        recorded = self.audit.record_many(events)
        logger.info(
            "%s %s by %s: %s",
            recorded[0].type.value, ticket.id, recorded[0].actor_id, recorded[0].reason,
        )
        self.notifier.publish(committed, recorded)
        return committed
