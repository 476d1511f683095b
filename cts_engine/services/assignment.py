"""
CTS Assignment Resolver

A ticket fans out to departments in parallel; each department (and, for
Marketing, each branch) gets exactly one assignment.

Closure rule: when the list is non-empty and every assignment is resolved,
the ticket is ready to close. This is recomputed after EVERY assignment
mutation, not only on explicit resolves.
"""

import logging
from datetime import datetime
from typing import Optional

from ..models.ticket import (
    AssignmentStatus,
    Department,
    DepartmentAssignment,
    MarketingBranch,
    Ticket,
    TicketStatus,
    User,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .identifiers import IdGenerator

logger = logging.getLogger(__name__)


class AssignmentResolver:
    """
    Owns the assignment list of a ticket.

    Works on the private ticket copy a command is building; nothing here
    commits or audits.
    """

    # Statuses a progress update may target; assigned only comes from
    # picking a team lead, not_assigned never comes back
    UPDATABLE_STATUSES = {
        AssignmentStatus.IN_PROGRESS,
        AssignmentStatus.WAITING_CLIENT,
        AssignmentStatus.RESOLVED,
    }

    def __init__(self, ids: IdGenerator):
        self.ids = ids

    def add(
        self,
        ticket: Ticket,
        department: Department,
        branch: Optional[MarketingBranch] = None
    ) -> DepartmentAssignment:
        """
        Route the ticket to one more department node.

        Marketing requires a branch; other departments take none. Compliance
        triages and is never a routing target.
        """
        if department == Department.COMPLIANCE:
            raise ValidationError("Tickets cannot be routed to the compliance department.")
        if department == Department.MARKETING and branch is None:
            raise ValidationError("Marketing assignments require a branch.")
        if department != Department.MARKETING and branch is not None:
            raise ValidationError(
                f"Branch only applies to Marketing, not {department.value}."
            )

        for existing in ticket.assignments:
            if existing.route == (department, branch):
                where = f"{department.value}/{branch.value}" if branch else department.value
                raise ConflictError(
                    f"Ticket {ticket.id} is already routed to {where}."
                )

        assignment = DepartmentAssignment(
            id=self.ids.assignment_id(),
            ticket_id=ticket.id,
            department=department,
            branch=branch,
            status=AssignmentStatus.NOT_ASSIGNED,
        )
        ticket.assignments.append(assignment)
        return assignment

    def get(self, ticket: Ticket, assignment_id: str) -> DepartmentAssignment:
        assignment = ticket.find_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError(
                f"Assignment {assignment_id} not found on ticket {ticket.id}."
            )
        return assignment

    def require_unassigned(self, assignment: DepartmentAssignment) -> None:
        """A lead is set ONCE; a second pick is rejected, never overwritten."""
        if assignment.team_lead_id is not None:
            raise ConflictError(
                f"Assignment {assignment.id} already has team lead "
                f"{assignment.team_lead_id}."
            )

    def assign_team_lead(
        self,
        assignment: DepartmentAssignment,
        team_lead: User,
        manager: User
    ) -> DepartmentAssignment:
        """Set the team lead; callers check require_unassigned() first."""
        assignment.team_lead_id = team_lead.id
        assignment.manager_id = manager.id
        assignment.status = AssignmentStatus.ASSIGNED
        return assignment

    def set_status(
        self,
        assignment: DepartmentAssignment,
        status: AssignmentStatus
    ) -> DepartmentAssignment:
        if status not in self.UPDATABLE_STATUSES:
            raise ValidationError(
                f"Assignment status cannot be set to {status.value} directly."
            )
        if assignment.status == status:
            raise ConflictError(f"Assignment {assignment.id} is already {status.value}.")
        if assignment.team_lead_id is None:
            raise ConflictError(
                f"Assignment {assignment.id} has no team lead yet."
            )

        assignment.status = status
        assignment.resolved_at = (
            datetime.utcnow() if status == AssignmentStatus.RESOLVED else None
        )
        return assignment

    @staticmethod
    def is_ready_to_close(ticket: Ticket) -> bool:
        return bool(ticket.assignments) and all(
            a.status == AssignmentStatus.RESOLVED for a in ticket.assignments
        )

    def derive_status(self, ticket: Ticket) -> TicketStatus:
        """
        Ticket status implied by the current assignment list.

        Never moves a closed ticket. A ready ticket that gains an open
        assignment goes back to in_resolution.
        """
        if ticket.status == TicketStatus.CLOSED:
            return ticket.status
        if self.is_ready_to_close(ticket):
            return TicketStatus.READY_TO_CLOSE
        if ticket.status == TicketStatus.READY_TO_CLOSE:
            return TicketStatus.IN_RESOLUTION
        if ticket.status == TicketStatus.COMPLIANCE_REVIEW and ticket.assignments:
            return TicketStatus.IN_RESOLUTION
        return ticket.status
