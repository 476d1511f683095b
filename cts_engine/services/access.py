"""
CTS Access Policy

One predicate table decides who may do what, consulted by every command
handler instead of re-deriving role checks at each call site.

Rules:
1. Only a Client opens tickets, and only for themself
2. Compliance routes to departments and closes ready tickets
3. Dept managers pick team leads inside their own department/branch
4. Only the assigned team lead resolves an assignment
5. Only the owning client reopens or edits the contact snapshot
6. Anyone may (un)subscribe, on any ticket, at any status
7. Reads follow the same scoping: owner, routed staff, or compliance
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from ..models.ticket import (
    AssignmentStatus,
    DepartmentAssignment,
    Role,
    Ticket,
    TicketStatus,
    User,
)
from .errors import AuthorizationError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE_TICKET = "create_ticket"
    ADD_ASSIGNMENT = "add_assignment"
    ASSIGN_TEAM_LEAD = "assign_team_lead"
    RESOLVE_ASSIGNMENT = "resolve_assignment"
    UPDATE_ASSIGNMENT = "update_assignment"
    CHANGE_PRIORITY = "change_priority"
    CHANGE_STATUS = "change_status"
    CLOSE_TICKET = "close_ticket"
    REOPEN_TICKET = "reopen_ticket"
    UPDATE_CONTACT = "update_contact"
    TOGGLE_SUBSCRIPTION = "toggle_subscription"
    VIEW_TICKET = "view_ticket"
    VIEW_COMPLIANCE_QUEUE = "view_compliance_queue"


def _is_open(ticket: Optional[Ticket]) -> bool:
    return ticket is not None and ticket.status != TicketStatus.CLOSED


def _owns(actor: User, ticket: Optional[Ticket]) -> bool:
    return ticket is not None and actor.role == Role.CLIENT and ticket.client_id == actor.id


def _manages(actor: User, assignment: Optional[DepartmentAssignment]) -> bool:
    """Dept manager of the assignment's department, and branch when it has one."""
    if assignment is None or actor.role != Role.DEPT_MANAGER:
        return False
    if actor.department != assignment.department:
        return False
    return assignment.branch is None or actor.branch == assignment.branch


def _leads(actor: User, assignment: Optional[DepartmentAssignment]) -> bool:
    return (
        assignment is not None
        and actor.role == Role.TEAM_LEAD
        and assignment.team_lead_id == actor.id
    )


def routed_to(actor: User, ticket: Ticket) -> bool:
    """Ticket has an assignment in the actor's department (and branch, when both have one)."""
    for assignment in ticket.assignments:
        if assignment.department != actor.department:
            continue
        if assignment.branch is None or actor.branch is None or assignment.branch == actor.branch:
            return True
    return False


def _create_ticket(actor, ticket, assignment):
    # ticket here is the draft; client_id must be the actor
    return actor.role == Role.CLIENT and (ticket is None or ticket.client_id == actor.id)


def _add_assignment(actor, ticket, assignment):
    return actor.role == Role.COMPLIANCE_MANAGER and _is_open(ticket)


def _assign_team_lead(actor, ticket, assignment):
    return _manages(actor, assignment)


def _resolve_assignment(actor, ticket, assignment):
    return _leads(actor, assignment) and assignment.status != AssignmentStatus.RESOLVED


def _update_assignment(actor, ticket, assignment):
    return _is_open(ticket) and (_leads(actor, assignment) or _manages(actor, assignment))


def _change_priority(actor, ticket, assignment):
    # No status restriction, closed tickets included
    return actor.role in (Role.COMPLIANCE_MANAGER, Role.DEPT_MANAGER)


def _change_status(actor, ticket, assignment):
    return actor.role in (Role.COMPLIANCE_MANAGER, Role.DEPT_MANAGER) and _is_open(ticket)


def _close_ticket(actor, ticket, assignment):
    return (
        actor.role == Role.COMPLIANCE_MANAGER
        and ticket is not None
        and ticket.status == TicketStatus.READY_TO_CLOSE
    )


def _reopen_ticket(actor, ticket, assignment):
    return _owns(actor, ticket) and ticket.status == TicketStatus.CLOSED


def _update_contact(actor, ticket, assignment):
    return _owns(actor, ticket) and _is_open(ticket)


def _toggle_subscription(actor, ticket, assignment):
    return True


def _view_ticket(actor, ticket, assignment):
    if ticket is None:
        return False
    if actor.role == Role.COMPLIANCE_MANAGER:
        return True
    if actor.role == Role.CLIENT:
        return _owns(actor, ticket)
    return routed_to(actor, ticket)


def _view_compliance_queue(actor, ticket, assignment):
    return actor.role == Role.COMPLIANCE_MANAGER


POLICY: Dict[Action, Callable[[User, Optional[Ticket], Optional[DepartmentAssignment]], bool]] = {
    Action.CREATE_TICKET: _create_ticket,
    Action.ADD_ASSIGNMENT: _add_assignment,
    Action.ASSIGN_TEAM_LEAD: _assign_team_lead,
    Action.RESOLVE_ASSIGNMENT: _resolve_assignment,
    Action.UPDATE_ASSIGNMENT: _update_assignment,
    Action.CHANGE_PRIORITY: _change_priority,
    Action.CHANGE_STATUS: _change_status,
    Action.CLOSE_TICKET: _close_ticket,
    Action.REOPEN_TICKET: _reopen_ticket,
    Action.UPDATE_CONTACT: _update_contact,
    Action.TOGGLE_SUBSCRIPTION: _toggle_subscription,
    Action.VIEW_TICKET: _view_ticket,
    Action.VIEW_COMPLIANCE_QUEUE: _view_compliance_queue,
}


def can_perform(
    actor: User,
    action: Action,
    ticket: Optional[Ticket] = None,
    assignment: Optional[DepartmentAssignment] = None
) -> bool:
    """Pure check, no side effects."""
    return bool(POLICY[action](actor, ticket, assignment))


def require(
    actor: User,
    action: Action,
    ticket: Optional[Ticket] = None,
    assignment: Optional[DepartmentAssignment] = None
) -> None:
    """
    Raise AuthorizationError if the policy denies the action.

    Use before any mutation in a command handler.
    """
    if not can_perform(actor, action, ticket, assignment):
        logger.warning(
            "Denied %s for %s (%s) on %s",
            action.value, actor.id, actor.role.value,
            ticket.id if ticket is not None else "-",
        )
        raise AuthorizationError(action.value, actor.role.value)
