"""
CTS Engine Models

Tickets, department assignments, actors and the audit trail.
"""

from .ticket import (
    # Enums
    Role,
    Department,
    MarketingBranch,
    Priority,
    TicketStatus,
    AssignmentStatus,

    # Core models
    User,
    Ticket,
    DepartmentAssignment,
    ContactSnapshot,
)
from .audit import AuditEvent, AuditEventType, PAYLOAD_SHAPES, assignment_list

__all__ = [
    "Role", "Department", "MarketingBranch", "Priority", "TicketStatus", "AssignmentStatus",
    "User", "Ticket", "DepartmentAssignment", "ContactSnapshot",
    "AuditEvent", "AuditEventType", "PAYLOAD_SHAPES", "assignment_list",
]
