"""
CTS Ticket Model

Engagement tickets routed to departments in parallel.

Core principles:
1. Ticket = Client engagement request (one lineage per reference_id)
2. Assignments = Parallel department work units embedded in the ticket
3. Status converges to closure once every assignment is resolved
4. Reopen creates a NEW ticket in the same lineage, never edits the old one
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Set
from pydantic import BaseModel, Field, computed_field


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    CLIENT = "client"
    COMPLIANCE_MANAGER = "compliance_manager"
    DEPT_MANAGER = "dept_manager"
    TEAM_LEAD = "team_lead"


class Department(str, Enum):
    RESUME = "resume"
    MARKETING = "marketing"
    TECHNICAL = "technical"
    SALES = "sales"
    COMPLIANCE = "compliance"


class MarketingBranch(str, Enum):
    AHM = "AHM"
    LKO = "LKO"
    GGR = "GGR"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"    # Gets the SLA response window


class TicketStatus(str, Enum):
    COMPLIANCE_REVIEW = "compliance_review"  # Initial, waiting for triage
    WAITING_CLIENT = "waiting_client"        # Side branch of in_resolution
    IN_RESOLUTION = "in_resolution"
    READY_TO_CLOSE = "ready_to_close"        # Every assignment resolved
    CLOSED = "closed"                        # Terminal


class AssignmentStatus(str, Enum):
    NOT_ASSIGNED = "not_assigned"  # Routed, no team lead yet
    ASSIGNED = "assigned"          # Team lead set
    IN_PROGRESS = "in_progress"
    WAITING_CLIENT = "waiting_client"
    RESOLVED = "resolved"


# =============================================================================
# CORE MODELS
# =============================================================================

class User(BaseModel):
    """
    Actor identity as handed to the engine by the session layer.

    branch only means something for Marketing staff.
    """
    id: str
    name: str
    email: str
    phone: str
    role: Role
    department: Optional[Department] = None
    branch: Optional[MarketingBranch] = None


class DepartmentAssignment(BaseModel):
    """
    One department's (and for Marketing, one branch's) slice of a ticket.

    Has no life outside its ticket.
    """
    id: str
    ticket_id: str
    department: Department
    branch: Optional[MarketingBranch] = None

    manager_id: Optional[str] = None    # Dept manager who picked the lead
    team_lead_id: Optional[str] = None  # Set once, never re-assigned

    status: AssignmentStatus = AssignmentStatus.NOT_ASSIGNED

    created_at: datetime = Field(default_factory=datetime.utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def route(self) -> tuple:
        return (self.department, self.branch)


class Ticket(BaseModel):
    """
    The aggregate root.

    reference_id is shared by the whole reopen lineage.
    warning_flag is derived from reopen_count and cannot be set directly.
    """
    id: str
    reference_id: str
    parent_ticket_id: Optional[str] = None

    client_id: str
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    status: TicketStatus = TicketStatus.COMPLIANCE_REVIEW

    reopen_count: int = Field(default=0, ge=0)

    # Point-in-time snapshot, independent of the live User record
    contact_email: str
    contact_phone: str

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    closed_at: Optional[datetime] = None

    assignments: List[DepartmentAssignment] = Field(default_factory=list)
    subscribed_users: Set[str] = Field(default_factory=set)

    @computed_field
    @property
    def warning_flag(self) -> bool:
        return self.reopen_count > 1

    def find_assignment(self, assignment_id: str) -> Optional[DepartmentAssignment]:
        for assignment in self.assignments:
            if assignment.id == assignment_id:
                return assignment
        return None


class ContactSnapshot(BaseModel):
    """Contact pair as recorded on CONTACT_INFO_UPDATED."""
    email: str
    phone: str
