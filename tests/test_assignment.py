"""Unit tests for the assignment resolver and the closure rule."""

import pytest

from cts_engine.models import (
    AssignmentStatus,
    Department,
    MarketingBranch,
    Role,
    Ticket,
    TicketStatus,
    User,
)
from cts_engine.services import (
    AssignmentResolver,
    ConflictError,
    IdGenerator,
    NotFoundError,
    ValidationError,
)

MANAGER = User(id="s4", name="Kevin Tech", email="kevin@cts.com", phone="+10000000004",
               role=Role.DEPT_MANAGER, department=Department.TECHNICAL)
LEAD = User(id="s5", name="Raj TeamLead", email="raj@cts.com", phone="+10000000005",
            role=Role.TEAM_LEAD, department=Department.TECHNICAL)


@pytest.fixture
def resolver():
    return AssignmentResolver(IdGenerator())


@pytest.fixture
def ticket():
    return Ticket(
        id="TKT-1", reference_id="REF-1", client_id="c1",
        title="t", description="d",
        contact_email="c1@example.com", contact_phone="+15550000000",
    )


class TestAdd:

    def test_new_assignment_is_not_assigned(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        assert assignment.status == AssignmentStatus.NOT_ASSIGNED
        assert assignment.ticket_id == "TKT-1"
        assert ticket.assignments == [assignment]

    def test_marketing_requires_branch(self, resolver, ticket):
        with pytest.raises(ValidationError):
            resolver.add(ticket, Department.MARKETING)
        assert ticket.assignments == []

    def test_branch_only_for_marketing(self, resolver, ticket):
        with pytest.raises(ValidationError):
            resolver.add(ticket, Department.SALES, MarketingBranch.AHM)

    def test_distinct_branches_then_duplicate(self, resolver, ticket):
        resolver.add(ticket, Department.MARKETING, MarketingBranch.AHM)
        resolver.add(ticket, Department.MARKETING, MarketingBranch.LKO)
        with pytest.raises(ConflictError):
            resolver.add(ticket, Department.MARKETING, MarketingBranch.AHM)
        assert len(ticket.assignments) == 2

    def test_duplicate_department(self, resolver, ticket):
        resolver.add(ticket, Department.TECHNICAL)
        with pytest.raises(ConflictError):
            resolver.add(ticket, Department.TECHNICAL)

    def test_compliance_is_not_a_routing_target(self, resolver, ticket):
        with pytest.raises(ValidationError):
            resolver.add(ticket, Department.COMPLIANCE)
        assert ticket.assignments == []


class TestTeamLeadAndStatus:

    def test_get_unknown_assignment(self, resolver, ticket):
        with pytest.raises(NotFoundError):
            resolver.get(ticket, "ASGN-404")

    def test_assign_once(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.require_unassigned(assignment)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        assert assignment.team_lead_id == "s5"
        assert assignment.manager_id == "s4"
        assert assignment.status == AssignmentStatus.ASSIGNED

        with pytest.raises(ConflictError):
            resolver.require_unassigned(assignment)

    def test_resolve_sets_resolved_at(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        resolver.set_status(assignment, AssignmentStatus.RESOLVED)
        assert assignment.resolved_at is not None

        resolver.set_status(assignment, AssignmentStatus.IN_PROGRESS)
        assert assignment.resolved_at is None

    def test_same_status_twice_conflicts(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        resolver.set_status(assignment, AssignmentStatus.RESOLVED)
        with pytest.raises(ConflictError):
            resolver.set_status(assignment, AssignmentStatus.RESOLVED)

    @pytest.mark.parametrize("status", [AssignmentStatus.NOT_ASSIGNED, AssignmentStatus.ASSIGNED])
    def test_cannot_set_routing_statuses(self, resolver, ticket, status):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        with pytest.raises(ValidationError):
            resolver.set_status(assignment, status)

    def test_progress_needs_team_lead(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        with pytest.raises(ConflictError):
            resolver.set_status(assignment, AssignmentStatus.IN_PROGRESS)


class TestClosureRule:

    def test_empty_list_never_ready(self, resolver, ticket):
        assert not resolver.is_ready_to_close(ticket)
        assert resolver.derive_status(ticket) == TicketStatus.COMPLIANCE_REVIEW

    def test_first_assignment_moves_to_resolution(self, resolver, ticket):
        resolver.add(ticket, Department.TECHNICAL)
        assert resolver.derive_status(ticket) == TicketStatus.IN_RESOLUTION

    def test_all_resolved_is_ready(self, resolver, ticket):
        for department in (Department.TECHNICAL, Department.SALES):
            assignment = resolver.add(ticket, department)
            resolver.assign_team_lead(assignment, LEAD, MANAGER)
        ticket.status = TicketStatus.IN_RESOLUTION

        resolver.set_status(ticket.assignments[0], AssignmentStatus.RESOLVED)
        assert resolver.derive_status(ticket) == TicketStatus.IN_RESOLUTION

        resolver.set_status(ticket.assignments[1], AssignmentStatus.RESOLVED)
        assert resolver.derive_status(ticket) == TicketStatus.READY_TO_CLOSE

    def test_ready_ticket_falls_back_when_work_reopens(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        resolver.set_status(assignment, AssignmentStatus.RESOLVED)
        ticket.status = TicketStatus.READY_TO_CLOSE

        resolver.add(ticket, Department.SALES)
        assert resolver.derive_status(ticket) == TicketStatus.IN_RESOLUTION

    def test_closed_never_moves(self, resolver, ticket):
        assignment = resolver.add(ticket, Department.TECHNICAL)
        resolver.assign_team_lead(assignment, LEAD, MANAGER)
        resolver.set_status(assignment, AssignmentStatus.RESOLVED)
        ticket.status = TicketStatus.CLOSED
        assert resolver.derive_status(ticket) == TicketStatus.CLOSED
