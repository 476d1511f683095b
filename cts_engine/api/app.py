"""
CTS Engine API

FastAPI mapping of the engine's commands and queries:
- Ticket creation, routing and lifecycle commands
- Role-scoped dashboards and queues
- Audit trail by ticket and by lineage

The acting user is identified by the X-Actor-Id header, or by the signed-in
session when the header is absent, and resolved through the staff directory.
Engine errors map 1:1 to HTTP status codes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..config import Settings, configure_logging
from ..models import (
    AssignmentStatus,
    AuditEvent,
    Department,
    MarketingBranch,
    Priority,
    Ticket,
    TicketStatus,
    User,
)
from ..services import (
    Action,
    AuthorizationError,
    ConflictError,
    DashboardStats,
    EngineError,
    NotFoundError,
    ServiceContainer,
    ValidationError,
    build_container,
    require,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class RegisterClientRequest(BaseModel):
    name: str
    email: str
    phone: str


class SignInRequest(BaseModel):
    user_id: str


class UpdateProfileRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class CreateTicketRequest(BaseModel):
    title: str
    description: str
    priority: Priority = Priority.MEDIUM
    contact_email: str
    contact_phone: str


class AddAssignmentRequest(BaseModel):
    department: Department
    branch: Optional[MarketingBranch] = None
    reason: str


class AssignTeamLeadRequest(BaseModel):
    team_lead_id: str
    reason: str


class UpdateAssignmentRequest(BaseModel):
    status: AssignmentStatus
    reason: str


class UpdatePriorityRequest(BaseModel):
    priority: Priority
    reason: str


class UpdateStatusRequest(BaseModel):
    status: TicketStatus
    reason: str


class UpdateContactRequest(BaseModel):
    email: str
    phone: str
    reason: str


class ReopenRequest(BaseModel):
    reason: str


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    container: ServiceContainer = Depends(get_container)
) -> User:
    """Resolve the caller; unknown or missing ids are unauthenticated."""
    if not x_actor_id:
        signed_in = container.session.current_user
        if signed_in is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Actor-Id header required")
        x_actor_id = signed_in.id
    actor = container.directory.find(x_actor_id)
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown actor")
    return actor


# =============================================================================
# ERROR MAPPING
# =============================================================================

ERROR_STATUS = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
]


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"error": exc.kind, "detail": str(exc)}
    if isinstance(exc, AuthorizationError):
        body["action"] = exc.action
        body["role"] = exc.role
    return JSONResponse(status_code=status_code, content=body)


# =============================================================================
# HEALTH CHECK
# =============================================================================

@router.get("/health")
async def health_check(container: ServiceContainer = Depends(get_container)):
    return {
        "status": "healthy",
        "service": container.settings.service_name,
        "version": __version__
    }


# =============================================================================
# USER ENDPOINTS
# =============================================================================

@router.post("/users", status_code=status.HTTP_201_CREATED, response_model=User)
async def register_client(
    request: RegisterClientRequest,
    container: ServiceContainer = Depends(get_container)
):
    """
    Client sign-up. Phone must carry exactly 10 digits.
    """
    return container.directory.register_client(request.name, request.email, request.phone)


@router.post("/session", response_model=User)
async def sign_in(
    request: SignInRequest,
    container: ServiceContainer = Depends(get_container)
):
    """
    Remember an actor for calls that send no X-Actor-Id header.
    """
    return container.session.sign_in(container.directory.get(request.user_id))


@router.delete("/session", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(container: ServiceContainer = Depends(get_container)):
    container.session.sign_out()


@router.patch("/users/me", response_model=User)
async def update_profile(
    request: UpdateProfileRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Update the caller's email/phone. Existing ticket snapshots keep the old values.
    """
    return container.directory.update_profile(actor.id, request.email, request.phone)


@router.get("/staff", response_model=List[User])
async def list_staff(
    department: Optional[Department] = None,
    container: ServiceContainer = Depends(get_container)
):
    if department is not None:
        return container.directory.team_leads(department)
    return container.directory.staff()


# =============================================================================
# TICKET ENDPOINTS
# =============================================================================

@router.post("/tickets", status_code=status.HTTP_201_CREATED, response_model=Ticket)
async def create_ticket(
    request: CreateTicketRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Open a new ticket. It starts in compliance review with no assignments.
    """
    return await container.tickets.create_ticket(
        actor,
        title=request.title,
        description=request.description,
        priority=request.priority,
        contact_email=request.contact_email,
        contact_phone=request.contact_phone,
    )


@router.get("/tickets", response_model=List[Ticket])
async def list_tickets(
    q: Optional[str] = None,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Dashboard: the tickets this actor is scoped to, optionally searched.
    """
    return container.queries.dashboard(actor, search=q)


@router.get("/tickets/{ticket_id}", response_model=Ticket)
async def get_ticket(
    ticket_id: str,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return container.queries.ticket_for(actor, ticket_id)


@router.post("/tickets/{ticket_id}/assignments", response_model=Ticket)
async def add_assignment(
    ticket_id: str,
    request: AddAssignmentRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Route the ticket to a department (Marketing needs a branch).
    """
    return await container.tickets.add_department_assignment(
        actor, ticket_id, request.department, branch=request.branch, reason=request.reason
    )


@router.post("/tickets/{ticket_id}/assignments/{assignment_id}/team-lead", response_model=Ticket)
async def assign_team_lead(
    ticket_id: str,
    assignment_id: str,
    request: AssignTeamLeadRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return await container.tickets.assign_team_lead(
        actor, ticket_id, assignment_id, request.team_lead_id, reason=request.reason
    )


@router.patch("/tickets/{ticket_id}/assignments/{assignment_id}", response_model=Ticket)
async def update_assignment(
    ticket_id: str,
    assignment_id: str,
    request: UpdateAssignmentRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Progress or resolve an assignment. Closure readiness is recomputed.
    """
    return await container.tickets.update_assignment(
        actor, ticket_id, assignment_id, request.status, reason=request.reason
    )


@router.patch("/tickets/{ticket_id}/priority", response_model=Ticket)
async def update_priority(
    ticket_id: str,
    request: UpdatePriorityRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return await container.tickets.update_ticket_priority(
        actor, ticket_id, request.priority, reason=request.reason
    )


@router.patch("/tickets/{ticket_id}/status", response_model=Ticket)
async def update_status(
    ticket_id: str,
    request: UpdateStatusRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Manual status change, used for closure.
    """
    return await container.tickets.update_ticket_status(
        actor, ticket_id, request.status, reason=request.reason
    )


@router.patch("/tickets/{ticket_id}/contact", response_model=Ticket)
async def update_contact(
    ticket_id: str,
    request: UpdateContactRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return await container.tickets.update_ticket_contact(
        actor, ticket_id, request.email, request.phone, reason=request.reason
    )


@router.post("/tickets/{ticket_id}/subscription", response_model=Ticket)
async def toggle_subscription(
    ticket_id: str,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return await container.tickets.toggle_ticket_subscription(actor, ticket_id)


@router.post("/tickets/{ticket_id}/reopen", status_code=status.HTTP_201_CREATED, response_model=Ticket)
async def reopen_ticket(
    ticket_id: str,
    request: ReopenRequest,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Reopen a closed ticket. Returns the NEW ticket of the lineage.
    """
    return await container.tickets.reopen_ticket(actor, ticket_id, reason=request.reason)


# =============================================================================
# AUDIT ENDPOINTS
# =============================================================================

@router.get("/tickets/{ticket_id}/audit", response_model=List[AuditEvent])
async def get_ticket_audit(
    ticket_id: str,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Audit trail of one ticket, newest first.
    """
    container.queries.ticket_for(actor, ticket_id)
    return container.audit.timeline(ticket_id=ticket_id)


@router.get("/lineages/{reference_id}/audit", response_model=List[AuditEvent])
async def get_lineage_audit(
    reference_id: str,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    container.queries.lineage_for(actor, reference_id)
    return container.audit.timeline(reference_id=reference_id)


@router.get("/lineages/{reference_id}", response_model=List[Ticket])
async def get_lineage(
    reference_id: str,
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return container.queries.lineage_for(actor, reference_id)


# =============================================================================
# QUEUE ENDPOINTS
# =============================================================================

@router.get("/queues/compliance", response_model=List[Ticket])
async def get_compliance_queue(
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    require(actor, Action.VIEW_COMPLIANCE_QUEUE)
    return container.queries.compliance_queue()


@router.get("/queues/work", response_model=List[Ticket])
async def get_work_queue(
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    """
    Tickets routed to the caller's department (and branch).
    """
    return container.queries.work_view(actor)


@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    actor: User = Depends(get_actor),
    container: ServiceContainer = Depends(get_container)
):
    return container.queries.dashboard_stats(container.queries.dashboard(actor))


# =============================================================================
# APP SETUP
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    container: Optional[ServiceContainer] = None
) -> FastAPI:
    """
    Build an app that owns one engine instance.
    """
    settings = settings or (container.settings if container else Settings())
    configure_logging(settings.log_level)

    app = FastAPI(
        title="CTS Engine",
        description="Ticket lifecycle and department routing engine",
        version=__version__
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(EngineError, engine_error_handler)
    app.include_router(router)
    app.state.container = container or build_container(settings)

    logger.info("CTS engine ready (%s staff)", len(app.state.container.directory.staff()))
    return app


app = create_app()


# =============================================================================
# RUN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.container.settings.host, port=app.state.container.settings.port)
