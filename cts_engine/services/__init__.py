"""
CTS Engine Services

Core business logic for ticket routing and lifecycle.
"""

from .errors import (
    EngineError,
    ValidationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from .identifiers import IdGenerator
from .validation import normalize_phone
from .access import Action, can_perform, require
from .audit import AuditLog
from .assignment import AssignmentResolver
from .store import TicketStore
from .directory import StaffDirectory, DEFAULT_ROSTER
from .session import SessionStore, SESSION_KEY
from .notifications import Notification, NotificationDispatcher
from .ticket import TicketService
from .queries import QueryService, DashboardStats
from .container import ServiceContainer, build_container

__all__ = [
    # Errors
    "EngineError", "ValidationError", "AuthorizationError", "ConflictError", "NotFoundError",

    # Leaves
    "IdGenerator", "normalize_phone", "AuditLog",

    # Access policy
    "Action", "can_perform", "require",

    # State machine
    "AssignmentResolver", "TicketStore", "TicketService",

    # Collaborators
    "StaffDirectory", "DEFAULT_ROSTER", "SessionStore", "SESSION_KEY",
    "Notification", "NotificationDispatcher",

    # Read side
    "QueryService", "DashboardStats",

    # Wiring
    "ServiceContainer", "build_container",
]
