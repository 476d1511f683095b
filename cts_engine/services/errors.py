"""
CTS Engine Errors

Every rejection happens before any state is touched, so all of these are
recoverable: the caller fixes the input and issues the command again.
"""

from typing import Optional


class EngineError(Exception):
    """Base for all command rejections."""
    kind = "engine_error"


class ValidationError(EngineError):
    """Raised on malformed input (empty field, bad phone, missing reason)."""
    kind = "validation_error"


class AuthorizationError(EngineError):
    """Raised when the actor may not perform the action in the current state."""
    kind = "authorization_error"

    def __init__(self, action: str, role: Optional[str], message: Optional[str] = None):
        self.action = action
        self.role = role
        super().__init__(
            message or f"Role '{role}' is not allowed to {action.replace('_', ' ')}."
        )


class ConflictError(EngineError):
    """Raised when a command contradicts the current entity state."""
    kind = "conflict_error"


class NotFoundError(EngineError):
    """Raised when a referenced ticket, assignment or user does not exist."""
    kind = "not_found"
