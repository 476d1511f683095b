"""
CTS Audit Event Model

Append-only record of every ticket mutation.

old_value/new_value form a tagged union keyed by the event type, so a
replay consumer always knows the shape it is reading.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .ticket import (
    ContactSnapshot,
    DepartmentAssignment,
    Priority,
    Role,
    Ticket,
    TicketStatus,
)


class AuditEventType(str, Enum):
    TICKET_CREATED = "TICKET_CREATED"
    DEPT_ASSIGNED = "DEPT_ASSIGNED"
    TEAM_LEAD_ASSIGNED = "TEAM_LEAD_ASSIGNED"
    ASSIGNMENT_UPDATED = "ASSIGNMENT_UPDATED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    GLOBAL_STATUS_CHANGED = "GLOBAL_STATUS_CHANGED"
    CONTACT_INFO_UPDATED = "CONTACT_INFO_UPDATED"
    SUBSCRIPTION_TOGGLED = "SUBSCRIPTION_TOGGLED"
    TICKET_REOPENED = "TICKET_REOPENED"
    WARNING_FLAG_TRIGGERED = "WARNING_FLAG_TRIGGERED"


_ASSIGNMENT_LIST = (list, DepartmentAssignment)

# type -> ((old shape), (new shape)); a shape is (container, item) or a type
PAYLOAD_SHAPES: Dict[AuditEventType, Tuple[Any, Any]] = {
    AuditEventType.TICKET_CREATED: (type(None), Ticket),
    AuditEventType.DEPT_ASSIGNED: (_ASSIGNMENT_LIST, _ASSIGNMENT_LIST),
    AuditEventType.ASSIGNMENT_UPDATED: (_ASSIGNMENT_LIST, _ASSIGNMENT_LIST),
    AuditEventType.TEAM_LEAD_ASSIGNED: (DepartmentAssignment, DepartmentAssignment),
    AuditEventType.PRIORITY_CHANGED: (Priority, Priority),
    AuditEventType.GLOBAL_STATUS_CHANGED: (TicketStatus, TicketStatus),
    AuditEventType.CONTACT_INFO_UPDATED: (ContactSnapshot, ContactSnapshot),
    AuditEventType.SUBSCRIPTION_TOGGLED: (bool, bool),
    AuditEventType.TICKET_REOPENED: (str, str),
    AuditEventType.WARNING_FLAG_TRIGGERED: (bool, bool),
}


def _rehydrate(value: Any, shape: Any) -> Any:
    """Turn JSON-decoded payload parts back into their models and enums."""
    if isinstance(shape, tuple):
        item = shape[1]
        if isinstance(value, list):
            return [_rehydrate(v, item) for v in value]
        return value
    if isinstance(value, dict) and issubclass(shape, BaseModel):
        return shape.model_validate(value)
    if isinstance(value, str) and issubclass(shape, Enum):
        return shape(value)
    return value


def _matches(value: Any, shape: Any) -> bool:
    if isinstance(shape, tuple):
        container, item = shape
        return isinstance(value, container) and all(isinstance(v, item) for v in value)
    return isinstance(value, shape)


class AuditEvent(BaseModel):
    """
    Immutable audit entry.

    sequence is the insertion number inside the log and breaks
    created_at ties when replaying.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    sequence: int = 0
    ticket_id: str
    reference_id: str

    type: AuditEventType

    actor_id: str
    actor_role: Role

    old_value: Optional[Any] = None
    new_value: Optional[Any] = None

    reason: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="before")
    @classmethod
    def _rehydrate_payload(cls, data: Any) -> Any:
        # dumped events (API responses, log records) carry plain dicts
        if not isinstance(data, dict) or "type" not in data:
            return data
        try:
            old_shape, new_shape = PAYLOAD_SHAPES[AuditEventType(data["type"])]
        except ValueError:
            return data
        data = dict(data)
        data["old_value"] = _rehydrate(data.get("old_value"), old_shape)
        data["new_value"] = _rehydrate(data.get("new_value"), new_shape)
        return data

    @model_validator(mode="after")
    def _check_payload_shape(self) -> "AuditEvent":
        old_shape, new_shape = PAYLOAD_SHAPES[self.type]
        if not _matches(self.old_value, old_shape) or not _matches(self.new_value, new_shape):
            raise ValueError(
                f"{self.type.value} payload has the wrong shape: "
                f"{type(self.old_value).__name__} -> {type(self.new_value).__name__}"
            )
        return self

    @property
    def replay_key(self) -> tuple:
        return (self.created_at, self.sequence)

    def to_log_record(self) -> Dict[str, Any]:
        """Flat JSON-friendly dict for the audit log stream."""
        return self.model_dump(mode="json")


def assignment_list(assignments: List[DepartmentAssignment]) -> List[DepartmentAssignment]:
    """Deep snapshot of an assignment list for an event payload."""
    return [a.model_copy(deep=True) for a in assignments]
