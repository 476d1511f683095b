"""
Wiring of one engine instance.

The serving layer builds and owns a ServiceContainer; nothing in the
engine reaches for ambient global state.
"""

from dataclasses import dataclass
from typing import Iterable, MutableMapping, Optional

from ..config import Settings
from ..models.ticket import User
from .assignment import AssignmentResolver
from .audit import AuditLog
from .directory import DEFAULT_ROSTER, StaffDirectory
from .identifiers import IdGenerator
from .notifications import NotificationDispatcher, log_notification
from .queries import QueryService
from .session import SessionStore
from .store import TicketStore
from .ticket import TicketService


@dataclass
class ServiceContainer:
    settings: Settings
    ids: IdGenerator
    store: TicketStore
    audit: AuditLog
    directory: StaffDirectory
    notifier: NotificationDispatcher
    tickets: TicketService
    queries: QueryService
    session: SessionStore


def build_container(
    settings: Optional[Settings] = None,
    roster: Optional[Iterable[User]] = None,
    session_storage: Optional[MutableMapping[str, str]] = None
) -> ServiceContainer:
    """Fresh engine with its own state; tests build one per case."""
    settings = settings or Settings()
    if roster is None:
        roster = DEFAULT_ROSTER if settings.seed_staff_roster else []

    ids = IdGenerator()
    store = TicketStore()
    audit = AuditLog(ids)
    directory = StaffDirectory(
        ids,
        roster=roster,
        phone_country_code=settings.phone_country_code,
        phone_digits=settings.phone_digits,
    )
    notifier = NotificationDispatcher(enabled=settings.notifications_enabled)
    notifier.subscribe(log_notification)

    tickets = TicketService(
        store=store,
        audit=audit,
        resolver=AssignmentResolver(ids),
        directory=directory,
        notifier=notifier,
        ids=ids,
    )
    session = SessionStore(session_storage)
    session.restore()

    return ServiceContainer(
        settings=settings,
        ids=ids,
        store=store,
        audit=audit,
        directory=directory,
        notifier=notifier,
        tickets=tickets,
        queries=QueryService(store, sla_hours_urgent=settings.sla_hours_urgent),
        session=session,
    )
