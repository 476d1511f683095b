"""
CTS Notification Dispatcher

Fire-and-forget fan-out of committed audit events to ticket subscribers.

A handler failure is logged and dropped: a committed state change is never
rolled back because an email (or anything else) could not be sent.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Set

from pydantic import BaseModel, Field

from ..models.audit import AuditEvent
from ..models.ticket import Ticket

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """What a delivery channel receives."""
    ticket_id: str
    reference_id: str
    event: AuditEvent
    recipients: List[str] = Field(default_factory=list)


NotificationHandler = Callable[[Notification], Awaitable[None]]


class NotificationDispatcher:
    """
    Delivery channels register handlers; the ticket service publishes after
    every commit.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._handlers: List[NotificationHandler] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, handler: NotificationHandler) -> None:
        self._handlers.append(handler)

    def publish(self, ticket: Ticket, events: List[AuditEvent]) -> None:
        """
        Schedule delivery and return immediately.

        Recipients are the ticket's subscribers minus the actor.
        """
        if not self.enabled or not self._handlers:
            return

        loop = asyncio.get_running_loop()
        for event in events:
            recipients = sorted(
                user_id for user_id in ticket.subscribed_users
                if user_id != event.actor_id
            )
            if not recipients:
                continue
            notification = Notification(
                ticket_id=ticket.id,
                reference_id=ticket.reference_id,
                event=event,
                recipients=recipients,
            )
            for handler in self._handlers:
                task = loop.create_task(self._deliver(handler, notification))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: NotificationHandler, notification: Notification) -> None:
        try:
            await handler(notification)
        except Exception:
            logger.exception(
                "Notification handler failed for %s on %s",
                notification.event.type.value, notification.ticket_id,
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))


async def log_notification(notification: Notification) -> None:
    """Default channel: write the would-be email to the log."""
    logger.info(
        "Notify %s: %s on %s (%s)",
        ", ".join(notification.recipients),
        notification.event.type.value,
        notification.ticket_id,
        notification.event.reason,
    )
