"""
Notification Dispatch
=====================

Notifications are best-effort: the dispatcher schedules delivery as a
background task and swallows every failure, so a broken notifier can never
fail or slow down the operation that asked for it.
"""

import asyncio
from typing import Optional, Set

from ticketflow.shared.application.ports import INotifier
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class NotificationDispatcher:
    """Runs ``INotifier.notify`` calls in the background."""

    def __init__(self, notifier: Optional[INotifier]):
        self._notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, target: str, ticket_id: str, event: str) -> None:
        """Schedule a notification without waiting for it."""
        if self._notifier is None:
            logger.debug(
                "No notifier configured, dropping notification",
                extra={"target": target, "ticket_id": ticket_id, "event": event}
            )
            return

        task = asyncio.get_running_loop().create_task(self._send(target, ticket_id, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, target: str, ticket_id: str, event: str) -> None:
        try:
            delivered = await self._notifier.notify(target, ticket_id, event)
            if not delivered:
                logger.warning(
                    "Notification not delivered",
                    extra={"target": target, "ticket_id": ticket_id, "event": event}
                )
        except Exception:
            logger.exception(
                "Notification failed",
                extra={"target": target, "ticket_id": ticket_id, "event": event}
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
