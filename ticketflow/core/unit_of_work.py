"""
Unit of Work
============

Transaction-scoped access to every repository the engine touches.

Usage:
    async with uow:
        ticket = await uow.tickets.get(ticket_id, for_update=True)
        ...
        await uow.commit()

Leaving the block without ``commit()`` rolls everything back. Callbacks
registered with ``on_commit`` run only after a successful commit and can
never fail the operation that registered them.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, List

from ticketflow.shared.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from ticketflow.sla.application.services import ISLARepository
    from ticketflow.workflow.application.services import (
        IApprovalRepository,
        ICommentRepository,
        ITicketRepository,
        ITransitionHistoryRepository,
        IUserDirectory,
        IWorkflowRepository,
    )

logger = get_logger(__name__)


class AbstractUnitOfWork(ABC):
    """Base unit of work; concrete subclasses bind the repositories."""

    tickets: "ITicketRepository"
    users: "IUserDirectory"
    workflows: "IWorkflowRepository"
    history: "ITransitionHistoryRepository"
    comments: "ICommentRepository"
    approvals: "IApprovalRepository"
    slas: "ISLARepository"

    def __init__(self) -> None:
        self._committed = False
        self._post_commit: List[Callable[[], None]] = []

    async def __aenter__(self) -> "AbstractUnitOfWork":
        self._committed = False
        self._post_commit = []
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._committed:
            await self.rollback()
            self._post_commit = []

    async def commit(self) -> None:
        """Commit the transaction, then run post-commit callbacks."""
        await self._commit()
        self._committed = True

        callbacks, self._post_commit = self._post_commit, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Post-commit callback failed")

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Register fire-and-forget work to run after a successful commit."""
        self._post_commit.append(callback)

    @abstractmethod
    async def _commit(self) -> None:
        """Commit the underlying transaction."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard every change made in this unit of work."""
