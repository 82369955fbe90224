"""
SQLAlchemy Unit of Work
=======================

One ``AsyncSession`` per ``async with`` block; every repository of the
block shares it, so a transition, its history, its comments and the SLA
bookkeeping commit or roll back together.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketflow.core.unit_of_work import AbstractUnitOfWork
from ticketflow.infrastructure.database import get_session_maker
from ticketflow.sla.infrastructure.repositories import SQLAlchemySLARepository
from ticketflow.workflow.infrastructure.repositories import (
    SQLAlchemyApprovalRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransitionHistoryRepository,
    SQLAlchemyUserDirectory,
    SQLAlchemyWorkflowRepository,
)


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """Unit of work backed by a single async session."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        super().__init__()
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        maker = self._session_maker or get_session_maker()
        self._session = maker()

        self.tickets = SQLAlchemyTicketRepository(self._session)
        self.users = SQLAlchemyUserDirectory(self._session)
        self.workflows = SQLAlchemyWorkflowRepository(self._session)
        self.history = SQLAlchemyTransitionHistoryRepository(self._session)
        self.comments = SQLAlchemyCommentRepository(self._session)
        self.approvals = SQLAlchemyApprovalRepository(self._session)
        self.slas = SQLAlchemySLARepository(self._session)

        await super().__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None

    async def _commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()


def sqlalchemy_uow_factory(session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
    """Zero-argument factory handed to the application services."""
    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker)
    return factory
