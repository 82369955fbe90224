"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketflow.config import ACTIVE_SLA_STATUSES, OPEN_SLA_STATUSES, SLAStatus
from ticketflow.core import RepositoryException
from ticketflow.sla.application.services import ISLARepository
from ticketflow.sla.domain import SlaPauseEvent, TicketSLA
from ticketflow.sla.infrastructure.models import SlaPauseEventModel, TicketSLAModel
from ticketflow.workflow.infrastructure.models import TicketModel


def _to_seconds(value: Optional[timedelta]) -> Optional[float]:
    return value.total_seconds() if value is not None else None


def _to_delta(value: Optional[float]) -> Optional[timedelta]:
    return timedelta(seconds=value) if value is not None else None


class SQLAlchemySLARepository(ISLARepository):
    """
    SQLAlchemy implementation of SLA repository.

    Handles persistence of TicketSLA and SlaPauseEvent entities using
    async SQLAlchemy. ``for_update`` reads take a row lock for the rest of
    the transaction.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # ========== Mapping ==========

    @staticmethod
    def _to_domain(model: TicketSLAModel) -> TicketSLA:
        return TicketSLA(
            id=model.id,
            ticket_id=model.ticket_id,
            tenant_id=model.tenant_id,
            sla_name=model.sla_name,
            status=SLAStatus(model.status),
            start_time=model.start_time,
            due_time=model.due_time,
            created_at=model.created_at,
            total_pause_duration=timedelta(seconds=model.total_pause_seconds or 0.0),
            pause_start_time=model.pause_start_time,
            pause_reason=model.pause_reason,
            paused_by=model.paused_by,
            paused_automatically=model.paused_automatically,
            is_breached=model.is_breached,
            breach_time=model.breach_time,
            breach_duration=_to_delta(model.breach_seconds),
            completed_at=model.completed_at,
            actual_duration=_to_delta(model.actual_seconds),
        )

    @staticmethod
    def _apply(model: TicketSLAModel, sla: TicketSLA) -> None:
        model.ticket_id = sla.ticket_id
        model.tenant_id = sla.tenant_id
        model.sla_name = sla.sla_name
        model.status = sla.status.value
        model.start_time = sla.start_time
        model.due_time = sla.due_time
        model.created_at = sla.created_at
        model.total_pause_seconds = sla.total_pause_duration.total_seconds()
        model.pause_start_time = sla.pause_start_time
        model.pause_reason = sla.pause_reason
        model.paused_by = sla.paused_by
        model.paused_automatically = sla.paused_automatically
        model.is_breached = sla.is_breached
        model.breach_time = sla.breach_time
        model.breach_seconds = _to_seconds(sla.breach_duration)
        model.completed_at = sla.completed_at
        model.actual_seconds = _to_seconds(sla.actual_duration)

    @staticmethod
    def _event_to_domain(model: SlaPauseEventModel) -> SlaPauseEvent:
        return SlaPauseEvent(
            id=model.id,
            ticket_sla_id=model.ticket_sla_id,
            paused_at=model.paused_at,
            pause_reason=model.pause_reason,
            paused_by=model.paused_by,
            resumed_at=model.resumed_at,
            resumed_by=model.resumed_by,
            pause_duration=_to_delta(model.pause_seconds),
        )

    # ========== Timers ==========

    async def _get_model(self, ticket_sla_id: str, for_update: bool = False) -> Optional[TicketSLAModel]:
        stmt = select(TicketSLAModel).where(TicketSLAModel.id == ticket_sla_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, ticket_sla_id: str, for_update: bool = False) -> Optional[TicketSLA]:
        model = await self._get_model(ticket_sla_id, for_update)
        return self._to_domain(model) if model else None

    async def get_open_for_ticket(
        self,
        ticket_id: str,
        for_update: bool = False
    ) -> Optional[TicketSLA]:
        stmt = (
            select(TicketSLAModel)
            .where(and_(
                TicketSLAModel.ticket_id == ticket_id,
                TicketSLAModel.status.in_([s.value for s in OPEN_SLA_STATUSES]),
            ))
            .order_by(TicketSLAModel.created_at.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_for_ticket(self, ticket_id: str) -> List[TicketSLA]:
        stmt = (
            select(TicketSLAModel)
            .where(TicketSLAModel.ticket_id == ticket_id)
            .order_by(TicketSLAModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def add(self, sla: TicketSLA) -> None:
        model = TicketSLAModel(id=sla.id)
        self._apply(model, sla)
        self._session.add(model)
        await self._session.flush()

    async def save(self, sla: TicketSLA) -> None:
        model = await self._get_model(sla.id)
        if model is None:
            raise RepositoryException(f"SLA {sla.id} not found")
        self._apply(model, sla)
        await self._session.flush()

    async def list_running(self, for_update: bool = False) -> List[TicketSLA]:
        stmt = (
            select(TicketSLAModel)
            .where(and_(
                TicketSLAModel.status.in_([s.value for s in ACTIVE_SLA_STATUSES]),
                TicketSLAModel.is_breached.is_(False),
            ))
            .order_by(TicketSLAModel.due_time.asc())
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_in_progress_due_after(self, now: datetime) -> List[TicketSLA]:
        stmt = (
            select(TicketSLAModel)
            .where(and_(
                TicketSLAModel.status == SLAStatus.IN_PROGRESS.value,
                TicketSLAModel.due_time > now,
            ))
            .order_by(TicketSLAModel.due_time.asc())
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    async def list_breaches(
        self,
        since: datetime,
        ticket_type: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[TicketSLA]:
        conditions = [
            TicketSLAModel.is_breached.is_(True),
            TicketSLAModel.breach_time >= since,
        ]
        if ticket_type:
            conditions.append(TicketModel.type == ticket_type)
        if priority:
            conditions.append(TicketModel.priority == priority)

        stmt = (
            select(TicketSLAModel)
            .join(TicketModel, TicketModel.id == TicketSLAModel.ticket_id)
            .where(and_(*conditions))
            .order_by(TicketSLAModel.breach_time.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    # ========== Pause events ==========

    async def get_open_pause_event(self, ticket_sla_id: str) -> Optional[SlaPauseEvent]:
        stmt = (
            select(SlaPauseEventModel)
            .where(and_(
                SlaPauseEventModel.ticket_sla_id == ticket_sla_id,
                SlaPauseEventModel.resumed_at.is_(None),
            ))
            .order_by(SlaPauseEventModel.paused_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._event_to_domain(model) if model else None

    async def add_pause_event(self, event: SlaPauseEvent) -> None:
        self._session.add(SlaPauseEventModel(
            id=event.id,
            ticket_sla_id=event.ticket_sla_id,
            paused_at=event.paused_at,
            pause_reason=event.pause_reason,
            paused_by=event.paused_by,
            resumed_at=event.resumed_at,
            resumed_by=event.resumed_by,
            pause_seconds=_to_seconds(event.pause_duration),
        ))
        await self._session.flush()

    async def save_pause_event(self, event: SlaPauseEvent) -> None:
        model = await self._session.get(SlaPauseEventModel, event.id)
        if model is None:
            raise RepositoryException(f"Pause event {event.id} not found")
        model.resumed_at = event.resumed_at
        model.resumed_by = event.resumed_by
        model.pause_seconds = _to_seconds(event.pause_duration)
        await self._session.flush()

    async def list_pause_events(self, ticket_sla_id: str) -> List[SlaPauseEvent]:
        stmt = (
            select(SlaPauseEventModel)
            .where(SlaPauseEventModel.ticket_sla_id == ticket_sla_id)
            .order_by(SlaPauseEventModel.paused_at.asc())
        )
        result = await self._session.execute(stmt)
        return [self._event_to_domain(m) for m in result.scalars().all()]
