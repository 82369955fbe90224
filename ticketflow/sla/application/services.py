"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: the timer service owns the timer lifecycle, the
  sweeper owns background breach detection
- Dependency Inversion: depend on abstractions (repositories, unit of work,
  definition provider), not concrete implementations

Public methods open their own unit of work. ``on_status_changed`` joins the
caller's unit of work so timer changes commit or roll back together with
the ticket transition that caused them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from ticketflow.config import (
    ACTIVE_SLA_STATUSES,
    SLAStatus,
    settings,
)
from ticketflow.core import DomainException, ForbiddenError, ResourceNotFoundException
from ticketflow.core.unit_of_work import AbstractUnitOfWork
from ticketflow.shared.application import IActivitySink, NotificationDispatcher
from ticketflow.shared.domain.clock import Clock, utc_now
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.sla.domain import BreachStatus, SLADefinition, SlaPauseEvent, TicketSLA
from ticketflow.workflow.domain.entities import Actor, Ticket, TicketComment

logger = get_logger(__name__)

SLA_BREACH_EVENT = "sla.breached"
SLA_BREACH_TARGET = "assignee"


def _actor_id(actor: Optional[Actor]) -> Optional[str]:
    return actor.id if actor is not None else None


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISLARepository(ABC):
    """Interface for SLA timer and pause event data access."""

    @abstractmethod
    async def get(self, ticket_sla_id: str, for_update: bool = False) -> Optional[TicketSLA]:
        """Get a timer by ID, optionally locking the row."""

    @abstractmethod
    async def get_open_for_ticket(
        self,
        ticket_id: str,
        for_update: bool = False
    ) -> Optional[TicketSLA]:
        """Most recent timer of the ticket that is not completed."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketSLA]:
        """Every timer of the ticket, newest first."""

    @abstractmethod
    async def add(self, sla: TicketSLA) -> None:
        """Persist a new timer."""

    @abstractmethod
    async def save(self, sla: TicketSLA) -> None:
        """Persist changes to an existing timer."""

    @abstractmethod
    async def list_running(self, for_update: bool = False) -> List[TicketSLA]:
        """Timers that can still breach: active and not yet breached."""

    @abstractmethod
    async def list_in_progress_due_after(self, now: datetime) -> List[TicketSLA]:
        """In-progress timers whose deadline is still ahead, earliest first."""

    @abstractmethod
    async def list_breaches(
        self,
        since: datetime,
        ticket_type: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[TicketSLA]:
        """Breached timers first detected at or after ``since``, newest first."""

    @abstractmethod
    async def get_open_pause_event(self, ticket_sla_id: str) -> Optional[SlaPauseEvent]:
        """The unresumed pause event of a timer, if any."""

    @abstractmethod
    async def add_pause_event(self, event: SlaPauseEvent) -> None:
        """Persist a new pause event."""

    @abstractmethod
    async def save_pause_event(self, event: SlaPauseEvent) -> None:
        """Persist a closed pause event."""

    @abstractmethod
    async def list_pause_events(self, ticket_sla_id: str) -> List[SlaPauseEvent]:
        """Pause history of a timer, oldest first."""


class ISLADefinitionProvider(ABC):
    """Interface for SLA target lookup."""

    @abstractmethod
    def get_definition(
        self,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str] = None
    ) -> SLADefinition:
        """Resolve the SLA definition for a ticket type, priority and tenant."""

    def compute_due_time(
        self,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str] = None
    ) -> timedelta:
        """Allowed duration for a ticket type, priority and tenant."""
        return self.get_definition(ticket_type, priority, tenant_id).target


@dataclass(frozen=True)
class TimerOverview:
    """A timer with its pause history and current standing."""
    sla: TicketSLA
    pause_events: List[SlaPauseEvent]
    standing: BreachStatus


# ========== Application Services ==========

class SLATimerService:
    """
    Service for the SLA timer lifecycle.

    start -> pause <-> resume -> complete, with breach detection at any
    point before completion.
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        definitions: ISLADefinitionProvider,
        activity: Optional[IActivitySink] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Clock = utc_now,
        pause_statuses: Optional[Iterable[str]] = None,
        completion_statuses: Optional[Iterable[str]] = None,
        superuser_role: Optional[str] = None,
    ):
        self._uow_factory = uow_factory
        self._superuser_role = superuser_role or settings.superuser_role
        self._definitions = definitions
        self._activity = activity
        self._dispatcher = dispatcher
        self._clock = clock
        self._pause_statuses = frozenset(
            settings.sla_pause_statuses if pause_statuses is None else pause_statuses
        )
        self._completion_statuses = frozenset(
            settings.sla_completion_statuses if completion_statuses is None else completion_statuses
        )

    # ---------- lifecycle ----------

    async def start(
        self,
        ticket_id: str,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str],
        actor_id: Optional[str] = None,
    ) -> TicketSLA:
        """
        Start a timer for a ticket; its deadline is now + the resolved target.

        The ticket row stays locked until commit, so concurrent starts for
        the same ticket are serialized.

        Raises:
            ResourceNotFoundException: Ticket does not exist
            DomainException: The ticket already has an open timer
        """
        async with self._uow_factory() as uow:
            await self._lock_ticket(uow, ticket_id)
            sla = await self._start(uow, ticket_id, ticket_type, priority, tenant_id, actor_id)
            await uow.commit()
        return sla

    async def start_for_ticket(self, ticket_id: str, actor: Optional[Actor] = None) -> TicketSLA:
        """
        Start a timer using the ticket's own type, priority and tenant.

        ``actor`` is None when the system acts; a user is limited to
        tickets of their own tenant.
        """
        async with self._uow_factory() as uow:
            ticket = await self._lock_ticket(uow, ticket_id)
            self._authorize(actor, ticket.tenant_id, ticket_id)
            sla = await self._start(
                uow, ticket.id, ticket.type, ticket.priority, ticket.tenant_id, _actor_id(actor)
            )
            await uow.commit()
        return sla

    async def pause(self, ticket_sla_id: str, actor_id: Optional[str], reason: str) -> TicketSLA:
        """
        Pause a running timer.

        Raises:
            ValidationException: Empty reason
            SLANotActiveError: Timer is paused or completed
        """
        async with self._uow_factory() as uow:
            sla = await self._get_locked(uow, ticket_sla_id)
            await self._pause(uow, sla, actor_id, reason)
            await uow.commit()
        return sla

    async def pause_for_ticket(self, ticket_id: str, actor: Optional[Actor], reason: str) -> TicketSLA:
        async with self._uow_factory() as uow:
            sla = await self._get_open_locked(uow, ticket_id)
            self._authorize(actor, sla.tenant_id, ticket_id)
            await self._pause(uow, sla, _actor_id(actor), reason)
            await uow.commit()
        return sla

    async def resume(self, ticket_sla_id: str, actor_id: Optional[str]) -> datetime:
        """
        Resume a paused timer and return its new deadline.

        Raises:
            SLANotActiveError: Timer is not paused
        """
        async with self._uow_factory() as uow:
            sla = await self._get_locked(uow, ticket_sla_id)
            due_time = await self._resume(uow, sla, actor_id)
            await uow.commit()
        return due_time

    async def resume_for_ticket(self, ticket_id: str, actor: Optional[Actor]) -> datetime:
        async with self._uow_factory() as uow:
            sla = await self._get_open_locked(uow, ticket_id)
            self._authorize(actor, sla.tenant_id, ticket_id)
            due_time = await self._resume(uow, sla, _actor_id(actor))
            await uow.commit()
        return due_time

    async def check_breach(self, ticket_sla_id: str, now: Optional[datetime] = None) -> BreachStatus:
        """Evaluate a timer and persist a breach detected for the first time."""
        async with self._uow_factory() as uow:
            sla = await self._get_locked(uow, ticket_sla_id)
            status = await self.evaluate(uow, sla, now or self._clock())
            await uow.commit()
        return status

    async def check_breach_for_ticket(self, ticket_id: str, now: Optional[datetime] = None) -> BreachStatus:
        async with self._uow_factory() as uow:
            sla = await self._get_open_locked(uow, ticket_id)
            status = await self.evaluate(uow, sla, now or self._clock())
            await uow.commit()
        return status

    async def complete(self, ticket_sla_id: str, now: Optional[datetime] = None) -> TicketSLA:
        """
        Stop a running timer for good.

        Raises:
            SLANotActiveError: Timer is paused or already completed
        """
        async with self._uow_factory() as uow:
            sla = await self._get_locked(uow, ticket_sla_id)
            await self._complete(uow, sla, now or self._clock())
            await uow.commit()
        return sla

    async def complete_for_ticket(
        self,
        ticket_id: str,
        actor: Optional[Actor] = None,
        now: Optional[datetime] = None
    ) -> TicketSLA:
        async with self._uow_factory() as uow:
            sla = await self._get_open_locked(uow, ticket_id)
            self._authorize(actor, sla.tenant_id, ticket_id)
            await self._complete(uow, sla, now or self._clock())
            await uow.commit()
        return sla

    async def reprioritize(
        self,
        ticket_id: str,
        priority: str,
        actor: Optional[Actor] = None
    ) -> Optional[TicketSLA]:
        """
        Change a ticket's priority and supersede its open timer.

        The old timer is completed; the new one keeps the original start
        time and pause total. Returns None when the ticket had no open timer.

        Raises:
            ResourceNotFoundException: Ticket does not exist
            ForbiddenError: Ticket belongs to another tenant
            SLANotActiveError: The open timer is paused
        """
        actor_id = _actor_id(actor)
        async with self._uow_factory() as uow:
            ticket = await self._lock_ticket(uow, ticket_id)
            self._authorize(actor, ticket.tenant_id, ticket_id)

            now = self._clock()
            old_priority = ticket.priority
            ticket.priority = priority
            ticket.updated_at = now
            await uow.tickets.save(ticket)

            replacement = None
            current = await uow.slas.get_open_for_ticket(ticket_id, for_update=True)
            if current is not None:
                await self._complete(uow, current, now)
                definition = self._definitions.get_definition(ticket.type, priority, ticket.tenant_id)
                replacement = TicketSLA.supersede(current, definition, now)
                await uow.slas.add(replacement)

            self._emit(
                uow, actor_id, "sla.reprioritized", ticket_id,
                f"Priority changed from {old_priority} to {priority}"
            )
            await uow.commit()

        logger.info(
            "Ticket reprioritized",
            extra={
                "ticket_id": ticket_id,
                "old_priority": old_priority,
                "priority": priority,
                "ticket_sla_id": replacement.id if replacement else None,
            }
        )
        return replacement

    # ---------- ticket status hook ----------

    async def on_status_changed(
        self,
        uow: AbstractUnitOfWork,
        ticket_id: str,
        old_status: str,
        new_status: str,
        actor_id: Optional[str],
    ) -> None:
        """
        Keep the ticket's open timer in step with a status change.

        Completion statuses complete the timer (resuming it first if paused).
        Entering a pause status pauses it; leaving one resumes a timer that
        was paused that way. Manual pauses are left alone.
        """
        if old_status == new_status:
            return

        sla = await uow.slas.get_open_for_ticket(ticket_id, for_update=True)
        if sla is None:
            return

        now = self._clock()

        if new_status in self._completion_statuses:
            if sla.is_paused:
                await self._resume(uow, sla, actor_id, now=now)
            await self._complete(uow, sla, now)

        elif new_status in self._pause_statuses and old_status not in self._pause_statuses:
            if sla.status in ACTIVE_SLA_STATUSES:
                await self._pause(
                    uow, sla, actor_id, f"Ticket entered {new_status}", automatic=True, now=now
                )

        elif old_status in self._pause_statuses and new_status not in self._pause_statuses:
            if sla.is_paused and sla.paused_automatically:
                await self._resume(uow, sla, actor_id, now=now)

    # ---------- queries ----------

    async def get_ticket_overview(self, ticket_id: str) -> List[TimerOverview]:
        """Every timer of a ticket with its pause history, newest first."""
        now = self._clock()
        async with self._uow_factory() as uow:
            timers = await uow.slas.list_for_ticket(ticket_id)
            return [
                TimerOverview(
                    sla=sla,
                    pause_events=await uow.slas.list_pause_events(sla.id),
                    standing=sla.snapshot(now),
                )
                for sla in timers
            ]

    async def list_at_risk(
        self,
        threshold: Optional[float] = None,
        limit: int = 50
    ) -> List[BreachStatus]:
        """
        In-progress timers not yet due whose elapsed share is at least
        ``threshold`` percent, ordered by deadline.
        """
        threshold = settings.at_risk_threshold_percent if threshold is None else threshold
        now = self._clock()

        async with self._uow_factory() as uow:
            candidates = await uow.slas.list_in_progress_due_after(now)

        at_risk = []
        for sla in candidates:
            standing = sla.snapshot(now)
            if standing.percent_elapsed >= threshold:
                at_risk.append(standing)
                if len(at_risk) >= limit:
                    break
        return at_risk

    async def list_breaches(
        self,
        days: int = 7,
        ticket_type: Optional[str] = None,
        priority: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[TicketSLA]:
        since = self._clock() - timedelta(days=days)
        async with self._uow_factory() as uow:
            return await uow.slas.list_breaches(
                since,
                ticket_type=ticket_type,
                priority=priority,
                limit=limit,
                offset=offset
            )

    # ---------- internals (run inside a unit of work) ----------

    async def _lock_ticket(self, uow: AbstractUnitOfWork, ticket_id: str) -> Ticket:
        ticket = await uow.tickets.get(ticket_id, for_update=True)
        if ticket is None or ticket.is_deleted:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    def _authorize(self, actor: Optional[Actor], tenant_id: Optional[str], ticket_id: str) -> None:
        if actor is not None and not actor.can_access(tenant_id, self._superuser_role):
            raise ForbiddenError("Ticket belongs to another tenant", {"ticket_id": ticket_id})

    async def _get_locked(self, uow: AbstractUnitOfWork, ticket_sla_id: str) -> TicketSLA:
        sla = await uow.slas.get(ticket_sla_id, for_update=True)
        if sla is None:
            raise ResourceNotFoundException("SLA", ticket_sla_id)
        return sla

    async def _get_open_locked(self, uow: AbstractUnitOfWork, ticket_id: str) -> TicketSLA:
        sla = await uow.slas.get_open_for_ticket(ticket_id, for_update=True)
        if sla is None:
            raise ResourceNotFoundException("Active SLA for ticket", ticket_id)
        return sla

    async def _start(
        self,
        uow: AbstractUnitOfWork,
        ticket_id: str,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str],
        actor_id: Optional[str],
    ) -> TicketSLA:
        existing = await uow.slas.get_open_for_ticket(ticket_id, for_update=True)
        if existing is not None:
            raise DomainException(
                "Ticket already has an active SLA",
                {"ticket_id": ticket_id, "ticket_sla_id": existing.id}
            )

        definition = self._definitions.get_definition(ticket_type, priority, tenant_id)
        sla = TicketSLA.start(ticket_id, tenant_id, definition, self._clock())
        await uow.slas.add(sla)

        self._emit(uow, actor_id, "sla.started", ticket_id, f"SLA {sla.sla_name} started")
        logger.info(
            "SLA started",
            extra={"ticket_id": ticket_id, "ticket_sla_id": sla.id, "due_time": sla.due_time.isoformat()}
        )
        return sla

    async def _pause(
        self,
        uow: AbstractUnitOfWork,
        sla: TicketSLA,
        actor_id: Optional[str],
        reason: str,
        automatic: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        now = now or self._clock()
        event = sla.pause(now, actor_id, reason, automatic=automatic)
        await uow.slas.save(sla)
        await uow.slas.add_pause_event(event)

        await uow.comments.add(TicketComment.new(
            sla.ticket_id, actor_id, f"SLA paused: {event.pause_reason}", now, is_internal=True
        ))
        self._emit(uow, actor_id, "sla.paused", sla.ticket_id, f"SLA paused: {event.pause_reason}")
        logger.info(
            "SLA paused",
            extra={"ticket_sla_id": sla.id, "ticket_id": sla.ticket_id, "automatic": automatic}
        )

    async def _resume(
        self,
        uow: AbstractUnitOfWork,
        sla: TicketSLA,
        actor_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> datetime:
        now = now or self._clock()
        open_event = await uow.slas.get_open_pause_event(sla.id)
        due_time = sla.resume(now, actor_id, open_event)
        await uow.slas.save(sla)
        if open_event is not None:
            await uow.slas.save_pause_event(open_event)

        await uow.comments.add(TicketComment.new(
            sla.ticket_id, actor_id, "SLA resumed", now, is_internal=True
        ))
        self._emit(uow, actor_id, "sla.resumed", sla.ticket_id, "SLA resumed")
        logger.info(
            "SLA resumed",
            extra={"ticket_sla_id": sla.id, "ticket_id": sla.ticket_id, "due_time": due_time.isoformat()}
        )
        return due_time

    async def evaluate(self, uow: AbstractUnitOfWork, sla: TicketSLA, now: datetime) -> BreachStatus:
        """Breach check inside an open unit of work; new breaches are saved and notified."""
        status = sla.check_breach(now)
        if status.is_breached and sla.status != SLAStatus.COMPLETED:
            await uow.slas.save(sla)
        if status.newly_breached:
            self._on_breach(uow, sla)
        return status

    async def _complete(self, uow: AbstractUnitOfWork, sla: TicketSLA, now: datetime) -> None:
        was_breached = sla.is_breached
        sla.complete(now)
        await uow.slas.save(sla)
        if sla.is_breached and not was_breached:
            self._on_breach(uow, sla)

        self._emit(uow, None, "sla.completed", sla.ticket_id, f"SLA {sla.sla_name} completed")
        logger.info(
            "SLA completed",
            extra={
                "ticket_sla_id": sla.id,
                "ticket_id": sla.ticket_id,
                "is_breached": sla.is_breached,
                "actual_duration_seconds": sla.actual_duration.total_seconds(),
            }
        )

    def _on_breach(self, uow: AbstractUnitOfWork, sla: TicketSLA) -> None:
        logger.warning(
            "SLA breached",
            extra={
                "ticket_sla_id": sla.id,
                "ticket_id": sla.ticket_id,
                "due_time": sla.due_time.isoformat(),
            }
        )
        self._emit(uow, None, "sla.breached", sla.ticket_id, f"SLA {sla.sla_name} breached")
        if self._dispatcher is not None:
            dispatcher = self._dispatcher
            uow.on_commit(
                lambda: dispatcher.dispatch(SLA_BREACH_TARGET, sla.ticket_id, SLA_BREACH_EVENT)
            )

    def _emit(
        self,
        uow: AbstractUnitOfWork,
        actor_id: Optional[str],
        event_kind: str,
        ticket_id: str,
        description: str
    ) -> None:
        if self._activity is None:
            return
        activity = self._activity
        uow.on_commit(
            lambda: activity.log_activity(actor_id, event_kind, "ticket", ticket_id, description)
        )


class SLABreachSweeper:
    """
    Background breach detection.

    Run periodically to evaluate every running timer; each breach is
    persisted and notified once, on first detection.
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        timers: SLATimerService,
        clock: Clock = utc_now,
    ):
        self._uow_factory = uow_factory
        self._timers = timers
        self._clock = clock

    async def sweep(self) -> int:
        """Evaluate all running timers; returns the number of new breaches."""
        now = self._clock()
        newly_breached = 0

        async with self._uow_factory() as uow:
            running = await uow.slas.list_running(for_update=True)
            for sla in running:
                status = await self._timers.evaluate(uow, sla, now)
                if status.newly_breached:
                    newly_breached += 1
            await uow.commit()

        logger.info(
            "SLA sweep finished",
            extra={"evaluated": len(running), "newly_breached": newly_breached}
        )
        return newly_breached
