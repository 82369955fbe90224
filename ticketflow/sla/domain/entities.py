"""
SLA Domain Entities
====================

Pure Python domain entities for SLA timers.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.

Timer lifecycle:
    not_started -> in_progress -> (paused <-> in_progress) -> completed

The deadline is stored as an absolute timestamp and only ever moves
forward: resuming a paused timer extends it by exactly the paused interval.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from ticketflow.config import ACTIVE_SLA_STATUSES, SLAStatus
from ticketflow.core import SLANotActiveError, ValidationException
from ticketflow.sla.domain.value_objects import SLAClock, SLADefinition


@dataclass
class SlaPauseEvent:
    """One pause/resume cycle of a timer. Open while ``resumed_at`` is None."""

    id: str
    ticket_sla_id: str
    paused_at: datetime
    pause_reason: str
    paused_by: Optional[str]
    resumed_at: Optional[datetime] = None
    resumed_by: Optional[str] = None
    pause_duration: Optional[timedelta] = None

    @property
    def is_open(self) -> bool:
        return self.resumed_at is None

    def close(self, resumed_at: datetime, resumed_by: Optional[str], duration: timedelta) -> None:
        self.resumed_at = resumed_at
        self.resumed_by = resumed_by
        self.pause_duration = duration


@dataclass(frozen=True)
class BreachStatus:
    """Snapshot returned by a breach check."""

    ticket_sla_id: str
    ticket_id: str
    status: SLAStatus
    due_time: datetime
    is_breached: bool
    newly_breached: bool
    breach_time: Optional[datetime]
    breach_duration: Optional[timedelta]
    percent_elapsed: float
    time_remaining: timedelta

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "ticket_sla_id": self.ticket_sla_id,
            "ticket_id": self.ticket_id,
            "status": self.status.value,
            "due_time": self.due_time.isoformat(),
            "is_breached": self.is_breached,
            "breach_time": self.breach_time.isoformat() if self.breach_time else None,
            "breach_duration_seconds": (
                self.breach_duration.total_seconds() if self.breach_duration is not None else None
            ),
            "percent_elapsed": self.percent_elapsed,
            "time_remaining_seconds": self.time_remaining.total_seconds(),
        }


@dataclass
class TicketSLA:
    """
    SLA timer attached to a ticket.

    Invariants:
    - ``due_time`` never moves backwards
    - ``is_breached`` is sticky and ``breach_time`` keeps the first detection
    - at most one open pause event exists (tracked by ``pause_start_time``)
    """

    id: str
    ticket_id: str
    tenant_id: Optional[str]
    sla_name: str
    status: SLAStatus
    start_time: datetime
    due_time: datetime
    created_at: datetime

    total_pause_duration: timedelta = field(default_factory=timedelta)
    pause_start_time: Optional[datetime] = None
    pause_reason: Optional[str] = None
    paused_by: Optional[str] = None
    paused_automatically: bool = False

    is_breached: bool = False
    breach_time: Optional[datetime] = None
    breach_duration: Optional[timedelta] = None

    completed_at: Optional[datetime] = None
    actual_duration: Optional[timedelta] = None

    @classmethod
    def start(
        cls,
        ticket_id: str,
        tenant_id: Optional[str],
        definition: SLADefinition,
        now: datetime,
        start_time: Optional[datetime] = None,
    ) -> "TicketSLA":
        """Open a running timer whose deadline is ``start + target``."""
        start_time = start_time or now
        return cls(
            id=str(uuid4()),
            ticket_id=ticket_id,
            tenant_id=tenant_id,
            sla_name=definition.name,
            status=SLAStatus.IN_PROGRESS,
            start_time=start_time,
            due_time=start_time + definition.target,
            created_at=now,
        )

    @classmethod
    def supersede(
        cls,
        previous: "TicketSLA",
        definition: SLADefinition,
        now: datetime,
    ) -> "TicketSLA":
        """
        Replacement timer after a priority change.

        Keeps the original start time and carries the pause total over, so
        the new deadline is ``start + new target + paused time``.
        """
        timer = cls.start(
            previous.ticket_id,
            previous.tenant_id,
            definition,
            now,
            start_time=previous.start_time,
        )
        timer.total_pause_duration = previous.total_pause_duration
        timer.due_time = SLAClock.shift(timer.due_time, previous.total_pause_duration)
        return timer

    @property
    def is_completed(self) -> bool:
        return self.status == SLAStatus.COMPLETED

    @property
    def is_paused(self) -> bool:
        return self.status == SLAStatus.PAUSED

    @property
    def budget(self) -> timedelta:
        """Active-time allowance: the deadline window minus paused time."""
        return self.due_time - self.start_time - self.total_pause_duration

    def pause(
        self,
        now: datetime,
        actor_id: Optional[str],
        reason: str,
        automatic: bool = False
    ) -> SlaPauseEvent:
        """Stop the clock and open a pause event."""
        if not reason or not reason.strip():
            raise ValidationException("Pause reason is required", {"ticket_sla_id": self.id})
        if self.status not in ACTIVE_SLA_STATUSES:
            raise SLANotActiveError(self.id, self.status.value, "pause")

        self.status = SLAStatus.PAUSED
        self.pause_start_time = now
        self.pause_reason = reason.strip()
        self.paused_by = actor_id
        self.paused_automatically = automatic

        return SlaPauseEvent(
            id=str(uuid4()),
            ticket_sla_id=self.id,
            paused_at=now,
            pause_reason=self.pause_reason,
            paused_by=actor_id,
        )

    def resume(
        self,
        now: datetime,
        actor_id: Optional[str],
        open_event: Optional[SlaPauseEvent] = None
    ) -> datetime:
        """Restart the clock, shifting the deadline by the paused interval."""
        if self.status != SLAStatus.PAUSED or self.pause_start_time is None:
            raise SLANotActiveError(self.id, self.status.value, "resume")

        paused_for = SLAClock.elapsed(self.pause_start_time, now)
        self.due_time = SLAClock.shift(self.due_time, paused_for)
        self.total_pause_duration += paused_for

        if open_event is not None:
            open_event.close(now, actor_id, paused_for)

        self.status = SLAStatus.IN_PROGRESS
        self.pause_start_time = None
        self.pause_reason = None
        self.paused_by = None
        self.paused_automatically = False
        return self.due_time

    def check_breach(self, now: datetime) -> BreachStatus:
        """
        Evaluate the deadline at ``now`` and record a breach if one occurred.

        A paused timer cannot breach and reports 0% elapsed. A completed timer
        is reported as it stood at completion.
        """
        newly_breached = False

        if self.status in ACTIVE_SLA_STATUSES and now > self.due_time:
            if not self.is_breached:
                self.is_breached = True
                self.breach_time = now
                newly_breached = True
            self.breach_duration = SLAClock.overdue(self.due_time, now)

        return self.snapshot(now, newly_breached=newly_breached)

    def snapshot(self, now: datetime, newly_breached: bool = False) -> BreachStatus:
        """Read-only view of the timer at ``now``; never records a breach."""
        if self.status == SLAStatus.PAUSED:
            percent = 0.0
        elif self.is_completed and self.completed_at is not None:
            percent = SLAClock.percent_elapsed(self.start_time, self.due_time, self.completed_at)
        else:
            percent = SLAClock.percent_elapsed(self.start_time, self.due_time, now)

        return BreachStatus(
            ticket_sla_id=self.id,
            ticket_id=self.ticket_id,
            status=self.status,
            due_time=self.due_time,
            is_breached=self.is_breached,
            newly_breached=newly_breached,
            breach_time=self.breach_time,
            breach_duration=self.breach_duration,
            percent_elapsed=percent,
            time_remaining=SLAClock.remaining(self.due_time, now),
        )

    def complete(self, now: datetime) -> timedelta:
        """
        Stop the timer for good.

        ``actual_duration`` is wall-clock time since start, pauses included.
        A paused timer must be resumed first.
        """
        if self.status not in ACTIVE_SLA_STATUSES:
            raise SLANotActiveError(self.id, self.status.value, "complete")

        self.check_breach(now)
        self.status = SLAStatus.COMPLETED
        self.completed_at = now
        self.actual_duration = SLAClock.elapsed(self.start_time, now)
        return self.actual_duration
