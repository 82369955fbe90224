"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ticketflow.sla.domain import BreachStatus, SlaPauseEvent, TicketSLA


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
SLAStatusStr = Literal["not_started", "in_progress", "paused", "completed"]


def _seconds(value) -> Optional[float]:
    return value.total_seconds() if value is not None else None


# ========== Request DTOs ==========

class PauseSLARequest(BaseModel):
    """Request model for pausing a ticket's SLA."""
    reason: str = Field(..., min_length=1, description="Why the clock is stopped")


class ReprioritizeRequest(BaseModel):
    """Request model for a ticket priority change."""
    priority: PriorityStr = Field(..., description="New ticket priority")


class BreachQueryDTO(BaseModel):
    """Query parameters for the breach report."""
    days: int = Field(default=7, ge=1, le=365)
    ticket_type: Optional[str] = None
    priority: Optional[PriorityStr] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


# ========== Response DTOs ==========

class PauseEventResponse(BaseModel):
    """One pause/resume cycle."""
    id: str
    paused_at: datetime
    pause_reason: str
    paused_by: Optional[str] = None
    resumed_at: Optional[datetime] = None
    resumed_by: Optional[str] = None
    pause_duration_seconds: Optional[float] = None

    @classmethod
    def from_domain(cls, event: SlaPauseEvent) -> "PauseEventResponse":
        return cls(
            id=event.id,
            paused_at=event.paused_at,
            pause_reason=event.pause_reason,
            paused_by=event.paused_by,
            resumed_at=event.resumed_at,
            resumed_by=event.resumed_by,
            pause_duration_seconds=_seconds(event.pause_duration),
        )


class TicketSLAResponse(BaseModel):
    """Response model for one SLA timer."""
    id: str = Field(..., description="Timer ID")
    ticket_id: str
    sla_name: str
    status: SLAStatusStr
    start_time: datetime
    due_time: datetime
    total_pause_seconds: float
    pause_start_time: Optional[datetime] = None
    pause_reason: Optional[str] = None
    is_breached: bool
    breach_time: Optional[datetime] = None
    breach_duration_seconds: Optional[float] = None
    completed_at: Optional[datetime] = None
    actual_duration_seconds: Optional[float] = None
    percent_elapsed: Optional[float] = Field(None, description="Share of the deadline window used")
    pause_events: List[PauseEventResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        sla: TicketSLA,
        percent_elapsed: Optional[float] = None,
        pause_events: Optional[List[SlaPauseEvent]] = None
    ) -> "TicketSLAResponse":
        return cls(
            id=sla.id,
            ticket_id=sla.ticket_id,
            sla_name=sla.sla_name,
            status=sla.status.value,
            start_time=sla.start_time,
            due_time=sla.due_time,
            total_pause_seconds=sla.total_pause_duration.total_seconds(),
            pause_start_time=sla.pause_start_time,
            pause_reason=sla.pause_reason,
            is_breached=sla.is_breached,
            breach_time=sla.breach_time,
            breach_duration_seconds=_seconds(sla.breach_duration),
            completed_at=sla.completed_at,
            actual_duration_seconds=_seconds(sla.actual_duration),
            percent_elapsed=percent_elapsed,
            pause_events=[PauseEventResponse.from_domain(e) for e in pause_events or []],
        )


class BreachStatusResponse(BaseModel):
    """Response model for a breach check."""
    ticket_sla_id: str
    ticket_id: str
    status: SLAStatusStr
    due_time: datetime
    is_breached: bool
    breach_time: Optional[datetime] = None
    breach_duration_seconds: Optional[float] = None
    percent_elapsed: float
    time_remaining_seconds: float

    @classmethod
    def from_domain(cls, status: BreachStatus) -> "BreachStatusResponse":
        return cls(
            ticket_sla_id=status.ticket_sla_id,
            ticket_id=status.ticket_id,
            status=status.status.value,
            due_time=status.due_time,
            is_breached=status.is_breached,
            breach_time=status.breach_time,
            breach_duration_seconds=_seconds(status.breach_duration),
            percent_elapsed=status.percent_elapsed,
            time_remaining_seconds=status.time_remaining.total_seconds(),
        )


class ResumeResponse(BaseModel):
    """Response model for a resume."""
    ticket_id: str
    due_time: datetime


class TicketSLAListResponse(BaseModel):
    """Every timer of a ticket."""
    ticket_id: str
    timers: List[TicketSLAResponse]
