"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA timer endpoints.

Controllers are thin - they delegate to application services. Domain
errors propagate to the application exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ticketflow.shared.api.dependencies import get_optional_actor, get_sla_timers
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.sla.application import (
    BreachQueryDTO,
    BreachStatusResponse,
    PauseSLARequest,
    ReprioritizeRequest,
    ResumeResponse,
    SLATimerService,
    TicketSLAListResponse,
    TicketSLAResponse,
)
from ticketflow.sla.application.dto import PriorityStr
from ticketflow.workflow.domain import Actor

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Timers"])


# ========== Example payloads for Swagger ==========

TICKET_SLA_RESPONSE_EXAMPLE = {
    "id": "0b7b5f3e-5a55-4c43-9d1c-7d1c1a1f2b11",
    "ticket_id": "2f0c8a9e-1d2b-4b8e-8f7a-3e7d5c1b9a20",
    "sla_name": "incident/critical",
    "status": "in_progress",
    "start_time": "2024-01-15T10:00:00Z",
    "due_time": "2024-01-15T14:00:00Z",
    "total_pause_seconds": 0.0,
    "pause_start_time": None,
    "pause_reason": None,
    "is_breached": False,
    "breach_time": None,
    "breach_duration_seconds": None,
    "completed_at": None,
    "actual_duration_seconds": None,
    "percent_elapsed": 25.0,
    "pause_events": []
}

BREACH_STATUS_EXAMPLE = {
    "ticket_sla_id": "0b7b5f3e-5a55-4c43-9d1c-7d1c1a1f2b11",
    "ticket_id": "2f0c8a9e-1d2b-4b8e-8f7a-3e7d5c1b9a20",
    "status": "in_progress",
    "due_time": "2024-01-15T14:00:00Z",
    "is_breached": True,
    "breach_time": "2024-01-15T14:00:00Z",
    "breach_duration_seconds": 1800.0,
    "percent_elapsed": 112.5,
    "time_remaining_seconds": 0.0
}


# ========== Route Handlers ==========

@router.post(
    "/tickets/{ticket_id}/start",
    response_model=TicketSLAResponse,
    status_code=201,
    summary="Start the SLA timer of a ticket",
    description="""
    Start a timer using the ticket's type, priority and tenant.

    The target comes from `sla_config.yaml`; the deadline is now + target.
    A ticket holds at most one open timer.

    Timer write routes accept an optional `X-User-Id` header. Without it the
    call counts as a system action; with it the user must exist and belong
    to the ticket's tenant.
    """,
    responses={
        201: {"content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}},
        403: {"description": "Unknown user or ticket of another tenant"},
        404: {"description": "Ticket not found"},
        409: {"description": "Ticket already has an open timer"},
    }
)
async def start_sla(
    ticket_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    timers: SLATimerService = Depends(get_sla_timers)
):
    sla = await timers.start_for_ticket(ticket_id, actor)
    return TicketSLAResponse.from_domain(sla, percent_elapsed=0.0)


@router.post(
    "/tickets/{ticket_id}/pause",
    response_model=TicketSLAResponse,
    summary="Pause the SLA timer of a ticket",
    description="""
    Stop the clock. Time spent paused does not count against the target;
    the deadline moves forward by the pause length on resume.
    """,
    responses={409: {"description": "Timer is already paused or completed"}}
)
async def pause_sla(
    ticket_id: str,
    request: PauseSLARequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
    timers: SLATimerService = Depends(get_sla_timers)
):
    sla = await timers.pause_for_ticket(ticket_id, actor, request.reason)
    return TicketSLAResponse.from_domain(sla)


@router.post(
    "/tickets/{ticket_id}/resume",
    response_model=ResumeResponse,
    summary="Resume the SLA timer of a ticket",
    responses={409: {"description": "Timer is not paused"}}
)
async def resume_sla(
    ticket_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    timers: SLATimerService = Depends(get_sla_timers)
):
    due_time = await timers.resume_for_ticket(ticket_id, actor)
    return ResumeResponse(ticket_id=ticket_id, due_time=due_time)


@router.post(
    "/tickets/{ticket_id}/complete",
    response_model=TicketSLAResponse,
    summary="Complete the SLA timer of a ticket",
    description="A breach is recorded when completion happens after the deadline.",
    responses={409: {"description": "Timer is paused or already completed"}}
)
async def complete_sla(
    ticket_id: str,
    actor: Optional[Actor] = Depends(get_optional_actor),
    timers: SLATimerService = Depends(get_sla_timers)
):
    sla = await timers.complete_for_ticket(ticket_id, actor)
    return TicketSLAResponse.from_domain(sla)


@router.post(
    "/tickets/{ticket_id}/priority",
    response_model=Optional[TicketSLAResponse],
    summary="Change ticket priority",
    description="""
    Update the ticket priority and supersede its open timer.

    The old timer is completed; the new one keeps the original start time
    and pause total, with a deadline from the new priority's target.
    Returns `null` when the ticket had no open timer.
    """
)
async def reprioritize_ticket(
    ticket_id: str,
    request: ReprioritizeRequest,
    actor: Optional[Actor] = Depends(get_optional_actor),
    timers: SLATimerService = Depends(get_sla_timers)
):
    sla = await timers.reprioritize(ticket_id, request.priority, actor)
    if sla is None:
        return None
    return TicketSLAResponse.from_domain(sla)


@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAListResponse,
    summary="Get SLA timers of a ticket",
    description="Every timer of the ticket, newest first, with its pause history.",
    responses={200: {"content": {"application/json": {"example": {
        "ticket_id": TICKET_SLA_RESPONSE_EXAMPLE["ticket_id"],
        "timers": [TICKET_SLA_RESPONSE_EXAMPLE],
    }}}}}
)
async def get_ticket_slas(
    ticket_id: str,
    timers: SLATimerService = Depends(get_sla_timers)
):
    overview = await timers.get_ticket_overview(ticket_id)
    return TicketSLAListResponse(
        ticket_id=ticket_id,
        timers=[
            TicketSLAResponse.from_domain(
                item.sla,
                percent_elapsed=item.standing.percent_elapsed,
                pause_events=item.pause_events,
            )
            for item in overview
        ]
    )


@router.get(
    "/tickets/{ticket_id}/breach",
    response_model=BreachStatusResponse,
    summary="Check a ticket's SLA for breach",
    description="""
    Evaluate the open timer now. A breach detected for the first time is
    persisted, logged and notified.
    """,
    responses={200: {"content": {"application/json": {"example": BREACH_STATUS_EXAMPLE}}}}
)
async def check_ticket_breach(
    ticket_id: str,
    timers: SLATimerService = Depends(get_sla_timers)
):
    status = await timers.check_breach_for_ticket(ticket_id)
    return BreachStatusResponse.from_domain(status)


@router.get(
    "/breaches",
    response_model=List[TicketSLAResponse],
    summary="List recent breaches",
    description="""
    Breached timers whose breach happened within the last `days` days,
    newest first.

    **Query Parameters:**
    - `days`: Look-back window (default: 7)
    - `ticket_type`: Filter by ticket type
    - `priority`: Filter by ticket priority (critical, high, medium, low)
    - `limit` / `offset`: Pagination
    """
)
async def list_breaches(
    days: int = Query(7, ge=1, le=365),
    ticket_type: Optional[str] = Query(None),
    priority: Optional[PriorityStr] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    timers: SLATimerService = Depends(get_sla_timers)
):
    query = BreachQueryDTO(
        days=days, ticket_type=ticket_type, priority=priority, limit=limit, offset=offset
    )
    breaches = await timers.list_breaches(
        days=query.days,
        ticket_type=query.ticket_type,
        priority=query.priority,
        limit=query.limit,
        offset=query.offset
    )
    return [TicketSLAResponse.from_domain(sla) for sla in breaches]


@router.get(
    "/at-risk",
    response_model=List[BreachStatusResponse],
    summary="List timers at risk of breach",
    description="""
    Running timers that are not yet due but have used at least
    `threshold` percent of their window, soonest deadline first.
    """
)
async def list_at_risk(
    threshold: Optional[float] = Query(None, ge=0, le=100),
    limit: int = Query(50, ge=1, le=500),
    timers: SLATimerService = Depends(get_sla_timers)
):
    statuses = await timers.list_at_risk(threshold=threshold, limit=limit)
    return [BreachStatusResponse.from_domain(s) for s in statuses]
