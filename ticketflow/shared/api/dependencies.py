"""
API Dependencies
================

FastAPI dependencies shared by the routers.

Services are built once in the application lifespan and kept on
``app.state``; these helpers hand them to route handlers.
"""

from typing import Optional

from fastapi import Header, Request

from ticketflow.core import ForbiddenError
from ticketflow.sla.application import SLATimerService
from ticketflow.workflow.application import ApprovalCoordinator, TransitionEngine
from ticketflow.workflow.domain import Actor


def get_transition_engine(request: Request) -> TransitionEngine:
    return request.app.state.transition_engine


def get_approval_coordinator(request: Request) -> ApprovalCoordinator:
    return request.app.state.approval_coordinator


def get_sla_timers(request: Request) -> SLATimerService:
    return request.app.state.sla_timers


async def get_current_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="ID of the acting user"),
) -> Actor:
    """
    Resolve the acting user from the ``X-User-Id`` header.

    Authentication happens upstream; this only looks the user up in the
    directory to learn their role and tenant.

    Raises:
        ForbiddenError: Header missing or user unknown
    """
    if not x_user_id:
        raise ForbiddenError("X-User-Id header is required")

    async with request.app.state.uow_factory() as uow:
        actor = await uow.users.get_actor(x_user_id)

    if actor is None:
        raise ForbiddenError(f"Unknown user '{x_user_id}'", {"user_id": x_user_id})
    return actor


async def get_optional_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="ID of the acting user"),
) -> Optional[Actor]:
    """
    Actor for SLA operations, which the system may also perform.

    No header means the system is acting. A header naming an unknown user
    is rejected like on the other routes.
    """
    if not x_user_id:
        return None
    return await get_current_actor(request, x_user_id)
