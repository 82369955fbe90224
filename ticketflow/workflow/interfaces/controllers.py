"""
Workflow Controllers (API Routes)
=================================

FastAPI routes for workflow definitions, ticket transitions and approvals.

Controllers are thin - they delegate to application services. The acting
user is resolved from the ``X-User-Id`` header.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ticketflow.config import ApprovalDecision
from ticketflow.core import ForbiddenError
from ticketflow.shared.api.dependencies import (
    get_approval_coordinator,
    get_current_actor,
    get_transition_engine,
)
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.workflow.application import (
    ApprovalCoordinator,
    ApprovalDetailResponse,
    ApprovalOutcomeResponse,
    ApprovalResponseRequest,
    TransitionEngine,
    TransitionHistoryResponse,
    TransitionOutcomeResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowResponse,
)
from ticketflow.workflow.domain import Actor

logger = get_logger(__name__)
router = APIRouter(tags=["Workflow"])


# ========== Example payloads for Swagger ==========

TRANSITION_OUTCOME_EXAMPLE = {
    "outcome": "pending_approval",
    "ticket_id": "2f0c8a9e-1d2b-4b8e-8f7a-3e7d5c1b9a20",
    "transition_id": "c7d9e0a1-6b2f-4e61-8f3b-0d5a2c4e9b17",
    "from_status": "in_progress",
    "new_status": "awaiting_approval",
    "approval_id": "9a1e4c2d-3b5f-4d7a-8e6c-1f2b3a4c5d6e"
}


# ========== Workflow definitions ==========

@router.get(
    "/workflows",
    response_model=List[WorkflowResponse],
    summary="List workflows",
    description="""
    List workflow definitions.

    **Query Parameters:**
    - `ticket_type`: Only workflows for this ticket type
    - `is_active`: Filter on the active flag
    """
)
async def list_workflows(
    ticket_type: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    engine: TransitionEngine = Depends(get_transition_engine)
):
    workflows = await engine.list_workflows(ticket_type=ticket_type, is_active=is_active)
    return [WorkflowResponse.from_domain(w) for w in workflows]


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    summary="Get a workflow with its transitions",
    responses={404: {"description": "Workflow not found"}}
)
async def get_workflow(
    workflow_id: str,
    engine: TransitionEngine = Depends(get_transition_engine)
):
    workflow = await engine.get_workflow(workflow_id)
    return WorkflowResponse.from_domain(workflow, with_transitions=True)


# ========== Ticket transitions ==========

@router.get(
    "/tickets/{ticket_id}/transitions",
    response_model=List[TransitionResponse],
    summary="List transitions available to the caller",
    description="""
    Transitions out of the ticket's current status whose role requirement
    the caller satisfies. Required fields and approvals are checked when
    the transition is requested.
    """
)
async def get_valid_transitions(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_transition_engine)
):
    transitions = await engine.get_valid_transitions(ticket_id, actor)
    return [TransitionResponse.from_domain(t) for t in transitions]


@router.post(
    "/tickets/{ticket_id}/transitions",
    response_model=TransitionOutcomeResponse,
    summary="Request a ticket transition",
    description="""
    Move a ticket along its workflow, naming the edge by `transition_id` or
    by `to_status`.

    Guards are checked in order: role, required fields, then approval.
    Transitions that require approval park the ticket in
    `awaiting_approval` and return `outcome = pending_approval`.

    **Example Request**:
    ```json
    {
        "transition_id": "c7d9e0a1-6b2f-4e61-8f3b-0d5a2c4e9b17",
        "comment": "Root cause identified, deploying fix"
    }
    ```
    """,
    responses={
        200: {"content": {"application/json": {"example": TRANSITION_OUTCOME_EXAMPLE}}},
        403: {"description": "Caller lacks the required role"},
        409: {"description": "No such transition from the current status"},
        422: {"description": "A required field is empty"},
    }
)
async def request_transition(
    ticket_id: str,
    request: TransitionRequest,
    actor: Actor = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_transition_engine)
):
    outcome = await engine.request_transition(
        ticket_id,
        request.transition_id,
        actor,
        comment=request.comment,
        metadata=request.metadata,
        to_status=request.to_status,
    )
    return TransitionOutcomeResponse.from_domain(outcome)


@router.get(
    "/tickets/{ticket_id}/transitions/history",
    response_model=List[TransitionHistoryResponse],
    summary="Transition history of a ticket",
    description="Every status change of the ticket, newest first."
)
async def get_transition_history(
    ticket_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: TransitionEngine = Depends(get_transition_engine)
):
    history = await engine.get_transition_history(ticket_id, actor)
    return [TransitionHistoryResponse.from_domain(h) for h in history]


# ========== Approvals ==========

@router.get(
    "/approvals/pending",
    response_model=List[ApprovalDetailResponse],
    summary="Approvals waiting on the caller",
    tags=["Approvals"]
)
async def get_pending_approvals(
    actor: Actor = Depends(get_current_actor),
    coordinator: ApprovalCoordinator = Depends(get_approval_coordinator)
):
    approvals = await coordinator.get_pending_approvals(actor.id)
    return [ApprovalDetailResponse.from_domain(a) for a in approvals]


@router.get(
    "/approvals/{approval_id}",
    response_model=ApprovalDetailResponse,
    summary="Get an approval",
    tags=["Approvals"],
    responses={404: {"description": "Approval not found"}}
)
async def get_approval(
    approval_id: str,
    actor: Actor = Depends(get_current_actor),
    coordinator: ApprovalCoordinator = Depends(get_approval_coordinator)
):
    approval = await coordinator.get_approval(approval_id)
    if actor.id != approval.requested_by and actor.id not in approval.required_approvers:
        raise ForbiddenError(
            "Only the requester and the approvers may view this approval",
            {"approval_id": approval_id}
        )
    return ApprovalDetailResponse.from_domain(approval)


@router.post(
    "/approvals/{approval_id}/respond",
    response_model=ApprovalOutcomeResponse,
    summary="Approve or reject",
    tags=["Approvals"],
    description="""
    Record the caller's answer.

    Quorum is unanimous. The last approval completes the transition; the
    first rejection returns the ticket to the status it was in before the
    approval was requested.
    """,
    responses={
        403: {"description": "Caller is not an approver"},
        409: {"description": "Approval already settled or already answered"},
    }
)
async def respond_to_approval(
    approval_id: str,
    request: ApprovalResponseRequest,
    actor: Actor = Depends(get_current_actor),
    coordinator: ApprovalCoordinator = Depends(get_approval_coordinator)
):
    outcome = await coordinator.respond_to_approval(
        approval_id,
        actor.id,
        ApprovalDecision(request.response),
        notes=request.response_notes,
    )
    return ApprovalOutcomeResponse.from_domain(outcome)
