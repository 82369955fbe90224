"""Approval protocol: opening, quorum, rejection and the SLA pause it causes."""

from datetime import timedelta

import pytest

from ticketflow.config import AWAITING_APPROVAL, ApprovalDecision, ApprovalStatus, SLAStatus
from ticketflow.core import (
    ApprovalNotPendingError,
    ConfigurationException,
    DuplicateResponseError,
    ForbiddenError,
    InvalidTransitionError,
    ResourceNotFoundException,
)
from ticketflow.workflow.domain import Actor, ApprovalOutcomeKind, OutcomeKind

from tests.conftest import TENANT, create_ticket, load_comments, load_history, load_ticket

AGENT = Actor("agent-1", "agent", TENANT)

APPROVE = ApprovalDecision.APPROVED
REJECT = ApprovalDecision.REJECTED


async def request_escalation(services) -> str:
    outcome = await services.engine.request_transition("T-1", "t-escalate", AGENT, comment="Need L3")
    assert outcome.kind == OutcomeKind.PENDING_APPROVAL
    return outcome.approval_id


async def test_request_parks_ticket_and_freezes_approvers(services):
    await create_ticket(services, status="in_progress")

    approval_id = await request_escalation(services)

    ticket = await load_ticket(services)
    assert ticket.status == AWAITING_APPROVAL

    approval = await services.approvals.get_approval(approval_id)
    assert approval.status == ApprovalStatus.PENDING
    assert approval.previous_status == "in_progress"
    # Same tenant only, in directory order
    assert approval.required_approvers == ("mgr-1", "mgr-2")

    history = await load_history(services)
    assert (history[0].from_status, history[0].to_status) == ("in_progress", AWAITING_APPROVAL)
    assert history[0].comment == "Need L3"
    assert "transition.approval_requested" in services.activity.kinds()


async def test_unanimous_approval_completes_transition(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)

    partial = await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)
    assert partial.kind == ApprovalOutcomeKind.PARTIAL
    assert (partial.approved_count, partial.required_count) == (1, 2)
    assert (await load_ticket(services)).status == AWAITING_APPROVAL

    services.clock.advance(minutes=30)
    final = await services.approvals.respond_to_approval(approval_id, "mgr-2", APPROVE, "Go ahead")
    assert final.kind == ApprovalOutcomeKind.APPROVED
    assert final.ticket_status == "escalated"

    assert (await load_ticket(services)).status == "escalated"
    approval = await services.approvals.get_approval(approval_id)
    assert approval.status == ApprovalStatus.APPROVED
    assert approval.approved_by == ["mgr-1", "mgr-2"]
    assert approval.completed_at == services.clock()

    latest = (await load_history(services))[0]
    assert (latest.from_status, latest.to_status) == (AWAITING_APPROVAL, "escalated")
    assert latest.comment == "Approved by all approvers"

    comments = await load_comments(services)
    assert comments[-1].comment_text == "All approvals received. Transition completed."
    assert not comments[-1].is_internal
    assert "approval.completed" in services.activity.kinds()


async def test_first_rejection_restores_previous_status(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)

    await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)
    outcome = await services.approvals.respond_to_approval(approval_id, "mgr-2", REJECT, "Not needed")

    assert outcome.kind == ApprovalOutcomeKind.REJECTED
    assert (await load_ticket(services)).status == "in_progress"

    approval = await services.approvals.get_approval(approval_id)
    assert approval.status == ApprovalStatus.REJECTED
    assert approval.rejected_by == "mgr-2"

    comments = await load_comments(services)
    assert comments[-1].comment_text == "Approval rejected: Not needed"
    assert comments[-1].is_internal


async def test_rejection_without_notes(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)
    await services.approvals.respond_to_approval(approval_id, "mgr-1", REJECT)
    comments = await load_comments(services)
    assert comments[-1].comment_text == "Approval rejected: No reason provided"


async def test_response_guards(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)

    with pytest.raises(ForbiddenError):
        await services.approvals.respond_to_approval(approval_id, "mgr-x", APPROVE)

    await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)
    with pytest.raises(DuplicateResponseError):
        await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)

    await services.approvals.respond_to_approval(approval_id, "mgr-2", REJECT)
    with pytest.raises(ApprovalNotPendingError):
        await services.approvals.respond_to_approval(approval_id, "mgr-2", APPROVE)


async def test_empty_approver_pool_leaves_ticket_untouched(services):
    await create_ticket(services, status="in_progress")

    with pytest.raises(ConfigurationException):
        await services.engine.request_transition("T-1", "t-orphan", AGENT)

    assert (await load_ticket(services)).status == "in_progress"
    assert await load_history(services) == []


async def test_pending_approvals_for_user(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)

    assert [a.id for a in await services.approvals.get_pending_approvals("mgr-1")] == [approval_id]
    assert await services.approvals.get_pending_approvals("agent-1") == []

    await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)
    assert await services.approvals.get_pending_approvals("mgr-1") == []
    assert [a.id for a in await services.approvals.get_pending_approvals("mgr-2")] == [approval_id]


async def test_sla_is_paused_while_awaiting_approval(services):
    await create_ticket(services, status="in_progress")
    await services.sla.start_for_ticket("T-1", AGENT)

    services.clock.advance(hours=1)
    approval_id = await request_escalation(services)

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.PAUSED
    assert timer.sla.paused_automatically
    assert timer.sla.pause_reason == f"Ticket entered {AWAITING_APPROVAL}"

    services.clock.advance(hours=2)
    await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)
    await services.approvals.respond_to_approval(approval_id, "mgr-2", APPROVE)

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.IN_PROGRESS
    assert timer.sla.total_pause_duration == timedelta(hours=2)
    assert timer.sla.due_time == timer.sla.start_time + timedelta(hours=6)
    assert len(timer.pause_events) == 1
    assert timer.pause_events[0].pause_duration == timedelta(hours=2)


async def test_rejection_resumes_sla(services):
    await create_ticket(services, status="in_progress")
    await services.sla.start_for_ticket("T-1")
    approval_id = await request_escalation(services)

    services.clock.advance(minutes=45)
    await services.approvals.respond_to_approval(approval_id, "mgr-1", REJECT, "No")

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.IN_PROGRESS
    assert timer.sla.total_pause_duration == timedelta(minutes=45)


async def test_open_approval_directly(services):
    await create_ticket(services, status="in_progress")

    approval_id = await services.approvals.open_approval("T-1", "t-escalate", AGENT)

    assert (await load_ticket(services)).status == AWAITING_APPROVAL
    history = await load_history(services)
    assert history[0].comment == "Submitted for approval"

    # The ticket has left in_progress, so the edge no longer applies
    with pytest.raises(InvalidTransitionError):
        await services.approvals.open_approval("T-1", "t-escalate", AGENT)
    assert [a.id for a in await services.approvals.get_pending_approvals("mgr-2")] == [approval_id]


async def test_response_on_deleted_ticket_is_rejected(services):
    await create_ticket(services, status="in_progress")
    approval_id = await request_escalation(services)

    async with services.uow_factory() as uow:
        ticket = await uow.tickets.get("T-1", for_update=True)
        ticket.is_deleted = True
        await uow.tickets.save(ticket)
        await uow.commit()

    with pytest.raises(ResourceNotFoundException):
        await services.approvals.respond_to_approval(approval_id, "mgr-1", APPROVE)

    approval = await services.approvals.get_approval(approval_id)
    assert approval.status == ApprovalStatus.PENDING
    assert approval.responses == []
