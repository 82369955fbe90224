"""Transition engine against the SQLAlchemy unit of work."""

import pytest

from ticketflow.core import (
    ForbiddenError,
    InvalidTransitionError,
    MissingRequiredFieldError,
    ResourceNotFoundException,
    TransitionFailedError,
)
from ticketflow.workflow.domain import Actor, OutcomeKind

from tests.conftest import (
    OTHER_TENANT,
    START,
    TENANT,
    create_ticket,
    load_comments,
    load_history,
    load_ticket,
)

AGENT = Actor("agent-1", "agent", TENANT)
REPORTER = Actor("reporter-1", "reporter", TENANT)
ROOT = Actor("root", "super_admin", TENANT)
FOREIGN_AGENT = Actor("agent-x", "agent", OTHER_TENANT)


async def test_direct_transition_applies_status_actions_and_history(services):
    await create_ticket(services)

    outcome = await services.engine.request_transition("T-1", "t-start", AGENT, comment="On it")

    assert outcome.kind == OutcomeKind.COMPLETED
    assert (outcome.from_status, outcome.status) == ("open", "in_progress")

    ticket = await load_ticket(services)
    assert ticket.status == "in_progress"
    assert ticket.fields["started_at"] == START.isoformat()

    history = await load_history(services)
    assert len(history) == 1
    assert (history[0].from_status, history[0].to_status) == ("open", "in_progress")
    assert history[0].performed_by == "agent-1"
    assert history[0].comment == "On it"

    comments = await load_comments(services)
    assert [(c.comment_text, c.is_internal) for c in comments] == [("On it", False)]
    assert "transition.performed" in services.activity.kinds()


async def test_transition_can_be_named_by_target_status(services):
    await create_ticket(services)
    outcome = await services.engine.request_transition("T-1", None, AGENT, to_status="in_progress")
    assert outcome.transition_id == "t-start"


async def test_role_guard(services):
    await create_ticket(services)

    with pytest.raises(ForbiddenError):
        await services.engine.request_transition("T-1", "t-start", REPORTER)

    assert (await load_ticket(services)).status == "open"
    assert await load_history(services) == []


async def test_superuser_bypasses_role_guard(services):
    await create_ticket(services)
    outcome = await services.engine.request_transition("T-1", "t-start", ROOT)
    assert outcome.status == "in_progress"


async def test_transition_from_wrong_status_is_invalid(services):
    await create_ticket(services)
    with pytest.raises(InvalidTransitionError):
        await services.engine.request_transition("T-1", "t-resolve", AGENT)
    with pytest.raises(InvalidTransitionError):
        await services.engine.request_transition("T-1", "no-such-transition", AGENT)


async def test_role_is_checked_before_fields(services):
    await create_ticket(services, status="in_progress")
    with pytest.raises(ForbiddenError):
        await services.engine.request_transition("T-1", "t-resolve", REPORTER)


async def test_missing_required_field(services):
    await create_ticket(services, status="in_progress")

    with pytest.raises(MissingRequiredFieldError) as exc_info:
        await services.engine.request_transition("T-1", "t-resolve", AGENT)

    assert exc_info.value.field == "resolution"
    assert (await load_ticket(services)).status == "in_progress"


async def test_actions_run_in_order_and_notify_after_commit(services):
    await create_ticket(services, status="in_progress", resolution="Restarted the VPN gateway")

    await services.engine.request_transition("T-1", "t-resolve", AGENT)
    await services.dispatcher.drain()

    ticket = await load_ticket(services)
    assert ticket.status == "resolved"
    assert ticket.fields["resolved_at"] == START.isoformat()

    comments = await load_comments(services)
    assert [(c.comment_text, c.is_internal) for c in comments] == [("Resolved by workflow", True)]
    assert services.notifier.sent == [("reporter", "T-1", "transition.performed")]


async def test_failing_action_rolls_everything_back(services):
    await create_ticket(services, status="in_progress")

    with pytest.raises(TransitionFailedError):
        await services.engine.request_transition("T-1", "t-corrupt", AGENT, comment="Blocked")

    ticket = await load_ticket(services)
    assert ticket.status == "in_progress"
    assert "root_cause" not in ticket.fields
    assert await load_history(services) == []
    assert await load_comments(services) == []
    assert services.activity.events == []


async def test_assigning_unknown_user_fails_the_transition(services):
    await create_ticket(services, status="in_progress")
    with pytest.raises(TransitionFailedError):
        await services.engine.request_transition("T-1", "t-ghost", AGENT)
    assert (await load_ticket(services)).assignee_id is None


async def test_assign_action(services):
    await create_ticket(services, status="in_progress")
    await services.engine.request_transition("T-1", "t-handoff", AGENT)
    assert (await load_ticket(services)).assignee_id == "mgr-1"


async def test_unknown_ticket(services):
    with pytest.raises(ResourceNotFoundException):
        await services.engine.request_transition("T-404", "t-start", AGENT)


async def test_other_tenant_is_forbidden(services):
    await create_ticket(services)
    with pytest.raises(ForbiddenError):
        await services.engine.request_transition("T-1", "t-start", FOREIGN_AGENT)


async def test_valid_transitions_are_filtered_by_role_only(services):
    await create_ticket(services, status="in_progress")

    agent_view = {t.id for t in await services.engine.get_valid_transitions("T-1", AGENT)}
    reporter_view = {t.id for t in await services.engine.get_valid_transitions("T-1", REPORTER)}

    assert "t-resolve" in agent_view
    assert "t-resolve" not in reporter_view
    assert "t-escalate" in reporter_view


async def test_history_is_newest_first(services):
    await create_ticket(services)
    await services.engine.request_transition("T-1", "t-start", AGENT)
    services.clock.advance(minutes=10)
    await services.engine.request_transition("T-1", "t-handoff", AGENT)

    history = await services.engine.get_transition_history("T-1", AGENT)
    assert [h.to_status for h in history] == ["handed_off", "in_progress"]


async def test_workflow_queries(services):
    workflows = await services.engine.list_workflows(ticket_type="incident")
    assert [w.name for w in workflows] == ["Incident"]
    assert await services.engine.list_workflows(ticket_type="change") == []

    workflow = await services.engine.get_workflow(workflows[0].id)
    assert len(workflow.transitions) == 7

    with pytest.raises(ResourceNotFoundException):
        await services.engine.get_workflow("missing")
