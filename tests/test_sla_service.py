"""SLA timer service, ticket-status hook and breach sweep."""

from datetime import timedelta

import pytest

from ticketflow.config import SLAStatus
from ticketflow.core import (
    DomainException,
    ForbiddenError,
    ResourceNotFoundException,
    SLANotActiveError,
)
from ticketflow.workflow.domain import Actor

from tests.conftest import OTHER_TENANT, START, TENANT, create_ticket, load_comments, load_ticket

AGENT = Actor("agent-1", "agent", TENANT)


async def test_start_uses_ticket_type_and_priority(services):
    await create_ticket(services, priority="high")
    sla = await services.sla.start_for_ticket("T-1", AGENT)

    assert sla.status == SLAStatus.IN_PROGRESS
    assert sla.sla_name == "incident/high"
    assert sla.due_time == START + timedelta(hours=4)


async def test_one_open_timer_per_ticket(services):
    await create_ticket(services)
    await services.sla.start_for_ticket("T-1")
    with pytest.raises(DomainException):
        await services.sla.start_for_ticket("T-1")


async def test_start_for_unknown_ticket(services):
    with pytest.raises(ResourceNotFoundException):
        await services.sla.start_for_ticket("T-404")


async def test_pause_resume_scenario(services):
    """4h target, paused after 1h for 2h: due at 6h, not breached at 5h."""
    await create_ticket(services)
    await services.sla.start_for_ticket("T-1")

    services.clock.advance(hours=1)
    await services.sla.pause_for_ticket("T-1", AGENT, "Waiting on customer")

    services.clock.advance(hours=2)
    due_time = await services.sla.resume_for_ticket("T-1", AGENT)
    assert due_time == START + timedelta(hours=6)

    services.clock.advance(hours=2)
    standing = await services.sla.check_breach_for_ticket("T-1")
    assert not standing.is_breached
    assert standing.percent_elapsed == pytest.approx(83.33, abs=0.01)

    comments = [c.comment_text for c in await load_comments(services)]
    assert comments == ["SLA paused: Waiting on customer", "SLA resumed"]
    assert all(c.is_internal for c in await load_comments(services))


async def test_state_errors(services):
    await create_ticket(services)
    sla = await services.sla.start_for_ticket("T-1")

    with pytest.raises(SLANotActiveError):
        await services.sla.resume(sla.id, None)

    await services.sla.pause(sla.id, None, "Vendor")
    with pytest.raises(SLANotActiveError):
        await services.sla.pause(sla.id, None, "Again")
    with pytest.raises(SLANotActiveError):
        await services.sla.complete(sla.id)


async def test_breach_is_persisted_and_notified_once(services):
    await create_ticket(services)
    sla = await services.sla.start_for_ticket("T-1")

    services.clock.advance(hours=5)
    first = await services.sla.check_breach(sla.id)
    services.clock.advance(hours=1)
    second = await services.sla.check_breach(sla.id)
    await services.dispatcher.drain()

    assert first.newly_breached and not second.newly_breached
    assert second.breach_time == START + timedelta(hours=5)
    assert second.breach_duration == timedelta(hours=2)
    assert services.notifier.sent == [("assignee", "T-1", "sla.breached")]
    assert services.activity.kinds().count("sla.breached") == 1


async def test_complete_late_records_breach(services):
    await create_ticket(services)
    await services.sla.start_for_ticket("T-1")

    services.clock.advance(hours=4, minutes=30)
    sla = await services.sla.complete_for_ticket("T-1")

    assert sla.status == SLAStatus.COMPLETED
    assert sla.is_breached
    assert sla.actual_duration == timedelta(hours=4, minutes=30)


async def test_resolving_ticket_completes_timer(services):
    await create_ticket(services, status="in_progress", resolution="Fixed")
    await services.sla.start_for_ticket("T-1")

    services.clock.advance(hours=1)
    await services.engine.request_transition("T-1", "t-resolve", AGENT)

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.COMPLETED
    assert timer.sla.actual_duration == timedelta(hours=1)


async def test_manual_pause_is_not_auto_resumed(services):
    await create_ticket(services, status="in_progress")
    await services.sla.start_for_ticket("T-1")
    await services.sla.pause_for_ticket("T-1", AGENT, "Customer on holiday")

    outcome = await services.engine.request_transition("T-1", "t-escalate", AGENT)
    await services.approvals.respond_to_approval(outcome.approval_id, "mgr-1", "rejected")

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.PAUSED
    assert timer.sla.pause_reason == "Customer on holiday"


async def test_reprioritize_supersedes_open_timer(services):
    await create_ticket(services, priority="high")
    original = await services.sla.start_for_ticket("T-1")

    services.clock.advance(minutes=30)
    replacement = await services.sla.reprioritize("T-1", "critical", AGENT)

    assert replacement.start_time == original.start_time
    assert replacement.due_time == START + timedelta(hours=1)
    assert replacement.sla_name == "incident/critical"
    assert (await load_ticket(services)).priority == "critical"

    timers = await services.sla.get_ticket_overview("T-1")
    statuses = {t.sla.id: t.sla.status for t in timers}
    assert statuses == {original.id: SLAStatus.COMPLETED, replacement.id: SLAStatus.IN_PROGRESS}


async def test_reprioritize_paused_timer_is_rejected(services):
    await create_ticket(services)
    await services.sla.start_for_ticket("T-1")
    await services.sla.pause_for_ticket("T-1", None, "Waiting")

    with pytest.raises(SLANotActiveError):
        await services.sla.reprioritize("T-1", "critical")
    assert (await load_ticket(services)).priority == "high"


async def test_reprioritize_without_timer(services):
    await create_ticket(services)
    assert await services.sla.reprioritize("T-1", "low") is None
    assert (await load_ticket(services)).priority == "low"


async def test_at_risk_and_breach_reports(services):
    await create_ticket(services, ticket_id="T-1", priority="high")
    await create_ticket(services, ticket_id="T-2", priority="critical")
    await services.sla.start_for_ticket("T-1")
    await services.sla.start_for_ticket("T-2")

    # 50 min in: T-2 (1h) is at 83%, T-1 (4h) at 21%
    services.clock.advance(minutes=50)
    at_risk = await services.sla.list_at_risk(threshold=75)
    assert [s.ticket_id for s in at_risk] == ["T-2"]

    services.clock.advance(minutes=20)
    await services.sla.check_breach_for_ticket("T-2")
    assert await services.sla.list_at_risk(threshold=75) == []

    breaches = await services.sla.list_breaches(days=1)
    assert [b.ticket_id for b in breaches] == ["T-2"]
    assert await services.sla.list_breaches(days=1, priority="high") == []


async def test_sweeper_counts_each_breach_once(services):
    await create_ticket(services, ticket_id="T-1", priority="high")
    await create_ticket(services, ticket_id="T-2", priority="critical")
    await create_ticket(services, ticket_id="T-3", priority="critical")
    await services.sla.start_for_ticket("T-1")
    await services.sla.start_for_ticket("T-2")
    await services.sla.start_for_ticket("T-3")
    await services.sla.pause_for_ticket("T-3", None, "Vendor")

    services.clock.advance(hours=2)
    assert await services.sweeper.sweep() == 1
    assert await services.sweeper.sweep() == 0

    await services.dispatcher.drain()
    assert services.notifier.sent == [("assignee", "T-2", "sla.breached")]


async def test_explicit_start_requires_ticket(services):
    with pytest.raises(ResourceNotFoundException):
        await services.sla.start("T-404", "incident", "high", TENANT)


async def test_other_tenant_cannot_touch_timer(services):
    outsider = Actor("agent-x", "agent", OTHER_TENANT)
    await create_ticket(services)

    with pytest.raises(ForbiddenError):
        await services.sla.start_for_ticket("T-1", outsider)

    await services.sla.start_for_ticket("T-1", AGENT)
    with pytest.raises(ForbiddenError):
        await services.sla.pause_for_ticket("T-1", outsider, "Not mine")
    with pytest.raises(ForbiddenError):
        await services.sla.reprioritize("T-1", "critical", outsider)
    with pytest.raises(ForbiddenError):
        await services.sla.complete_for_ticket("T-1", outsider)

    [timer] = await services.sla.get_ticket_overview("T-1")
    assert timer.sla.status == SLAStatus.IN_PROGRESS
    assert (await load_ticket(services)).priority == "high"


async def test_superuser_crosses_tenants(services):
    admin = Actor("root", "super_admin", OTHER_TENANT)
    await create_ticket(services)
    await services.sla.start_for_ticket("T-1")

    sla = await services.sla.pause_for_ticket("T-1", admin, "Escalated to vendor")
    assert sla.paused_by == "root"
