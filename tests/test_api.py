"""HTTP surface: routing, actor resolution and error rendering."""

import httpx
import pytest

from ticketflow.main import app

from tests.conftest import create_ticket, load_ticket

SERVICE_ATTRS = ("uow_factory", "sla_timers", "approval_coordinator", "transition_engine", "sla_sweeper")


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


@pytest.fixture
async def client(services):
    for name in SERVICE_ATTRS:
        setattr(app.state, name, getattr(services.state, name))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["checks"]["sla_scheduler"] == "stopped"


async def test_correlation_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "req-42"})
    assert response.headers["X-Correlation-ID"] == "req-42"


async def test_request_transition(client, services):
    await create_ticket(services)

    response = await client.post(
        "/tickets/T-1/transitions",
        json={"transition_id": "t-start", "comment": "Picking this up"},
        headers=as_user("agent-1"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "completed"
    assert (body["from_status"], body["new_status"]) == ("open", "in_progress")

    history = await client.get("/tickets/T-1/transitions/history", headers=as_user("agent-1"))
    assert [h["to_status"] for h in history.json()] == ["in_progress"]


async def test_missing_actor_header_is_forbidden(client, services):
    await create_ticket(services)
    response = await client.post("/tickets/T-1/transitions", json={"transition_id": "t-start"})

    assert response.status_code == 403
    assert response.json()["success"] is False
    assert response.json()["error"] == "forbidden"


async def test_unknown_actor_is_forbidden(client, services):
    await create_ticket(services)
    response = await client.get("/tickets/T-1/transitions", headers=as_user("nobody"))
    assert response.status_code == 403


async def test_domain_errors_map_to_status_codes(client, services):
    await create_ticket(services, status="in_progress")

    missing = await client.post(
        "/tickets/T-1/transitions", json={"transition_id": "t-resolve"}, headers=as_user("agent-1")
    )
    assert missing.status_code == 422
    assert missing.json()["error"] == "missing_required_field"
    assert missing.json()["details"]["field"] == "resolution"

    invalid = await client.post(
        "/tickets/T-1/transitions", json={"transition_id": "t-start"}, headers=as_user("agent-1")
    )
    assert invalid.status_code == 409
    assert invalid.json()["error"] == "invalid_transition"

    failed = await client.post(
        "/tickets/T-1/transitions", json={"transition_id": "t-corrupt"}, headers=as_user("agent-1")
    )
    assert failed.status_code == 500
    assert failed.json()["error"] == "transition_failed"

    not_found = await client.get("/tickets/T-404/transitions", headers=as_user("agent-1"))
    assert not_found.status_code == 404


async def test_approval_flow_over_http(client, services):
    await create_ticket(services, status="in_progress")

    requested = await client.post(
        "/tickets/T-1/transitions", json={"to_status": "escalated"}, headers=as_user("agent-1")
    )
    assert requested.json()["outcome"] == "pending_approval"
    approval_id = requested.json()["approval_id"]

    pending = await client.get("/approvals/pending", headers=as_user("mgr-1"))
    assert [a["id"] for a in pending.json()] == [approval_id]

    outsider = await client.get(f"/approvals/{approval_id}", headers=as_user("reporter-1"))
    assert outsider.status_code == 403

    first = await client.post(
        f"/approvals/{approval_id}/respond", json={"response": "approved"}, headers=as_user("mgr-1")
    )
    assert first.json()["outcome"] == "partial"

    again = await client.post(
        f"/approvals/{approval_id}/respond", json={"response": "approved"}, headers=as_user("mgr-1")
    )
    assert again.status_code == 409

    last = await client.post(
        f"/approvals/{approval_id}/respond",
        json={"response": "approved", "response_notes": "OK"},
        headers=as_user("mgr-2"),
    )
    assert last.json()["outcome"] == "approved"
    assert last.json()["ticket_status"] == "escalated"

    detail = await client.get(f"/approvals/{approval_id}", headers=as_user("agent-1"))
    assert detail.json()["status"] == "approved"
    assert {r["user_id"] for r in detail.json()["responses"]} == {"mgr-1", "mgr-2"}


async def test_invalid_decision_is_rejected_by_validation(client, services):
    await create_ticket(services, status="in_progress")
    requested = await client.post(
        "/tickets/T-1/transitions", json={"transition_id": "t-escalate"}, headers=as_user("agent-1")
    )
    approval_id = requested.json()["approval_id"]

    response = await client.post(
        f"/approvals/{approval_id}/respond", json={"response": "maybe"}, headers=as_user("mgr-1")
    )
    assert response.status_code == 422


async def test_sla_lifecycle_over_http(client, services):
    await create_ticket(services)

    started = await client.post("/sla/tickets/T-1/start", headers=as_user("agent-1"))
    assert started.status_code == 201
    assert started.json()["status"] == "in_progress"

    services.clock.advance(hours=1)
    paused = await client.post("/sla/tickets/T-1/pause", json={"reason": "Waiting on customer"})
    assert paused.json()["status"] == "paused"

    twice = await client.post("/sla/tickets/T-1/pause", json={"reason": "Again"})
    assert twice.status_code == 409
    assert twice.json()["error"] == "not_active"

    services.clock.advance(hours=2)
    resumed = await client.post("/sla/tickets/T-1/resume")
    assert resumed.status_code == 200

    overview = await client.get("/sla/tickets/T-1")
    [timer] = overview.json()["timers"]
    assert timer["total_pause_seconds"] == 7200
    assert len(timer["pause_events"]) == 1

    breach = await client.get("/sla/tickets/T-1/breach")
    assert breach.json()["is_breached"] is False


async def test_reprioritize_over_http(client, services):
    await create_ticket(services)
    await client.post("/sla/tickets/T-1/start")

    response = await client.post("/sla/tickets/T-1/priority", json={"priority": "critical"})
    assert response.status_code == 200
    assert response.json()["sla_name"] == "incident/critical"
    assert (await load_ticket(services)).priority == "critical"

    bad = await client.post("/sla/tickets/T-1/priority", json={"priority": "urgent"})
    assert bad.status_code == 422


async def test_breach_and_at_risk_reports(client, services):
    await create_ticket(services, priority="critical")
    await client.post("/sla/tickets/T-1/start")

    services.clock.advance(minutes=50)
    at_risk = await client.get("/sla/at-risk", params={"threshold": 80})
    assert [s["ticket_id"] for s in at_risk.json()] == ["T-1"]

    services.clock.advance(minutes=30)
    await services.sweeper.sweep()

    breaches = await client.get("/sla/breaches", params={"days": 1, "priority": "critical"})
    assert [b["ticket_id"] for b in breaches.json()] == ["T-1"]


async def test_sla_routes_check_the_acting_user(client, services):
    await create_ticket(services)
    await client.post("/sla/tickets/T-1/start", headers=as_user("agent-1"))

    other_tenant = await client.post(
        "/sla/tickets/T-1/pause", json={"reason": "Not mine"}, headers=as_user("agent-x")
    )
    assert other_tenant.status_code == 403
    assert other_tenant.json()["error"] == "forbidden"

    unknown = await client.post("/sla/tickets/T-1/complete", headers=as_user("nobody"))
    assert unknown.status_code == 403

    paused = await client.post(
        "/sla/tickets/T-1/pause", json={"reason": "Waiting on customer"}, headers=as_user("agent-1")
    )
    assert paused.status_code == 200

    [timer] = (await client.get("/sla/tickets/T-1")).json()["timers"]
    assert timer["status"] == "paused"
    assert [e["paused_by"] for e in timer["pause_events"]] == ["agent-1"]
