"""Loading workflow definitions from YAML."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ticketflow.core import ConfigurationException
from ticketflow.workflow.infrastructure.seed import WorkflowSpec, load_workflow_file, seed_workflows

WORKFLOWS_FILE = Path(__file__).resolve().parent.parent / "workflows.yaml"


def test_bundled_file_parses():
    specs = load_workflow_file(WORKFLOWS_FILE)
    assert [s.ticket_type for s in specs] == ["incident", "service_request", "change"]

    change = specs[2]
    approval_edges = [t for t in change.transitions if t.requires_approval]
    assert approval_edges and all(t.approval_role == "cab_member" for t in approval_edges)


def test_unknown_action_is_rejected_before_writing():
    spec = WorkflowSpec(
        name="Broken",
        ticket_type="task",
        transitions=[{"name": "x", "from": "open", "to": "done", "actions": [{"action": "page"}]}],
    )
    with pytest.raises(ConfigurationException):
        spec.to_domain(None)


def test_transition_needs_endpoints():
    with pytest.raises(ValidationError):
        WorkflowSpec(name="Broken", ticket_type="task", transitions=[{"name": "x", "from": "open"}])


async def test_seeding_is_idempotent(services):
    specs = load_workflow_file(WORKFLOWS_FILE)

    # "Incident" v1 is already stored by the fixture
    created = await seed_workflows(services.uow_factory, specs, clock=services.clock)
    assert sorted(w.name for w in created) == ["Change", "Service Request"]

    assert await seed_workflows(services.uow_factory, specs, clock=services.clock) == []

    [change] = await services.engine.list_workflows(ticket_type="change")
    stored = await services.engine.get_workflow(change.id)
    assert len(stored.transitions) == len(specs[2].transitions)
