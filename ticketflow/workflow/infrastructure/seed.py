"""
Workflow Seeding
================

Loads workflow definitions from YAML into the workflow tables.

File layout::

    workflows:
      - name: Incident
        ticket_type: incident
        transitions:
          - name: Start work
            from: open
            to: in_progress
            required_role: agent
            actions:
              - {action: set_field, field: started_at, value: now}
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ticketflow.core.unit_of_work import AbstractUnitOfWork
from ticketflow.shared.domain.clock import Clock, utc_now
from ticketflow.shared.infrastructure.logging import get_logger
from ticketflow.workflow.domain import Transition, Workflow, parse_actions

logger = get_logger(__name__)


class TransitionSpec(BaseModel):
    """One transition as written in the file."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    from_status: str = Field(..., alias="from")
    to_status: str = Field(..., alias="to")
    required_role: Optional[str] = None
    required_fields: List[str] = Field(default_factory=list)
    requires_approval: bool = False
    approval_role: Optional[str] = None
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    button_text: Optional[str] = None


class WorkflowSpec(BaseModel):
    """One workflow as written in the file."""
    name: str
    ticket_type: str
    description: Optional[str] = None
    version: int = 1
    is_default: bool = True
    is_active: bool = True
    transitions: List[TransitionSpec] = Field(default_factory=list)

    def to_domain(self, now) -> Workflow:
        workflow_id = str(uuid4())
        return Workflow(
            id=workflow_id,
            name=self.name,
            ticket_type=self.ticket_type,
            description=self.description,
            version=self.version,
            is_default=self.is_default,
            is_active=self.is_active,
            created_at=now,
            transitions=[
                Transition(
                    id=str(uuid4()),
                    workflow_id=workflow_id,
                    name=t.name,
                    from_status=t.from_status,
                    to_status=t.to_status,
                    required_role=t.required_role,
                    required_fields=list(t.required_fields),
                    requires_approval=t.requires_approval,
                    approval_role=t.approval_role,
                    # Unknown action kinds fail here, before anything is written
                    actions=parse_actions(t.actions),
                    button_text=t.button_text,
                )
                for t in self.transitions
            ],
        )


class WorkflowFile(BaseModel):
    workflows: List[WorkflowSpec] = Field(default_factory=list)


def load_workflow_file(path: Path) -> List[WorkflowSpec]:
    """Parse a workflow YAML file."""
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    return WorkflowFile(**data).workflows


async def seed_workflows(
    uow_factory: Callable[[], AbstractUnitOfWork],
    specs: List[WorkflowSpec],
    clock: Clock = utc_now,
) -> List[Workflow]:
    """
    Insert every workflow not stored yet, in one transaction.

    A workflow counts as stored when one with the same ticket type, name
    and version exists. Returns the workflows that were inserted.
    """
    now = clock()
    created: List[Workflow] = []

    async with uow_factory() as uow:
        for spec in specs:
            existing = await uow.workflows.list(ticket_type=spec.ticket_type)
            if any(w.name == spec.name and w.version == spec.version for w in existing):
                logger.info(
                    "Workflow already seeded",
                    extra={"workflow_name": spec.name, "ticket_type": spec.ticket_type}
                )
                continue

            workflow = spec.to_domain(now)
            await uow.workflows.add(workflow)
            created.append(workflow)
            logger.info(
                "Workflow seeded",
                extra={
                    "workflow_id": workflow.id,
                    "workflow_name": workflow.name,
                    "ticket_type": workflow.ticket_type,
                    "transition_count": len(workflow.transitions),
                }
            )
        await uow.commit()

    return created
