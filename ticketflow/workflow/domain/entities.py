"""
Workflow Domain Entities
========================

Pure Python domain entities for the ticket workflow.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.

A workflow is a directed graph over ticket statuses, scoped to one ticket
type. Its edges are transitions carrying the guards (required role,
required fields, approval) and the side-effect actions applied with them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from ticketflow.config import AWAITING_APPROVAL
from ticketflow.core import ActionExecutionError, ConfigurationException
from ticketflow.workflow.domain.actions import TransitionAction

# Columns a set_field action may never touch
PROTECTED_FIELDS = frozenset({
    "id", "tenant_id", "type", "status", "priority", "is_deleted", "created_at", "updated_at",
})

# Ticket attributes stored as columns; anything else lives in ``Ticket.fields``
CORE_FIELDS = ("title", "description", "assignee_id", "reporter_id")


def is_blank(value: Any) -> bool:
    """True for None, blank strings and empty collections. 0 and False are values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""
    id: str
    role: str
    tenant_id: Optional[str] = None

    def can_access(self, tenant_id: Optional[str], superuser_role: str) -> bool:
        """Tenant scope: same tenant, untenanted data, or the superuser role."""
        if self.tenant_id is None or tenant_id is None:
            return True
        return self.tenant_id == tenant_id or self.role == superuser_role


@dataclass
class Ticket:
    """
    Ticket as seen by the workflow engine.

    Only ``move_to`` changes the status; field updates from transition
    actions go through ``set_field``.
    """

    id: str
    tenant_id: Optional[str]
    type: str
    status: str
    priority: str
    title: str = ""
    description: Optional[str] = None
    assignee_id: Optional[str] = None
    reporter_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_field(self, name: str) -> Any:
        if name in CORE_FIELDS:
            return getattr(self, name)
        return self.fields.get(name)

    def has_value(self, name: str) -> bool:
        return not is_blank(self.get_field(name))

    def set_field(self, name: str, value: Any) -> None:
        if not name or name in PROTECTED_FIELDS:
            raise ActionExecutionError(
                f"Field '{name}' cannot be set by a transition action",
                {"ticket_id": self.id, "field": name}
            )
        if name in CORE_FIELDS:
            setattr(self, name, value)
        else:
            self.fields = {**self.fields, name: value}

    def move_to(self, status: str, now: datetime) -> None:
        self.status = status
        self.updated_at = now


@dataclass
class Transition:
    """One edge of a workflow graph."""

    id: str
    workflow_id: str
    name: str
    from_status: str
    to_status: str
    required_role: Optional[str] = None
    required_fields: List[str] = field(default_factory=list)
    requires_approval: bool = False
    approval_role: Optional[str] = None
    actions: List[TransitionAction] = field(default_factory=list)
    button_text: Optional[str] = None

    def role_allows(self, actor: Actor, superuser_role: str) -> bool:
        """Role guard: exact role match, or the superuser role."""
        if not self.required_role:
            return True
        return actor.role == self.required_role or actor.role == superuser_role

    def first_missing_field(self, ticket: Ticket) -> Optional[str]:
        """First required field that is blank on the ticket, in declared order."""
        for name in self.required_fields:
            if not ticket.has_value(name):
                return name
        return None


@dataclass
class Workflow:
    """A named, versioned status graph for one ticket type."""

    id: str
    name: str
    ticket_type: str
    description: Optional[str] = None
    version: int = 1
    is_default: bool = True
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    transitions: List[Transition] = field(default_factory=list)

    @property
    def statuses(self) -> Set[str]:
        """Every node of the graph, including the approval sentinel."""
        nodes = {AWAITING_APPROVAL}
        for transition in self.transitions:
            nodes.add(transition.from_status)
            nodes.add(transition.to_status)
        return nodes

    def has_status(self, status: str) -> bool:
        return status in self.statuses

    def get_transition(self, transition_id: str) -> Optional[Transition]:
        for transition in self.transitions:
            if transition.id == transition_id:
                return transition
        return None

    def transitions_from(self, status: str) -> List[Transition]:
        return [t for t in self.transitions if t.from_status == status]

    def find_transition(self, from_status: str, to_status: str) -> Optional[Transition]:
        """
        Edge for a (from, to) pair.

        Raises:
            ConfigurationException: More than one edge matches
        """
        matches = [
            t for t in self.transitions
            if t.from_status == from_status and t.to_status == to_status
        ]
        if len(matches) > 1:
            raise ConfigurationException(
                f"Workflow '{self.name}' has {len(matches)} transitions "
                f"from '{from_status}' to '{to_status}'",
                {"workflow_id": self.id, "transition_ids": [t.id for t in matches]}
            )
        return matches[0] if matches else None


@dataclass
class TransitionHistory:
    """Audit row for one status change."""

    id: str
    ticket_id: str
    transition_id: Optional[str]
    from_status: str
    to_status: str
    performed_by: Optional[str]
    comment: Optional[str]
    metadata: Dict[str, Any]
    performed_at: datetime

    @classmethod
    def record(
        cls,
        ticket_id: str,
        transition_id: Optional[str],
        from_status: str,
        to_status: str,
        performed_by: Optional[str],
        now: datetime,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "TransitionHistory":
        return cls(
            id=str(uuid4()),
            ticket_id=ticket_id,
            transition_id=transition_id,
            from_status=from_status,
            to_status=to_status,
            performed_by=performed_by,
            comment=comment,
            metadata=dict(metadata or {}),
            performed_at=now,
        )


@dataclass
class TicketComment:
    id: str
    ticket_id: str
    user_id: Optional[str]
    comment_text: str
    is_internal: bool
    created_at: datetime

    @classmethod
    def new(
        cls,
        ticket_id: str,
        user_id: Optional[str],
        text: str,
        now: datetime,
        is_internal: bool = False,
    ) -> "TicketComment":
        return cls(
            id=str(uuid4()),
            ticket_id=ticket_id,
            user_id=user_id,
            comment_text=text,
            is_internal=is_internal,
            created_at=now,
        )


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    PENDING_APPROVAL = "pending_approval"


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of a transition request."""

    kind: OutcomeKind
    ticket_id: str
    transition_id: str
    from_status: str
    status: str
    approval_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED
