"""
Workflow Application DTOs
=========================

Data Transfer Objects for the workflow and approval API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ticketflow.workflow.domain import (
    ApprovalOutcome,
    ApprovalResponse,
    TicketApproval,
    Transition,
    TransitionHistory,
    TransitionOutcome,
    Workflow,
    action_to_dict,
)

# ========== Type Aliases for Literals ==========
DecisionStr = Literal["approved", "rejected"]


# ========== Request DTOs ==========

class TransitionRequest(BaseModel):
    """Request model for performing a transition."""
    transition_id: Optional[str] = Field(None, description="Transition to perform")
    to_status: Optional[str] = Field(None, description="Target status, when no transition ID is given")
    comment: Optional[str] = Field(None, description="Comment recorded with the transition")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form audit metadata")

    @model_validator(mode="after")
    def require_target(self) -> "TransitionRequest":
        """Either a transition ID or a target status must be given."""
        if not self.transition_id and not self.to_status:
            raise ValueError("transition_id or to_status is required")
        return self


class ApprovalResponseRequest(BaseModel):
    """Request model for answering an approval."""
    response: DecisionStr = Field(..., description="approved or rejected")
    response_notes: Optional[str] = Field(None, description="Reason or remarks")


# ========== Response DTOs ==========

class TransitionResponse(BaseModel):
    """One workflow edge."""
    id: str
    workflow_id: str
    name: str
    from_status: str
    to_status: str
    required_role: Optional[str] = None
    required_fields: List[str] = Field(default_factory=list)
    requires_approval: bool = False
    approval_role: Optional[str] = None
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    button_text: Optional[str] = None

    @classmethod
    def from_domain(cls, transition: Transition) -> "TransitionResponse":
        return cls(
            id=transition.id,
            workflow_id=transition.workflow_id,
            name=transition.name,
            from_status=transition.from_status,
            to_status=transition.to_status,
            required_role=transition.required_role,
            required_fields=list(transition.required_fields),
            requires_approval=transition.requires_approval,
            approval_role=transition.approval_role,
            actions=[action_to_dict(a) for a in transition.actions],
            button_text=transition.button_text,
        )


class WorkflowResponse(BaseModel):
    """Workflow summary, with transitions when requested."""
    id: str
    name: str
    ticket_type: str
    description: Optional[str] = None
    version: int
    is_default: bool
    is_active: bool
    transition_count: int
    transitions: Optional[List[TransitionResponse]] = None

    @classmethod
    def from_domain(cls, workflow: Workflow, with_transitions: bool = False) -> "WorkflowResponse":
        return cls(
            id=workflow.id,
            name=workflow.name,
            ticket_type=workflow.ticket_type,
            description=workflow.description,
            version=workflow.version,
            is_default=workflow.is_default,
            is_active=workflow.is_active,
            transition_count=len(workflow.transitions),
            transitions=(
                [TransitionResponse.from_domain(t) for t in workflow.transitions]
                if with_transitions else None
            ),
        )


class TransitionOutcomeResponse(BaseModel):
    """Result of a transition request."""
    outcome: Literal["completed", "pending_approval"]
    ticket_id: str
    transition_id: str
    from_status: str
    new_status: str
    approval_id: Optional[str] = None

    @classmethod
    def from_domain(cls, outcome: TransitionOutcome) -> "TransitionOutcomeResponse":
        return cls(
            outcome=outcome.kind.value,
            ticket_id=outcome.ticket_id,
            transition_id=outcome.transition_id,
            from_status=outcome.from_status,
            new_status=outcome.status,
            approval_id=outcome.approval_id,
        )


class TransitionHistoryResponse(BaseModel):
    id: str
    ticket_id: str
    transition_id: Optional[str] = None
    from_status: str
    to_status: str
    performed_by: Optional[str] = None
    comment: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    performed_at: datetime

    @classmethod
    def from_domain(cls, entry: TransitionHistory) -> "TransitionHistoryResponse":
        return cls(
            id=entry.id,
            ticket_id=entry.ticket_id,
            transition_id=entry.transition_id,
            from_status=entry.from_status,
            to_status=entry.to_status,
            performed_by=entry.performed_by,
            comment=entry.comment,
            metadata=entry.metadata,
            performed_at=entry.performed_at,
        )


class ApprovalResponseItem(BaseModel):
    user_id: str
    response: DecisionStr
    response_notes: Optional[str] = None
    responded_at: datetime

    @classmethod
    def from_domain(cls, response: ApprovalResponse) -> "ApprovalResponseItem":
        return cls(
            user_id=response.user_id,
            response=response.response.value,
            response_notes=response.response_notes,
            responded_at=response.responded_at,
        )


class ApprovalDetailResponse(BaseModel):
    """An approval with its frozen approver set and responses."""
    id: str
    ticket_id: str
    transition_id: str
    requested_by: str
    requested_at: datetime
    status: Literal["pending", "approved", "rejected"]
    previous_status: str
    required_approvers: List[str]
    approved_by: List[str]
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    responses: List[ApprovalResponseItem] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, approval: TicketApproval) -> "ApprovalDetailResponse":
        return cls(
            id=approval.id,
            ticket_id=approval.ticket_id,
            transition_id=approval.transition_id,
            requested_by=approval.requested_by,
            requested_at=approval.requested_at,
            status=approval.status.value,
            previous_status=approval.previous_status,
            required_approvers=list(approval.required_approvers),
            approved_by=list(approval.approved_by),
            rejected_by=approval.rejected_by,
            rejection_reason=approval.rejection_reason,
            completed_at=approval.completed_at,
            responses=[
                ApprovalResponseItem.from_domain(r)
                for r in sorted(approval.responses, key=lambda r: r.responded_at, reverse=True)
            ],
        )


class ApprovalOutcomeResponse(BaseModel):
    """Result of answering an approval."""
    outcome: Literal["partial", "approved", "rejected"]
    approval_id: str
    ticket_id: str
    approval_status: Literal["pending", "approved", "rejected"]
    ticket_status: str
    approved_count: int
    required_count: int

    @classmethod
    def from_domain(cls, outcome: ApprovalOutcome) -> "ApprovalOutcomeResponse":
        return cls(
            outcome=outcome.kind.value,
            approval_id=outcome.approval_id,
            ticket_id=outcome.ticket_id,
            approval_status=outcome.status.value,
            ticket_status=outcome.ticket_status,
            approved_count=outcome.approved_count,
            required_count=outcome.required_count,
        )
