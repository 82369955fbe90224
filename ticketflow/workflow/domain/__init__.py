"""
Workflow Domain Layer
=====================

Contains pure business logic for ticket workflows and approvals.
"""

from ticketflow.workflow.domain.actions import (
    AddCommentAction,
    AssignAction,
    NotifyAction,
    SetFieldAction,
    TransitionAction,
    action_to_dict,
    parse_action,
    parse_actions,
)
from ticketflow.workflow.domain.approvals import (
    ApprovalOutcome,
    ApprovalOutcomeKind,
    ApprovalResponse,
    TicketApproval,
)
from ticketflow.workflow.domain.entities import (
    Actor,
    OutcomeKind,
    Ticket,
    TicketComment,
    Transition,
    TransitionHistory,
    TransitionOutcome,
    Workflow,
    is_blank,
)

__all__ = [
    "Actor",
    "AddCommentAction",
    "ApprovalOutcome",
    "ApprovalOutcomeKind",
    "ApprovalResponse",
    "AssignAction",
    "NotifyAction",
    "OutcomeKind",
    "SetFieldAction",
    "Ticket",
    "TicketApproval",
    "TicketComment",
    "Transition",
    "TransitionAction",
    "TransitionHistory",
    "TransitionOutcome",
    "Workflow",
    "action_to_dict",
    "is_blank",
    "parse_action",
    "parse_actions",
]
