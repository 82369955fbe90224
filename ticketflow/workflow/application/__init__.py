"""
Workflow Application Layer
==========================

Contains:
- Services: transition engine, transition executor, approval coordinator
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticketflow.workflow.application.approvals import ApprovalCoordinator
from ticketflow.workflow.application.dto import (
    ApprovalDetailResponse,
    ApprovalOutcomeResponse,
    ApprovalResponseRequest,
    TransitionHistoryResponse,
    TransitionOutcomeResponse,
    TransitionRequest,
    TransitionResponse,
    WorkflowResponse,
)
from ticketflow.workflow.application.services import (
    IApprovalRepository,
    ICommentRepository,
    ITicketRepository,
    ITransitionHistoryRepository,
    IUserDirectory,
    IWorkflowRepository,
    TransitionEngine,
    TransitionExecutor,
)

__all__ = [
    # DTOs
    "ApprovalDetailResponse",
    "ApprovalOutcomeResponse",
    "ApprovalResponseRequest",
    "TransitionHistoryResponse",
    "TransitionOutcomeResponse",
    "TransitionRequest",
    "TransitionResponse",
    "WorkflowResponse",
    # Services
    "ApprovalCoordinator",
    "TransitionEngine",
    "TransitionExecutor",
    # Repository Interfaces
    "IApprovalRepository",
    "ICommentRepository",
    "ITicketRepository",
    "ITransitionHistoryRepository",
    "IUserDirectory",
    "IWorkflowRepository",
]
