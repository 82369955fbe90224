"""
Workflow Infrastructure Layer
=============================

Infrastructure implementations for workflows and approvals:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from ticketflow.workflow.infrastructure.repositories import (
    SQLAlchemyApprovalRepository,
    SQLAlchemyCommentRepository,
    SQLAlchemyTicketRepository,
    SQLAlchemyTransitionHistoryRepository,
    SQLAlchemyUserDirectory,
    SQLAlchemyWorkflowRepository,
)

__all__ = [
    "SQLAlchemyApprovalRepository",
    "SQLAlchemyCommentRepository",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyTransitionHistoryRepository",
    "SQLAlchemyUserDirectory",
    "SQLAlchemyWorkflowRepository",
]
