"""
Workflow Interfaces Layer
=========================

API routes for workflows, transitions and approvals.
"""

from ticketflow.workflow.interfaces.controllers import router as workflow_router

__all__ = ["workflow_router"]
