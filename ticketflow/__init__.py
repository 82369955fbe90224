"""
Ticketflow
==========

Workflow & SLA engine for a multi-tenant ticket tracker.

Bounded contexts:
- workflow: ticket state machine, transition actions, multi-approver approvals
- sla: SLA timers with pause/resume accounting and breach detection
"""

__version__ = "1.0.0"
