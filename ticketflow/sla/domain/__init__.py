"""
SLA Domain Layer
================

Domain layer for SLA timers.

Contains:
- Entities: TicketSLA, SlaPauseEvent, BreachStatus
- Value Objects: SLAConfig, SLADefinition
- Domain Services: SLAClock (pure time arithmetic)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from ticketflow.sla.domain.entities import BreachStatus, SlaPauseEvent, TicketSLA
from ticketflow.sla.domain.value_objects import SLAClock, SLAConfig, SLADefinition

__all__ = [
    # Entities
    "TicketSLA",
    "SlaPauseEvent",
    "BreachStatus",
    # Value Objects & Services
    "SLAClock",
    "SLAConfig",
    "SLADefinition",
]
