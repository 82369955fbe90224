"""
SLA Application Layer
======================

Application layer for the SLA timer module.

Contains:
- Services: timer lifecycle and background breach sweep
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from ticketflow.sla.application.dto import (
    BreachQueryDTO,
    BreachStatusResponse,
    PauseEventResponse,
    PauseSLARequest,
    ReprioritizeRequest,
    ResumeResponse,
    TicketSLAListResponse,
    TicketSLAResponse,
)
from ticketflow.sla.application.services import (
    ISLADefinitionProvider,
    ISLARepository,
    SLABreachSweeper,
    SLATimerService,
    TimerOverview,
)

__all__ = [
    # DTOs
    "BreachQueryDTO",
    "BreachStatusResponse",
    "PauseEventResponse",
    "PauseSLARequest",
    "ReprioritizeRequest",
    "ResumeResponse",
    "TicketSLAListResponse",
    "TicketSLAResponse",
    # Services
    "SLATimerService",
    "SLABreachSweeper",
    "TimerOverview",
    # Repository Interfaces
    "ISLARepository",
    "ISLADefinitionProvider",
]
