"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for the SLA timer:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: config file watcher and background scheduler
"""

from ticketflow.sla.infrastructure.external import SLAConfigManager, SLAScheduler
from ticketflow.sla.infrastructure.models import SlaPauseEventModel, TicketSLAModel
from ticketflow.sla.infrastructure.repositories import SQLAlchemySLARepository

__all__ = [
    "TicketSLAModel",
    "SlaPauseEventModel",
    "SQLAlchemySLARepository",
    "SLAConfigManager",
    "SLAScheduler",
]
