"""
Collaborator Ports
==================

Interfaces for external collaborators (Dependency Inversion).
"""

from abc import ABC, abstractmethod
from typing import Optional


class IActivitySink(ABC):
    """Activity/audit log. Fire-and-forget: implementations must not raise."""

    @abstractmethod
    def log_activity(
        self,
        actor_id: Optional[str],
        event_kind: str,
        resource_type: str,
        resource_id: str,
        description: str,
    ) -> None:
        """Record one activity event."""


class INotifier(ABC):
    """Notification delivery (webhook, email, ...)."""

    @abstractmethod
    async def notify(self, target: str, ticket_id: str, event: str) -> bool:
        """Deliver a notification; returns True when delivered."""
