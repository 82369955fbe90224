"""
Activity Log
============

Activity/audit sink that writes one structured log record per event to the
``ticketflow.activity`` logger, where the log pipeline picks it up.
"""

from typing import Optional

from ticketflow.shared.application.ports import IActivitySink
from ticketflow.shared.infrastructure.logging import get_logger

activity_logger = get_logger("ticketflow.activity")


class LoggingActivitySink(IActivitySink):
    """Structured-log implementation of the activity sink."""

    def log_activity(
        self,
        actor_id: Optional[str],
        event_kind: str,
        resource_type: str,
        resource_id: str,
        description: str,
    ) -> None:
        activity_logger.info(
            description,
            extra={
                "actor_id": actor_id,
                "event_kind": event_kind,
                "resource_type": resource_type,
                "resource_id": resource_id,
            }
        )
