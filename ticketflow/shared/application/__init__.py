"""
Shared Application Layer
========================

Ports for the fire-and-forget collaborators every context talks to
(activity/audit sink, notification delivery) and the dispatcher that
keeps notification delivery off the request path.
"""

from ticketflow.shared.application.notifications import NotificationDispatcher
from ticketflow.shared.application.ports import IActivitySink, INotifier

__all__ = [
    "IActivitySink",
    "INotifier",
    "NotificationDispatcher",
]
