"""
Shared Domain Primitives
========================

Framework-free helpers shared by every bounded context.
"""

from ticketflow.shared.domain.clock import Clock, utc_now

__all__ = ["Clock", "utc_now"]
