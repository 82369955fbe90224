"""
Clock
=====

Services never call ``datetime.now`` directly; they receive a ``Clock`` so
time can be frozen and advanced in tests.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
