"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ticketflow.config import VALID_PRIORITIES, VALID_TICKET_TYPES

_ZERO = timedelta(0)


class SLAClock:
    """
    Pure functions for SLA time arithmetic.

    Stateless utility class - every elapsed-time, pause and percentage
    calculation of the timer goes through here.
    """

    @staticmethod
    def elapsed(start: datetime, end: datetime) -> timedelta:
        """Time between two instants, never negative."""
        return max(end - start, _ZERO)

    @staticmethod
    def shift(due_time: datetime, paused_for: timedelta) -> datetime:
        """Push a deadline forward by a paused interval."""
        return due_time + max(paused_for, _ZERO)

    @staticmethod
    def remaining(due_time: datetime, now: datetime) -> timedelta:
        """Time left before the deadline (zero once past due)."""
        return max(due_time - now, _ZERO)

    @staticmethod
    def overdue(due_time: datetime, now: datetime) -> timedelta:
        """How far past the deadline we are (zero before it)."""
        return max(now - due_time, _ZERO)

    @staticmethod
    def percent_elapsed(start: datetime, due_time: datetime, now: datetime) -> float:
        """
        Share of the start..due window consumed at ``now``.

        Clamped to [0, 100]; a window of zero length counts as fully used.
        """
        window = (due_time - start).total_seconds()
        if window <= 0:
            return 100.0
        used = (now - start).total_seconds()
        return round(max(0.0, min(100.0, used / window * 100)), 2)


class SLAConfig(BaseModel):
    """
    SLA target configuration loaded from YAML.

    Lookup order for a (ticket type, priority, tenant) triple:
    tenant override for the type, ticket-type override, priority default.

    This is a value object - immutable and defined by its attributes.
    """
    sla_targets: Dict[str, int] = Field(
        default_factory=dict,
        validate_default=True,
        description="Default SLA target in minutes by priority"
    )
    ticket_type_targets: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        description="Per ticket type targets in minutes by priority"
    )
    tenant_overrides: Dict[str, Dict[str, Dict[str, int]]] = Field(
        default_factory=dict,
        description="Per tenant, per ticket type targets in minutes by priority"
    )

    @field_validator("sla_targets")
    @classmethod
    def validate_sla_targets(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Fill in every priority so lookups never miss."""
        defaults = {"critical": 240, "high": 480, "medium": 1440, "low": 4320}
        v = dict(v)
        for priority in VALID_PRIORITIES:
            v.setdefault(priority, defaults[priority])
        for priority, minutes in v.items():
            if minutes <= 0:
                raise ValueError(f"SLA target for '{priority}' must be positive")
        return v

    @field_validator("ticket_type_targets")
    @classmethod
    def validate_ticket_type_targets(
        cls, v: Dict[str, Dict[str, int]]
    ) -> Dict[str, Dict[str, int]]:
        """Reject overrides for ticket types the tracker does not know."""
        unknown = sorted(set(v) - set(VALID_TICKET_TYPES))
        if unknown:
            raise ValueError(f"Unknown ticket types in ticket_type_targets: {unknown}")
        return v

    def get_target_minutes(
        self,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str] = None
    ) -> int:
        """Resolve the SLA target for a ticket in minutes."""
        if tenant_id is not None:
            tenant_targets = self.tenant_overrides.get(str(tenant_id), {})
            minutes = tenant_targets.get(ticket_type, {}).get(priority)
            if minutes:
                return minutes

        minutes = self.ticket_type_targets.get(ticket_type, {}).get(priority)
        if minutes:
            return minutes

        return self.sla_targets.get(priority, 1440)

    def get_definition(
        self,
        ticket_type: str,
        priority: str,
        tenant_id: Optional[str] = None
    ) -> "SLADefinition":
        """Build the definition applied to a new timer."""
        return SLADefinition(
            name=f"{ticket_type}/{priority}",
            target=timedelta(minutes=self.get_target_minutes(ticket_type, priority, tenant_id)),
        )


@dataclass(frozen=True)
class SLADefinition:
    """Resolved SLA target for one ticket type and priority."""
    name: str
    target: timedelta
