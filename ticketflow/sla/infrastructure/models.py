"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
Durations are stored as float seconds.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ticketflow.config import SLAStatus
from ticketflow.infrastructure.database import Base, UTCDateTime


class TicketSLAModel(Base):
    """
    Database model for TicketSLA entity.

    Maps to the 'ticket_slas' table.
    """
    __tablename__ = "ticket_slas"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Ticket reference
    ticket_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tickets.id"), nullable=False, index=True
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    sla_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=SLAStatus.IN_PROGRESS.value)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    due_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Pause tracking
    total_pause_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pause_start_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    pause_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paused_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    paused_automatically: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Breach tracking
    is_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    breach_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    breach_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Completion
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    actual_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("ix_ticket_slas_status_due", "status", "due_time"),
        Index("ix_ticket_slas_breach_time", "is_breached", "breach_time"),
    )


class SlaPauseEventModel(Base):
    """
    Database model for SlaPauseEvent entity.

    Maps to the 'sla_pause_events' table.
    """
    __tablename__ = "sla_pause_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_sla_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ticket_slas.id"), nullable=False, index=True
    )

    paused_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    pause_reason: Mapped[str] = mapped_column(Text, nullable=False)
    paused_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    resumed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resumed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    pause_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
