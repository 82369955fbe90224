"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticketflow", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/ticketflow",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== SLA Configuration ==========
    sla_config_path: Path = Field(
        default=Path("sla_config.yaml"),
        description="Path to SLA target YAML file"
    )
    sla_evaluation_interval: int = Field(
        default=60,
        description="Seconds between background breach sweeps (0 disables the sweep)",
        ge=0
    )
    at_risk_threshold_percent: float = Field(
        default=75.0,
        description="Default percent-elapsed threshold for the at-risk view",
        ge=0,
        le=100
    )
    sla_pause_statuses: List[str] = Field(
        default=["awaiting_approval"],
        description="Ticket statuses that pause the active SLA timer"
    )
    sla_completion_statuses: List[str] = Field(
        default=["resolved", "closed"],
        description="Ticket statuses that complete the active SLA timer"
    )

    # ========== Workflow & Approvals ==========
    superuser_role: str = Field(
        default="super_admin",
        description="Role that bypasses transition role requirements"
    )
    default_approval_role: str = Field(
        default="admin",
        description="Approver role used when a transition names none"
    )
    approval_pool_size: Optional[int] = Field(
        default=3,
        description="Maximum number of approvers frozen on an approval (None = every role holder)",
        ge=1
    )

    # ========== Notifications ==========
    notify_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack-compatible webhook URL for notifications"
    )
    notify_channel: str = Field(
        default="#ticket-workflow",
        description="Channel name sent with webhook notifications"
    )
    notify_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

AWAITING_APPROVAL = "awaiting_approval"


class TicketType(str, Enum):
    """Ticket types covering both agile and service-management tickets."""
    EPIC = "epic"
    STORY = "story"
    TASK = "task"
    BUG = "bug"
    INCIDENT = "incident"
    SERVICE_REQUEST = "service_request"
    PROBLEM = "problem"
    CHANGE = "change"


class Priority(str, Enum):
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SLAStatus(str, Enum):
    """SLA timer lifecycle states."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class ApprovalStatus(str, Enum):
    """Ticket approval states. Approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(str, Enum):
    """An individual approver's answer."""
    APPROVED = "approved"
    REJECTED = "rejected"


# ========== Lists for validation ==========

VALID_TICKET_TYPES = [t.value for t in TicketType]
VALID_PRIORITIES = [p.value for p in Priority]
ACTIVE_SLA_STATUSES = [SLAStatus.NOT_STARTED, SLAStatus.IN_PROGRESS]
OPEN_SLA_STATUSES = [SLAStatus.NOT_STARTED, SLAStatus.IN_PROGRESS, SLAStatus.PAUSED]
