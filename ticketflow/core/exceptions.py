"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Every exception carries a stable ``error_code`` and the HTTP status it maps to,
so the interface layer can render failures without knowing each type.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code = "application_error"
    http_status = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    error_code = "domain_error"
    http_status = 409


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    error_code = "validation_error"
    http_status = 400


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = "not_found"
    http_status = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details or {
            "resource_type": resource_type,
            "resource_id": resource_id,
        })


class ConfigurationException(ApplicationException):
    """Exception for configuration errors (workflow or SLA definitions)."""

    error_code = "configuration_error"


# ========== Workflow ==========

class InvalidTransitionError(DomainException):
    """No transition edge matches the ticket's current status."""

    error_code = "invalid_transition"

    def __init__(self, ticket_id: str, current_status: str, message: Optional[str] = None):
        self.ticket_id = ticket_id
        self.current_status = current_status
        super().__init__(
            message or f"Invalid transition for current ticket status '{current_status}'",
            {"ticket_id": ticket_id, "current_status": current_status}
        )


class ForbiddenError(DomainException):
    """Actor lacks the role or membership an operation requires."""

    error_code = "forbidden"
    http_status = 403


class MissingRequiredFieldError(DomainException):
    """A field named by the transition is empty on the ticket."""

    error_code = "missing_required_field"
    http_status = 422

    def __init__(self, ticket_id: str, field: str):
        self.ticket_id = ticket_id
        self.field = field
        super().__init__(
            f"Required field missing: {field}",
            {"ticket_id": ticket_id, "field": field}
        )


class TransitionFailedError(DomainException):
    """
    A side-effect action failed while applying a transition.

    The whole unit of work has been rolled back, so the identical request
    may be retried.
    """

    error_code = "transition_failed"
    http_status = 500

    def __init__(self, ticket_id: str, reason: str, details: Optional[dict] = None):
        self.ticket_id = ticket_id
        self.reason = reason
        super().__init__(
            f"Transition failed for ticket {ticket_id}: {reason}",
            {"ticket_id": ticket_id, **(details or {})}
        )


class ActionExecutionError(DomainException):
    """Raised by a transition action handler; surfaces as TransitionFailedError."""

    error_code = "action_failed"


# ========== Approvals ==========

class DuplicateResponseError(DomainException):
    """The user already responded to this approval."""

    error_code = "duplicate_response"

    def __init__(self, approval_id: str, user_id: str):
        super().__init__(
            "You have already responded to this approval",
            {"approval_id": approval_id, "user_id": user_id}
        )


class ApprovalNotPendingError(DomainException):
    """The approval already reached a terminal state."""

    error_code = "approval_not_pending"

    def __init__(self, approval_id: str, status: str):
        self.approval_id = approval_id
        self.status = status
        super().__init__(
            f"Approval {approval_id} is already {status}",
            {"approval_id": approval_id, "status": status}
        )


# ========== SLA ==========

class SLANotActiveError(DomainException):
    """Pause, resume or completion was requested in the wrong timer state."""

    error_code = "not_active"

    def __init__(self, ticket_sla_id: str, status: str, operation: str):
        self.ticket_sla_id = ticket_sla_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} SLA {ticket_sla_id} while it is {status}",
            {"ticket_sla_id": ticket_sla_id, "status": status, "operation": operation}
        )
