"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticketflow.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    InvalidTransitionError,
    ForbiddenError,
    MissingRequiredFieldError,
    TransitionFailedError,
    ActionExecutionError,
    DuplicateResponseError,
    ApprovalNotPendingError,
    SLANotActiveError,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "InvalidTransitionError",
    "ForbiddenError",
    "MissingRequiredFieldError",
    "TransitionFailedError",
    "ActionExecutionError",
    "DuplicateResponseError",
    "ApprovalNotPendingError",
    "SLANotActiveError",
]
