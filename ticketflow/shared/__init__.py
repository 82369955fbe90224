"""
Shared Kernel Module
====================

This module contains shared infrastructure and domain elements used across
all bounded contexts (Workflow and SLA).

Architecture Pattern: Modular Monolith
- Each module (workflow, sla) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models are extended within each module

DO NOT add business logic from Workflow or SLA to shared kernel.
"""

__version__ = "1.0.0"
