"""
Workflow Module
===============

Ticket state machine: workflow definitions, the transition engine and the
multi-approver approval protocol.
"""
