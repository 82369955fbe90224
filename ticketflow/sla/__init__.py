"""
SLA Module
==========

Bounded Context for per-ticket SLA timers.

Responsibilities:
- Start a timer with a deadline resolved from ticket type, priority and tenant
- Pause and resume without costing the ticket any SLA budget
- Detect breaches (sticky, first detection time kept) and notify once
- Complete the timer when the ticket is resolved
- At-risk and breach views for dashboards
- Hot-reload SLA targets via watchdog
"""
