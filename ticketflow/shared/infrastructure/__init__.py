"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Structured logging setup
- Webhook notifier behind the notification dispatcher
- Activity log sink
"""
