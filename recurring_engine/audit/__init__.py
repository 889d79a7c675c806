"""Audit logging package."""

from recurring_engine.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
