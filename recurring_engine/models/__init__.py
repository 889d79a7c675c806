"""
Data Models Package

This package contains all Pydantic models used by the recurring engine.
All data flowing through the engine must conform to these schemas.
"""

from recurring_engine.models.recurring import (
    CreateRecurringPayload,
    ExecutionFailure,
    ExecutionReport,
    Frequency,
    MonthlyTotals,
    RecurringItem,
    RecurringStatus,
    RecurringSummary,
    TransactionKind,
    UpdateRecurringPayload,
    ValidationIssue,
    ValidationResult,
)
from recurring_engine.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Recurring models
    "CreateRecurringPayload",
    "ExecutionFailure",
    "ExecutionReport",
    "Frequency",
    "MonthlyTotals",
    "RecurringItem",
    "RecurringStatus",
    "RecurringSummary",
    "TransactionKind",
    "UpdateRecurringPayload",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
