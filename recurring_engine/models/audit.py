"""
Audit Models for Recurring Transactions

Every lifecycle transition of a recurring item is logged for audit purposes.
This provides:
1. Complete traceability of schedule changes
2. Debugging information when a due date looks wrong
3. Ability to reconstruct an item's history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every lifecycle transition has its own event type.
    """
    # Lifecycle
    RECURRING_CREATED = "recurring_created"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_RESCHEDULED = "recurring_rescheduled"
    RECURRING_EXECUTED = "recurring_executed"
    RECURRING_EXPIRED = "recurring_expired"
    RECURRING_PAUSED = "recurring_paused"
    RECURRING_RESUMED = "recurring_resumed"
    RECURRING_DELETED = "recurring_deleted"
    SPACE_CLEARED = "space_cleared"

    # Boundary
    VALIDATION_FAILED = "validation_failed"
    TRANSITION_FAILED = "transition_failed"

    # Execution runs
    EXECUTION_RUN_COMPLETED = "execution_run_completed"
    LEDGER_ERROR = "ledger_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every lifecycle transition creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which space and item is this about?
    space_id: Optional[str] = Field(
        default=None,
        description="Owning space of the entity"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the recurring item this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="Actor who triggered the event, if known"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "space_id": self.space_id,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "actor_id": self.actor_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.created(space_id, item_id, next_date, active)
        event = AuditEventBuilder.executed(space_id, item_id, executed, next_date)
    """

    @staticmethod
    def created(
        space_id: str,
        item_id: UUID,
        frequency: str,
        next_execution_date: date,
        is_active: bool,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_CREATED,
            space_id=space_id,
            entity_id=item_id,
            actor_id=actor_id,
            description=f"Recurring item created ({frequency}), next on {next_execution_date}",
            details={
                "frequency": frequency,
                "next_execution_date": _iso(next_execution_date),
                "is_active": is_active,
            },
        )

    @staticmethod
    def updated(
        space_id: str,
        item_id: UUID,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_UPDATED,
            space_id=space_id,
            entity_id=item_id,
            description=f"Recurring item updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
        )

    @staticmethod
    def rescheduled(
        space_id: str,
        item_id: UUID,
        previous: date,
        next_execution_date: date,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RESCHEDULED,
            space_id=space_id,
            entity_id=item_id,
            description=f"Next execution moved from {previous} to {next_execution_date}",
            details={
                "previous": _iso(previous),
                "next_execution_date": _iso(next_execution_date),
            },
        )

    @staticmethod
    def executed(
        space_id: str,
        item_id: UUID,
        executed_date: date,
        next_execution_date: date,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_EXECUTED,
            space_id=space_id,
            entity_id=item_id,
            description=f"Executed on {executed_date}, next on {next_execution_date}",
            details={
                "executed_date": _iso(executed_date),
                "next_execution_date": _iso(next_execution_date),
            },
        )

    @staticmethod
    def expired(
        space_id: str,
        item_id: UUID,
        end_date: Optional[date],
        next_execution_date: date,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_EXPIRED,
            space_id=space_id,
            entity_id=item_id,
            description=f"Expired: next execution {next_execution_date} is after end date {end_date}",
            details={
                "end_date": _iso(end_date),
                "next_execution_date": _iso(next_execution_date),
            },
        )

    @staticmethod
    def paused(space_id: str, item_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_PAUSED,
            space_id=space_id,
            entity_id=item_id,
            description="Recurring item paused",
        )

    @staticmethod
    def resumed(
        space_id: str,
        item_id: UUID,
        next_execution_date: date,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RESUMED,
            space_id=space_id,
            entity_id=item_id,
            description=f"Recurring item resumed, next on {next_execution_date}",
            details={"next_execution_date": _iso(next_execution_date)},
        )

    @staticmethod
    def deleted(space_id: str, item_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_DELETED,
            space_id=space_id,
            entity_id=item_id,
            description="Recurring item deleted",
        )

    @staticmethod
    def space_cleared(space_id: str, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPACE_CLEARED,
            space_id=space_id,
            description=f"Deleted {count} recurring items",
            details={"count": count},
        )

    @staticmethod
    def validation_failed(
        space_id: str,
        operation: str,
        issues: list[dict],
        item_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            space_id=space_id,
            entity_id=item_id,
            description=f"{operation.capitalize()} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def transition_failed(
        space_id: str,
        transition: str,
        error_message: str,
        item_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSITION_FAILED,
            severity=AuditSeverity.ERROR,
            space_id=space_id,
            entity_id=item_id,
            description=f"Transition failed: {transition}",
            error_message=error_message,
            details={"transition": transition},
        )

    @staticmethod
    def execution_run_completed(
        space_id: str,
        reference_date: date,
        executed: int,
        failed: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXECUTION_RUN_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            space_id=space_id,
            description=f"Execution run for {reference_date}: {executed} executed, {failed} failed",
            details={
                "reference_date": _iso(reference_date),
                "executed": executed,
                "failed": failed,
            },
        )

    @staticmethod
    def ledger_error(
        space_id: str,
        item_id: UUID,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ERROR,
            severity=AuditSeverity.ERROR,
            space_id=space_id,
            entity_id=item_id,
            description="Ledger rejected a recurring firing",
            error_message=error_message,
        )
