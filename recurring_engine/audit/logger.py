"""
Audit Logger

DESIGN DECISION: Every lifecycle transition is logged.
This provides:
1. Complete traceability of schedule changes
2. Debugging capability when a due date looks wrong
3. A per-item history that can be shown to the user

The audit logger:
- Is async so it fits the lifecycle's call flow
- Gracefully handles failures (a failed audit write never fails a transition)
- Logs locally through structlog, and persists when storage is configured
"""

import logging
import sys
from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from recurring_engine.config import LoggingSettings, get_settings
from recurring_engine.models.audit import AuditEvent, AuditEventBuilder
from recurring_engine.services.storage import AuditStorageInterface


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure structlog for local logging.

    Call once at startup. JSON lines by default; LOG_RENDER_JSON=false
    switches to the console renderer for local development.
    """
    settings = settings or get_settings().logging
    level = getattr(logging, settings.level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.render_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and per-item history), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def history(self, item_id: UUID) -> list[AuditEvent]:
        """Events recorded for one recurring item, oldest first."""
        if not self._storage:
            return []
        return await self._storage.get_events_by_entity(item_id)

    # ── Convenience wrappers ──────────────────────────────

    async def log_created(
        self,
        space_id: str,
        item_id: UUID,
        frequency: str,
        next_execution_date: date,
        is_active: bool,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log item creation."""
        await self.log(AuditEventBuilder.created(
            space_id=space_id,
            item_id=item_id,
            frequency=frequency,
            next_execution_date=next_execution_date,
            is_active=is_active,
            actor_id=actor_id,
        ))

    async def log_updated(self, space_id: str, item_id: UUID, fields: list[str]) -> None:
        """Log a metadata edit."""
        await self.log(AuditEventBuilder.updated(space_id, item_id, fields))

    async def log_rescheduled(
        self,
        space_id: str,
        item_id: UUID,
        previous: date,
        next_execution_date: date,
    ) -> None:
        """Log an explicit recompute of the due date."""
        await self.log(AuditEventBuilder.rescheduled(
            space_id, item_id, previous, next_execution_date
        ))

    async def log_executed(
        self,
        space_id: str,
        item_id: UUID,
        executed_date: date,
        next_execution_date: date,
    ) -> None:
        """Log a firing."""
        await self.log(AuditEventBuilder.executed(
            space_id, item_id, executed_date, next_execution_date
        ))

    async def log_expired(
        self,
        space_id: str,
        item_id: UUID,
        end_date: Optional[date],
        next_execution_date: date,
    ) -> None:
        """Log an item passing its end date."""
        await self.log(AuditEventBuilder.expired(
            space_id, item_id, end_date, next_execution_date
        ))

    async def log_paused(self, space_id: str, item_id: UUID) -> None:
        await self.log(AuditEventBuilder.paused(space_id, item_id))

    async def log_resumed(
        self,
        space_id: str,
        item_id: UUID,
        next_execution_date: date,
    ) -> None:
        await self.log(AuditEventBuilder.resumed(space_id, item_id, next_execution_date))

    async def log_deleted(self, space_id: str, item_id: UUID) -> None:
        await self.log(AuditEventBuilder.deleted(space_id, item_id))

    async def log_space_cleared(self, space_id: str, count: int) -> None:
        await self.log(AuditEventBuilder.space_cleared(space_id, count))

    async def log_validation_failed(
        self,
        space_id: str,
        operation: str,
        issues: list[dict],
        item_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected payload."""
        await self.log(AuditEventBuilder.validation_failed(
            space_id=space_id,
            operation=operation,
            issues=issues,
            item_id=item_id,
        ))

    async def log_transition_failed(
        self,
        space_id: str,
        transition: str,
        error_message: str,
        item_id: Optional[UUID] = None,
    ) -> None:
        """Log a transition aborted by a collaborator failure."""
        await self.log(AuditEventBuilder.transition_failed(
            space_id=space_id,
            transition=transition,
            error_message=error_message,
            item_id=item_id,
        ))

    async def log_execution_run(
        self,
        space_id: str,
        reference_date: date,
        executed: int,
        failed: int,
    ) -> None:
        """Log the outcome of one execution run."""
        await self.log(AuditEventBuilder.execution_run_completed(
            space_id, reference_date, executed, failed
        ))

    async def log_ledger_error(
        self,
        space_id: str,
        item_id: UUID,
        error_message: str,
    ) -> None:
        """Log a ledger failure."""
        await self.log(AuditEventBuilder.ledger_error(space_id, item_id, error_message))
