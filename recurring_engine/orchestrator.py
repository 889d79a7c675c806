"""
Execution Orchestrator for the Recurring Engine

This module ties the components together and defines the end-to-end
execution flow:

    due scan -> ledger.materialize -> lifecycle.mark_executed

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine never schedules itself; a caller triggers every run
- An item is marked executed only after the ledger accepted its firing
- One failing item never stops the rest of the run
- Every run is audited
"""

from datetime import date
from typing import Optional

import structlog

from recurring_engine.audit import AuditLogger
from recurring_engine.config import Settings, get_settings
from recurring_engine.lifecycle import RecurringLifecycle
from recurring_engine.models.recurring import ExecutionFailure, ExecutionReport
from recurring_engine.scheduling import Clock, SystemClock
from recurring_engine.services.ledger import LedgerInterface
from recurring_engine.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecurringStore,
    InMemoryAuditStorage,
    InMemoryRecurringStore,
    RecurringStoreInterface,
)

logger = structlog.get_logger(__name__)


class RecurringExecutionFlow:
    """
    Drives a space's due items through the ledger.

    Flow, per item (oldest due date first):
    1. ledger.materialize(item, item.next_execution_date)
    2. lifecycle.mark_executed(space_id, item.id, reference_date)

    The firing is booked on the date the item was due, while the schedule
    advances from the run's reference date.
    """

    def __init__(
        self,
        lifecycle: RecurringLifecycle,
        ledger: LedgerInterface,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
    ):
        self._lifecycle = lifecycle
        self._ledger = ledger
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or SystemClock()

    async def run(
        self,
        space_id: str,
        reference_date: Optional[date] = None,
    ) -> ExecutionReport:
        """
        Execute every item due on or before reference_date (default: today).

        Returns:
            ExecutionReport with executed ids, ledger references, expiries
            and per-item failures
        """
        reference_date = reference_date or self._clock.today()
        report = ExecutionReport(space_id=space_id, reference_date=reference_date)

        due = await self._lifecycle.due_items(space_id, reference_date)
        logger.info(
            "execution_run_started",
            space_id=space_id,
            reference_date=reference_date.isoformat(),
            due_count=len(due),
        )

        for item in due:
            try:
                ref = await self._ledger.materialize(item, item.next_execution_date)
            except Exception as e:
                logger.error(
                    "ledger_materialize_failed",
                    space_id=space_id,
                    item_id=str(item.id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._audit.log_ledger_error(space_id, item.id, str(e))
                report.failures.append(
                    ExecutionFailure(item_id=item.id, stage="ledger", error=str(e))
                )
                continue

            report.ledger_refs[str(item.id)] = ref

            try:
                executed = await self._lifecycle.mark_executed(
                    space_id, item.id, reference_date
                )
            except Exception as e:
                # The ledger already holds the transaction; surface the mismatch.
                logger.error(
                    "mark_executed_failed",
                    space_id=space_id,
                    item_id=str(item.id),
                    ledger_ref=ref,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                report.failures.append(
                    ExecutionFailure(item_id=item.id, stage="mark_executed", error=str(e))
                )
                continue

            report.executed.append(item.id)
            if item.is_active and not executed.is_active:
                report.expired.append(item.id)

        logger.info(
            "execution_run_completed",
            space_id=space_id,
            reference_date=reference_date.isoformat(),
            executed=report.executed_count,
            failed=len(report.failures),
        )
        await self._audit.log_execution_run(
            space_id, reference_date, report.executed_count, len(report.failures)
        )
        return report


def create_app_components(
    ledger: LedgerInterface,
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> tuple[RecurringLifecycle, RecurringExecutionFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    The record store follows STORAGE_BACKEND. If the Google Sheets backend
    cannot be configured, falls back to in-memory storage with a warning.

    Returns:
        (lifecycle, execution_flow, sheets_client)
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()

    sheets_client = None
    store: RecurringStoreInterface
    audit_logger: AuditLogger

    if settings.app.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRecurringStore(
                sheets_client,
                allow_legacy_frequency=settings.engine.legacy_frequency_fallback,
            )
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", backend="google_sheets", error=str(e))
            sheets_client = None
            store = InMemoryRecurringStore()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        store = InMemoryRecurringStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    lifecycle = RecurringLifecycle(
        store,
        clock,
        audit_logger=audit_logger,
        settings=settings.engine,
    )
    execution_flow = RecurringExecutionFlow(
        lifecycle,
        ledger,
        audit_logger=audit_logger,
        clock=clock,
    )

    return lifecycle, execution_flow, sheets_client
