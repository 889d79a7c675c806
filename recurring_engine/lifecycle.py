"""
Recurring Item Lifecycle

The state machine that owns every write to a recurring item:

    create ──► ACTIVE ──pause──► PAUSED
                 ▲  │              │
                 │  └──────────────┘ resume
                 │
        mark_executed / reschedule past end_date ──► EXPIRED

DESIGN DECISIONS:

1. EXPLICIT RECOMPUTE ONLY
   next_execution_date moves on create, mark_executed and reschedule.
   A metadata edit (note, account, category, even frequency) never shifts
   a due date as a side effect.

2. EXPIRY AT COMPUTE TIME
   Whenever a new next date is computed, an active item whose next date
   falls after its end date becomes inactive on the same write.

3. OPTIMISTIC CONCURRENCY
   Every write is read-modify-write with the version that was read, so a
   racing pause and mark_executed cannot silently overwrite each other.

4. FAILURES PROPAGATE
   Collaborator errors are re-raised as the same exception object, with a
   note naming the transition, after being logged and audited.
"""

from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from recurring_engine.audit import AuditLogger
from recurring_engine.config import EngineSettings, get_settings
from recurring_engine.errors import (
    InvalidTransitionError,
    RecurringEngineError,
    RecurringNotFoundError,
    RecurringValidationError,
)
from recurring_engine.models.recurring import (
    CreateRecurringPayload,
    Frequency,
    MonthlyTotals,
    RecurringItem,
    RecurringStatus,
    RecurringSummary,
    UpdateRecurringPayload,
    ValidationResult,
)
from recurring_engine.queries import due_items, monthly_totals, sort_by_next_execution, summarize
from recurring_engine.scheduling import (
    Clock,
    advance_to_on_or_after,
    next_after_execution,
)
from recurring_engine.services.storage import NotFoundError, RecurringStoreInterface
from recurring_engine.validation import (
    RecurringPayloadValidator,
    ensure_valid,
    issues_from_pydantic,
)

logger = structlog.get_logger(__name__)


class RecurringLifecycle:
    """
    Transitions of recurring items within one record store.

    The owning space id is passed explicitly on every call; nothing is read
    from ambient session state. "Today" always comes from the clock.
    """

    def __init__(
        self,
        store: RecurringStoreInterface,
        clock: Clock,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
        validator: Optional[RecurringPayloadValidator] = None,
    ):
        self._store = store
        self._clock = clock
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().engine
        self._validator = validator or RecurringPayloadValidator()

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def create(
        self,
        space_id: str,
        payload: Union[CreateRecurringPayload, dict[str, Any]],
        actor_id: Optional[str] = None,
    ) -> RecurringItem:
        """
        Create a recurring item.

        The first due date is fast-forwarded from start_date to on-or-after
        today. If that date already falls after end_date the item is created
        expired.

        Raises:
            RecurringValidationError: Before anything is persisted
        """
        parsed = await self._parse(space_id, "create", self._validator.parse_create, payload)

        today = self._clock.today()
        self._check(space_id, "create", self._validator.validate_create(parsed, today))

        start_date = parsed.start_date or today
        next_execution_date = self._advance(start_date, parsed.frequency, today)
        is_active = not (parsed.end_date and next_execution_date > parsed.end_date)

        try:
            item = RecurringItem(
                owner_space_id=space_id,
                account_id=parsed.account_id,
                category_id=parsed.category_id,
                category=parsed.category,
                amount=parsed.amount,
                kind=parsed.kind,
                frequency=parsed.frequency,
                start_date=start_date,
                end_date=parsed.end_date,
                next_execution_date=next_execution_date,
                is_active=is_active,
                note=parsed.note,
                created_by=actor_id,
            )
        except ValidationError as e:
            issues = issues_from_pydantic(e)
            await self._audit.log_validation_failed(
                space_id, "create", RecurringPayloadValidator.issues_as_dicts(issues)
            )
            raise RecurringValidationError(issues, operation="create") from e

        async with self._transition("create", space_id, item.id):
            stored = await self._store.insert(item)

        logger.info(
            "recurring_created",
            space_id=space_id,
            item_id=str(stored.id),
            frequency=stored.frequency.value,
            next_execution_date=stored.next_execution_date.isoformat(),
            is_active=stored.is_active,
        )
        await self._audit.log_created(
            space_id,
            stored.id,
            stored.frequency.value,
            stored.next_execution_date,
            stored.is_active,
            actor_id=actor_id,
        )
        if not stored.is_active:
            await self._audit.log_expired(
                space_id, stored.id, stored.end_date, stored.next_execution_date
            )
        return stored

    async def update(
        self,
        space_id: str,
        item_id: UUID,
        payload: Union[UpdateRecurringPayload, dict[str, Any]],
    ) -> RecurringItem:
        """
        Apply a partial update.

        Only fields present in the payload change. next_execution_date is
        never recomputed here, even when frequency or start_date change;
        call reschedule for that. An end_date moved before the stored
        next_execution_date expires an active item in the same write.
        """
        parsed = await self._parse(
            space_id, "update", self._validator.parse_update, payload, item_id=item_id
        )
        current = await self.get(space_id, item_id)
        self._check(space_id, "update", self._validator.validate_update(parsed, current))

        changes = parsed.changes()
        if not changes:
            return current
        fields = sorted(changes)

        end_date = changes.get("end_date", current.end_date)
        expires = current.is_active and _past_end(end_date, current.next_execution_date)
        if expires:
            changes["is_active"] = False

        stored = await self._write("update", current, changes)
        logger.info(
            "recurring_updated",
            space_id=space_id,
            item_id=str(item_id),
            fields=fields,
            expired=expires,
        )
        await self._audit.log_updated(space_id, item_id, fields)
        if expires:
            await self._audit.log_expired(
                space_id, item_id, end_date, current.next_execution_date
            )
        return stored

    async def reschedule(self, space_id: str, item_id: UUID) -> RecurringItem:
        """
        Recompute next_execution_date from start_date and frequency.

        The new date is the first one on or after today. An active item
        whose new date falls after its end date becomes expired; a paused
        item stays paused.
        """
        current = await self.get(space_id, item_id)
        today = self._clock.today()
        next_execution_date = self._advance(current.start_date, current.frequency, today)

        changes: dict[str, Any] = {"next_execution_date": next_execution_date}
        expires = current.is_active and _past_end(current.end_date, next_execution_date)
        if expires:
            changes["is_active"] = False

        stored = await self._write("reschedule", current, changes)
        logger.info(
            "recurring_rescheduled",
            space_id=space_id,
            item_id=str(item_id),
            previous=current.next_execution_date.isoformat(),
            next_execution_date=next_execution_date.isoformat(),
        )
        await self._audit.log_rescheduled(
            space_id, item_id, current.next_execution_date, next_execution_date
        )
        if expires:
            await self._audit.log_expired(space_id, item_id, current.end_date, next_execution_date)
        return stored

    async def mark_executed(
        self,
        space_id: str,
        item_id: UUID,
        execution_date: Optional[date] = None,
    ) -> RecurringItem:
        """
        Record a firing and move to the next date.

        The next date is exactly one step after execution_date (default:
        today). If it falls after end_date the item expires, and the
        computed date is still stored for display.
        """
        current = await self.get(space_id, item_id)
        executed_on = execution_date or self._clock.today()
        candidate = next_after_execution(executed_on, current.frequency)

        changes: dict[str, Any] = {
            "last_executed_date": executed_on,
            "next_execution_date": candidate,
        }
        expires = current.is_active and _past_end(current.end_date, candidate)
        if expires:
            changes["is_active"] = False

        stored = await self._write("mark_executed", current, changes)
        logger.info(
            "recurring_executed",
            space_id=space_id,
            item_id=str(item_id),
            executed_date=executed_on.isoformat(),
            next_execution_date=candidate.isoformat(),
            expired=expires,
        )
        await self._audit.log_executed(space_id, item_id, executed_on, candidate)
        if expires:
            await self._audit.log_expired(space_id, item_id, current.end_date, candidate)
        return stored

    async def pause(self, space_id: str, item_id: UUID) -> RecurringItem:
        """Active -> Paused. Already paused or expired items are returned unchanged."""
        current = await self.get(space_id, item_id)
        if not current.is_active:
            logger.debug(
                "recurring_pause_noop",
                space_id=space_id,
                item_id=str(item_id),
                status=current.status.value,
            )
            return current

        stored = await self._write("pause", current, {"is_active": False})
        logger.info("recurring_paused", space_id=space_id, item_id=str(item_id))
        await self._audit.log_paused(space_id, item_id)
        return stored

    async def resume(self, space_id: str, item_id: UUID) -> RecurringItem:
        """
        Paused -> Active.

        The stored next_execution_date is kept, so an item paused long
        enough is simply due on the next scan. With
        RECURRING_RESUME_FAST_FORWARD it is moved to on-or-after today
        instead, keeping the schedule's phase.

        Raises:
            InvalidTransitionError: The item is expired; withdraw or move
                its end date first
        """
        current = await self.get(space_id, item_id)
        if current.status == RecurringStatus.ACTIVE:
            return current
        if current.status == RecurringStatus.EXPIRED:
            error = InvalidTransitionError(item_id, current.status.value, "resume")
            await self._audit.log_transition_failed(space_id, "resume", str(error), item_id)
            raise error

        changes: dict[str, Any] = {"is_active": True}
        next_execution_date = current.next_execution_date
        if self._settings.resume_fast_forward:
            next_execution_date = self._advance(
                current.next_execution_date, current.frequency, self._clock.today()
            )
            changes["next_execution_date"] = next_execution_date
            if _past_end(current.end_date, next_execution_date):
                changes["is_active"] = False

        stored = await self._write("resume", current, changes)
        if not stored.is_active:
            logger.info(
                "recurring_resume_expired",
                space_id=space_id,
                item_id=str(item_id),
                next_execution_date=next_execution_date.isoformat(),
            )
            await self._audit.log_expired(
                space_id, item_id, current.end_date, next_execution_date
            )
            return stored

        logger.info(
            "recurring_resumed",
            space_id=space_id,
            item_id=str(item_id),
            next_execution_date=next_execution_date.isoformat(),
        )
        await self._audit.log_resumed(space_id, item_id, next_execution_date)
        return stored

    async def delete(self, space_id: str, item_id: UUID) -> None:
        """Remove an item. Raises RecurringNotFoundError if it is already gone."""
        async with self._transition("delete", space_id, item_id):
            removed = await self._store.delete(space_id, item_id)
        if not removed:
            raise RecurringNotFoundError(space_id, item_id)

        logger.info("recurring_deleted", space_id=space_id, item_id=str(item_id))
        await self._audit.log_deleted(space_id, item_id)

    async def delete_all_in_space(self, space_id: str) -> int:
        """Remove every item of a space; returns how many were removed."""
        async with self._transition("delete_all_in_space", space_id):
            count = await self._store.delete_all(space_id)

        logger.info("recurring_space_cleared", space_id=space_id, count=count)
        await self._audit.log_space_cleared(space_id, count)
        return count

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, space_id: str, item_id: UUID) -> RecurringItem:
        """Fetch one item. Raises RecurringNotFoundError if absent."""
        async with self._transition("get", space_id, item_id):
            item = await self._store.get(space_id, item_id)
        if item is None:
            raise RecurringNotFoundError(space_id, item_id)
        return item

    async def list_items(
        self,
        space_id: str,
        active_only: bool = False,
    ) -> list[RecurringItem]:
        """A space's items, next_execution_date ascending."""
        async with self._transition("list_items", space_id):
            items = await self._store.query(space_id, is_active=True if active_only else None)
        return sort_by_next_execution(items)

    async def due_items(
        self,
        space_id: str,
        reference_date: Optional[date] = None,
    ) -> list[RecurringItem]:
        """Items to fire as of reference_date (default: today), oldest first."""
        reference_date = reference_date or self._clock.today()
        async with self._transition("due_items", space_id):
            candidates = await self._store.query(
                space_id,
                is_active=True,
                next_execution_on_or_before=reference_date,
            )
        return sort_by_next_execution(due_items(candidates, reference_date))

    async def monthly_totals(self, space_id: str) -> MonthlyTotals:
        """Monthly-equivalent expenses and income of the active items."""
        return monthly_totals(await self.list_items(space_id, active_only=True))

    async def summary(
        self,
        space_id: str,
        reference_date: Optional[date] = None,
    ) -> RecurringSummary:
        """Status counts, due-today count and monthly totals."""
        reference_date = reference_date or self._clock.today()
        return summarize(await self.list_items(space_id), reference_date)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _advance(self, start_date: date, frequency: Frequency, reference_date: date) -> date:
        return advance_to_on_or_after(
            start_date,
            frequency,
            reference_date,
            max_steps=self._settings.max_fast_forward_steps,
        )

    async def _parse(
        self,
        space_id: str,
        operation: str,
        parse: Callable[[Any], Any],
        payload: Any,
        item_id: Optional[UUID] = None,
    ):
        try:
            return parse(payload)
        except RecurringValidationError as e:
            logger.warning(
                "recurring_validation_failed",
                space_id=space_id,
                operation=operation,
                fields=e.fields,
            )
            await self._audit.log_validation_failed(
                space_id,
                operation,
                RecurringPayloadValidator.issues_as_dicts(e.issues),
                item_id=item_id,
            )
            raise

    def _check(self, space_id: str, operation: str, result: ValidationResult) -> None:
        ensure_valid(result, operation)
        for warning in result.warnings:
            logger.warning(
                "recurring_validation_warning",
                space_id=space_id,
                operation=operation,
                warning=warning,
            )

    async def _write(
        self,
        transition: str,
        current: RecurringItem,
        changes: dict[str, Any],
    ) -> RecurringItem:
        """Compare-and-swap write against the version that was read."""
        space_id = current.owner_space_id
        async with self._transition(transition, space_id, current.id):
            try:
                return await self._store.update(
                    space_id,
                    current.id,
                    changes,
                    expected_version=current.version,
                )
            except NotFoundError as e:
                if isinstance(e, RecurringNotFoundError):
                    raise
                # Deleted between read and write
                raise RecurringNotFoundError(space_id, current.id) from e

    @asynccontextmanager
    async def _transition(
        self,
        transition: str,
        space_id: str,
        item_id: Optional[UUID] = None,
    ):
        """Annotate, log and audit collaborator failures, then re-raise them."""
        try:
            yield
        except RecurringEngineError:
            raise
        except Exception as e:
            e.add_note(f"while attempting {transition}")
            logger.error(
                "recurring_transition_failed",
                transition=transition,
                space_id=space_id,
                item_id=str(item_id) if item_id else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._audit.log_transition_failed(
                space_id, transition, str(e), item_id=item_id
            )
            raise


def _past_end(end_date: Optional[date], next_execution_date: date) -> bool:
    return end_date is not None and next_execution_date > end_date
