"""
In-Memory Storage Implementation

Keeps recurring items in a dict per space. Used by the tests and by
deployments that fetch a collection once and run the engine against it.

Items are copied on the way in and out, so callers can never mutate the
stored record behind the store's back.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import UUID

from recurring_engine.models.audit import AuditEvent
from recurring_engine.models.recurring import RecurringItem
from recurring_engine.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyError,
    DuplicateError,
    NotFoundError,
    RecurringStoreInterface,
    StorageError,
)

# Fields the store owns; callers cannot overwrite them through update().
_PROTECTED_FIELDS = {"id", "owner_space_id", "created_at", "updated_at", "version"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecurringStore(RecurringStoreInterface):
    """
    Dict-backed implementation of the recurring item store.

    A single asyncio lock makes each write atomic with respect to other
    coroutines on the same loop.
    """

    def __init__(self):
        self._spaces: dict[str, dict[UUID, RecurringItem]] = {}
        self._lock = asyncio.Lock()

    def _space(self, space_id: str) -> dict[UUID, RecurringItem]:
        return self._spaces.setdefault(space_id, {})

    async def insert(self, item: RecurringItem) -> RecurringItem:
        """Persist a new item, stamping timestamps and version 1."""
        async with self._lock:
            space = self._space(item.owner_space_id)
            if item.id in space:
                raise DuplicateError(f"Recurring item already exists: {item.id}")

            now = _utcnow()
            stored = item.model_copy(
                update={"created_at": now, "updated_at": now, "version": 1}
            )
            space[stored.id] = stored
            return stored.model_copy()

    async def get(self, space_id: str, item_id: UUID) -> Optional[RecurringItem]:
        """Retrieve an item by its ID."""
        item = self._spaces.get(space_id, {}).get(item_id)
        return item.model_copy() if item else None

    async def update(
        self,
        space_id: str,
        item_id: UUID,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> RecurringItem:
        """Apply a partial update with an optional version check."""
        protected = _PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise StorageError(f"Cannot update store-owned fields: {sorted(protected)}")

        async with self._lock:
            space = self._spaces.get(space_id, {})
            current = space.get(item_id)
            if current is None:
                raise NotFoundError(f"Recurring item not found: {item_id}")
            if expected_version is not None and current.version != expected_version:
                raise ConcurrencyError(item_id, expected_version, current.version)

            data = current.model_dump()
            data.update(changes)
            data["updated_at"] = _utcnow()
            data["version"] = current.version + 1
            # Re-validate so a bad change can never be stored.
            stored = RecurringItem.model_validate(data)
            space[item_id] = stored
            return stored.model_copy()

    async def delete(self, space_id: str, item_id: UUID) -> bool:
        """Delete an item by ID."""
        async with self._lock:
            return self._spaces.get(space_id, {}).pop(item_id, None) is not None

    async def query(
        self,
        space_id: str,
        is_active: Optional[bool] = None,
        next_execution_on_or_before: Optional[date] = None,
        next_execution_on_or_after: Optional[date] = None,
    ) -> list[RecurringItem]:
        """List a space's items, ordered by next_execution_date."""
        items = []
        for item in self._spaces.get(space_id, {}).values():
            if is_active is not None and item.is_active != is_active:
                continue
            if (
                next_execution_on_or_before
                and item.next_execution_date > next_execution_on_or_before
            ):
                continue
            if (
                next_execution_on_or_after
                and item.next_execution_date < next_execution_on_or_after
            ):
                continue
            items.append(item.model_copy())

        items.sort(key=lambda i: (i.next_execution_date, str(i.id)))
        return items

    async def delete_all(self, space_id: str) -> int:
        """Drop every item of a space."""
        async with self._lock:
            removed = self._spaces.pop(space_id, {})
            return len(removed)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(self, entity_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.entity_id == entity_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)
