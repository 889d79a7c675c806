"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep scheduling logic decoupled from storage implementation

The interface is a generic keyed record store partitioned by owning space:
insert, get, partial update, delete, a query on is_active and the
next_execution_date range, and a batch delete.

Every update is a compare-and-swap on the record version. Lifecycle
transitions are read-modify-write; the version check is what stops a
racing mark-executed and pause from silently overwriting each other.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional
from uuid import UUID

from recurring_engine.errors import (  # noqa: F401 - re-exported
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from recurring_engine.models.audit import AuditEvent
from recurring_engine.models.recurring import RecurringItem


class RecurringStoreInterface(ABC):
    """
    Abstract interface for recurring item storage.

    Any storage implementation (Google Sheets, a document database, memory)
    must implement these methods.
    """

    @abstractmethod
    async def insert(self, item: RecurringItem) -> RecurringItem:
        """
        Persist a new recurring item.

        The store assigns created_at, updated_at and version.

        Returns:
            The stored item

        Raises:
            DuplicateError: If an item with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, space_id: str, item_id: UUID) -> Optional[RecurringItem]:
        """
        Retrieve an item by its ID within a space.

        Returns:
            The item if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(
        self,
        space_id: str,
        item_id: UUID,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> RecurringItem:
        """
        Apply a partial update to an item.

        Args:
            space_id: Owning space
            item_id: The item's unique identifier
            changes: Field name -> new value; absent fields are untouched
            expected_version: If given, the write only happens when the
                stored version still equals it

        Returns:
            The item as stored after the update

        Raises:
            NotFoundError: If the item doesn't exist
            ConcurrencyError: If the stored version differs
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, space_id: str, item_id: UUID) -> bool:
        """
        Delete an item by ID.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def query(
        self,
        space_id: str,
        is_active: Optional[bool] = None,
        next_execution_on_or_before: Optional[date] = None,
        next_execution_on_or_after: Optional[date] = None,
    ) -> list[RecurringItem]:
        """
        List a space's items with optional filters.

        Returns:
            Items ordered by next_execution_date ascending
        """
        pass

    @abstractmethod
    async def delete_all(self, space_id: str) -> int:
        """
        Delete every item in a space as one batch.

        Returns:
            Number of items deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific recurring item.

        Returns:
            List of events in chronological order
        """
        pass

