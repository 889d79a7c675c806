"""
Error Taxonomy

Engine errors:
- RecurringValidationError: bad payload, reported before any write
- RecurringNotFoundError: transition on an item that no longer exists
- InvalidTransitionError: transition not allowed from the current state
- InvariantViolationError: programming error, the engine refuses to guess

Storage errors (StorageError and subclasses) are raised by record stores
and propagate unchanged through the lifecycle. They are re-exported from
recurring_engine.services.storage.
"""

from typing import Optional
from uuid import UUID

from recurring_engine.models.recurring import ValidationIssue


# =============================================================================
# STORAGE
# =============================================================================

class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConcurrencyError(StorageError):
    """The stored version changed between read and write."""

    def __init__(self, item_id: UUID, expected: int, actual: int):
        self.item_id = item_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Recurring item {item_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


# =============================================================================
# ENGINE
# =============================================================================

class RecurringEngineError(Exception):
    """Base exception for engine-level failures."""
    pass


class RecurringValidationError(RecurringEngineError):
    """
    A create or update payload was rejected.

    Carries every issue found, so callers can tell the user which field
    failed.
    """

    def __init__(self, issues: list[ValidationIssue], operation: str = "create"):
        self.issues = issues
        self.operation = operation
        fields = ", ".join(sorted({i.field for i in issues if i.severity == "error"}))
        super().__init__(f"Invalid {operation} payload: {fields or 'unknown field'}")

    @property
    def fields(self) -> list[str]:
        return [i.field for i in self.issues if i.severity == "error"]


class RecurringNotFoundError(NotFoundError, RecurringEngineError):
    """The targeted recurring item does not exist (or was deleted)."""

    def __init__(self, space_id: str, item_id: UUID):
        self.space_id = space_id
        self.item_id = item_id
        super().__init__(f"Recurring item not found: {item_id} (space {space_id})")


class InvalidTransitionError(RecurringEngineError):
    """The lifecycle does not allow this transition from the current state."""

    def __init__(self, item_id: UUID, from_status: str, transition: str):
        self.item_id = item_id
        self.from_status = from_status
        self.transition = transition
        super().__init__(
            f"Cannot {transition} recurring item {item_id} while {from_status}"
        )


class InvariantViolationError(RecurringEngineError):
    """
    A contract was broken by the caller.

    Not a recoverable runtime condition: fix the calling code.
    """

    def __init__(self, message: str, value: Optional[object] = None):
        self.value = value
        super().__init__(message)
