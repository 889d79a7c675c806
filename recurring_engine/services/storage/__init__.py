"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the record store.
Ships an in-memory store and a Google Sheets backend; both are swappable.
"""

from recurring_engine.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecurringStoreInterface,
    StorageError,
)
from recurring_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecurringStore,
)
from recurring_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecurringStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecurringStoreInterface",
    # Exceptions
    "ConcurrencyError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecurringStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecurringStore",
]
