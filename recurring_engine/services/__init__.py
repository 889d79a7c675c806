"""Services package."""

from recurring_engine.services.ledger import LedgerError, LedgerInterface
from recurring_engine.services.storage import (
    AuditStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecurringStore,
    InMemoryAuditStorage,
    InMemoryRecurringStore,
    NotFoundError,
    RecurringStoreInterface,
    StorageError,
)

__all__ = [
    # Ledger
    "LedgerError",
    "LedgerInterface",
    # Storage services
    "AuditStorageInterface",
    "ConcurrencyError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecurringStore",
    "InMemoryAuditStorage",
    "InMemoryRecurringStore",
    "NotFoundError",
    "RecurringStoreInterface",
    "StorageError",
]
