"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is a zero-setup backend for a personal
wallet: the user can see their recurring items directly in a spreadsheet.

TRADEOFFS:
- Not suitable for high-volume data (fine for personal use)
- No transactions; the version column gives compare-and-swap on a
  best-effort basis (read-check-write inside one call)
- Limited query capabilities (we filter in Python)

Rows are partitioned by the owner_space_id column. Records written by older
app versions may carry an unknown frequency tag; those are read through
coerce_legacy_frequency.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recurring_engine.config import get_settings
from recurring_engine.models.audit import AuditEvent, AuditEventType, AuditSeverity
from recurring_engine.models.recurring import RecurringItem, TransactionKind
from recurring_engine.scheduling.frequency import coerce_legacy_frequency
from recurring_engine.services.storage.interface import (
    AuditStorageInterface,
    ConcurrencyError,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecurringStoreInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)


# Column mappings for the recurring sheet
RECURRING_COLUMNS = [
    "id",
    "owner_space_id",
    "account_id",
    "category_id",
    "category",
    "amount",
    "kind",
    "frequency",
    "start_date",
    "end_date",
    "last_executed_date",
    "next_execution_date",
    "is_active",
    "note",
    "created_by",
    "created_at",
    "updated_at",
    "version",
]

_COL = {name: idx for idx, name in enumerate(RECURRING_COLUMNS)}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "space_id",
    "entity_id",
    "actor_id",
    "description",
    "details",
    "error_message",
]

_api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_recurring_sheet(self) -> gspread.Worksheet:
        """Get or create the recurring items worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.recurring_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.recurring_sheet_name,
                rows=1000,
                cols=len(RECURRING_COLUMNS),
            )
            sheet.append_row(RECURRING_COLUMNS)
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.audit_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.audit_sheet_name,
                rows=1000,
                cols=len(AUDIT_COLUMNS),
            )
            sheet.append_row(AUDIT_COLUMNS)
        return sheet


class GoogleSheetsRecurringStore(RecurringStoreInterface):
    """
    Google Sheets implementation of the recurring item store.

    One row per item; the first row holds the column headers.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        allow_legacy_frequency: Optional[bool] = None,
    ):
        self._client = client or GoogleSheetsClient()
        if allow_legacy_frequency is None:
            allow_legacy_frequency = get_settings().engine.legacy_frequency_fallback
        self._allow_legacy_frequency = allow_legacy_frequency

    # ── Row codec ─────────────────────────────────────────

    def _item_to_row(self, item: RecurringItem) -> list:
        """Convert a RecurringItem to a spreadsheet row."""
        def iso(value: Optional[date]) -> str:
            return value.isoformat() if value else ""

        return [
            str(item.id),
            item.owner_space_id,
            item.account_id,
            item.category_id or "",
            item.category or "",
            str(item.amount),
            item.kind.value,
            item.frequency.value,
            item.start_date.isoformat(),
            iso(item.end_date),
            iso(item.last_executed_date),
            item.next_execution_date.isoformat(),
            str(item.is_active),
            item.note,
            item.created_by or "",
            item.created_at.isoformat() if item.created_at else "",
            item.updated_at.isoformat() if item.updated_at else "",
            str(item.version),
        ]

    def _row_to_item(self, row: list) -> RecurringItem:
        """Convert a spreadsheet row to a RecurringItem."""
        # Handle missing columns gracefully
        def safe_get(name: str, default: str = "") -> str:
            try:
                value = row[_COL[name]]
                return value if value else default
            except IndexError:
                return default

        def opt_date(name: str) -> Optional[date]:
            value = safe_get(name)
            return date.fromisoformat(value) if value else None

        def opt_datetime(name: str) -> Optional[datetime]:
            value = safe_get(name)
            return datetime.fromisoformat(value) if value else None

        return RecurringItem(
            id=UUID(safe_get("id")),
            owner_space_id=safe_get("owner_space_id"),
            account_id=safe_get("account_id"),
            category_id=safe_get("category_id") or None,
            category=safe_get("category") or None,
            amount=Decimal(safe_get("amount")),
            kind=TransactionKind(safe_get("kind", "expense")),
            frequency=coerce_legacy_frequency(
                safe_get("frequency"),
                allow_fallback=self._allow_legacy_frequency,
            ),
            start_date=date.fromisoformat(safe_get("start_date")),
            end_date=opt_date("end_date"),
            last_executed_date=opt_date("last_executed_date"),
            next_execution_date=date.fromisoformat(safe_get("next_execution_date")),
            is_active=safe_get("is_active").lower() == "true",
            note=safe_get("note"),
            created_by=safe_get("created_by") or None,
            created_at=opt_datetime("created_at"),
            updated_at=opt_datetime("updated_at"),
            version=int(safe_get("version", "1")),
        )

    # ── Low-level sheet calls (retried on API errors) ─────

    @_api_retry
    def _read_rows(self) -> list[list]:
        # Skip header
        return self._client.get_recurring_sheet().get_all_values()[1:]

    @_api_retry
    def _append_row(self, row: list) -> None:
        self._client.get_recurring_sheet().append_row(row, value_input_option="RAW")

    @_api_retry
    def _write_row(self, sheet_row: int, row: list) -> None:
        self._client.get_recurring_sheet().update(
            range_name=f"A{sheet_row}",
            values=[row],
            value_input_option="RAW",
        )

    @_api_retry
    def _delete_row(self, sheet_row: int) -> None:
        self._client.get_recurring_sheet().delete_rows(sheet_row)

    def _find(self, space_id: str, item_id: UUID) -> tuple[Optional[int], Optional[list]]:
        """Locate an item; returns (1-based sheet row, row values)."""
        for idx, row in enumerate(self._read_rows(), start=2):  # Row 1 is header
            if (
                row
                and row[_COL["id"]] == str(item_id)
                and len(row) > _COL["owner_space_id"]
                and row[_COL["owner_space_id"]] == space_id
            ):
                return idx, row
        return None, None

    # ── Interface ─────────────────────────────────────────

    async def insert(self, item: RecurringItem) -> RecurringItem:
        """Append a new item row."""
        try:
            existing, _ = self._find(item.owner_space_id, item.id)
            if existing is not None:
                raise DuplicateError(f"Recurring item already exists: {item.id}")

            now = _utcnow()
            stored = item.model_copy(
                update={"created_at": now, "updated_at": now, "version": 1}
            )
            self._append_row(self._item_to_row(stored))
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save recurring item: {e}") from e

    async def get(self, space_id: str, item_id: UUID) -> Optional[RecurringItem]:
        """Retrieve an item by its ID."""
        try:
            _, row = self._find(space_id, item_id)
            return self._row_to_item(row) if row else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get recurring item: {e}") from e

    async def update(
        self,
        space_id: str,
        item_id: UUID,
        changes: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> RecurringItem:
        """Rewrite an item row after applying the changes."""
        try:
            sheet_row, row = self._find(space_id, item_id)
            if row is None:
                raise NotFoundError(f"Recurring item not found: {item_id}")

            current = self._row_to_item(row)
            if expected_version is not None and current.version != expected_version:
                raise ConcurrencyError(item_id, expected_version, current.version)

            data = current.model_dump()
            data.update(changes)
            data["updated_at"] = _utcnow()
            data["version"] = current.version + 1
            stored = RecurringItem.model_validate(data)

            self._write_row(sheet_row, self._item_to_row(stored))
            return stored
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update recurring item: {e}") from e

    async def delete(self, space_id: str, item_id: UUID) -> bool:
        """Delete an item row."""
        try:
            sheet_row, _ = self._find(space_id, item_id)
            if sheet_row is None:
                return False
            self._delete_row(sheet_row)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete recurring item: {e}") from e

    async def query(
        self,
        space_id: str,
        is_active: Optional[bool] = None,
        next_execution_on_or_before: Optional[date] = None,
        next_execution_on_or_after: Optional[date] = None,
    ) -> list[RecurringItem]:
        """List a space's items with optional filters."""
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to list recurring items: {e}") from e

        items = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            if len(row) <= _COL["owner_space_id"] or row[_COL["owner_space_id"]] != space_id:
                continue

            try:
                item = self._row_to_item(row)
            except Exception as e:
                logger.warning("recurring_row_skipped", row_id=row[0], error=str(e))
                continue

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

            items.append(item)

        items.sort(key=lambda i: (i.next_execution_date, str(i.id)))
        return items

    async def delete_all(self, space_id: str) -> int:
        """Delete every row of a space, bottom-up so indexes stay valid."""
        try:
            rows = self._read_rows()
            targets = [
                idx
                for idx, row in enumerate(rows, start=2)
                if len(row) > _COL["owner_space_id"]
                and row[_COL["owner_space_id"]] == space_id
            ]
            for sheet_row in reversed(targets):
                self._delete_row(sheet_row)
            return len(targets)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete recurring items: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _event_to_row(self, event: AuditEvent) -> list:
        """Convert an AuditEvent to a spreadsheet row."""
        return [
            str(event.event_id),
            event.timestamp.isoformat(),
            event.event_type.value,
            event.severity.value,
            event.space_id or "",
            str(event.entity_id) if event.entity_id else "",
            event.actor_id or "",
            event.description,
            json.dumps(event.details) if event.details else "",
            event.error_message or "",
        ]

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            space_id=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            actor_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
        )

    @_api_retry
    def _append(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append(self._event_to_row(event))
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_entity(self, entity_id: UUID) -> list[AuditEvent]:
        """Events for one recurring item, oldest first."""
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}") from e

        events = []
        for row in rows:
            if row and len(row) > 5 and row[5] == str(entity_id):
                try:
                    events.append(self._row_to_event(row))
                except Exception as e:
                    logger.warning("audit_row_skipped", row_id=row[0], error=str(e))

        events.sort(key=lambda e: e.timestamp)
        return events
