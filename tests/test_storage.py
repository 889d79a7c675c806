"""
Tests for the record stores.

The Google Sheets store runs against an in-process fake worksheet; no
network calls are made.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from recurring_engine.models.audit import AuditEventBuilder
from recurring_engine.models.recurring import Frequency
from recurring_engine.services.storage import (
    ConcurrencyError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsRecurringStore,
    InMemoryAuditStorage,
    NotFoundError,
    StorageError,
)
from recurring_engine.services.storage.google_sheets import AUDIT_COLUMNS, RECURRING_COLUMNS

SPACE = "space-1"


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the stores."""

    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name.lstrip("A")) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.recurring = FakeWorksheet(RECURRING_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_recurring_sheet(self):
        return self.recurring

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_store(sheets_client):
    return GoogleSheetsRecurringStore(sheets_client, allow_legacy_frequency=True)


class TestInMemoryStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_insert_stamps_metadata(self, store, make_item):
        stored = await store.insert(make_item())
        assert stored.version == 1
        assert stored.created_at is not None
        assert stored.updated_at == stored.created_at

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self, store, make_item):
        item = make_item()
        await store.insert(item)
        with pytest.raises(DuplicateError):
            await store.insert(item)

    @pytest.mark.asyncio
    async def test_returned_items_are_copies(self, store, make_item):
        stored = await store.insert(make_item())
        stored.note = "mutated"
        fetched = await store.get(SPACE, stored.id)
        assert fetched.note == ""

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, store, make_item):
        stored = await store.insert(make_item())
        updated = await store.update(SPACE, stored.id, {"note": "x"}, expected_version=1)
        assert updated.version == 2
        assert updated.note == "x"

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, store, make_item):
        stored = await store.insert(make_item())
        await store.update(SPACE, stored.id, {"note": "first"}, expected_version=1)

        with pytest.raises(ConcurrencyError):
            await store.update(SPACE, stored.id, {"note": "second"}, expected_version=1)
        assert (await store.get(SPACE, stored.id)).note == "first"

    @pytest.mark.asyncio
    async def test_store_owned_fields_protected(self, store, make_item):
        stored = await store.insert(make_item())
        with pytest.raises(StorageError, match="version"):
            await store.update(SPACE, stored.id, {"version": 9})

    @pytest.mark.asyncio
    async def test_invalid_change_never_stored(self, store, make_item):
        stored = await store.insert(make_item())
        with pytest.raises(ValueError):
            await store.update(SPACE, stored.id, {"amount": Decimal("-1")})
        assert (await store.get(SPACE, stored.id)).amount == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            await store.update(SPACE, uuid4(), {"note": "x"})

    @pytest.mark.asyncio
    async def test_query_filters(self, store, make_item):
        early = await store.insert(make_item(next_execution_date=date(2024, 4, 1)))
        await store.insert(make_item(next_execution_date=date(2024, 6, 1)))
        await store.insert(make_item(next_execution_date=date(2024, 3, 1), is_active=False))

        result = await store.query(
            SPACE, is_active=True, next_execution_on_or_before=date(2024, 5, 1)
        )
        assert [i.id for i in result] == [early.id]

        later = await store.query(SPACE, next_execution_on_or_after=date(2024, 4, 1))
        assert [i.next_execution_date for i in later] == [date(2024, 4, 1), date(2024, 6, 1)]

    @pytest.mark.asyncio
    async def test_spaces_are_isolated(self, store, make_item):
        await store.insert(make_item())
        await store.insert(make_item(owner_space_id="space-2"))

        assert await store.delete_all(SPACE) == 1
        assert await store.query(SPACE) == []
        assert len(await store.query("space-2")) == 1


class TestGoogleSheetsStore:
    """Tests for the Sheets-backed store and its row codec."""

    @pytest.mark.asyncio
    async def test_insert_then_get(self, sheets_store, sheets_client, make_item):
        item = make_item(
            end_date=date(2024, 12, 31),
            category_id="cat-1",
            note="Rent",
            created_by="user-1",
        )
        stored = await sheets_store.insert(item)

        assert len(sheets_client.recurring.rows) == 2
        fetched = await sheets_store.get(SPACE, item.id)
        assert fetched.model_dump() == stored.model_dump()

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, sheets_store):
        assert await sheets_store.get(SPACE, uuid4()) is None

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self, sheets_store, make_item):
        item = make_item()
        await sheets_store.insert(item)
        with pytest.raises(DuplicateError):
            await sheets_store.insert(item)

    @pytest.mark.asyncio
    async def test_update_rewrites_row(self, sheets_store, sheets_client, make_item):
        stored = await sheets_store.insert(make_item())

        updated = await sheets_store.update(
            SPACE, stored.id, {"is_active": False}, expected_version=1
        )

        assert updated.version == 2
        assert sheets_client.recurring.rows[1][RECURRING_COLUMNS.index("is_active")] == "False"
        assert (await sheets_store.get(SPACE, stored.id)).is_active is False

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, sheets_store, make_item):
        stored = await sheets_store.insert(make_item())
        await sheets_store.update(SPACE, stored.id, {"note": "a"}, expected_version=1)
        with pytest.raises(ConcurrencyError):
            await sheets_store.update(SPACE, stored.id, {"note": "b"}, expected_version=1)

    @pytest.mark.asyncio
    async def test_update_missing_raises_not_found(self, sheets_store):
        with pytest.raises(NotFoundError):
            await sheets_store.update(SPACE, uuid4(), {"note": "x"})

    @pytest.mark.asyncio
    async def test_legacy_frequency_read_as_monthly(self, sheets_store, sheets_client, make_item):
        stored = await sheets_store.insert(make_item(frequency=Frequency.WEEKLY))
        sheets_client.recurring.rows[1][RECURRING_COLUMNS.index("frequency")] = "fortnightly"

        fetched = await sheets_store.get(SPACE, stored.id)
        assert fetched.frequency == Frequency.MONTHLY

    @pytest.mark.asyncio
    async def test_legacy_fallback_disabled_skips_row(self, sheets_client, make_item):
        strict = GoogleSheetsRecurringStore(sheets_client, allow_legacy_frequency=False)
        good = await strict.insert(make_item())
        bad = await strict.insert(make_item())
        sheets_client.recurring.rows[2][RECURRING_COLUMNS.index("frequency")] = "fortnightly"

        assert [i.id for i in await strict.query(SPACE)] == [good.id]
        with pytest.raises(StorageError):
            await strict.get(SPACE, bad.id)

    @pytest.mark.asyncio
    async def test_query_sorted_and_partitioned(self, sheets_store, make_item):
        later = await sheets_store.insert(make_item(next_execution_date=date(2024, 6, 1)))
        sooner = await sheets_store.insert(make_item(next_execution_date=date(2024, 4, 20)))
        await sheets_store.insert(make_item(owner_space_id="space-2"))

        result = await sheets_store.query(SPACE)
        assert [i.id for i in result] == [sooner.id, later.id]

    @pytest.mark.asyncio
    async def test_delete_and_delete_all(self, sheets_store, sheets_client, make_item):
        first = await sheets_store.insert(make_item())
        await sheets_store.insert(make_item())
        await sheets_store.insert(make_item(owner_space_id="space-2"))

        assert await sheets_store.delete(SPACE, first.id) is True
        assert await sheets_store.delete(SPACE, first.id) is False
        assert await sheets_store.delete_all(SPACE) == 1
        assert len(sheets_client.recurring.rows) == 2
        assert sheets_client.recurring.rows[1][RECURRING_COLUMNS.index("owner_space_id")] == "space-2"


class TestAuditStorage:
    """Tests for audit event persistence."""

    @pytest.mark.asyncio
    async def test_in_memory_events_by_entity(self):
        storage = InMemoryAuditStorage()
        item_id = uuid4()
        await storage.append_event(AuditEventBuilder.paused(SPACE, item_id))
        await storage.append_event(AuditEventBuilder.paused(SPACE, uuid4()))

        events = await storage.get_events_by_entity(item_id)
        assert [e.entity_id for e in events] == [item_id]

    @pytest.mark.asyncio
    async def test_sheets_round_trip(self, sheets_client):
        storage = GoogleSheetsAuditStorage(sheets_client)
        item_id = uuid4()
        event = AuditEventBuilder.executed(SPACE, item_id, date(2024, 5, 1), date(2024, 6, 1))

        assert await storage.append_event(event) is True
        events = await storage.get_events_by_entity(item_id)

        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == event.details

    @pytest.mark.asyncio
    async def test_sheets_append_failure_returns_false(self):
        class BrokenClient:
            def get_audit_sheet(self):
                raise RuntimeError("quota exceeded")

        storage = GoogleSheetsAuditStorage(BrokenClient())
        assert await storage.append_event(AuditEventBuilder.paused(SPACE, uuid4())) is False
