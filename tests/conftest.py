"""
Shared fixtures.

Test strategy:
1. Unit tests for the pure pieces (frequency math, fast-forward, queries)
2. Lifecycle and execution tests against the in-memory store
3. No real API calls in tests (fake gspread worksheets)
"""

from datetime import date
from decimal import Decimal

import pytest

from recurring_engine.audit import AuditLogger
from recurring_engine.config import EngineSettings
from recurring_engine.lifecycle import RecurringLifecycle
from recurring_engine.models.recurring import Frequency, RecurringItem, TransactionKind
from recurring_engine.scheduling import FixedClock
from recurring_engine.services.storage import InMemoryAuditStorage, InMemoryRecurringStore

TODAY = date(2024, 4, 15)
SPACE = "space-1"


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def store():
    return InMemoryRecurringStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def engine_settings():
    return EngineSettings(resume_fast_forward=False, legacy_frequency_fallback=True)


@pytest.fixture
def lifecycle(store, clock, audit_storage, engine_settings):
    return RecurringLifecycle(
        store,
        clock,
        audit_logger=AuditLogger(audit_storage),
        settings=engine_settings,
    )


@pytest.fixture
def make_item():
    """Build a RecurringItem directly, bypassing the lifecycle."""
    def _make(**overrides) -> RecurringItem:
        data = {
            "owner_space_id": SPACE,
            "account_id": "acc-1",
            "amount": Decimal("100.00"),
            "kind": TransactionKind.EXPENSE,
            "frequency": Frequency.MONTHLY,
            "start_date": date(2024, 1, 1),
            "next_execution_date": date(2024, 5, 1),
        }
        data.update(overrides)
        return RecurringItem(**data)
    return _make


@pytest.fixture
def create_payload():
    """A valid create payload as a plain dict."""
    return {
        "account_id": "acc-1",
        "amount": "100.00",
        "frequency": "monthly",
        "kind": "expense",
        "note": "Rent",
        "start_date": date(2024, 1, 1),
    }
