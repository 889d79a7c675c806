"""
Monthly Projection Aggregator

DESIGN DECISION: Projections use a fixed multiplier table, not calendar
arithmetic:

    daily    x 30
    weekly   x 4
    biweekly x 2
    monthly  x 1
    yearly   / 12

This is an approximation for summary surfaces (a month is never exactly four
weeks), chosen because it is stable from month to month and cheap to
recompute. It is NOT a ledger-accurate figure.

Everything here is read-only and order-independent.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from recurring_engine.models.recurring import (
    Frequency,
    MonthlyTotals,
    RecurringItem,
    RecurringStatus,
    RecurringSummary,
    TransactionKind,
)
from recurring_engine.queries.due import is_due

# (multiplier, divisor) per frequency
_MONTHLY_FACTORS: dict[Frequency, tuple[int, int]] = {
    Frequency.DAILY: (30, 1),
    Frequency.WEEKLY: (4, 1),
    Frequency.BIWEEKLY: (2, 1),
    Frequency.MONTHLY: (1, 1),
    Frequency.YEARLY: (1, 12),
}


def monthly_equivalent(item: RecurringItem) -> Decimal:
    """Amount of one item normalized to a month."""
    multiplier, divisor = _MONTHLY_FACTORS[item.frequency]
    return item.amount * multiplier / divisor


def monthly_totals(items: Iterable[RecurringItem]) -> MonthlyTotals:
    """
    Monthly-equivalent expenses and income of the active items.

    Paused and expired items are ignored. An item whose kind is neither
    expense nor income is skipped rather than raising: this is a display
    aggregation, not a validation boundary.
    """
    expenses = Decimal("0")
    income = Decimal("0")

    for item in items:
        if not item.is_active:
            continue
        if item.kind == TransactionKind.EXPENSE:
            expenses += monthly_equivalent(item)
        elif item.kind == TransactionKind.INCOME:
            income += monthly_equivalent(item)

    return MonthlyTotals(expenses=expenses, income=income)


def summarize(
    items: Iterable[RecurringItem],
    reference_date: date,
    totals: Optional[MonthlyTotals] = None,
) -> RecurringSummary:
    """
    Status counts, due-today count and monthly totals for one collection.

    Args:
        items: A space's recurring items
        reference_date: "Today" for the due count
        totals: Precomputed totals, if the caller already has them
    """
    items = list(items)
    counts = {status: 0 for status in RecurringStatus}
    for item in items:
        counts[item.status] += 1

    return RecurringSummary(
        reference_date=reference_date,
        active_count=counts[RecurringStatus.ACTIVE],
        paused_count=counts[RecurringStatus.PAUSED],
        expired_count=counts[RecurringStatus.EXPIRED],
        due_today_count=sum(1 for item in items if is_due(item, reference_date)),
        totals=totals or monthly_totals(items),
    )
