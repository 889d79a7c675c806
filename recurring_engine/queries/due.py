"""
Due-Set Selector

Filters a recurring collection down to the items that need executing as of
a reference date. Pure: it neither mutates the items nor triggers anything;
the caller executes each returned item explicitly.
"""

from datetime import date
from typing import Iterable

from recurring_engine.models.recurring import RecurringItem


def is_due(item: RecurringItem, reference_date: date) -> bool:
    """
    True when the item should fire on or before ``reference_date``.

    The end-date check repeats what expiry already enforces, so an item left
    active past its end date by an external writer is still skipped.
    """
    if not item.is_active:
        return False
    if item.next_execution_date > reference_date:
        return False
    if item.end_date is not None and item.end_date < reference_date:
        return False
    return True


def due_items(
    items: Iterable[RecurringItem],
    reference_date: date,
) -> list[RecurringItem]:
    """
    Items ready to fire as of ``reference_date``.

    Order follows the input and is not guaranteed; use
    sort_by_next_execution when a stable order matters.
    """
    return [item for item in items if is_due(item, reference_date)]


def sort_by_next_execution(items: Iterable[RecurringItem]) -> list[RecurringItem]:
    """Oldest due date first; ties broken by id for a stable order."""
    return sorted(items, key=lambda i: (i.next_execution_date, str(i.id)))
