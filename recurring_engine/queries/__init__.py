"""Read-only queries over recurring collections."""

from recurring_engine.queries.due import due_items, is_due, sort_by_next_execution
from recurring_engine.queries.projection import (
    monthly_equivalent,
    monthly_totals,
    summarize,
)

__all__ = [
    "due_items",
    "is_due",
    "monthly_equivalent",
    "monthly_totals",
    "sort_by_next_execution",
    "summarize",
]
