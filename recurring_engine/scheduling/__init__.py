"""Scheduling package: frequency math, fast-forward, clock."""

from recurring_engine.scheduling.advancer import (
    advance_to_on_or_after,
    next_after_execution,
)
from recurring_engine.scheduling.clock import Clock, FixedClock, SystemClock
from recurring_engine.scheduling.frequency import (
    coerce_legacy_frequency,
    next_date,
    to_frequency,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "advance_to_on_or_after",
    "coerce_legacy_frequency",
    "next_after_execution",
    "next_date",
    "to_frequency",
]
