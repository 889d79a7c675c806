"""
Frequency Calculator

Maps (date, frequency) to the next firing date. Pure, total over the
Frequency enum, and deterministic: no clock, no I/O.

Calendar-month steps use relativedelta, which clamps to the last day of a
shorter target month:
    Jan 31 + 1 month -> Feb 29 (2024) / Feb 28 (2025)
    Feb 29 + 1 year  -> Feb 28
"""

from datetime import date
from typing import Union

import structlog
from dateutil.relativedelta import relativedelta

from recurring_engine.errors import InvariantViolationError
from recurring_engine.models.recurring import Frequency

logger = structlog.get_logger(__name__)


# One step per frequency. Every entry advances by at least one day.
_STEPS: dict[Frequency, relativedelta] = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.BIWEEKLY: relativedelta(weeks=2),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.YEARLY: relativedelta(years=1),
}

# Fail at import time if the enum grows without a rule.
if set(_STEPS) != set(Frequency):
    raise InvariantViolationError(
        "every Frequency needs a step",
        sorted(f.value for f in set(Frequency) - set(_STEPS)),
    )


def to_frequency(value: Union[Frequency, str]) -> Frequency:
    """
    Resolve a Frequency from a member or its string value.

    Raises:
        InvariantViolationError: For anything else. No fallback here.
    """
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        raise InvariantViolationError(
            f"Unrecognized frequency: {value!r}", value=value
        ) from None


def next_date(from_date: date, frequency: Union[Frequency, str]) -> date:
    """
    Next firing date after ``from_date``.

    Args:
        from_date: Calendar date to advance from
        frequency: How far to advance

    Returns:
        A date strictly after ``from_date``
    """
    return from_date + _STEPS[to_frequency(frequency)]


def coerce_legacy_frequency(raw: str, allow_fallback: bool = True) -> Frequency:
    """
    Read a frequency tag from an already-persisted record.

    This is the only place an unrecognized tag may become ``monthly``, and
    only when ``allow_fallback`` is set (RECURRING_LEGACY_FREQUENCY_FALLBACK).
    New data never reaches here: the payload models reject unknown tags.
    """
    try:
        return Frequency(raw.strip().lower())
    except (ValueError, AttributeError):
        if not allow_fallback:
            raise InvariantViolationError(
                f"Unrecognized frequency in stored record: {raw!r}", value=raw
            ) from None
        logger.warning("legacy_frequency_fallback", raw_frequency=raw, used="monthly")
        return Frequency.MONTHLY
