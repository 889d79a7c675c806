"""
Schedule Advancer

Two ways of moving a schedule forward:

- advance_to_on_or_after: catch a schedule that starts in the past up to a
  reference date, without materializing the missed occurrences.
- next_after_execution: exactly one step after a firing. An execution means
  the schedule is current as of that date, so there is nothing to catch up.
"""

from datetime import date
from typing import Optional, Union

from recurring_engine.errors import InvariantViolationError
from recurring_engine.models.recurring import Frequency
from recurring_engine.scheduling.frequency import next_date, to_frequency

DEFAULT_MAX_STEPS = 100_000


def advance_to_on_or_after(
    start_date: date,
    frequency: Union[Frequency, str],
    reference_date: date,
    max_steps: Optional[int] = None,
) -> date:
    """
    First date reachable from ``start_date`` that is on or after ``reference_date``.

    A schedule starting on the reference date is due that day, so
    ``start_date`` comes back unchanged whenever it is not in the past.

    Args:
        start_date: First date of the schedule
        frequency: Step between firings
        reference_date: Usually "today" from the clock
        max_steps: Bound on calculator applications (default 100000)

    Raises:
        InvariantViolationError: Unknown frequency, or the bound was hit
    """
    frequency = to_frequency(frequency)
    limit = max_steps if max_steps is not None else DEFAULT_MAX_STEPS

    current = start_date
    steps = 0
    while current < reference_date:
        if steps >= limit:
            raise InvariantViolationError(
                f"Fast-forward from {start_date} to {reference_date} "
                f"exceeded {limit} {frequency.value} steps"
            )
        current = next_date(current, frequency)
        steps += 1
    return current


def next_after_execution(
    executed_date: date,
    frequency: Union[Frequency, str],
) -> date:
    """Next firing after an execution on ``executed_date``."""
    return next_date(executed_date, frequency)
