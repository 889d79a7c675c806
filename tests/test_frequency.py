"""Tests for the frequency calculator."""

from datetime import date

import pytest

from recurring_engine.errors import InvariantViolationError
from recurring_engine.models.recurring import Frequency
from recurring_engine.scheduling import coerce_legacy_frequency, next_date, to_frequency
from recurring_engine.scheduling.frequency import _STEPS


class TestNextDate:
    """Tests for single calculator steps."""

    @pytest.mark.parametrize(
        "frequency, expected",
        [
            (Frequency.DAILY, date(2024, 3, 16)),
            (Frequency.WEEKLY, date(2024, 3, 22)),
            (Frequency.BIWEEKLY, date(2024, 3, 29)),
            (Frequency.MONTHLY, date(2024, 4, 15)),
            (Frequency.YEARLY, date(2025, 3, 15)),
        ],
    )
    def test_each_frequency(self, frequency, expected):
        assert next_date(date(2024, 3, 15), frequency) == expected

    @pytest.mark.parametrize("frequency", list(Frequency))
    def test_every_frequency_has_a_forward_step(self, frequency):
        assert frequency in _STEPS
        assert next_date(date(2024, 3, 15), frequency) > date(2024, 3, 15)

    def test_month_end_clamps_in_leap_year(self):
        """Jan 31 + 1 month lands on Feb 29 in a leap year."""
        assert next_date(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)

    def test_month_end_clamps_in_common_year(self):
        assert next_date(date(2025, 1, 31), Frequency.MONTHLY) == date(2025, 2, 28)

    def test_leap_day_plus_one_year(self):
        assert next_date(date(2024, 2, 29), Frequency.YEARLY) == date(2025, 2, 28)

    def test_crosses_year_boundary(self):
        assert next_date(date(2024, 12, 31), Frequency.DAILY) == date(2025, 1, 1)
        assert next_date(date(2024, 12, 15), Frequency.MONTHLY) == date(2025, 1, 15)

    def test_strictly_after_input(self):
        """Every step moves forward at least one day."""
        samples = [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2023, 12, 31),
            date(2025, 6, 30),
        ]
        for frequency in Frequency:
            for d in samples:
                assert next_date(d, frequency) > d

    def test_accepts_string_value(self):
        assert next_date(date(2024, 3, 15), "weekly") == date(2024, 3, 22)

    def test_unknown_frequency_raises(self):
        with pytest.raises(InvariantViolationError, match="fortnightly"):
            next_date(date(2024, 3, 15), "fortnightly")


class TestToFrequency:
    """Tests for resolving frequency values."""

    def test_member_passes_through(self):
        assert to_frequency(Frequency.YEARLY) is Frequency.YEARLY

    def test_unknown_value_keeps_offending_value(self):
        with pytest.raises(InvariantViolationError) as exc_info:
            to_frequency("quarterly")
        assert exc_info.value.value == "quarterly"


class TestLegacyFrequency:
    """Tests for reading frequency tags from stored records."""

    def test_known_tag_is_normalized(self):
        assert coerce_legacy_frequency(" Weekly ") == Frequency.WEEKLY

    def test_unknown_tag_falls_back_to_monthly(self):
        assert coerce_legacy_frequency("fortnightly") == Frequency.MONTHLY

    def test_empty_tag_falls_back_to_monthly(self):
        assert coerce_legacy_frequency("") == Frequency.MONTHLY

    def test_fallback_can_be_disabled(self):
        with pytest.raises(InvariantViolationError):
            coerce_legacy_frequency("fortnightly", allow_fallback=False)
