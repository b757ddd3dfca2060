"""Tests for contribution schedules and month arithmetic."""

from __future__ import annotations

from datetime import date

import pytest

from wealth_builder.engine.schedule import add_months, is_contribution_month, schedule


def test_monthly_schedule_clamps_to_month_end_without_drift() -> None:
    dates = schedule(date(2024, 1, 31), date(2024, 4, 30), "monthly")
    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_yearly_schedule_from_leap_day() -> None:
    dates = schedule(date(2020, 2, 29), date(2024, 3, 1), "yearly")
    assert dates == [
        date(2020, 2, 29),
        date(2021, 2, 28),
        date(2022, 2, 28),
        date(2023, 2, 28),
        date(2024, 2, 29),
    ]


def test_daily_and_weekly_are_inclusive_of_end() -> None:
    assert len(schedule(date(2024, 1, 1), date(2024, 1, 10), "daily")) == 10
    weekly = schedule(date(2024, 1, 1), date(2024, 1, 29), "weekly")
    assert weekly[-1] == date(2024, 1, 29)
    assert len(weekly) == 5


def test_single_day_and_reversed_ranges() -> None:
    assert schedule(date(2024, 1, 1), date(2024, 1, 1), "monthly") == [date(2024, 1, 1)]
    assert schedule(date(2024, 2, 1), date(2024, 1, 1), "daily") == []


def test_unknown_cadence_rejected() -> None:
    with pytest.raises(ValueError):
        schedule(date(2024, 1, 1), date(2024, 2, 1), "fortnightly")


def test_add_months_negative() -> None:
    assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
    assert add_months(date(2024, 6, 15), -48) == date(2020, 6, 15)


def test_contribution_months() -> None:
    assert not is_contribution_month(0, "monthly")
    assert all(is_contribution_month(m, "monthly") for m in range(1, 30))
    yearly = [m for m in range(0, 37) if is_contribution_month(m, "yearly")]
    assert yearly == [12, 24, 36]
