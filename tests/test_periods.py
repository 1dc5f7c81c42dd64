from datetime import date, datetime

import pytest
from fastapi import HTTPException

from cashflow.dashboard.periods import month_bounds, previous_month, resolve_window


NOW = datetime(2024, 12, 14, 9, 30)


@pytest.mark.parametrize("period", ["monthly", "month", "MONTHLY"])
def test_monthly_defaults_to_current_month(period):
    assert resolve_window(period, now=NOW) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


def test_month_and_year_arguments():
    assert resolve_window("month", month=2, year=2024, now=NOW) == (datetime(2024, 2, 1), datetime(2024, 3, 1))


@pytest.mark.parametrize("period", ["yearly", "year"])
def test_yearly(period):
    assert resolve_window(period, now=NOW) == (datetime(2024, 1, 1), datetime(2025, 1, 1))


def test_custom_includes_end_day():
    start, end = resolve_window("custom", start_date=date(2024, 5, 1), end_date=date(2024, 5, 1))
    assert start == datetime(2024, 5, 1)
    assert end == datetime(2024, 5, 2)


def test_custom_without_both_dates_is_unbounded():
    assert resolve_window("custom", start_date=date(2024, 5, 1)) == (None, None)


def test_custom_reversed_range():
    with pytest.raises(HTTPException) as exc:
        resolve_window("custom", start_date=date(2024, 5, 2), end_date=date(2024, 5, 1))
    assert exc.value.status_code == 400


@pytest.mark.parametrize("period", [None, "", "all", "weekly"])
def test_unknown_period_has_no_bounds(period):
    assert resolve_window(period, now=NOW) == (None, None)


def test_previous_month_wraps_year():
    assert previous_month(2024, 1) == (2023, 12)
    assert previous_month(2024, 7) == (2024, 6)


def test_month_bounds_validates_month():
    with pytest.raises(HTTPException):
        month_bounds(2024, 13)
