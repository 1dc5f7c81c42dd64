from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from fastapi import HTTPException, status


Window = Tuple[Optional[datetime], Optional[datetime]]

MONTHLY = ("monthly", "month")
YEARLY = ("yearly", "year")
CUSTOM = ("custom",)


def month_bounds(year: int, month: int) -> Window:
    """[first day of month, first day of next month)"""
    if not 1 <= month <= 12:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Month must be between 1 and 12")
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def year_bounds(year: int) -> Window:
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def resolve_window(
    period: Optional[str] = "monthly",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Window:
    """
    Turn dashboard/report filters into a half-open [start, end) window.

    monthly / month -> the given month of the given year (defaults: today)
    yearly / year   -> the given year (default: this year)
    custom          -> start_date through end_date, end day included;
                       without both dates no date filter applies
    anything else   -> no date filter
    """
    now = now or datetime.utcnow()
    period = (period or "").strip().lower()

    if period in MONTHLY:
        return month_bounds(year or now.year, month or now.month)

    if period in YEARLY:
        return year_bounds(year or now.year)

    if period in CUSTOM:
        if not start_date or not end_date:
            return None, None
        if end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="end_date must not be before start_date"
            )
        start = datetime(start_date.year, start_date.month, start_date.day)
        end = datetime(end_date.year, end_date.month, end_date.day) + timedelta(days=1)
        return start, end

    return None, None


def apply_window(query, column, window: Window):
    start, end = window
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column < end)
    return query
