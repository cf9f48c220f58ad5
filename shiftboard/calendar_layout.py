import calendar
from datetime import date, timedelta

from shiftboard.dates import start_of_week

TABLE_COLUMNS = 31

Cell = date | None


def _check_month(year: int, month: int) -> None:
    # month is zero-based here, like the month index the views pass around
    if not 0 <= month <= 11:
        raise ValueError(f"month index must be 0..11, got {month}")
    if year < 1:
        raise ValueError(f"invalid year {year}")


def month_grid(year: int, month: int) -> list[Cell]:
    """
    Monday-first calendar cells for a month; ``None`` marks a blank cell.

    The result length is always a multiple of 7.
    """
    _check_month(year, month)
    first = date(year, month + 1, 1)
    days_in_month = calendar.monthrange(year, month + 1)[1]

    cells: list[Cell] = [None] * first.weekday()
    cells.extend(date(year, month + 1, d) for d in range(1, days_in_month + 1))
    while len(cells) % 7:
        cells.append(None)
    return cells


def month_table(year: int, month: int) -> list[Cell]:
    """Exactly 31 slots: the month's days, then blanks past its last day."""
    _check_month(year, month)
    days_in_month = calendar.monthrange(year, month + 1)[1]
    return [
        date(year, month + 1, d) if d <= days_in_month else None
        for d in range(1, TABLE_COLUMNS + 1)
    ]


def week_days(day: date) -> list[date]:
    monday = start_of_week(day)
    return [monday + timedelta(days=i) for i in range(7)]
