import calendar
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from shiftboard.models import Employee, Shift, ShiftKind, time_to_minutes


def month_window(year: int, month: int) -> tuple[date, date]:
    """First and last day of a zero-based month."""
    last = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, 1), date(year, month + 1, last)


def minutes_to_hours(minutes: int) -> float:
    hours = Decimal(minutes) / Decimal(60)
    return float(hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def monthly_work_hours(
    employees: Iterable[Employee],
    shifts: Iterable[Shift],
    year: int,
    month: int,
) -> dict[str, float]:
    """
    Worked hours per employee id inside the month, one decimal.

    Off shifts and shifts without both times count for nothing.
    """
    first, last = month_window(year, month)
    minutes: defaultdict[str, int] = defaultdict(int)

    for shift in shifts:
        if shift.kind == ShiftKind.OFF:
            continue
        if not (first <= shift.date <= last):
            continue
        if not shift.start_time or not shift.end_time:
            continue
        minutes[shift.employee_id] += time_to_minutes(
            shift.end_time
        ) - time_to_minutes(shift.start_time)

    return {e.id: minutes_to_hours(minutes.get(e.id, 0)) for e in employees}
