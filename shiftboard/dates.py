"""
Calendar-date helpers and the bulk weekday/weekend date selection.
"""

from datetime import date, datetime, timedelta

from pydantic import BaseModel, Field

WEEKDAY_OFFSETS = (0, 1, 2, 3, 4)
WEEKEND_OFFSETS = (5, 6)


def to_calendar_date(value: date | datetime) -> date:
    """
    Local calendar day of a date or datetime, never shifted through UTC.

    Aware datetimes are converted to the local zone first; naive ones are
    taken as already local.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def format_local_date(value: date | datetime) -> str:
    return to_calendar_date(value).strftime("%Y-%m-%d")


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_of(today: date, offset: int, day_offsets: tuple[int, ...]) -> list[date]:
    monday = start_of_week(today + timedelta(weeks=offset))
    return [monday + timedelta(days=i) for i in day_offsets]


class DateSelection(BaseModel):
    """
    The set of dates picked in the shift entry form.

    The weekday/weekend buttons each keep a click counter: clicking the same
    button again walks one week further, clicking the other button restarts
    that family at the current week. Manual picks leave both counters alone.
    """

    dates: list[date] = Field(default_factory=list)
    weekday_clicks: int = 0
    weekend_clicks: int = 0

    def select_weekdays(self, today: date) -> list[date]:
        self._merge(week_of(today, self.weekday_clicks, WEEKDAY_OFFSETS))
        self.weekday_clicks += 1
        self.weekend_clicks = 0
        return self.dates

    def select_weekend(self, today: date) -> list[date]:
        self._merge(week_of(today, self.weekend_clicks, WEEKEND_OFFSETS))
        self.weekend_clicks += 1
        self.weekday_clicks = 0
        return self.dates

    def toggle(self, day: date) -> list[date]:
        if day in self.dates:
            self.dates = [d for d in self.dates if d != day]
        else:
            self.dates = sorted([*self.dates, day])
        return self.dates

    def clear(self) -> None:
        self.dates = []
        self.weekday_clicks = 0
        self.weekend_clicks = 0

    def _merge(self, new_dates: list[date]) -> None:
        self.dates = sorted(set(self.dates) | set(new_dates))
