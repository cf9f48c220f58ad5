import time
from datetime import UTC, date, datetime

import pytest

from shiftboard.dates import (
    DateSelection,
    format_local_date,
    start_of_week,
    to_calendar_date,
)

# a Wednesday
TODAY = date(2025, 11, 5)


def test_start_of_week_is_monday() -> None:
    assert start_of_week(TODAY) == date(2025, 11, 3)
    assert start_of_week(date(2025, 11, 9)) == date(2025, 11, 3)
    assert start_of_week(date(2025, 11, 10)) == date(2025, 11, 10)


def test_first_weekday_click_selects_this_week() -> None:
    selection = DateSelection()
    selection.select_weekdays(TODAY)
    assert selection.dates == [date(2025, 11, d) for d in range(3, 8)]
    assert selection.weekday_clicks == 1
    assert selection.weekend_clicks == 0


@pytest.mark.parametrize("clicks", [1, 2, 3, 6])
def test_repeated_weekday_clicks_walk_forward(clicks: int) -> None:
    selection = DateSelection()
    for _ in range(clicks):
        selection.select_weekdays(TODAY)

    assert len(selection.dates) == 5 * clicks
    assert len(set(selection.dates)) == len(selection.dates)
    assert all(d.weekday() < 5 for d in selection.dates)
    weeks = {start_of_week(d) for d in selection.dates}
    assert len(weeks) == clicks
    assert selection.dates == sorted(selection.dates)


def test_weekend_after_weekdays_keeps_weekdays_and_restarts() -> None:
    selection = DateSelection()
    selection.select_weekdays(TODAY)
    selection.select_weekdays(TODAY)
    selection.select_weekend(TODAY)

    assert selection.weekday_clicks == 0
    assert selection.weekend_clicks == 1
    # weekend of the current week, not two weeks out
    assert date(2025, 11, 8) in selection.dates
    assert date(2025, 11, 9) in selection.dates
    assert len(selection.dates) == 12

    selection.select_weekdays(TODAY)
    # weekday family restarted at week 0, which is already selected
    assert len(selection.dates) == 12
    assert selection.weekday_clicks == 1
    assert selection.weekend_clicks == 0


def test_weekend_clicks_walk_forward() -> None:
    selection = DateSelection()
    selection.select_weekend(TODAY)
    selection.select_weekend(TODAY)
    assert selection.dates == [
        date(2025, 11, 8),
        date(2025, 11, 9),
        date(2025, 11, 15),
        date(2025, 11, 16),
    ]


def test_manual_toggle_does_not_touch_counters() -> None:
    selection = DateSelection()
    selection.select_weekdays(TODAY)
    selection.toggle(date(2025, 11, 20))
    assert date(2025, 11, 20) in selection.dates
    assert selection.weekday_clicks == 1

    selection.toggle(date(2025, 11, 3))
    assert date(2025, 11, 3) not in selection.dates
    assert selection.weekday_clicks == 1


def test_bulk_select_deduplicates_manual_picks() -> None:
    selection = DateSelection()
    selection.toggle(date(2025, 11, 4))
    selection.select_weekdays(TODAY)
    assert selection.dates.count(date(2025, 11, 4)) == 1
    assert len(selection.dates) == 5


def test_clear_resets_everything() -> None:
    selection = DateSelection()
    selection.select_weekdays(TODAY)
    selection.select_weekend(TODAY)
    selection.clear()
    assert selection.dates == []
    assert selection.weekday_clicks == 0
    assert selection.weekend_clicks == 0


def test_local_date_formatting_ignores_time_of_day() -> None:
    late = datetime(2025, 11, 4, 23, 59)
    assert format_local_date(late) == "2025-11-04"
    assert format_local_date(date(2025, 1, 9)) == "2025-01-09"


@pytest.fixture
def tokyo_time(monkeypatch):
    monkeypatch.setenv("TZ", "Asia/Tokyo")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_aware_datetime_uses_the_local_day(tokyo_time) -> None:
    late_utc = datetime(2025, 11, 4, 23, 30, tzinfo=UTC)
    assert to_calendar_date(late_utc) == date(2025, 11, 5)
    assert format_local_date(late_utc) == "2025-11-05"
    assert to_calendar_date(datetime(2025, 11, 4, 23, 30)) == date(2025, 11, 4)
