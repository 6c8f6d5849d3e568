"""
Time windows for the calendar views.

Given a reference date and a view mode, compute the instants bounding what the view shows:
    day   -> 00:00:00.000 to 23:59:59.999 of the date
    week  -> Sunday 00:00:00.000 to Saturday 23:59:59.999 of the week holding the date
    month -> 1st 00:00:00.000 to last day 23:59:59.999 of the date's month

Windows are closed at both ends, so the last instant of the day is 23:59:59.999 rather than midnight of the next day.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .appointment import format_datetime

DAY = "day"
WEEK = "week"
MONTH = "month"
VIEW_MODES = (DAY, WEEK, MONTH)

START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def query_bounds(self):
        return format_query_bound(self.start), format_query_bound(self.end)


def as_date(value) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def check_mode(mode: str) -> str:
    if mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {mode!r}")
    return mode


def weekday_index_sunday(day) -> int:
    """Sunday = 0 through Saturday = 6."""
    return (as_date(day).weekday() + 1) % 7


def week_start(day) -> date:
    day = as_date(day)
    return day - timedelta(days=weekday_index_sunday(day))


def day_start(day) -> datetime:
    return datetime.combine(as_date(day), START_OF_DAY)


def day_end(day) -> datetime:
    return datetime.combine(as_date(day), END_OF_DAY)


def resolve_window(reference_date, mode: str) -> TimeWindow:
    """
    Returns the TimeWindow shown by *mode* for *reference_date*. Any time-of-day on the reference is ignored.

    Every reference date inside the same window resolves to the same TimeWindow.
    """
    check_mode(mode)
    day = as_date(reference_date)
    if mode == DAY:
        first, last = day, day
    elif mode == WEEK:
        first = week_start(day)
        last = first + timedelta(days=6)
    else:
        first = day.replace(day=1)
        last = day.replace(day=calendar.monthrange(day.year, day.month)[1])
    return TimeWindow(day_start(first), day_end(last))


def shift_reference(reference_date, mode: str, steps: int = 1):
    """
    Previous/next navigation. Moves the raw reference date, it is not snapped to the start of its window.

    Week mode moves by seven days, so the weekday is kept. Month mode clamps the day to the length of the target month
    (31 January + 1 month is 29 February in a leap year).
    """
    check_mode(mode)
    if mode == DAY:
        return reference_date + timedelta(days=steps)
    if mode == WEEK:
        return reference_date + timedelta(days=7 * steps)
    month_index = reference_date.year * 12 + (reference_date.month - 1) + steps
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return reference_date.replace(year=year, month=month, day=min(reference_date.day, last_day))


def format_query_bound(instant: datetime) -> str:
    """YYYY-MM-DDTHH:MM:SS, seconds precision and no offset. The store reads bounds as local time."""
    return format_datetime(instant)


def format_window_label(reference_date, mode: str) -> str:
    check_mode(mode)
    day = as_date(reference_date)
    if mode == DAY:
        return f"{day:%A} {day:%d} {day:%B} {day.year}"
    if mode == WEEK:
        first = week_start(day)
        last = first + timedelta(days=6)
        return f"{first:%d %b %Y} - {last:%d %b %Y}"
    return f"{day:%B %Y}"
