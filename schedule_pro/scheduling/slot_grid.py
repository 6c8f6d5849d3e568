# Grid shapes for the calendar views: half-hour slots for day/week and the 6x7 month grid.
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from .time_window import as_date, week_start

SLOT_MINUTES = 30
SLOT_LENGTH = timedelta(minutes=SLOT_MINUTES)
SLOTS_PER_DAY = 48
# Display-only label closing the day column, represents 23:59
END_OF_DAY_LABEL = "23:59"

MONTH_GRID_ROWS = 6
MONTH_GRID_COLUMNS = 7
MONTH_GRID_CELLS = MONTH_GRID_ROWS * MONTH_GRID_COLUMNS

# Default start time offered by the "New appointment" action
DEFAULT_START_TIME = time(9, 0)


@dataclass(frozen=True)
class Slot:
    index: int
    hour: int
    minute: int

    @property
    def label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class MonthCell:
    date: date
    # Cell belongs to the previous/next month, still rendered for context
    muted: bool


def day_slots() -> List[Slot]:
    """
    The 48 half-hour slots of a day, 00:00 through 23:30. Slot i starts at hour i // 2, minute (i % 2) * 30.
    """
    return [Slot(i, i // 2, (i % 2) * SLOT_MINUTES) for i in range(SLOTS_PER_DAY)]


def slot_labels() -> List[str]:
    # 48 slot labels plus the trailing end-of-day label
    return [slot.label for slot in day_slots()] + [END_OF_DAY_LABEL]


def slot_start(day, slot: Slot) -> datetime:
    return datetime.combine(as_date(day), time(slot.hour, slot.minute))


def week_header(reference_date) -> List[date]:
    first = week_start(reference_date)
    return [first + timedelta(days=i) for i in range(MONTH_GRID_COLUMNS)]


def month_grid(reference_date) -> List[MonthCell]:
    """
    Always 42 cells, starting at the Sunday on or before the 1st of the month.
    Leading and trailing days from the neighbouring months are flagged as muted.
    """
    day = as_date(reference_date)
    first_of_month = day.replace(day=1)
    first_cell = week_start(first_of_month)
    cells = []
    for k in range(MONTH_GRID_CELLS):
        cell_date = first_cell + timedelta(days=k)
        muted = (cell_date.year, cell_date.month) != (day.year, day.month)
        cells.append(MonthCell(cell_date, muted))
    return cells


def is_past(instant: datetime, now: datetime) -> bool:
    return instant < now


def past_slots(day, now: datetime) -> List[bool]:
    """One flag per slot of *day*, True when the slot starts before *now* and can no longer be booked."""
    return [is_past(slot_start(day, slot), now) for slot in day_slots()]


def round_up_to_slot(instant: datetime) -> datetime:
    midnight = datetime.combine(instant.date(), time(0, 0))
    elapsed = instant - midnight
    slots = elapsed // SLOT_LENGTH
    if elapsed % SLOT_LENGTH:
        slots += 1
    return midnight + slots * SLOT_LENGTH


def new_appointment_window(reference_date, now: datetime) -> Tuple[datetime, datetime]:
    """
    Default window for a new appointment created from the header button.

    Starts at 09:00 on the reference date. When the reference date is today and 09:00 has already passed,
    starts at the next half-hour boundary instead. Always lasts one slot.
    """
    day = as_date(reference_date)
    start = datetime.combine(day, DEFAULT_START_TIME)
    if day == now.date() and start < now:
        start = round_up_to_slot(now)
    return start, start + SLOT_LENGTH


def slot_appointment_window(day, slot: Slot, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """
    Window for a new appointment opened from a grid slot. Past slots can't be booked and return None.
    """
    start = slot_start(day, slot)
    if is_past(start, now):
        return None
    return start, start + SLOT_LENGTH
