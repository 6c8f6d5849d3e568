"""
Places appointments onto the calendar grids.

For a given day an appointment is visible iff it ends after the start of the day and starts before the end of the day
(half-open: ending exactly at 00:00 or starting exactly at 23:59:59.999 is not visible). Visible appointments are clamped
to the day so that ones crossing midnight are drawn, clipped, on every day they touch.

Pixel geometry comes from the clamped interval:
    top    = minutes since midnight of the clamped start / 30 * slot height
    height = clamped duration in minutes / 30 * slot height

Records from the store with a missing or unparsable start/end are dropped here instead of breaking the render.
"""
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from .appointment import Appointment, parse_appointments
from .slot_grid import DEFAULT_START_TIME, SLOT_MINUTES, is_past, month_grid, week_header
from .status import Status, classify
from .time_window import as_date, day_end, day_start

# Slot heights in pixels. Rendering parameters, overridable through the app config.
DAY_SLOT_HEIGHT = 48
WEEK_SLOT_HEIGHT = 28

MONTH_CELL_LIMIT = 3


@dataclass(frozen=True)
class ProjectedAppointment:
    appointment: Appointment
    render_start: datetime
    render_end: datetime
    top: float
    height: float

    @property
    def slots(self) -> float:
        """Height expressed in half-hour slots."""
        return (self.render_end - self.render_start).total_seconds() / 60 / SLOT_MINUTES


@dataclass(frozen=True)
class DayColumn:
    date: date
    appointments: Tuple[ProjectedAppointment, ...]
    past: bool = False


@dataclass(frozen=True)
class MonthCellSummary:
    date: date
    appointments: Tuple[Appointment, ...]
    # "+N more" count, 0 when everything fits
    more: int
    muted: bool = False
    past: bool = False
    statuses: Tuple[Status, ...] = ()


def overlaps_day(appointment: Appointment, day) -> bool:
    return appointment.end > day_start(day) and appointment.start < day_end(day)


def appointments_on_day(appointments: Iterable, day) -> List[Appointment]:
    # Store order is kept
    return [appt for appt in parse_appointments(appointments) if overlaps_day(appt, day)]


def project(appointment: Appointment, day, slot_height: float) -> ProjectedAppointment:
    first, last = day_start(day), day_end(day)
    render_start = max(appointment.start, first)
    render_end = min(appointment.end, last)
    top = ((render_start.hour * 60 + render_start.minute) / SLOT_MINUTES) * slot_height
    minutes = (render_end - render_start).total_seconds() / 60
    height = (minutes / SLOT_MINUTES) * slot_height
    return ProjectedAppointment(appointment, render_start, render_end, top, height)


def project_day(appointments: Iterable, day, slot_height: float = DAY_SLOT_HEIGHT) -> List[ProjectedAppointment]:
    return [project(appt, day, slot_height) for appt in appointments_on_day(appointments, day)]


def day_column(appointments: Iterable, day, slot_height: float = DAY_SLOT_HEIGHT,
               now: Optional[datetime] = None) -> DayColumn:
    # A column is past when its whole date is before today; the slot flags cover the rest of today
    day = as_date(day)
    past = now is not None and day < now.date()
    return DayColumn(day, tuple(project_day(appointments, day, slot_height)), past)


def project_week(appointments: Iterable, reference_date, slot_height: float = WEEK_SLOT_HEIGHT,
                 now: Optional[datetime] = None) -> List[DayColumn]:
    """
    One column per day of the Sunday-start week holding *reference_date*. Columns before today are flagged past when
    *now* is given.
    """
    parsed = parse_appointments(appointments)
    return [day_column(parsed, day, slot_height, now) for day in week_header(reference_date)]


def summarize_month_cell(appointments: Iterable, day, limit: int = MONTH_CELL_LIMIT) -> MonthCellSummary:
    overlapping = appointments_on_day(appointments, day)
    return MonthCellSummary(
        date=as_date(day),
        appointments=tuple(overlapping[:limit]),
        more=max(0, len(overlapping) - limit),
    )


def project_month(appointments: Iterable, reference_date, now: datetime,
                  limit: int = MONTH_CELL_LIMIT) -> List[MonthCellSummary]:
    """
    The 42 month cells with up to *limit* appointments each, their statuses, and the muted/past flags.
    A cell is past when 09:00 on its date is already behind *now*.
    """
    parsed = parse_appointments(appointments)
    cells = []
    for cell in month_grid(reference_date):
        summary = summarize_month_cell(parsed, cell.date, limit)
        cells.append(replace(
            summary,
            muted=cell.muted,
            past=is_past(datetime.combine(cell.date, DEFAULT_START_TIME), now),
            statuses=tuple(classify(appt, now) for appt in summary.appointments),
        ))
    return cells
