# Temporal status of appointments relative to an injected "now", and the sidebar ordering built on it.
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Tuple

from .appointment import Appointment, parse_appointments
from .time_window import resolve_window


class Status(str, Enum):
    COMPLETED = "completed"
    ONGOING = "ongoing"
    UPCOMING = "upcoming"


STATUS_RANK = {Status.COMPLETED: 0, Status.ONGOING: 1, Status.UPCOMING: 2}


def classify(appointment: Appointment, now: datetime) -> Status:
    """
    The end instant counts as ongoing, so an appointment ending at 11:00 is still ongoing at exactly 11:00.
    This differs from the half-open overlap used for rendering.
    """
    if appointment.start <= now <= appointment.end:
        return Status.ONGOING
    if appointment.end < now:
        return Status.COMPLETED
    return Status.UPCOMING


def sort_by_status(appointments: Iterable[Appointment], now: datetime) -> List[Appointment]:
    # sorted() is stable, equal keys keep their incoming order
    return sorted(appointments, key=lambda appt: (STATUS_RANK[classify(appt, now)], appt.start))


def sidebar_listing(appointments: Iterable, reference_date, mode: str, now: datetime) -> List[Tuple[Appointment, Status]]:
    """
    Appointments touching the view window, ordered completed, ongoing, upcoming and then by start time.

    Overlap here is inclusive at both ends. Raw store records are parsed first and malformed ones dropped.
    """
    window = resolve_window(reference_date, mode)
    visible = [
        appt for appt in parse_appointments(appointments)
        if appt.start <= window.end and appt.end >= window.start
    ]
    return [(appt, classify(appt, now)) for appt in sort_by_status(visible, now)]
