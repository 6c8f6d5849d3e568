"""
Calendar session for one signed-in user.

Holds the view state (mode and reference date) and the appointments loaded for the visible window, and runs the
create/update/delete commands against the store.

Loading:
    Every query is tagged with the (mode, reference date, user) it was issued for and a generation number. A result is
    only applied if it belongs to the latest query, so a slow response can't overwrite a fresher one.
    A failed query is logged and the window is treated as empty.

Commands:
    Drafts go through the validator first; a ValidationError means the store is never called.
    Create and update re-query the whole window on success instead of patching the list locally.
    Delete removes the appointment from the loaded list.
    A failed store call leaves the loaded list untouched and the FetchError propagates to the caller.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple
import logging

from .appointment import Appointment, User
from .error_utils import FetchError, ValidationError
from .status import Status, sidebar_listing
from .time_window import DAY, MONTH, TimeWindow, as_date, check_mode, resolve_window, shift_reference
from .validator import validate_appointment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadTicket:
    key: Tuple[str, date, object]
    window: TimeWindow
    generation: int


class CalendarSession:

    def __init__(self, store, user_id, mode: str = DAY, reference_date=None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.user_id = user_id
        self._clock = clock
        self.mode = check_mode(mode)
        self.reference_date = as_date(reference_date) if reference_date is not None else clock().date()
        self.appointments: List[Appointment] = []
        self.users: List[User] = []
        self._generation = 0

    def now(self) -> datetime:
        return self._clock()

    @property
    def window(self) -> TimeWindow:
        return resolve_window(self.reference_date, self.mode)

    @property
    def query_key(self):
        return (self.mode, self.reference_date, self.user_id)

    # View state. Each change re-queries the window.

    def set_view(self, mode: str) -> List[Appointment]:
        self.mode = check_mode(mode)
        return self.refresh()

    def select_date(self, reference_date) -> List[Appointment]:
        self.reference_date = as_date(reference_date)
        return self.refresh()

    def go_to_day(self, day) -> List[Appointment]:
        self.mode = DAY
        return self.select_date(day)

    def go_prev(self) -> List[Appointment]:
        return self.select_date(shift_reference(self.reference_date, self.mode, -1))

    def go_next(self) -> List[Appointment]:
        return self.select_date(shift_reference(self.reference_date, self.mode, 1))

    # Loading

    def begin_load(self) -> LoadTicket:
        self._generation += 1
        return LoadTicket(self.query_key, self.window, self._generation)

    def apply_load(self, ticket: LoadTicket, appointments: List[Appointment]) -> bool:
        """
        Stores the result of a window query. Returns False and drops the result if a newer query was issued since,
        or the view state moved on to another window.
        """
        if ticket.generation != self._generation or ticket.key != self.query_key:
            logger.info("Discarding stale appointment query for %s", ticket.key)
            return False
        self.appointments = list(appointments)
        return True

    def fetch(self, ticket: LoadTicket) -> List[Appointment]:
        try:
            return self.store.query_appointments(self.user_id, ticket.window.start, ticket.window.end)
        except FetchError as e:
            logger.error("Failed to load appointments: %s", e.message)
            return []

    def refresh(self) -> List[Appointment]:
        if self.user_id is None:
            return self.appointments
        ticket = self.begin_load()
        self.apply_load(ticket, self.fetch(ticket))
        return self.appointments

    def load_users(self) -> List[User]:
        try:
            self.users = self.store.list_users()
        except FetchError as e:
            logger.error("Failed to load users: %s", e.message)
        return self.users

    def sidebar(self) -> List[Tuple[Appointment, Status]]:
        return sidebar_listing(self.appointments, self.reference_date, self.mode, self.now())

    # Commands

    def create(self, draft: dict, from_view: Optional[str] = None) -> Appointment:
        appointment = validate_appointment(draft, self.now())
        payload = appointment.to_payload()
        payload["createdByUserId"] = self.user_id
        created = self.store.create_appointment(payload)
        logger.info("Appointment created: %s", created.id)
        self._after_save(created, from_view)
        return created

    def update(self, draft: dict, from_view: Optional[str] = None) -> Appointment:
        appointment_id = draft.get("id")
        if appointment_id is None:
            raise ValidationError("Only saved appointments can be updated")
        appointment = validate_appointment(draft, self.now())
        updated = self.store.update_appointment(appointment_id, self.user_id, appointment.to_payload())
        logger.info("Appointment updated: %s", appointment_id)
        self._after_save(updated, from_view)
        return updated

    def delete(self, appointment_id) -> bool:
        self.store.delete_appointment(appointment_id, self.user_id)
        logger.info("Appointment deleted: %s", appointment_id)
        self.appointments = [appt for appt in self.appointments if appt.id != appointment_id]
        return True

    def _after_save(self, saved: Appointment, from_view: Optional[str]):
        # Saving from the month grid jumps to the saved appointment's day
        if from_view == MONTH:
            self.mode = DAY
            self.reference_date = saved.start.date()
        self.refresh()
