# Appointment and user types used by the calendar, plus the parse step at the store boundary.
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple, Union

from .error_utils import MalformedDataError

logger = logging.getLogger(__name__)

RECURRENCE_NONE = "none"
RECURRENCE_DAILY = "daily"
RECURRENCE_WEEKLY = "weekly"
RECURRENCE_TYPES = (RECURRENCE_NONE, RECURRENCE_DAILY, RECURRENCE_WEEKLY)

# Sunday-first, matching the week grid
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

TITLE_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 250

# Seconds precision, no offset. This is the only datetime format sent to the store.
WIRE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_datetime(value) -> datetime:
    """
    Parses a store datetime into a naive local datetime.

    Accepts datetime objects and ISO-8601 strings. Values carrying a 'Z' or an offset are converted to local time
    and then made naive, the same way a browser reads them.

    Raises MalformedDataError when the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = _EXCESS_FRACTION.sub(r"\1", value.strip().replace("Z", "+00:00"))
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise MalformedDataError(f"Unparsable datetime: {value!r}")
    else:
        raise MalformedDataError(f"Missing datetime: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_datetime(value: datetime) -> str:
    return value.strftime(WIRE_FORMAT)


def normalize_recurrence_type(value) -> str:
    # null/absent and the empty string all mean no recurrence
    if not value:
        return RECURRENCE_NONE
    return str(value).strip().lower()


@dataclass(frozen=True)
class User:
    id: Any
    display_name: str

    @classmethod
    def from_record(cls, record: dict) -> "User":
        name = record.get("userName") or record.get("displayName") or ""
        return cls(id=record.get("id"), display_name=name)


@dataclass(frozen=True)
class Appointment:
    id: Any
    title: str
    start: datetime
    end: datetime
    description: str = ""
    organizer_id: Any = None
    organizer_name: Optional[str] = None
    participant_ids: Tuple[Any, ...] = ()
    participant_names: Tuple[str, ...] = ()
    recurrence_type: str = RECURRENCE_NONE
    recurrence_count: Optional[int] = None
    recurrence_days: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    @classmethod
    def from_record(cls, record: dict) -> "Appointment":
        """
        Builds a strict Appointment from a raw store record.

        Raises MalformedDataError if the record is not a mapping or its start/end are missing or unparsable.
        Every other field is optional and falls back to its default.
        """
        if not isinstance(record, dict):
            raise MalformedDataError(f"Appointment record is not a mapping: {type(record).__name__}")
        start = parse_datetime(record.get("start"))
        end = parse_datetime(record.get("end"))

        organizer_id = record.get("organizerId")
        if organizer_id is None:
            organizer_id = record.get("createdByUserId")

        try:
            count = int(record.get("recurrenceCount"))
        except (TypeError, ValueError):
            count = None
        return cls(
            id=record.get("id"),
            title=record.get("title") or "",
            description=record.get("description") or "",
            start=start,
            end=end,
            organizer_id=organizer_id,
            organizer_name=record.get("organizerName"),
            participant_ids=tuple(record.get("participantIds") or ()),
            participant_names=tuple(record.get("participantNames") or ()),
            recurrence_type=normalize_recurrence_type(record.get("recurrenceType")),
            recurrence_count=count,
            recurrence_days=tuple(record.get("recurrenceDays") or ()),
        )

    def to_payload(self) -> dict:
        """
        Camel-cased payload for the store. The id is left out since the store owns it.
        """
        recurring = self.recurrence_type != RECURRENCE_NONE
        return {
            "title": self.title,
            "description": self.description,
            "start": format_datetime(self.start),
            "end": format_datetime(self.end),
            "participantIds": list(self.participant_ids),
            "recurrenceType": self.recurrence_type if recurring else None,
            "recurrenceCount": self.recurrence_count if recurring else None,
            "recurrenceDays": list(self.recurrence_days) if self.recurrence_type == RECURRENCE_WEEKLY else None,
        }

    def to_dict(self) -> dict:
        """
        JSON view of the appointment for the browser, including the store-owned fields.
        """
        data = self.to_payload()
        data.update({
            "id": self.id,
            "organizerId": self.organizer_id,
            "organizerName": self.organizer_name,
            "participantNames": list(self.participant_names),
        })
        return data


@dataclass(frozen=True)
class Ok:
    appointment: Appointment


@dataclass(frozen=True)
class Skip:
    reason: str
    record: Any = None


ParseResult = Union[Ok, Skip]


def parse_appointment(record) -> ParseResult:
    if isinstance(record, Appointment):
        return Ok(record)
    try:
        return Ok(Appointment.from_record(record))
    except MalformedDataError as e:
        return Skip(e.message, record)


def parse_appointments(records: Iterable) -> List[Appointment]:
    """
    Parses a batch of store records, keeping store order. Skipped records are logged and dropped.
    """
    appointments = []
    for record in records or ():
        result = parse_appointment(record)
        if isinstance(result, Skip):
            logger.debug("Skipping appointment record: %s", result.reason)
            continue
        appointments.append(result.appointment)
    return appointments


def parse_users(records: Iterable) -> List[User]:
    return [User.from_record(record) for record in records or () if isinstance(record, dict)]
