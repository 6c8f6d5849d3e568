# Validation for appointment drafts before they are sent to the store, plus the guest list helpers used by the editor.
import re
from datetime import datetime
from typing import Iterable, List, Tuple

from .appointment import (
    Appointment,
    DESCRIPTION_MAX_LENGTH,
    RECURRENCE_NONE,
    RECURRENCE_TYPES,
    RECURRENCE_WEEKLY,
    TITLE_MAX_LENGTH,
    User,
    WEEKDAY_NAMES,
    normalize_recurrence_type,
    parse_datetime,
)
from .error_utils import MalformedDataError, ValidationError

_WEEKDAY_LOOKUP = {name.lower(): name for name in WEEKDAY_NAMES}
_WHOLE_NUMBER = re.compile(r"[+-]?\d+")


def _normalize_weekday(day) -> str:
    key = str(day).strip().lower()[:3]
    if key not in _WEEKDAY_LOOKUP:
        raise ValidationError(f"Unknown recurrence day: {day}")
    return _WEEKDAY_LOOKUP[key]


def normalize_recurrence_days(days: Iterable) -> Tuple[str, ...]:
    """
    Returns the selected weekdays as Sun..Sat abbreviations in week order, without duplicates.
    Accepts full names and any casing ("monday", "MON").
    """
    selected = {_normalize_weekday(day) for day in days or ()}
    return tuple(name for name in WEEKDAY_NAMES if name in selected)


def parse_repetitions(value) -> int:
    """
    Accepts an int or a string of digits. Floats, booleans and anything else are rejected rather than truncated.
    """
    if isinstance(value, bool):
        raise ValidationError("Repetitions must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _WHOLE_NUMBER.fullmatch(value.strip()):
        return int(value.strip())
    raise ValidationError("Repetitions must be a whole number")


def dedupe_ids(ids: Iterable) -> Tuple:
    if ids is None:
        return ()
    # A bare string would otherwise be split into characters
    if not isinstance(ids, (list, tuple)):
        raise ValidationError("Guests must be a list of user ids")
    seen = []
    for user_id in ids or ():
        if user_id not in seen:
            seen.append(user_id)
    return tuple(seen)


def validate_appointment(draft: dict, now: datetime) -> Appointment:
    """
    Checks an appointment draft coming from the editor and returns the normalized Appointment to send to the store.

    Input: draft using the store's camel-cased field names, and the current time.
        Note: the same rules apply to create and update, so an existing appointment can't be moved into the past.

    Raises ValidationError with a user-facing message on the first rule that fails.
    """
    # Step 1: Title is required and bounded.
    title = draft.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Enter title")
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be {TITLE_MAX_LENGTH} characters or fewer")

    # Step 2: Description is optional but bounded.
    description = draft.get("description")
    if description is None:
        description = ""
    if not isinstance(description, str):
        raise ValidationError("Description must be text")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer")

    # Step 3: Both times must parse.
    try:
        start = parse_datetime(draft.get("start"))
        end = parse_datetime(draft.get("end"))
    except MalformedDataError:
        raise ValidationError("Start and end must be valid date-times")

    # Step 4: Start strictly in the future, end strictly after start.
    if start <= now:
        raise ValidationError("Start time must be in the future")
    if end <= start:
        raise ValidationError("End must be after start")

    # Step 5: Recurrence. "none" drops the count and days, days only survive for weekly.
    recurrence_type = normalize_recurrence_type(draft.get("recurrenceType"))
    if recurrence_type not in RECURRENCE_TYPES:
        raise ValidationError(f"Unknown recurrence: {recurrence_type}")

    recurrence_count = None
    recurrence_days = ()
    if recurrence_type != RECURRENCE_NONE:
        recurrence_count = parse_repetitions(draft.get("recurrenceCount"))
        if recurrence_count < 1:
            raise ValidationError("Repetitions must be at least 1")
    if recurrence_type == RECURRENCE_WEEKLY:
        recurrence_days = normalize_recurrence_days(draft.get("recurrenceDays"))
        if not recurrence_days:
            raise ValidationError("Select at least one day for weekly recurrence")

    return Appointment(
        id=draft.get("id"),
        title=title,
        description=description,
        start=start,
        end=end,
        participant_ids=dedupe_ids(draft.get("participantIds")),
        recurrence_type=recurrence_type,
        recurrence_count=recurrence_count,
        recurrence_days=recurrence_days,
    )


def add_guest(participant_ids: Iterable, user_id) -> Tuple:
    ids = tuple(participant_ids or ())
    if user_id in ids:
        return ids
    return ids + (user_id,)


def remove_guest(participant_ids: Iterable, user_id) -> Tuple:
    return tuple(i for i in participant_ids or () if i != user_id)


def toggle_recurrence_day(days: Iterable, day) -> Tuple[str, ...]:
    name = _normalize_weekday(day)
    days = tuple(days or ())
    if name in days:
        return tuple(d for d in days if d != name)
    return days + (name,)


def suggest_guests(users: Iterable, query: str, selected: Iterable = ()) -> List[User]:
    """
    Typeahead for the guest picker: case-insensitive prefix match on the display name.

    Users already selected, or without a display name, are never suggested. A blank query gives no suggestions.
    """
    prefix = (query or "").strip().lower()
    if not prefix:
        return []
    # Ids from a query string are strings while the store may hand back numbers, so compare as text
    selected = {str(user_id) for user_id in selected or ()}
    suggestions = []
    for user in users or ():
        if isinstance(user, dict):
            user = User.from_record(user)
        if not user.display_name or str(user.id) in selected:
            continue
        if user.display_name.lower().startswith(prefix):
            suggestions.append(user)
    return suggestions
