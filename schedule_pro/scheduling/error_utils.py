# Custom exceptions to be used throughout the project.

class SchedulingError(Exception):
    """
    Base class for the calendar errors. The first argument is kept as the user-facing message.
    """
    def __init__(self, *args):
        super().__init__(*args)
        self.message = args[0] if args else self.__class__.__name__


class ValidationError(SchedulingError):
    """
    To be raised when an appointment draft fails the scheduling rules before a create or update.
    May be raised under the following circumstances:
        1. Title is empty or longer than 50 characters
        2. Description is longer than 250 characters
        3. Start time is not in the future
        4. End time is not after the start time
        5. Weekly recurrence has no days selected, or the recurrence count is not positive
    The store is never called once this is raised.
    """


class FetchError(SchedulingError):
    """
    To be raised when a call to the appointment store fails, either from a non-success status or a transport error.
    """
    def __init__(self, *args, status=None):
        super().__init__(*args)
        self.status = status


class MalformedDataError(SchedulingError):
    """
    To be raised when a record from the store has a missing or unparsable start/end.
    Rendering code turns this into a skipped record rather than letting it escape.
    """
