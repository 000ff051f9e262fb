"""Error taxonomy for the calendar sync engine.

Pass-level errors (NotConnectedError, SyncDisabledError, CredentialsExpiredError) stop a pass
before any provider call. Item-level errors (ProviderAPIError, MalformedEventError,
PersistenceError) are collected into SyncResult.errors and never abort a batch.
"""

from typing import Optional


class CalendarSyncError(Exception):
    """Base class for calendar sync failures."""


class NotConnectedError(CalendarSyncError):
    """The user has no calendar connection."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Google Calendar not connected")


class SyncDisabledError(CalendarSyncError):
    """The user's calendar connection exists but sync is turned off."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Google Calendar sync is disabled")


class CredentialsExpiredError(CalendarSyncError):
    """Access token expired or rejected (HTTP 401). The user must reconnect; never retried."""

    def __init__(self, message: str = "Token expired, please reconnect to Google Calendar"):
        super().__init__(message)


class ProviderAPIError(CalendarSyncError):
    """The calendar provider rejected or failed a request."""

    def __init__(self, *, status_code: int, body: str, action: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.action = action
        prefix = f"{action}: " if action else ""
        super().__init__(f"{prefix}Google Calendar API error {status_code} - {body}")


class MalformedEventError(CalendarSyncError):
    """A provider event could not be parsed."""

    def __init__(self, event_id: Optional[str], reason: str):
        self.event_id = event_id
        super().__init__(f"Malformed event {event_id or '<no id>'}: {reason}")


class PersistenceError(CalendarSyncError):
    """A local task or config write failed."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Failed to {operation}: {type(cause).__name__}: {cause}")


class TaskNotFoundError(CalendarSyncError):
    """The requested task does not exist for this user."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")
