"""Conversion between local tasks and provider calendar events.

Pure functions, no I/O. Times on the task side are wall-clock times in the user's
configured timezone; instants on the provider side are RFC3339 strings.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tasksync.models.calendar_event import CalendarEvent, EventBoundary, EventFields, EventStatus
from tasksync.models.constants import (
    DEFAULT_EVENT_DURATION_MIN,
    DEFAULT_EVENT_END,
    DEFAULT_EVENT_START,
    DEFAULT_TIMEZONE,
)
from tasksync.models.task import Task
from tasksync.sync.errors import MalformedEventError

logger = logging.getLogger(__name__)

_CIVIL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def resolve_timezone(name: Optional[str]) -> str:
    """Return `name` if it is a known IANA zone, else the default zone."""
    if name:
        try:
            ZoneInfo(name)
            return name
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {name!r}; falling back to {DEFAULT_TIMEZONE}")
    return DEFAULT_TIMEZONE


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def parse_rfc3339(value: str) -> datetime:
    """Parse a provider RFC3339 timestamp into an aware datetime (naive input is taken as UTC)."""
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    parsed = datetime.fromisoformat(normalized)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=dt_timezone.utc)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize to a naive UTC datetime, the representation used by the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(dt_timezone.utc).replace(tzinfo=None)


def to_rfc3339(value: datetime) -> str:
    """Format an instant for provider query params (naive input is taken as UTC)."""
    aware = value if value.tzinfo is not None else value.replace(tzinfo=dt_timezone.utc)
    return aware.astimezone(dt_timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def today_in(timezone: str, now: Optional[datetime] = None) -> date:
    """Civil date of `now` (naive UTC, default current time) in the given zone."""
    now = now or datetime.utcnow()
    return now.replace(tzinfo=dt_timezone.utc).astimezone(ZoneInfo(resolve_timezone(timezone))).date()


def _event_window(task: Task) -> Tuple[datetime, datetime]:
    start = task.scheduled_start
    end = task.scheduled_end
    duration = timedelta(minutes=DEFAULT_EVENT_DURATION_MIN)

    if start is None and end is None:
        return (
            datetime.combine(task.date, DEFAULT_EVENT_START),
            datetime.combine(task.date, DEFAULT_EVENT_END),
        )
    if start is not None:
        start_dt = datetime.combine(task.date, start.replace(microsecond=0))
        end_dt = datetime.combine(task.date, end.replace(microsecond=0)) if end is not None else start_dt + duration
        if end_dt <= start_dt:
            # Window crosses midnight
            end_dt += timedelta(days=1)
        return start_dt, end_dt
    end_dt = datetime.combine(task.date, end.replace(microsecond=0))
    return end_dt - duration, end_dt


def to_external_event(task: Task, timezone: str) -> Dict[str, Any]:
    """Build a provider event body for a task.

    Tasks without times get a 09:00-10:00 window on their date. Times are sent as civil
    datetimes (whole seconds) qualified by the user's timezone.
    """
    tz_name = resolve_timezone(timezone)
    start_dt, end_dt = _event_window(task)

    body: Dict[str, Any] = {
        "summary": task.title,
        "start": {
            "dateTime": start_dt.strftime(_CIVIL_DATETIME_FORMAT),
            "timeZone": tz_name,
        },
        "end": {
            "dateTime": end_dt.strftime(_CIVIL_DATETIME_FORMAT),
            "timeZone": tz_name,
        },
    }
    if task.description:
        body["description"] = task.description
    return body


def _parse_boundary(event_id: Optional[str], payload: Any) -> EventBoundary:
    if not isinstance(payload, dict):
        return EventBoundary()

    date_time = payload.get("dateTime")
    if isinstance(date_time, str) and date_time.strip():
        try:
            return EventBoundary(date_time=parse_rfc3339(date_time))
        except ValueError as e:
            raise MalformedEventError(event_id, f"invalid dateTime {date_time!r}") from e

    date_value = payload.get("date")
    if isinstance(date_value, str) and date_value.strip():
        try:
            return EventBoundary(date=date.fromisoformat(date_value.strip()))
        except ValueError as e:
            raise MalformedEventError(event_id, f"invalid date {date_value!r}") from e

    return EventBoundary()


def parse_event(item: Dict[str, Any]) -> CalendarEvent:
    """Parse a raw provider event (events.list item) into a CalendarEvent."""
    event_id = item.get("id")
    if not event_id:
        raise MalformedEventError(None, "missing id")

    status_raw = (item.get("status") or "").lower()
    try:
        status = EventStatus(status_raw)
    except ValueError:
        status = EventStatus.CONFIRMED

    updated = None
    updated_raw = item.get("updated")
    if updated_raw:
        try:
            updated = to_utc_naive(parse_rfc3339(updated_raw))
        except ValueError as e:
            raise MalformedEventError(event_id, f"invalid updated timestamp {updated_raw!r}") from e

    return CalendarEvent(
        id=event_id,
        summary=(item.get("summary") or "").strip(),
        description=item.get("description") or None,
        status=status,
        start=_parse_boundary(event_id, item.get("start")),
        end=_parse_boundary(event_id, item.get("end")),
        updated=updated,
    )


def from_external_event(event: CalendarEvent, timezone: str) -> Optional[EventFields]:
    """Derive task fields from a provider event.

    Timed events are converted to wall-clock HH:MM in the user's timezone; all-day events
    carry only a date. Returns None when the event has neither form.
    """
    tz = ZoneInfo(resolve_timezone(timezone))

    if event.start.date_time is not None:
        start_local = event.start.date_time.astimezone(tz)
        scheduled_end = None
        if event.end.date_time is not None:
            end_local = event.end.date_time.astimezone(tz)
            scheduled_end = time(end_local.hour, end_local.minute)
        return EventFields(
            title=event.summary,
            description=event.description,
            date=start_local.date(),
            scheduled_start=time(start_local.hour, start_local.minute),
            scheduled_end=scheduled_end,
        )

    if event.start.date is not None:
        return EventFields(title=event.summary, description=event.description, date=event.start.date)

    return None
