"""Data models for tasksync."""

from tasksync.models.task import Task
from tasksync.models.user import User
from tasksync.models.calendar_config import CalendarCredentials, CalendarSyncConfig, SyncDirection
from tasksync.models.calendar_event import CalendarEvent, EventBoundary, EventFields, EventStatus
from tasksync.models.sync_result import SyncResult

__all__ = [
    "Task",
    "User",
    "CalendarCredentials",
    "CalendarSyncConfig",
    "SyncDirection",
    "CalendarEvent",
    "EventBoundary",
    "EventFields",
    "EventStatus",
    "SyncResult",
]
