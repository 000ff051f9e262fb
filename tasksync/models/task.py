"""Task data model for tasksync."""

import datetime as dt
from typing import Optional
from pydantic import BaseModel, Field


SOURCE_API = "api"
SOURCE_GOOGLE_CALENDAR = "google_calendar"


class Task(BaseModel):
    """Canonical Task model.

    Only the calendar bookkeeping fields (external_event_id, external_calendar_id,
    last_synced_at) are owned by the sync engine; everything else is maintained by
    the task subsystem.
    """
    
    id: str = Field(..., description="Unique task identifier (UUID v4)")
    user_id: str = Field(..., description="User ID who owns this task")
    source_type: str = Field(SOURCE_API, description="Where the task came from ('api' or 'google_calendar')")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    date: dt.date = Field(..., description="Calendar day the task is planned for")
    scheduled_start: Optional[dt.time] = Field(None, description="Wall-clock start time (user's calendar timezone)")
    scheduled_end: Optional[dt.time] = Field(None, description="Wall-clock end time (user's calendar timezone)")
    created_at: dt.datetime = Field(..., description="Task creation timestamp (UTC)")
    updated_at: dt.datetime = Field(..., description="Task last local edit timestamp (UTC)")

    # Calendar sync bookkeeping
    external_event_id: Optional[str] = Field(None, description="Provider event id once pushed or imported")
    external_calendar_id: Optional[str] = Field(None, description="Provider calendar id the event lives in")
    last_synced_at: Optional[dt.datetime] = Field(
        None, description="When the sync engine last confirmed agreement with the provider (UTC)"
    )

    def is_dirty(self) -> bool:
        """True when the task was never pushed or was edited since the last confirmed sync."""
        if not self.external_event_id or self.last_synced_at is None:
            return True
        return self.last_synced_at < self.updated_at