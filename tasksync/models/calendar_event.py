"""Provider calendar event models for tasksync."""

import datetime as dt
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    """Provider event status."""
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class EventBoundary(BaseModel):
    """Start or end of a provider event: a zoned datetime (timed) or a date (all-day)."""
    date_time: Optional[dt.datetime] = Field(None, description="Timezone-aware instant for timed events")
    date: Optional[dt.date] = Field(None, description="Civil date for all-day events")


class CalendarEvent(BaseModel):
    """A provider event, parsed once at the API boundary."""
    id: str
    summary: str = ""
    description: Optional[str] = None
    status: EventStatus = EventStatus.CONFIRMED
    start: EventBoundary = Field(default_factory=EventBoundary)
    end: EventBoundary = Field(default_factory=EventBoundary)
    updated: Optional[dt.datetime] = Field(None, description="Provider modification instant (naive UTC)")

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED


class EventFields(BaseModel):
    """Task fields derived from a provider event."""
    title: str
    description: Optional[str] = None
    date: dt.date
    scheduled_start: Optional[dt.time] = None
    scheduled_end: Optional[dt.time] = None
