"""Calendar connection (sync configuration) model for tasksync."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from tasksync.models.constants import DEFAULT_CALENDAR_ID, DEFAULT_TIMEZONE


class SyncDirection(str, Enum):
    """Which way data may flow between tasks and the calendar."""
    BIDIRECTIONAL = "bidirectional"
    TO_EXTERNAL = "to_google"
    FROM_EXTERNAL = "from_google"

    @property
    def pushes(self) -> bool:
        return self in (SyncDirection.BIDIRECTIONAL, SyncDirection.TO_EXTERNAL)

    @property
    def imports(self) -> bool:
        return self in (SyncDirection.BIDIRECTIONAL, SyncDirection.FROM_EXTERNAL)


class CalendarCredentials(BaseModel):
    """OAuth token pair for the calendar provider.

    Decrypted values; never serialize this to API clients or logs.
    """
    access_token: str = Field(..., repr=False)
    refresh_token: str = Field(..., repr=False)
    expiry: datetime = Field(..., description="Absolute access-token expiry (UTC)")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expiry


class CalendarSyncConfig(BaseModel):
    """Per-user calendar connection and sync preferences (at most one per user)."""

    user_id: str = Field(..., description="Owning user ID")
    credentials: CalendarCredentials
    is_enabled: bool = Field(True, description="Whether sync passes run for this user")
    sync_direction: SyncDirection = Field(SyncDirection.BIDIRECTIONAL, description="Allowed data flow")
    calendar_id: str = Field(DEFAULT_CALENDAR_ID, description="Provider calendar to sync with")
    timezone: str = Field(DEFAULT_TIMEZONE, description="IANA timezone for wall-clock task times")
    account_email: Optional[str] = Field(None, description="Provider account the user connected")
    last_sync_at: Optional[datetime] = Field(None, description="Watermark of the last completed sync pass")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
