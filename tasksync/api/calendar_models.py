"""Request/response models for calendar and task endpoints."""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tasksync.models.calendar_config import CalendarSyncConfig, SyncDirection
from tasksync.models.constants import DEFAULT_CALENDAR_ID, DEFAULT_TIMEZONE
from tasksync.models.task import Task


class SaveTokensRequest(BaseModel):
    """Tokens obtained by the client from the provider's OAuth flow."""
    access_token: str = Field(..., description="OAuth access token")
    refresh_token: str = Field(..., description="OAuth refresh token")
    expires_in: int = Field(3600, ge=0, description="Access token lifetime in seconds")
    account_email: Optional[str] = Field(None, description="Provider account email, for display")


class UpdateConfigRequest(BaseModel):
    """Partial update of sync preferences; omitted fields are unchanged."""
    is_enabled: Optional[bool] = None
    sync_direction: Optional[SyncDirection] = None
    calendar_id: Optional[str] = Field(None, min_length=1)
    timezone: Optional[str] = Field(None, min_length=1, description="IANA timezone name")


class CalendarConfigResponse(BaseModel):
    """Public view of a user's calendar connection. Never carries tokens."""
    is_connected: bool
    is_enabled: bool = False
    sync_direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    calendar_id: str = DEFAULT_CALENDAR_ID
    timezone: str = DEFAULT_TIMEZONE
    account_email: Optional[str] = None
    last_sync_at: Optional[dt.datetime] = None

    @classmethod
    def from_config(cls, config: Optional[CalendarSyncConfig]) -> "CalendarConfigResponse":
        if config is None:
            return cls(is_connected=False)
        return cls(
            is_connected=True,
            is_enabled=config.is_enabled,
            sync_direction=config.sync_direction,
            calendar_id=config.calendar_id,
            timezone=config.timezone,
            account_email=config.account_email,
            last_sync_at=config.last_sync_at,
        )


class SyncTaskResponse(BaseModel):
    """Response for a single-task push."""
    external_event_id: str
    status: str = "synced"


class TaskCreateRequest(BaseModel):
    """Request model for creating a task."""
    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = None
    date: dt.date = Field(..., description="Day the task is planned for")
    scheduled_start: Optional[dt.time] = None
    scheduled_end: Optional[dt.time] = None


class TaskUpdateRequest(BaseModel):
    """Request model for updating a task (all fields optional)."""
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    date: Optional[dt.date] = None
    scheduled_start: Optional[dt.time] = None
    scheduled_end: Optional[dt.time] = None

    @field_validator("title", "date")
    @classmethod
    def _reject_null(cls, v, info):
        # Omit a field to leave it unchanged; these two can't be cleared
        if v is None:
            raise ValueError(f"{info.field_name} may not be null")
        return v


class TaskResponse(BaseModel):
    """Response model for a single task."""
    task: Task


class TasksListResponse(BaseModel):
    """Response model for listing tasks."""
    tasks: List[Task]
    total: int
