"""SQLAlchemy database models for tasksync."""

from datetime import datetime
import uuid
from sqlalchemy import Column, String, Boolean, Date, DateTime, Time, ForeignKey, Index

from typing import Union, TypeVar, Type
from tasksync.database.database import Base
from tasksync.models.calendar_config import SyncDirection
from tasksync.models.constants import DEFAULT_CALENDAR_ID, DEFAULT_TIMEZONE
from tasksync.models.task import SOURCE_API

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).
    
    Args:
        enum_obj: Enum instance or string value
        
    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.
    
    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails
        
    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


class TaskDB(Base):
    """Database model for Task."""
    
    __tablename__ = "tasks"
    __table_args__ = (
        # Lookup path for imports/cancellations; uniqueness per user is enforced by lookup.
        Index("ix_tasks_user_external_event", "user_id", "external_event_id"),
    )
    
    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    
    # User association
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    
    source_type = Column(String, nullable=False, default=SOURCE_API)
    
    # Basic fields
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    date = Column(Date, nullable=False, index=True)
    scheduled_start = Column(Time, nullable=True)
    scheduled_end = Column(Time, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    # Set explicitly on local edits and imports; a push only moves it forward when an edit raced the push.
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    
    # Calendar sync bookkeeping
    external_event_id = Column(String, nullable=True)
    external_calendar_id = Column(String, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    
    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tasksync.models.task import Task
        
        return Task(
            id=self.id,
            user_id=self.user_id,
            source_type=self.source_type or SOURCE_API,
            title=self.title,
            description=self.description,
            date=self.date,
            scheduled_start=self.scheduled_start,
            scheduled_end=self.scheduled_end,
            created_at=self.created_at,
            updated_at=self.updated_at,
            external_event_id=self.external_event_id,
            external_calendar_id=self.external_calendar_id,
            last_synced_at=self.last_synced_at,
        )
    
    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            user_id=task.user_id,
            source_type=task.source_type,
            title=task.title,
            description=task.description,
            date=task.date,
            scheduled_start=task.scheduled_start,
            scheduled_end=task.scheduled_end,
            created_at=task.created_at,
            updated_at=task.updated_at,
            external_event_id=task.external_event_id,
            external_calendar_id=task.external_calendar_id,
            last_synced_at=task.last_synced_at,
        )


class UserDB(Base):
    """Database model for User."""
    
    __tablename__ = "users"
    
    # Primary key
    id = Column(String, primary_key=True)
    
    # User profile
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from tasksync.models.user import User
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
    
    @classmethod
    def from_pydantic(cls, user):
        """Create database model from Pydantic model."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CalendarSyncConfigDB(Base):
    """Per-user calendar connection (one row per user).

    Tokens are stored encrypted-at-rest (see repository layer); do NOT log raw tokens.
    """

    __tablename__ = "calendar_sync_configs"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    access_token_encrypted = Column(String, nullable=False)
    refresh_token_encrypted = Column(String, nullable=False)
    token_expiry = Column(DateTime, nullable=False)

    is_enabled = Column(Boolean, nullable=False, default=True)
    sync_direction = Column(String, nullable=False, default=SyncDirection.BIDIRECTIONAL.value)
    calendar_id = Column(String, nullable=False, default=DEFAULT_CALENDAR_ID)
    timezone = Column(String, nullable=True, default=DEFAULT_TIMEZONE)
    account_email = Column(String, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
