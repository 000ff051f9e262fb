"""Repository layer for task database operations."""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc, or_

from tasksync.models.calendar_event import EventFields
from tasksync.models.constants import PUSH_BATCH_LIMIT
from tasksync.models.task import Task, SOURCE_GOOGLE_CALENDAR
from tasksync.database.models import TaskDB

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for Task database operations.

    The plain CRUD methods serve the task subsystem; the sync methods below only
    read and write the calendar bookkeeping columns (plus imported event fields).
    """
    
    def __init__(self, db: Session):
        self.db = db

    def _query_user(self, user_id: str):
        return self.db.query(TaskDB).filter(TaskDB.user_id == user_id)
    
    def create(self, task: Task) -> Task:
        """Create a new task."""
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}: {str(e)}")
            raise
    
    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        """Get task by ID for a specific user."""
        task_db = self._query_user(user_id).filter(TaskDB.id == task_id).first()
        return task_db.to_pydantic() if task_db else None
    
    def get_all(self, user_id: str) -> List[Task]:
        """Get all tasks for a user sorted by creation date (newest first)."""
        tasks_db = self._query_user(user_id).order_by(desc(TaskDB.created_at)).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def update(self, task: Task) -> Task:
        """Update an existing task's user-editable fields (user_id must match task.user_id)."""
        task_db = self._query_user(task.user_id).filter(TaskDB.id == task.id).first()
        if not task_db:
            raise ValueError(f"Task {task.id} not found")
        
        task_db.title = task.title
        task_db.description = task.description
        task_db.date = task.date
        task_db.scheduled_start = task.scheduled_start
        task_db.scheduled_end = task.scheduled_end
        task_db.updated_at = task.updated_at
        
        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {task.id}: {type(e).__name__}: {str(e)}")
            raise
    
    def delete(self, user_id: str, task_id: str) -> bool:
        """Delete a task by ID for a specific user."""
        task_db = self._query_user(user_id).filter(TaskDB.id == task_id).first()
        if not task_db:
            return False
        
        try:
            self.db.delete(task_db)
            self.db.commit()
            logger.debug(f"Deleted task {task_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete task {task_id}: {type(e).__name__}: {str(e)}")
            raise

    # ------------------------------------------------------------------
    # Calendar sync
    # ------------------------------------------------------------------

    def list_dirty(self, user_id: str, today: date, limit: int = PUSH_BATCH_LIMIT) -> List[Task]:
        """Future-dated tasks that were never pushed or were edited since their last sync."""
        tasks_db = (
            self._query_user(user_id)
            .filter(
                TaskDB.date >= today,
                or_(
                    TaskDB.external_event_id.is_(None),
                    TaskDB.last_synced_at.is_(None),
                    TaskDB.last_synced_at < TaskDB.updated_at,
                ),
            )
            .order_by(TaskDB.date, TaskDB.scheduled_start)
            .limit(limit)
            .all()
        )
        return [task_db.to_pydantic() for task_db in tasks_db]

    def list_future(self, user_id: str, today: date) -> List[Task]:
        """All tasks dated today or later, regardless of sync state."""
        tasks_db = (
            self._query_user(user_id)
            .filter(TaskDB.date >= today)
            .order_by(TaskDB.date, TaskDB.scheduled_start)
            .all()
        )
        return [task_db.to_pydantic() for task_db in tasks_db]

    def get_by_external_id(self, user_id: str, external_event_id: str) -> Optional[Task]:
        """Find the (at most one) task mirrored to a provider event."""
        task_db = self._query_user(user_id).filter(TaskDB.external_event_id == external_event_id).first()
        return task_db.to_pydantic() if task_db else None

    def create_from_import(
        self,
        user_id: str,
        fields: EventFields,
        *,
        external_event_id: str,
        calendar_id: str,
        synced_at: datetime,
    ) -> Task:
        """Create a task for a provider event with no local counterpart."""
        task = Task(
            id=str(uuid.uuid4()),
            user_id=user_id,
            source_type=SOURCE_GOOGLE_CALENDAR,
            title=fields.title,
            description=fields.description,
            date=fields.date,
            scheduled_start=fields.scheduled_start,
            scheduled_end=fields.scheduled_end,
            created_at=synced_at,
            updated_at=synced_at,
            external_event_id=external_event_id,
            external_calendar_id=calendar_id,
            last_synced_at=synced_at,
        )
        return self.create(task)

    def update_from_import(self, user_id: str, task_id: str, fields: EventFields, *, synced_at: datetime) -> Optional[Task]:
        """Overwrite a task with the provider's (newer) version of its event."""
        task_db = self._query_user(user_id).filter(TaskDB.id == task_id).first()
        if task_db is None:
            return None
        try:
            task_db.title = fields.title
            task_db.description = fields.description
            task_db.date = fields.date
            task_db.scheduled_start = fields.scheduled_start
            task_db.scheduled_end = fields.scheduled_end
            # Same instant for both so the task is not seen as dirty on the next push.
            task_db.updated_at = synced_at
            task_db.last_synced_at = synced_at
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task_id} from provider event {task_db.external_event_id}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {task_id} from import: {type(e).__name__}: {str(e)}")
            raise

    def delete_by_external_id(self, user_id: str, external_event_id: str) -> int:
        """Delete the task mirrored to a cancelled provider event.

        Returns number of rows deleted (0 or 1).
        """
        try:
            affected = (
                self._query_user(user_id)
                .filter(TaskDB.external_event_id == external_event_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            if affected:
                logger.debug(f"Deleted task for cancelled event {external_event_id}")
            return int(affected)
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to delete task for event {external_event_id}: {type(e).__name__}: {str(e)}"
            )
            raise

    def set_sync_bookkeeping(
        self,
        user_id: str,
        task_id: str,
        *,
        external_event_id: str,
        calendar_id: str,
        synced_at: datetime,
        pushed_updated_at: Optional[datetime] = None,
    ) -> Optional[Task]:
        """Record that a task was pushed to the provider.

        `pushed_updated_at` is the task's updated_at as read before the push. If the row
        was edited while the push was in flight, last_synced_at still records the push
        (imports compare provider changes against it) and updated_at is moved just past
        it, so the newer edit stays dirty and goes out next pass.
        """
        task_db = (
            self._query_user(user_id)
            .filter(TaskDB.id == task_id)
            .populate_existing()
            .first()
        )
        if task_db is None:
            return None
        try:
            task_db.external_event_id = external_event_id
            task_db.external_calendar_id = calendar_id
            task_db.last_synced_at = synced_at
            if pushed_updated_at is not None and task_db.updated_at > pushed_updated_at:
                logger.debug(f"Task {task_id} edited during push; leaving it dirty")
                if task_db.updated_at <= synced_at:
                    task_db.updated_at = synced_at + timedelta(microseconds=1)
            self.db.commit()
            self.db.refresh(task_db)
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record sync bookkeeping for task {task_id}: {type(e).__name__}: {str(e)}")
            raise

    def clear_sync_bookkeeping(self, user_id: str) -> int:
        """Forget every provider link for a user's tasks (used on disconnect).

        Does not commit; the caller owns the transaction.
        """
        affected = self._query_user(user_id).update(
            {
                TaskDB.external_event_id: None,
                TaskDB.external_calendar_id: None,
                TaskDB.last_synced_at: None,
            },
            synchronize_session=False,
        )
        return int(affected)
