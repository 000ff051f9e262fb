"""Outbound push: local tasks -> provider events."""

import logging
from datetime import date, datetime
from typing import Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError

from tasksync.database.repository import TaskRepository
from tasksync.models.calendar_config import CalendarSyncConfig
from tasksync.models.constants import PUSH_BATCH_LIMIT
from tasksync.models.task import Task
from tasksync.sync.errors import CalendarSyncError, CredentialsExpiredError, PersistenceError, ProviderAPIError
from tasksync.sync.transcoder import to_external_event

logger = logging.getLogger(__name__)


class OutboundPusher:
    """Creates or updates provider events for local tasks, one task at a time."""

    def __init__(self, tasks: TaskRepository, client, config: CalendarSyncConfig):
        self.tasks = tasks
        self.client = client
        self.config = config

    def push_task(self, task: Task) -> str:
        """Push one task; returns the provider event id.

        Updates the existing event when the task already has one, so repeated pushes
        never create duplicates. A task linked to a different calendar than the
        configured one gets a new event in the configured calendar.

        Raises:
            CredentialsExpiredError: provider returned 401
            ProviderAPIError: any other provider failure
            PersistenceError: the event was written but the bookkeeping was not
        """
        body = to_external_event(task, self.config.timezone)
        event_id = task.external_event_id
        if event_id and task.external_calendar_id and task.external_calendar_id != self.config.calendar_id:
            logger.info(
                f"Task {task.id} is linked to calendar {task.external_calendar_id}; "
                f"creating it in {self.config.calendar_id}"
            )
            event_id = None

        if event_id:
            event = self.client.patch_event(event_id, body)
        else:
            event = self.client.insert_event(body)

        event_id = event.get("id") or event_id
        if not event_id:
            raise ProviderAPIError(status_code=200, body="response carried no event id", action="push task")

        try:
            self.tasks.set_sync_bookkeeping(
                task.user_id,
                task.id,
                external_event_id=event_id,
                calendar_id=self.config.calendar_id,
                synced_at=datetime.utcnow(),
                pushed_updated_at=task.updated_at,
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"record event {event_id} on task {task.id}", e) from e

        logger.debug(f"Pushed task {task.id} to calendar event {event_id}")
        return event_id

    def push_tasks(self, tasks: Iterable[Task]) -> Tuple[int, List[str]]:
        """Push each task independently; failures are collected, not raised.

        CredentialsExpiredError is the exception: every later call would fail the same
        way, so it propagates and ends the pass.
        """
        synced = 0
        errors: List[str] = []
        for task in tasks:
            try:
                self.push_task(task)
            except CredentialsExpiredError:
                raise
            except PersistenceError as e:
                logger.error(f"Failed to sync task {task.id}: {e}")
                errors.append(f"Failed to sync task {task.title}: {e}")
                continue
            except CalendarSyncError as e:
                logger.warning(f"Failed to sync task {task.id}: {e}")
                errors.append(f"Failed to sync task {task.title}: {e}")
                continue
            synced += 1
        return synced, errors

    def push_due_tasks(self, today: date, limit: int = PUSH_BATCH_LIMIT) -> Tuple[int, List[str]]:
        """Push up to `limit` future-dated dirty tasks. Returns (success_count, errors)."""
        try:
            due = self.tasks.list_dirty(self.config.user_id, today, limit=limit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load dirty tasks for user {self.config.user_id}: {e}")
            return 0, [str(PersistenceError("load tasks to sync", e))]

        logger.info(f"Pushing {len(due)} tasks for user {self.config.user_id}")
        return self.push_tasks(due)
