"""Inbound import: provider events -> local tasks."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from tasksync.database.repository import TaskRepository
from tasksync.models.calendar_config import CalendarSyncConfig
from tasksync.models.calendar_event import CalendarEvent
from tasksync.models.constants import IMPORT_WINDOW_DAYS, INTERNAL_EVENT_TITLE_MARKERS
from tasksync.models.task import Task
from tasksync.sync.errors import (
    CalendarSyncError,
    MalformedEventError,
    PersistenceError,
    ProviderAPIError,
)
from tasksync.sync.transcoder import from_external_event, parse_event, to_rfc3339

logger = logging.getLogger(__name__)

# Per-event outcomes
IMPORTED = "imported"
DELETED = "deleted"
UNCHANGED = "unchanged"
SKIPPED = "skipped"


def has_internal_marker(title: str) -> bool:
    """True for titles of events this backend generated itself (not user events)."""
    return any(title.startswith(marker) for marker in INTERNAL_EVENT_TITLE_MARKERS)


def provider_is_newer(event: CalendarEvent, task: Task) -> bool:
    """Last-writer-wins check for an event that already has a local task.

    The baseline is the task's last_synced_at (last confirmed agreement), not its
    updated_at, so an event we just pushed is not pulled straight back.
    """
    if event.updated is None:
        return False
    if task.last_synced_at is None:
        return True
    return event.updated > task.last_synced_at


class InboundImporter:
    """Mirrors provider events in a forward window into local tasks."""

    def __init__(self, tasks: TaskRepository, client, config: CalendarSyncConfig):
        self.tasks = tasks
        self.client = client
        self.config = config
        self.deleted_count = 0

    def default_window(self, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        start = now or datetime.utcnow()
        return start, start + timedelta(days=IMPORT_WINDOW_DAYS)

    def import_events(self, window_start: datetime, window_end: datetime) -> Tuple[int, List[str]]:
        """Create, update or delete local tasks from provider events in [window_start, window_end).

        Returns (imported_count, errors). Deletions are counted in `deleted_count`.

        Raises:
            CredentialsExpiredError: provider returned 401 while listing events
        """
        user_id = self.config.user_id
        self.deleted_count = 0
        logger.info(f"Importing calendar events for user {user_id} from calendar {self.config.calendar_id}")

        try:
            items = self.client.list_events_in_range(to_rfc3339(window_start), to_rfc3339(window_end))
        except ProviderAPIError as e:
            logger.warning(f"Failed to fetch events for user {user_id}: {e}")
            return 0, [f"Failed to fetch events: {e}"]

        logger.info(f"Found {len(items)} events for user {user_id}")

        imported = 0
        errors: List[str] = []
        for item in items:
            try:
                outcome = self._apply(item)
            except PersistenceError as e:
                logger.error(f"Failed to import event {item.get('id')}: {e}")
                errors.append(f"Failed to import {item.get('summary') or item.get('id')}: {e}")
                continue
            except MalformedEventError as e:
                logger.warning(str(e))
                errors.append(str(e))
                continue
            except CalendarSyncError as e:
                logger.warning(f"Failed to import event {item.get('id')}: {e}")
                errors.append(f"Failed to import {item.get('summary') or item.get('id')}: {e}")
                continue

            if outcome == IMPORTED:
                imported += 1
            elif outcome == DELETED:
                self.deleted_count += 1

        logger.info(f"Imported {imported} events for user {user_id} ({self.deleted_count} deleted)")
        return imported, errors

    def _apply(self, item: Dict[str, Any]) -> str:
        event = parse_event(item)
        user_id = self.config.user_id

        # Cancelled events often come back without a summary, so check before the title filter.
        if event.is_cancelled:
            try:
                deleted = self.tasks.delete_by_external_id(user_id, event.id)
            except SQLAlchemyError as e:
                raise PersistenceError(f"delete task for cancelled event {event.id}", e) from e
            if deleted:
                logger.info(f"Deleted task for cancelled event {event.id}")
                return DELETED
            return SKIPPED

        if not event.summary:
            logger.debug(f"Skipping event {event.id} with empty summary")
            return SKIPPED

        fields = from_external_event(event, self.config.timezone)
        if fields is None:
            logger.debug(f"Skipping event {event.id} with no start date or time")
            return SKIPPED

        try:
            existing = self.tasks.get_by_external_id(user_id, event.id)
            if existing is None:
                if has_internal_marker(event.summary):
                    logger.debug(f"Skipping internally generated event {event.id}")
                    return SKIPPED
                self.tasks.create_from_import(
                    user_id,
                    fields,
                    external_event_id=event.id,
                    calendar_id=self.config.calendar_id,
                    synced_at=datetime.utcnow(),
                )
                logger.info(f"Created task from calendar event {event.id} on {fields.date}")
                return IMPORTED

            if not provider_is_newer(event, existing):
                return UNCHANGED
            self.tasks.update_from_import(user_id, existing.id, fields, synced_at=datetime.utcnow())
            logger.info(f"Updated task {existing.id} from calendar event {event.id}")
            return IMPORTED
        except SQLAlchemyError as e:
            raise PersistenceError(f"store event {event.id}", e) from e
