"""Sync orchestration: one full push/import pass per user."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from tasksync.database.calendar_config_repository import CalendarConfigRepository
from tasksync.database.repository import TaskRepository
from tasksync.integrations.google_calendar import GoogleCalendarClient
from tasksync.models.calendar_config import CalendarSyncConfig
from tasksync.models.sync_result import SKIPPED_DISABLED, SKIPPED_NOT_CONNECTED, SyncResult
from tasksync.sync.errors import (
    CalendarSyncError,
    CredentialsExpiredError,
    NotConnectedError,
    SyncDisabledError,
    TaskNotFoundError,
)
from tasksync.sync.importer import InboundImporter
from tasksync.sync.pusher import OutboundPusher
from tasksync.sync.transcoder import today_in

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CalendarSyncConfig], GoogleCalendarClient]


class SyncOrchestrator:
    """Runs sync passes for one database session.

    The provider client is built per pass from the user's config by `client_factory`,
    so nothing provider-related outlives a call.
    """

    def __init__(self, db: Session, client_factory: ClientFactory = GoogleCalendarClient.from_config):
        self.db = db
        self.client_factory = client_factory
        self.tasks = TaskRepository(db)
        self.configs = CalendarConfigRepository(db)

    def _require_config(self, user_id: str) -> CalendarSyncConfig:
        config = self.configs.get(user_id)
        if config is None:
            raise NotConnectedError(user_id)
        if not config.is_enabled:
            raise SyncDisabledError(user_id)
        return config

    @staticmethod
    def _check_expiry(config: CalendarSyncConfig, now: datetime) -> None:
        if config.credentials.is_expired(now):
            logger.info(f"Calendar token expired for user {config.user_id}; skipping provider calls")
            raise CredentialsExpiredError()

    def sync(self, user_id: str, now: Optional[datetime] = None) -> SyncResult:
        """Run one full pass: push dirty tasks, import provider events, advance the watermark.

        A missing or disabled config yields an empty result with `skipped_reason` set.
        Item-level failures are collected in `errors` and do not stop the pass.

        Raises:
            CredentialsExpiredError: token expired before the pass, or a 401 mid-pass
                (the watermark is not advanced in that case)
        """
        now = now or datetime.utcnow()
        config = self.configs.get(user_id)
        if config is None:
            logger.debug(f"Calendar sync skipped for user {user_id}: not connected")
            return SyncResult(skipped_reason=SKIPPED_NOT_CONNECTED)
        if not config.is_enabled:
            logger.debug(f"Calendar sync skipped for user {user_id}: disabled")
            return SyncResult(skipped_reason=SKIPPED_DISABLED)
        self._check_expiry(config, now)

        client = self.client_factory(config)
        result = SyncResult()

        if config.sync_direction.pushes:
            pusher = OutboundPusher(self.tasks, client, config)
            pushed, errors = pusher.push_due_tasks(today_in(config.timezone, now))
            result.tasks_pushed = pushed
            result.errors.extend(errors)

        if config.sync_direction.imports:
            importer = InboundImporter(self.tasks, client, config)
            imported, errors = importer.import_events(*importer.default_window(now))
            result.events_imported = imported
            result.events_deleted = importer.deleted_count
            result.errors.extend(errors)

        self.configs.mark_synced(user_id, now)
        result.last_sync_at = now
        logger.info(
            f"Calendar sync for user {user_id}: pushed {result.tasks_pushed}, "
            f"imported {result.events_imported}, deleted {result.events_deleted}, "
            f"{len(result.errors)} errors"
        )
        return result

    def push_single_task(self, user_id: str, task_id: str) -> str:
        """Push one task now, regardless of its dirty state. Returns the provider event id.

        Raises:
            NotConnectedError, SyncDisabledError, CredentialsExpiredError, TaskNotFoundError,
            ProviderAPIError, PersistenceError
        """
        config = self._require_config(user_id)
        self._check_expiry(config, datetime.utcnow())
        task = self.tasks.get(user_id, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        pusher = OutboundPusher(self.tasks, self.client_factory(config), config)
        return pusher.push_task(task)

    def sync_task_on_change(self, user_id: str, task_id: str) -> Optional[str]:
        """Best-effort push after a task is created or edited.

        Returns the event id, or None when calendar sync does not apply to this user
        right now or the push failed.
        """
        config = self.configs.get(user_id)
        if config is None or not config.is_enabled or not config.sync_direction.pushes:
            return None
        if config.credentials.is_expired(datetime.utcnow()):
            logger.debug(f"Skipping push of task {task_id}: calendar token expired")
            return None
        task = self.tasks.get(user_id, task_id)
        if task is None:
            return None
        pusher = OutboundPusher(self.tasks, self.client_factory(config), config)
        try:
            return pusher.push_task(task)
        except CalendarSyncError as e:
            logger.warning(f"Failed to push task {task_id} after change: {e}")
            return None

    def delete_external_event(self, user_id: str, external_event_id: str) -> bool:
        """Remove the provider event of a deleted task.

        Returns True if the event is gone (including when it already was), False when
        calendar sync does not apply to this user.

        Raises:
            CredentialsExpiredError, ProviderAPIError
        """
        config = self.configs.get(user_id)
        if config is None or not config.is_enabled:
            return False
        self._check_expiry(config, datetime.utcnow())
        deleted = self.client_factory(config).delete_event(external_event_id)
        if not deleted:
            logger.debug(f"Calendar event {external_event_id} was already deleted")
        return True
