"""One-shot push of existing tasks right after a user connects a calendar."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from tasksync.database.calendar_config_repository import CalendarConfigRepository
from tasksync.database.repository import TaskRepository
from tasksync.models.sync_result import SyncResult
from tasksync.sync.orchestrator import ClientFactory
from tasksync.sync.pusher import OutboundPusher
from tasksync.sync.transcoder import today_in

logger = logging.getLogger(__name__)


def run_retroactive_sync(
    user_id: str,
    *,
    session_factory: Callable[[], Session],
    client_factory: ClientFactory,
) -> Optional[SyncResult]:
    """Push every future-dated task of a newly connected user.

    Meant to run as a background task after the request that saved the credentials,
    so it opens its own session and never raises. Returns None when skipped or failed.
    """
    db = session_factory()
    try:
        configs = CalendarConfigRepository(db)
        config = configs.get(user_id)
        if config is None or not config.is_enabled or not config.sync_direction.pushes:
            logger.debug(f"Retroactive sync skipped for user {user_id}")
            return None
        now = datetime.utcnow()
        if config.credentials.is_expired(now):
            logger.info(f"Retroactive sync skipped for user {user_id}: token expired")
            return None

        tasks = TaskRepository(db)
        pusher = OutboundPusher(tasks, client_factory(config), config)
        pushed, errors = pusher.push_tasks(tasks.list_future(user_id, today_in(config.timezone, now)))
        result = SyncResult(tasks_pushed=pushed, errors=errors)
        logger.info(
            "retroactive_sync_completed",
            extra={"user_id": user_id, "tasks_pushed": pushed, "error_count": len(errors)},
        )
        return result
    except Exception:
        logger.exception("retroactive_sync_failed", extra={"user_id": user_id})
        return None
    finally:
        db.close()
