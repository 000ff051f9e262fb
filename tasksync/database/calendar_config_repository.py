"""Repository for per-user calendar connections (sync configuration).

Security notes:
- Access and refresh tokens are secrets: stored encrypted-at-rest and never logged.
- Callers must ensure values are not leaked to clients or logs.
"""

import logging
import os
from datetime import datetime
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from tasksync.database.models import CalendarSyncConfigDB, enum_to_value, value_to_enum
from tasksync.database.repository import TaskRepository
from tasksync.models.calendar_config import CalendarCredentials, CalendarSyncConfig, SyncDirection
from tasksync.models.constants import DEFAULT_CALENDAR_ID, DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def _require_fernet() -> Fernet:
    key = os.getenv("TOKEN_ENCRYPTION_KEY", "").strip()
    if not key:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY is not set. "
            "Set it to a Fernet key (base64 urlsafe 32-byte) to enable encrypted token storage."
        )
    return Fernet(key)


def encrypt_secret(raw: str) -> str:
    f = _require_fernet()
    return f.encrypt(raw.encode("utf-8")).decode("utf-8")


def decrypt_secret(enc: str) -> str:
    f = _require_fernet()
    try:
        return f.decrypt(enc.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise RuntimeError("Stored token could not be decrypted; TOKEN_ENCRYPTION_KEY may be wrong.") from e



class CalendarConfigRepository:
    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, user_id: str) -> Optional[CalendarSyncConfigDB]:
        return (
            self.db.query(CalendarSyncConfigDB)
            .filter(CalendarSyncConfigDB.user_id == user_id)
            .first()
        )

    def _to_model(self, row: CalendarSyncConfigDB) -> CalendarSyncConfig:
        return CalendarSyncConfig(
            user_id=row.user_id,
            credentials=CalendarCredentials(
                access_token=decrypt_secret(row.access_token_encrypted),
                refresh_token=decrypt_secret(row.refresh_token_encrypted),
                expiry=row.token_expiry,
            ),
            is_enabled=bool(row.is_enabled),
            sync_direction=value_to_enum(row.sync_direction, SyncDirection, SyncDirection.BIDIRECTIONAL),
            calendar_id=row.calendar_id or DEFAULT_CALENDAR_ID,
            timezone=row.timezone or DEFAULT_TIMEZONE,
            account_email=row.account_email,
            last_sync_at=row.last_sync_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _commit(self, row: CalendarSyncConfigDB, action: str) -> CalendarSyncConfig:
        try:
            self.db.commit()
            self.db.refresh(row)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to {action} for user {row.user_id}: {type(e).__name__}: {str(e)}")
            raise
        return self._to_model(row)

    def get(self, user_id: str) -> Optional[CalendarSyncConfig]:
        row = self._get_row(user_id)
        return self._to_model(row) if row else None

    def upsert_credentials(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str,
        expiry: datetime,
        *,
        account_email: Optional[str] = None,
    ) -> CalendarSyncConfig:
        """Save (or replace) the user's tokens. Always re-enables sync."""
        now = datetime.utcnow()
        row = self._get_row(user_id)
        if row is None:
            row = CalendarSyncConfigDB(
                user_id=user_id,
                access_token_encrypted=encrypt_secret(access_token),
                refresh_token_encrypted=encrypt_secret(refresh_token),
                token_expiry=expiry,
                is_enabled=True,
                sync_direction=SyncDirection.BIDIRECTIONAL.value,
                calendar_id=DEFAULT_CALENDAR_ID,
                timezone=DEFAULT_TIMEZONE,
                account_email=account_email,
                created_at=now,
                updated_at=now,
            )
            self.db.add(row)
        else:
            row.access_token_encrypted = encrypt_secret(access_token)
            row.refresh_token_encrypted = encrypt_secret(refresh_token)
            row.token_expiry = expiry
            row.account_email = account_email
            row.is_enabled = True
            row.updated_at = now

        config = self._commit(row, "save calendar credentials")
        logger.info(f"Saved calendar credentials for user {user_id}")
        return config

    def update_preferences(
        self,
        user_id: str,
        *,
        is_enabled: Optional[bool] = None,
        sync_direction: Optional[SyncDirection] = None,
        calendar_id: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> Optional[CalendarSyncConfig]:
        """Change sync preferences; None leaves a field unchanged. Returns None if not connected."""
        row = self._get_row(user_id)
        if row is None:
            return None
        if is_enabled is not None:
            row.is_enabled = bool(is_enabled)
        if sync_direction is not None:
            row.sync_direction = enum_to_value(sync_direction)
        if calendar_id is not None:
            row.calendar_id = calendar_id
        if timezone is not None:
            row.timezone = timezone
        row.updated_at = datetime.utcnow()
        return self._commit(row, "update calendar preferences")

    def mark_synced(self, user_id: str, synced_at: datetime) -> Optional[CalendarSyncConfig]:
        """Advance the last-sync watermark after a completed pass."""
        row = self._get_row(user_id)
        if row is None:
            return None
        row.last_sync_at = synced_at
        row.updated_at = synced_at
        return self._commit(row, "record last sync")

    def delete(self, user_id: str) -> bool:
        """Disconnect: delete the config and clear sync bookkeeping on all the user's tasks.

        Both changes are committed together. Returns False if the user was not connected.
        """
        try:
            cleared = TaskRepository(self.db).clear_sync_bookkeeping(user_id)
            affected = (
                self.db.query(CalendarSyncConfigDB)
                .filter(CalendarSyncConfigDB.user_id == user_id)
                .delete(synchronize_session=False)
            )
            if not affected:
                self.db.rollback()
                return False
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to disconnect calendar for user {user_id}: {type(e).__name__}: {str(e)}")
            raise
        logger.info(f"Disconnected calendar for user {user_id}; cleared {cleared} task links")
        return True
