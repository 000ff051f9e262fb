"""Result of a calendar sync pass."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


SKIPPED_NOT_CONNECTED = "not_connected"
SKIPPED_DISABLED = "disabled"


class SyncResult(BaseModel):
    """Aggregated outcome of one sync pass (not persisted)."""
    tasks_pushed: int = Field(0, description="Tasks created or updated on the provider")
    events_imported: int = Field(0, description="Provider events created or updated locally")
    events_deleted: int = Field(0, description="Local tasks removed because the provider event was cancelled")
    errors: List[str] = Field(default_factory=list, description="Per-item failures; the pass still completed")
    last_sync_at: Optional[datetime] = Field(None, description="Watermark written by this pass")
    skipped_reason: Optional[str] = Field(None, description="Set when the pass did not run (not connected / disabled)")

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None
