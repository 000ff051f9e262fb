"""Constants for tasksync.

This module centralizes the magic numbers and default values used by the calendar sync engine.
"""

import os
from datetime import time

from dotenv import load_dotenv

load_dotenv()


# Provider defaults
DEFAULT_CALENDAR_ID = "primary"
DEFAULT_TIMEZONE = os.getenv("CALENDAR_DEFAULT_TIMEZONE", "Europe/Paris")
CALENDAR_API_TIMEOUT_SEC = int(os.getenv("CALENDAR_API_TIMEOUT_SEC", "30"))
CALENDAR_LIST_PAGE_SIZE = 100

# Event window used when a task has no explicit start/end
DEFAULT_EVENT_START = time(9, 0)
DEFAULT_EVENT_END = time(10, 0)
DEFAULT_EVENT_DURATION_MIN = 60

# Outbound push
PUSH_BATCH_LIMIT = 50

# Inbound import window (days ahead of now)
IMPORT_WINDOW_DAYS = 30

# Title prefixes of events we generated ourselves in the past (routine events).
# New events carrying one of these are never imported as tasks.
INTERNAL_EVENT_TITLE_MARKERS = ("\U0001F504",)
