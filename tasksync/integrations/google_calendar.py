"""Google Calendar integration for tasksync."""

import logging
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from tasksync.models.calendar_config import CalendarSyncConfig
from tasksync.models.constants import CALENDAR_API_TIMEOUT_SEC, CALENDAR_LIST_PAGE_SIZE, DEFAULT_CALENDAR_ID
from tasksync.sync.errors import CredentialsExpiredError, ProviderAPIError

logger = logging.getLogger(__name__)

# Google Calendar API scopes
SCOPES = ['https://www.googleapis.com/auth/calendar']

# Deleting an event that is already gone is not an error for us.
_GONE_STATUSES = (404, 410)


class GoogleCalendarClient:
    """Thin client for the Google Calendar events API.

    Stateless apart from the credentials it was built with: one client is built per
    sync pass from the user's CalendarSyncConfig. Token refresh is deliberately
    disabled; a 401 surfaces as CredentialsExpiredError.
    """
    
    def __init__(
        self,
        credentials: Credentials,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        timeout_sec: int = CALENDAR_API_TIMEOUT_SEC,
    ):
        """Initialize Google Calendar client.
        
        Args:
            credentials: OAuth2 credentials carrying a bearer access token.
            calendar_id: Google Calendar ID to use (defaults to 'primary').
            timeout_sec: Per-request socket timeout.
        """
        self.calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        http = AuthorizedHttp(
            credentials,
            http=httplib2.Http(timeout=timeout_sec),
            refresh_status_codes=(),
        )
        self.service = build('calendar', 'v3', http=http, cache_discovery=False)

    @classmethod
    def from_config(cls, config: CalendarSyncConfig) -> "GoogleCalendarClient":
        """Build a client from a user's stored calendar connection."""
        credentials = Credentials(token=config.credentials.access_token, scopes=SCOPES)
        return cls(credentials=credentials, calendar_id=config.calendar_id)

    def _execute(self, request, action: str) -> Dict[str, Any]:
        try:
            return request.execute() or {}
        except HttpError as error:
            status = int(getattr(error.resp, "status", 0) or 0)
            if status == 401:
                raise CredentialsExpiredError() from error
            body = error.content.decode("utf-8", errors="replace") if error.content else str(error)
            raise ProviderAPIError(status_code=status, body=body, action=action) from error
        except RefreshError as error:
            raise CredentialsExpiredError() from error
        except (httplib2.HttpLib2Error, OSError) as error:
            # Timeouts and connection failures
            raise ProviderAPIError(status_code=0, body=str(error), action=action) from error
    
    def insert_event(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Create an event; returns the created event (with its 'id')."""
        request = self.service.events().insert(calendarId=self.calendar_id, body=body)
        event = self._execute(request, "create event")
        logger.debug(f"Created calendar event {event.get('id')}")
        return event

    def patch_event(self, event_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Update fields of an existing event; returns the updated event."""
        request = self.service.events().patch(calendarId=self.calendar_id, eventId=event_id, body=body)
        event = self._execute(request, "update event")
        logger.debug(f"Updated calendar event {event_id}")
        return event

    def delete_event(self, event_id: str) -> bool:
        """Delete an event. Returns False if it was already gone."""
        request = self.service.events().delete(calendarId=self.calendar_id, eventId=event_id)
        try:
            self._execute(request, "delete event")
        except ProviderAPIError as error:
            if error.status_code in _GONE_STATUSES:
                return False
            raise
        logger.debug(f"Deleted calendar event {event_id}")
        return True

    def list_events_in_range(
        self,
        time_min_rfc3339: str,
        time_max_rfc3339: str,
        *,
        show_deleted: bool = True,
        fields: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List single events overlapping [time_min, time_max), ordered by start time.

        Cancelled events are included (show_deleted) so callers can mirror deletions.
        Follows nextPageToken until exhausted.
        """
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params: Dict[str, Any] = {
                "calendarId": self.calendar_id,
                "timeMin": time_min_rfc3339,
                "timeMax": time_max_rfc3339,
                "singleEvents": True,
                "orderBy": "startTime",
                "showDeleted": show_deleted,
                "maxResults": CALENDAR_LIST_PAGE_SIZE,
            }
            if fields:
                params["fields"] = fields
            if page_token:
                params["pageToken"] = page_token

            response = self._execute(self.service.events().list(**params), "list events")
            items.extend(response.get("items") or [])
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        return items
