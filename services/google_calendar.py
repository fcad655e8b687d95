"""Read-only Google Calendar overlay.

Events are pulled with ``events().list`` for each enabled calendar and
converted into :class:`~models.external_event.ExternalEvent`. The feed
never writes back. Failures are soft: the caller always gets a
:class:`CalendarFeedResult` whose ``error`` carries an advisory message
instead of an exception, so the day view can still render.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.logs import get_logger
from core.palette import event_color
from core.settings import DEFAULTS, GOOGLE_CALENDAR
from datetime_utils import to_rfc3339_utc
from models.external_event import CalendarInfo, ExternalEvent
from storage.config import AppConfig

logger = get_logger("calendar")

NOT_AUTHENTICATED = "Not authenticated"
TOKEN_EXPIRED = "Google token expired."
LIST_FAILED = "Failed to fetch calendar list"


@dataclass(frozen=True)
class CalendarFeedResult:
    events: List[ExternalEvent] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True)
class CalendarListResult:
    calendars: List[CalendarInfo] = field(default_factory=list)
    error: Optional[str] = None


def _status_of(exc: HttpError) -> Optional[int]:
    resp = getattr(exc, "resp", None)
    status = getattr(resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _to_rfc3339(value: Union[datetime, str]) -> str:
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.astimezone()
    return to_rfc3339_utc(value)


def event_from_api(raw: Dict[str, Any], calendar_id: str) -> ExternalEvent:
    start = raw.get("start") or {}
    end = raw.get("end") or {}
    return ExternalEvent(
        id=str(raw.get("id") or ""),
        calendar_id=calendar_id,
        title=raw.get("summary") or DEFAULTS.external_title,
        description=raw.get("description") or "",
        start=start.get("dateTime") or start.get("date") or "",
        end=end.get("dateTime") or end.get("date") or "",
        is_all_day=not start.get("dateTime"),
        location=raw.get("location") or "",
        color=event_color(raw.get("colorId"), calendar_id),
        source="google",
        html_link=raw.get("htmlLink"),
    )


def calendar_from_api(raw: Dict[str, Any]) -> CalendarInfo:
    return CalendarInfo(
        id=str(raw.get("id") or ""),
        summary=raw.get("summaryOverride") or raw.get("summary") or "",
        background_color=raw.get("backgroundColor") or "#4285F4",
        foreground_color=raw.get("foregroundColor") or "#FFFFFF",
        description=raw.get("description"),
        primary=bool(raw.get("primary")),
    )


def enabled_calendar_ids(config: AppConfig, calendars: Iterable[CalendarInfo]) -> List[str]:
    """Calendar ids the user left switched on; an empty preference means all of them."""
    ids = [cal.id for cal in calendars if config.is_calendar_enabled(cal.id)]
    return ids or list(GOOGLE_CALENDAR.default_calendars)


class GoogleCalendarFeed:
    def __init__(self, auth=None, *, service: Any = None, max_results: int = GOOGLE_CALENDAR.max_results):
        self.auth = auth
        self.service = service
        self.max_results = max_results

    def _get_service(self) -> Any:
        if self.service is not None:
            return self.service
        if self.auth is None:
            return None
        creds = self.auth.get_credentials()
        if creds is None:
            return None
        self.service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        return self.service

    def list_events(
        self,
        time_min: Union[datetime, str],
        time_max: Union[datetime, str],
        calendar_ids: Optional[Iterable[str]] = None,
    ) -> CalendarFeedResult:
        service = self._get_service()
        if service is None:
            return CalendarFeedResult(error=NOT_AUTHENTICATED)

        calendars = [c for c in (calendar_ids or ()) if c] or list(GOOGLE_CALENDAR.default_calendars)
        params = dict(
            timeMin=_to_rfc3339(time_min),
            timeMax=_to_rfc3339(time_max),
            singleEvents=True,
            orderBy="startTime",
            maxResults=self.max_results,
        )
        events: List[ExternalEvent] = []
        for calendar_id in calendars:
            try:
                res = service.events().list(calendarId=calendar_id, **params).execute()
            except HttpError as exc:
                if _status_of(exc) == 401:
                    logger.warning("Google token rejected while reading %s", calendar_id)
                    return CalendarFeedResult(error=TOKEN_EXPIRED)
                logger.warning("Error fetching calendar %s: %s", calendar_id, exc)
                continue
            except RefreshError as exc:
                logger.warning("Google token refresh failed: %s", exc)
                return CalendarFeedResult(error=TOKEN_EXPIRED)
            except (httplib2.HttpLib2Error, OSError) as exc:
                logger.warning("Error fetching calendar %s: %s", calendar_id, exc)
                continue
            events.extend(event_from_api(item, calendar_id) for item in res.get("items", []))

        events.sort(key=lambda ev: ev.start or "")
        logger.debug("Fetched %d external event(s) from %d calendar(s)", len(events), len(calendars))
        return CalendarFeedResult(events=events)

    def list_calendars(self) -> CalendarListResult:
        service = self._get_service()
        if service is None:
            return CalendarListResult(error=NOT_AUTHENTICATED)

        calendars: List[CalendarInfo] = []
        page_token: Optional[str] = None
        try:
            while True:
                kwargs = {"pageToken": page_token} if page_token else {}
                res = service.calendarList().list(**kwargs).execute()
                calendars.extend(calendar_from_api(item) for item in res.get("items", []))
                page_token = res.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as exc:
            if _status_of(exc) == 401:
                return CalendarListResult(error=TOKEN_EXPIRED)
            logger.warning("Google calendar list failed: %s", exc)
            return CalendarListResult(error=LIST_FAILED)
        except RefreshError as exc:
            logger.warning("Google token refresh failed: %s", exc)
            return CalendarListResult(error=TOKEN_EXPIRED)
        except (httplib2.HttpLib2Error, OSError) as exc:
            logger.warning("Google calendar list failed: %s", exc)
            return CalendarListResult(error=LIST_FAILED)

        calendars.sort(key=lambda cal: (not cal.primary, cal.summary.lower()))
        return CalendarListResult(calendars=calendars)


__all__ = [
    "CalendarFeedResult",
    "CalendarListResult",
    "GoogleCalendarFeed",
    "LIST_FAILED",
    "NOT_AUTHENTICATED",
    "TOKEN_EXPIRED",
    "calendar_from_api",
    "enabled_calendar_ids",
    "event_from_api",
]
