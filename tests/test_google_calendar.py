from datetime import datetime, timezone

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from core.palette import GOOGLE_EVENT_COLORS, calendar_color
from models.external_event import CalendarInfo
from services.google_calendar import (
    LIST_FAILED,
    NOT_AUTHENTICATED,
    TOKEN_EXPIRED,
    GoogleCalendarFeed,
    enabled_calendar_ids,
    event_from_api,
)
from storage.config import AppConfig

TIME_MIN = datetime(2026, 2, 9, tzinfo=timezone.utc)
TIME_MAX = datetime(2026, 2, 10, tzinfo=timezone.utc)


def _http_error(status):
    return HttpError(httplib2.Response({"status": status}), b"")


class _Request:
    def __init__(self, outcome):
        self.outcome = outcome

    def execute(self):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class _Events:
    def __init__(self, by_calendar, calls):
        self.by_calendar = by_calendar
        self.calls = calls

    def list(self, calendarId, **params):
        self.calls.append((calendarId, params))
        return _Request(self.by_calendar[calendarId])


class _CalendarList:
    def __init__(self, pages, calls):
        self.pages = pages
        self.calls = calls

    def list(self, **params):
        self.calls.append(params)
        return _Request(self.pages[params.get("pageToken")])


class FakeService:
    def __init__(self, events=None, pages=None):
        self.event_calls = []
        self.list_calls = []
        self._events = events or {}
        self._pages = pages or {}

    def events(self):
        return _Events(self._events, self.event_calls)

    def calendarList(self):
        return _CalendarList(self._pages, self.list_calls)


def test_event_conversion():
    timed = event_from_api(
        {
            "id": "e1",
            "summary": "스탠드업",
            "colorId": "7",
            "start": {"dateTime": "2026-02-09T09:00:00+09:00"},
            "end": {"dateTime": "2026-02-09T09:15:00+09:00"},
            "htmlLink": "https://calendar.google.com/e1",
        },
        "primary",
    )
    assert not timed.is_all_day
    assert timed.color == GOOGLE_EVENT_COLORS["7"]
    assert timed.html_link == "https://calendar.google.com/e1"

    all_day = event_from_api(
        {"id": "e2", "start": {"date": "2026-02-09"}, "end": {"date": "2026-02-10"}}, "team@example.com"
    )
    assert all_day.is_all_day
    assert all_day.title == "(제목 없음)"
    assert all_day.color == calendar_color("team@example.com")
    assert all_day.start == "2026-02-09"


def test_list_events_merges_calendars_sorted():
    service = FakeService(
        events={
            "primary": {"items": [{"id": "b", "start": {"dateTime": "2026-02-09T10:00:00Z"}, "end": {"dateTime": "2026-02-09T11:00:00Z"}}]},
            "work": {"items": [{"id": "a", "start": {"dateTime": "2026-02-09T08:00:00Z"}, "end": {"dateTime": "2026-02-09T09:00:00Z"}}]},
        }
    )
    feed = GoogleCalendarFeed(service=service, max_results=25)

    result = feed.list_events(TIME_MIN, TIME_MAX, ["primary", "work"])

    assert result.error is None
    assert [ev.id for ev in result.events] == ["a", "b"]
    assert [ev.calendar_id for ev in result.events] == ["work", "primary"]
    _, params = service.event_calls[0]
    assert params["singleEvents"] is True
    assert params["orderBy"] == "startTime"
    assert params["maxResults"] == 25
    assert params["timeMin"].startswith("2026-02-09T00:00:00")


def test_default_calendar_is_primary():
    service = FakeService(events={"primary": {"items": []}})
    result = GoogleCalendarFeed(service=service).list_events(TIME_MIN, TIME_MAX)
    assert result.events == []
    assert [cal for cal, _ in service.event_calls] == ["primary"]


def test_expired_token_is_reported():
    service = FakeService(events={"primary": _http_error(401), "work": {"items": []}})
    result = GoogleCalendarFeed(service=service).list_events(TIME_MIN, TIME_MAX, ["primary", "work"])
    assert result.error == TOKEN_EXPIRED
    assert result.events == []


def test_refresh_failure_is_reported():
    service = FakeService(events={"primary": RefreshError("invalid_grant")})
    result = GoogleCalendarFeed(service=service).list_events(TIME_MIN, TIME_MAX)
    assert result.error == TOKEN_EXPIRED


def test_one_failing_calendar_does_not_hide_others():
    service = FakeService(
        events={
            "broken": _http_error(500),
            "offline": httplib2.HttpLib2Error("connection reset"),
            "primary": {"items": [{"id": "ok", "start": {"date": "2026-02-09"}, "end": {"date": "2026-02-10"}}]},
        }
    )
    result = GoogleCalendarFeed(service=service).list_events(TIME_MIN, TIME_MAX, ["broken", "offline", "primary"])
    assert result.error is None
    assert [ev.id for ev in result.events] == ["ok"]


def test_without_credentials():
    class _NoAuth:
        def get_credentials(self):
            return None

    assert GoogleCalendarFeed().list_events(TIME_MIN, TIME_MAX).error == NOT_AUTHENTICATED
    assert GoogleCalendarFeed(_NoAuth()).list_calendars().error == NOT_AUTHENTICATED


def test_list_calendars_pages_and_sorts():
    service = FakeService(
        pages={
            None: {
                "items": [{"id": "z", "summary": "Zeta"}, {"id": "me", "summary": "나", "primary": True}],
                "nextPageToken": "p2",
            },
            "p2": {"items": [{"id": "a", "summary": "alpha", "summaryOverride": "Alpha", "backgroundColor": "#0B8043"}]},
        }
    )

    result = GoogleCalendarFeed(service=service).list_calendars()

    assert result.error is None
    assert [cal.id for cal in result.calendars] == ["me", "a", "z"]
    assert result.calendars[1].summary == "Alpha"
    assert result.calendars[1].background_color == "#0B8043"
    assert service.list_calls == [{}, {"pageToken": "p2"}]


def test_list_calendars_failure():
    assert GoogleCalendarFeed(service=FakeService(pages={None: _http_error(403)})).list_calendars().error == LIST_FAILED
    assert GoogleCalendarFeed(service=FakeService(pages={None: _http_error(401)})).list_calendars().error == TOKEN_EXPIRED


def test_enabled_calendar_ids():
    calendars = [CalendarInfo(id=cid, summary=cid, background_color="#000000", foreground_color="#FFFFFF") for cid in ("primary", "work")]
    assert enabled_calendar_ids(AppConfig(), calendars) == ["primary", "work"]
    assert enabled_calendar_ids(AppConfig(enabled_calendars=["work"]), calendars) == ["work"]
    assert enabled_calendar_ids(AppConfig(enabled_calendars=["gone"]), calendars) == ["primary"]
