from datetime import datetime, timedelta
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import httplib2
import pytest
from googleapiclient.errors import HttpError

from daypanel import calendar_google
from daypanel.cache import TTLCache
from daypanel.errors import Forbidden, RequestFailed, Unauthorized
from daypanel.models import CalendarSummary
from daypanel.services import CalendarService

TZ = ZoneInfo("Europe/Bucharest")
NOW = datetime(2026, 2, 5, 10, 0, tzinfo=TZ)


def _item(event_id, start, minutes=60, title=None):
    end = start + timedelta(minutes=minutes)
    return {
        "id": event_id,
        "summary": title or event_id,
        "start": {"dateTime": start.isoformat()},
        "end": {"dateTime": end.isoformat()},
    }


def _http_error(status: int) -> HttpError:
    body = b'{"error": {"message": "Invalid Credentials"}}'
    return HttpError(httplib2.Response({"status": status}), body)


class FakeCalendar:
    """Stands in for ``calendar_google.list_events``; answers by window."""

    def __init__(self, today=(), tomorrow=(), week=(), error=None):
        self.windows = {"today": list(today), "tomorrow": list(tomorrow), "week": list(week)}
        self.error = error
        self.calls = []

    def __call__(self, token, time_min, time_max, max_results, calendar_ids=("primary",)):
        self.calls.append((time_min, time_max, max_results))
        if self.error is not None:
            raise self.error
        if max_results == 50:
            items = self.windows["week"]
        elif time_min.date() == NOW.date():
            items = self.windows["today"]
        else:
            items = self.windows["tomorrow"]
        return [(cal_id, item) for cal_id in calendar_ids[:1] for item in items]


@pytest.fixture
def service():
    return CalendarService(TTLCache(300), TZ, clock=lambda: NOW)


def test_summary_with_ongoing_and_upcoming_events(monkeypatch, service):
    ongoing = _item("standup", NOW - timedelta(minutes=30))
    lunch = _item("lunch", NOW + timedelta(hours=3))
    week = [ongoing, lunch] + [
        _item(f"later-{i}", NOW + timedelta(days=1 + i % 5, hours=i)) for i in range(8)
    ]
    fake = FakeCalendar(today=[ongoing, lunch], tomorrow=[], week=week)
    monkeypatch.setattr(calendar_google, "list_events", fake)

    summary = service.summary("token")

    assert summary.total_today == 2
    assert summary.total_tomorrow == 0
    assert summary.total_week == 10
    assert len(summary.ongoing) == 1
    assert summary.ongoing[0].id == "standup"
    assert summary.next_event.id == "lunch"
    assert summary.upcoming[0].id == "lunch"
    assert summary.week.has_more is True
    assert len(summary.week.items) == 5
    assert len(fake.calls) == 3


def test_summary_failure_gives_empty_summary(monkeypatch, service):
    monkeypatch.setattr(calendar_google, "list_events", FakeCalendar(error=RequestFailed(500, "boom")))

    summary = service.summary("token")

    assert summary == CalendarSummary()
    assert summary.total_today == 0
    assert summary.next_event is None


def test_repeat_queries_are_served_from_cache(monkeypatch, service):
    fake = FakeCalendar(today=[_item("a", NOW + timedelta(hours=1))])
    monkeypatch.setattr(calendar_google, "list_events", fake)

    first = service.today_events("token")
    second = service.today_events("token")
    service.today_events("other-token")

    assert first == second
    assert len(fake.calls) == 2

    service.clear_cache()
    service.today_events("token")
    assert len(fake.calls) == 3


def test_empty_result_is_cached_too(monkeypatch, service):
    fake = FakeCalendar()
    monkeypatch.setattr(calendar_google, "list_events", fake)

    assert service.tomorrow_events("token") == ()
    assert service.tomorrow_events("token") == ()
    assert len(fake.calls) == 1


def test_week_window_is_stable_within_a_minute(monkeypatch):
    # two clock reads per call: window start, then the normalization instant
    times = iter([NOW + timedelta(seconds=s) for s in (5, 5, 40, 40)])
    fake = FakeCalendar()
    monkeypatch.setattr(calendar_google, "list_events", fake)
    service = CalendarService(TTLCache(300), TZ, clock=lambda: next(times))

    service.week_events("token")
    service.week_events("token")

    assert len(fake.calls) == 1
    time_min, time_max, limit = fake.calls[0]
    assert time_min == NOW
    assert time_max - time_min == timedelta(days=7)
    assert limit == 50


def test_unusable_items_are_dropped(monkeypatch, service):
    broken = {"id": "broken", "start": {"dateTime": "tomorrow-ish"}}
    fake = FakeCalendar(today=[broken, _item("ok", NOW + timedelta(hours=1))])
    monkeypatch.setattr(calendar_google, "list_events", fake)

    assert [e.id for e in service.today_events("token")] == ["ok"]


def test_malformed_item_only_drops_itself(monkeypatch, service):
    malformed = {"id": "odd", "start": {"dateTime": 1738742400}, "end": ["x"]}
    ongoing = _item("standup", NOW - timedelta(minutes=30))
    lunch = _item("lunch", NOW + timedelta(hours=3))
    fake = FakeCalendar(today=[malformed, ongoing, lunch], week=[malformed, ongoing, lunch])
    monkeypatch.setattr(calendar_google, "list_events", fake)

    summary = service.summary("token")

    assert summary.total_today == 2
    assert summary.total_week == 2
    assert summary.next_event.id == "lunch"


def test_week_by_day_groups_events(monkeypatch, service):
    week = [
        _item("fri", NOW + timedelta(days=1)),
        _item("thu", NOW + timedelta(hours=2)),
    ]
    monkeypatch.setattr(calendar_google, "list_events", FakeCalendar(week=week))

    groups = service.week_by_day("token")

    assert [g.day.isoformat() for g in groups] == ["2026-02-05", "2026-02-06"]


def _mock_service(monkeypatch, status):
    mock = MagicMock()
    mock.events.return_value.list.return_value.execute.side_effect = _http_error(status)
    monkeypatch.setattr(calendar_google, "build_service", lambda *args, **kwargs: mock)
    return mock


def test_401_surfaces_as_unauthorized_without_retry(monkeypatch):
    mock = _mock_service(monkeypatch, 401)

    with pytest.raises(Unauthorized) as info:
        calendar_google.list_events("stale", NOW, NOW + timedelta(days=1), 10)

    assert info.value.reauth_required
    assert mock.events.return_value.list.return_value.execute.call_count == 1


def test_401_reaches_service_callers(monkeypatch, service):
    _mock_service(monkeypatch, 401)

    with pytest.raises(Unauthorized):
        service.events("stale")


def test_403_is_forbidden(monkeypatch):
    _mock_service(monkeypatch, 403)

    with pytest.raises(Forbidden) as info:
        calendar_google.list_events("token", NOW, NOW + timedelta(days=1), 10)

    assert not info.value.reauth_required


def test_server_error_is_request_failed(monkeypatch):
    _mock_service(monkeypatch, 500)

    with pytest.raises(RequestFailed) as info:
        calendar_google.list_events("token", NOW, NOW + timedelta(days=1), 10)

    assert info.value.status == 500


def test_every_configured_calendar_is_queried(monkeypatch):
    mock = MagicMock()
    mock.events.return_value.list.return_value.execute.return_value = {
        "items": [_item("shared", NOW + timedelta(hours=1))]
    }
    monkeypatch.setattr(calendar_google, "build_service", lambda *args, **kwargs: mock)

    pairs = calendar_google.list_events("token", NOW, NOW + timedelta(days=1), 10, ("primary", "work"))

    assert [cal_id for cal_id, _ in pairs] == ["primary", "work"]
    called_ids = [c.kwargs["calendarId"] for c in mock.events.return_value.list.call_args_list]
    assert called_ids == ["primary", "work"]
