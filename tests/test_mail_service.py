from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import httplib2
import pytest
from googleapiclient.errors import HttpError

from daypanel import gmail
from daypanel.cache import TTLCache
from daypanel.errors import RequestFailed, Unauthorized
from daypanel.models import MailSummary
from daypanel.services import MailService

TZ = ZoneInfo("Europe/Bucharest")
NOW = datetime(2026, 2, 5, 12, 0, tzinfo=TZ)
TODAY_START = datetime(2026, 2, 5, tzinfo=TZ)
YESTERDAY_START = datetime(2026, 2, 4, tzinfo=TZ)


def _raw(message_id, when, labels=("INBOX",), subject=None):
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "labelIds": list(labels),
        "internalDate": str(int(when.astimezone(timezone.utc).timestamp() * 1000)),
        "payload": {
            "headers": [
                {"name": "Subject", "value": subject or message_id},
                {"name": "From", "value": "Ana Pop <ana@example.com>"},
            ]
        },
    }


class FakeGmail:
    """Answers ``list_message_ids`` by query and ``fetch_message_details`` by id."""

    def __init__(self, by_query, error=None):
        self.by_query = by_query
        self.error = error
        self.queries = []
        self.store = {m["id"]: m for messages in by_query.values() for m in messages}

    def list_message_ids(self, token, query="", max_results=20, label_ids=("INBOX",)):
        self.queries.append((query, max_results))
        if self.error is not None:
            raise self.error
        for prefix, messages in self.by_query.items():
            if query.startswith(prefix):
                return [m["id"] for m in messages][:max_results]
        return []

    def fetch_message_details(self, token, ids):
        return [self.store[i] for i in ids]


def _install(monkeypatch, fake):
    monkeypatch.setattr(gmail, "list_message_ids", fake.list_message_ids)
    monkeypatch.setattr(gmail, "fetch_message_details", fake.fetch_message_details)


@pytest.fixture
def service():
    return MailService(TTLCache(120), TZ, clock=lambda: NOW)


def _today_query():
    return f"after:{int(TODAY_START.timestamp())}"


def _yesterday_query():
    return f"after:{int(YESTERDAY_START.timestamp())} before:{int(TODAY_START.timestamp())}"


def test_summary_counts_and_upward_trend(monkeypatch, service):
    today = [_raw(f"today-{i}", TODAY_START + timedelta(hours=i + 1)) for i in range(5)]
    yesterday = [_raw(f"y-{i}", YESTERDAY_START + timedelta(hours=i + 1)) for i in range(3)]
    unread = [_raw("u-1", NOW, labels=("INBOX", "UNREAD")), _raw("u-2", NOW, labels=("INBOX", "UNREAD"))]
    important = [_raw("i-1", NOW, labels=("INBOX", "IMPORTANT"))]
    fake = FakeGmail({
        _yesterday_query(): yesterday,
        _today_query(): today,
        "is:unread": unread,
        "is:important": important,
    })
    _install(monkeypatch, fake)

    summary = service.summary("token")

    assert summary.today_count == 5
    assert summary.yesterday_count == 3
    assert summary.unread_count == 2
    assert summary.important_count == 1
    assert summary.trend == "up"
    assert len(summary.recent_messages) == 5
    assert (_yesterday_query(), 100) in fake.queries
    assert (_today_query(), 50) in fake.queries


def test_downward_trend(monkeypatch, service):
    fake = FakeGmail({
        _yesterday_query(): [_raw(f"y-{i}", YESTERDAY_START + timedelta(hours=i)) for i in range(5)],
        _today_query(): [_raw(f"t-{i}", TODAY_START + timedelta(hours=i)) for i in range(3)],
    })
    _install(monkeypatch, fake)

    summary = service.summary("token")

    assert summary.trend == "down"
    assert summary.unread_count == 0


def test_yesterday_counts_only_the_previous_local_day(monkeypatch, service):
    # the provider query is day-granular; edge messages get filtered locally
    messages = [
        _raw("late-evening", YESTERDAY_START + timedelta(hours=23, minutes=59)),
        _raw("just-after-midnight", TODAY_START + timedelta(minutes=1)),
        _raw("two-days-ago", YESTERDAY_START - timedelta(minutes=1)),
        _raw("morning", YESTERDAY_START + timedelta(hours=8)),
    ]
    _install(monkeypatch, FakeGmail({_yesterday_query(): messages}))

    assert service.yesterday_count("token") == 2


def test_failure_gives_empty_summary(monkeypatch, service):
    _install(monkeypatch, FakeGmail({}, error=RequestFailed(503, "unavailable")))

    summary = service.summary("token")

    assert summary == MailSummary()
    assert summary.trend == "stable"
    assert summary.recent_messages == ()


def test_messages_are_cached_per_query(monkeypatch, service):
    fake = FakeGmail({"is:unread": [_raw("u-1", NOW, labels=("UNREAD",))]})
    _install(monkeypatch, fake)

    service.unread_messages("token")
    service.unread_messages("token")
    service.important_messages("token")

    assert fake.queries == [("is:unread", 30), ("is:important", 20)]


def test_dashboard_messages_are_limited(monkeypatch, service):
    today = [_raw(f"t-{i}", TODAY_START + timedelta(hours=i)) for i in range(6)]
    _install(monkeypatch, FakeGmail({_today_query(): today}))

    assert [m.id for m in service.dashboard_messages("token")] == ["t-0", "t-1", "t-2"]


def test_dashboard_messages_swallow_api_errors(monkeypatch, service):
    _install(monkeypatch, FakeGmail({}, error=RequestFailed(500)))

    assert service.dashboard_messages("token") == ()


class FakeBatch:
    """Replays canned (response, exception) pairs through the batch callback."""

    def __init__(self, callback, outcomes):
        self.callback = callback
        self.outcomes = outcomes
        self.ids = []

    def add(self, request, request_id=None):
        self.ids.append(request_id)

    def execute(self):
        for request_id in self.ids:
            response, exception = self.outcomes[request_id]
            self.callback(request_id, response, exception)


def _batch_service(monkeypatch, outcomes):
    mock = MagicMock()
    batches = []

    def new_batch(callback):
        batch = FakeBatch(callback, outcomes)
        batches.append(batch)
        return batch

    mock.new_batch_http_request.side_effect = new_batch
    monkeypatch.setattr(gmail, "build_service", lambda *args, **kwargs: mock)
    return batches


def _http_error(status):
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "nope"}}')


def test_batch_details_keep_input_order_and_skip_failures(monkeypatch):
    outcomes = {
        "a": ({"id": "a"}, None),
        "b": (None, _http_error(404)),
        "c": ({"id": "c"}, None),
    }
    batches = _batch_service(monkeypatch, outcomes)

    details = gmail.fetch_message_details("token", ["c", "b", "a"])

    assert [d["id"] for d in details] == ["c", "a"]
    assert batches[0].ids == ["c", "b", "a"]


def test_batch_unauthorized_fails_the_whole_call(monkeypatch):
    outcomes = {"a": ({"id": "a"}, None), "b": (None, _http_error(401))}
    _batch_service(monkeypatch, outcomes)

    with pytest.raises(Unauthorized):
        gmail.fetch_message_details("token", ["a", "b"])


def test_batches_are_split_at_the_limit(monkeypatch):
    ids = [f"m{i}" for i in range(gmail.BATCH_LIMIT + 5)]
    batches = _batch_service(monkeypatch, {i: ({"id": i}, None) for i in ids})

    details = gmail.fetch_message_details("token", ids)

    assert len(details) == len(ids)
    assert [len(b.ids) for b in batches] == [gmail.BATCH_LIMIT, 5]


def test_no_ids_means_no_requests(monkeypatch):
    batches = _batch_service(monkeypatch, {})

    assert gmail.fetch_message_details("token", []) == []
    assert batches == []


def test_list_message_ids_passes_query(monkeypatch):
    mock = MagicMock()
    listing = mock.users.return_value.messages.return_value.list
    listing.return_value.execute.return_value = {"messages": [{"id": "x"}, {"threadId": "no-id"}, {"id": "y"}]}
    monkeypatch.setattr(gmail, "build_service", lambda *args, **kwargs: mock)

    assert gmail.list_message_ids("token", "is:unread", 30) == ["x", "y"]
    listing.assert_called_once_with(userId="me", q="is:unread", maxResults=30, labelIds=["INBOX"])
