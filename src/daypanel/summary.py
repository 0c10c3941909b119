"""Pure rollups over already-normalized records."""
from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import CalendarEvent, CalendarSummary, DayGroup, MailMessage, MailSummary, WindowPreview

TODAY_PREVIEW = 3
TOMORROW_PREVIEW = 3
WEEK_PREVIEW = 5
UPCOMING_PREVIEW = 3
RECENT_MAIL_PREVIEW = 5


def day_bounds(now: datetime, tz: tzinfo, offset_days: int = 0) -> Tuple[datetime, datetime]:
    local = now.astimezone(tz)
    day_start = local.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=offset_days)
    return day_start, day_start + timedelta(days=1)


def preview(items: Sequence, limit: int) -> WindowPreview:
    return WindowPreview(total=len(items), items=tuple(items[:limit]), has_more=len(items) > limit)


def classify_trend(current: int, previous: int) -> str:
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "stable"


def ongoing_events(events: Iterable[CalendarEvent]) -> Tuple[CalendarEvent, ...]:
    return tuple(e for e in events if e.is_ongoing)


def future_events(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    return sorted((e for e in events if e.is_future), key=lambda e: e.start)


def next_upcoming(events: Iterable[CalendarEvent]) -> Optional[CalendarEvent]:
    upcoming = future_events(events)
    return upcoming[0] if upcoming else None


def group_by_day(events: Iterable[CalendarEvent], tz: tzinfo) -> List[DayGroup]:
    """Bucket events by local start day; days ascending, start time ascending within a day."""
    buckets: Dict = {}
    for e in events:
        buckets.setdefault(e.start.astimezone(tz).date(), []).append(e)
    return [
        DayGroup(day=day, events=tuple(sorted(buckets[day], key=lambda e: (e.start, e.title.lower()))))
        for day in sorted(buckets)
    ]


def build_calendar_summary(
    today: Sequence[CalendarEvent],
    tomorrow: Sequence[CalendarEvent],
    week: Sequence[CalendarEvent],
) -> CalendarSummary:
    upcoming = future_events(week)
    return CalendarSummary(
        today=preview(today, TODAY_PREVIEW),
        tomorrow=preview(tomorrow, TOMORROW_PREVIEW),
        week=preview(week, WEEK_PREVIEW),
        upcoming=tuple(upcoming[:UPCOMING_PREVIEW]),
        ongoing=ongoing_events(week),
        next_event=upcoming[0] if upcoming else None,
    )


def count_on_day(messages: Iterable[MailMessage], day_start: datetime, day_end: datetime) -> int:
    return sum(1 for m in messages if day_start <= m.date < day_end)


def build_mail_summary(
    today: Sequence[MailMessage],
    unread: Sequence[MailMessage],
    important: Sequence[MailMessage],
    yesterday_count: int,
) -> MailSummary:
    return MailSummary(
        unread_count=len(unread),
        today_count=len(today),
        yesterday_count=yesterday_count,
        important_count=len(important),
        trend=classify_trend(len(today), yesterday_count),
        recent_messages=tuple(today[:RECENT_MAIL_PREVIEW]),
    )
