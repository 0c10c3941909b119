"""Provider payload -> internal record conversion.

Every function here is pure: the same payload, ``now`` and zone always give
the same record. Optional provider fields fall back to defaults; a record
missing the fields that identify it raises ``NormalizationSkipped`` so batch
callers can drop it and carry on.
"""
from __future__ import annotations

import functools
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import NormalizationSkipped
from .models import (
    Article,
    Avatar,
    CalendarEvent,
    CurrentConditions,
    DailyForecast,
    Location,
    MailMessage,
    RadioStation,
    Sender,
)

DEFAULT_EVENT_COLOR = "#4285F4"
MAX_FORECAST_DAYS = 6

# Google Calendar event colorId palette.
EVENT_COLORS = {
    "1": "#7986CB",
    "2": "#33B679",
    "3": "#8E24AA",
    "4": "#E67C73",
    "5": "#F6BF26",
    "6": "#F4511E",
    "7": "#039BE5",
    "8": "#616161",
    "9": "#3F51B5",
    "10": "#0B8043",
    "11": "#D60000",
}

AVATAR_COLORS = [
    "#4285F4", "#EA4335", "#FBBC05", "#34A853",
    "#9C27B0", "#FF5722", "#795548", "#607D8B",
    "#E91E63", "#9E9E9E", "#3F51B5", "#009688",
]

# WMO weather interpretation codes as served by Open-Meteo.
WEATHER_CODES: Dict[int, Tuple[str, str]] = {
    0: ("clear sky", "01d"),
    1: ("mainly clear", "01d"),
    2: ("partly cloudy", "02d"),
    3: ("overcast", "03d"),
    45: ("fog", "50d"),
    48: ("depositing rime fog", "50d"),
    51: ("light drizzle", "09d"),
    53: ("moderate drizzle", "09d"),
    55: ("dense drizzle", "09d"),
    56: ("light freezing drizzle", "09d"),
    57: ("dense freezing drizzle", "09d"),
    61: ("slight rain", "10d"),
    63: ("moderate rain", "10d"),
    65: ("heavy rain", "10d"),
    66: ("light freezing rain", "10d"),
    67: ("heavy freezing rain", "10d"),
    71: ("slight snow fall", "13d"),
    73: ("moderate snow fall", "13d"),
    75: ("heavy snow fall", "13d"),
    77: ("snow grains", "13d"),
    80: ("slight rain showers", "10d"),
    81: ("moderate rain showers", "10d"),
    82: ("violent rain showers", "10d"),
    85: ("slight snow showers", "13d"),
    86: ("heavy snow showers", "13d"),
    95: ("thunderstorm", "11d"),
    96: ("thunderstorm with slight hail", "11d"),
    99: ("thunderstorm with heavy hail", "11d"),
}
UNKNOWN_WEATHER = ("unknown", "01d")

_SENDER_RE = re.compile(r"(.+?)\s*<(.+?)>")


def _record_boundary(func):
    """Turn a malformed payload into ``NormalizationSkipped`` for just that record."""
    @functools.wraps(func)
    def wrapper(raw, *args, **kwargs):
        try:
            return func(raw, *args, **kwargs)
        except NormalizationSkipped:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            record_id = raw.get("id") if isinstance(raw, Mapping) else None
            raise NormalizationSkipped(f"malformed record: {exc!r}", str(record_id) if record_id else None) from exc
    return wrapper


def _parse_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _hhmm(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------- calendar

def event_color(color_id: Optional[str]) -> str:
    if not color_id:
        return DEFAULT_EVENT_COLOR
    return EVENT_COLORS.get(str(color_id), DEFAULT_EVENT_COLOR)


def parse_event_time(obj: Mapping[str, Any], tz: tzinfo) -> Tuple[Optional[datetime], bool]:
    """Return (instant, all_day) for a Google ``start``/``end`` object."""
    # All-day events have "date" not "dateTime"
    if obj.get("date"):
        return _local_midnight(date.fromisoformat(obj["date"]), tz), True
    if obj.get("dateTime"):
        parsed = _parse_iso(obj["dateTime"])
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed.astimezone(tz), False
    return None, False


@_record_boundary
def normalize_event(
    item: Mapping[str, Any],
    now: datetime,
    tz: tzinfo,
    calendar_id: str = "primary",
) -> CalendarEvent:
    event_id = item.get("id")
    if not event_id:
        raise NormalizationSkipped("event without id")

    try:
        start, all_day = parse_event_time(item.get("start") or {}, tz)
        end, _ = parse_event_time(item.get("end") or {}, tz)
    except ValueError as exc:
        raise NormalizationSkipped(f"unparseable event time: {exc}", event_id) from exc
    if start is None:
        raise NormalizationSkipped("event without start", event_id)

    if all_day:
        # end date is exclusive; a missing or inverted one means a single day
        if end is None or end <= start:
            end = _local_midnight(start.date() + timedelta(days=1), tz)
    elif end is None or end < start:
        end = start

    local_now = now.astimezone(tz)
    today = local_now.date()
    start_day = start.date()

    creator = item.get("creator") or {}
    attendees = tuple(
        a.get("email", "") for a in item.get("attendees") or [] if isinstance(a, Mapping) and a.get("email")
    )

    return CalendarEvent(
        id=str(event_id),
        title=item.get("summary") or "(No title)",
        start=start,
        end=end,
        all_day=all_day,
        description=item.get("description") or "",
        location=item.get("location") or "",
        color=event_color(item.get("colorId")),
        status=item.get("status") or "confirmed",
        attendees=attendees,
        creator=creator.get("email", "") if isinstance(creator, Mapping) else "",
        calendar_id=calendar_id,
        is_today=start_day == today,
        is_tomorrow=start_day == today + timedelta(days=1),
        is_past=end < local_now,
        is_future=start > local_now,
        is_ongoing=start <= local_now <= end,
        start_time=_hhmm(start),
        end_time=_hhmm(end),
        date_key=start_day.isoformat(),
    )


# -------------------------------------------------------------------- mail

def generate_avatar(email: str) -> Avatar:
    color = AVATAR_COLORS[sum(ord(ch) for ch in email) % len(AVATAR_COLORS)]
    local_part = email.split("@")[0]
    initials = "".join(word[0] for word in local_part.split(".") if word).upper()[:2]
    return Avatar(initials=initials or "NA", color=color)


def parse_sender(value: str) -> Tuple[str, str]:
    """Split a From header into (display name, address)."""
    match = _SENDER_RE.match(value or "")
    if match:
        return match.group(1).strip().replace('"', ""), match.group(2).strip()
    if not value:
        return "Unknown", ""
    return value, value


def _header(headers: List[Mapping[str, Any]], name: str) -> str:
    for h in headers:
        if str(h.get("name", "")).lower() == name.lower():
            return str(h.get("value") or "")
    return ""


def message_date(date_header: str, internal_date: Any, now: datetime, tz: tzinfo) -> datetime:
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError, IndexError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(tz)
    if internal_date not in (None, ""):
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=tz)
        except (TypeError, ValueError, OverflowError):
            pass
    return now.astimezone(tz)


def date_label(when: datetime, now: datetime, tz: tzinfo) -> str:
    day = when.astimezone(tz).date()
    today = now.astimezone(tz).date()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day.day} {day.strftime('%b')}"


@_record_boundary
def normalize_message(data: Mapping[str, Any], now: datetime, tz: tzinfo) -> MailMessage:
    message_id = data.get("id")
    if not message_id:
        raise NormalizationSkipped("message without id")

    headers = (data.get("payload") or {}).get("headers") or []
    name, email = parse_sender(_header(headers, "From"))
    labels = tuple(data.get("labelIds") or [])
    when = message_date(_header(headers, "Date"), data.get("internalDate"), now, tz)

    return MailMessage(
        id=str(message_id),
        thread_id=str(data.get("threadId") or ""),
        subject=_header(headers, "Subject") or "(No subject)",
        sender=Sender(name=name, email=email, avatar=generate_avatar(email)),
        recipient=_header(headers, "To"),
        date=when,
        snippet=data.get("snippet") or "",
        unread="UNREAD" in labels,
        important="IMPORTANT" in labels,
        starred="STARRED" in labels,
        labels=labels,
        size=_int(data.get("sizeEstimate")),
        date_label=date_label(when, now, tz),
        time_label=_hhmm(when),
    )


# ----------------------------------------------------------------- weather

def weather_description(weather_code: Any) -> Tuple[str, str]:
    """(description, icon code) for a WMO code; unknown codes never raise."""
    try:
        return WEATHER_CODES.get(int(weather_code), UNKNOWN_WEATHER)
    except (TypeError, ValueError):
        return UNKNOWN_WEATHER


def _provider_zone(payload: Mapping[str, Any]) -> tzinfo:
    # timezone=auto reports local wall-clock strings plus the offset in use
    return timezone(timedelta(seconds=_int(payload.get("utc_offset_seconds"))))


def _local_timestamp(value: Optional[str], zone: tzinfo) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = _parse_iso(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=zone)


@_record_boundary
def normalize_current(payload: Mapping[str, Any], now: datetime) -> CurrentConditions:
    current = payload.get("current_weather")
    hourly = payload.get("hourly")
    if not current or not hourly:
        raise NormalizationSkipped("incomplete current weather payload")

    zone = _provider_zone(payload)
    hour_key = now.astimezone(zone).strftime("%Y-%m-%dT%H:00")
    times = hourly.get("time") or []
    idx = times.index(hour_key) if hour_key in times else 0

    def hourly_value(name: str) -> Any:
        values = hourly.get(name) or []
        return values[idx] if idx < len(values) else None

    temperature = _int(current.get("temperature"))
    description, icon = weather_description(current.get("weathercode"))
    daily = payload.get("daily") or {}
    sunrise = (daily.get("sunrise") or [None])[0]
    sunset = (daily.get("sunset") or [None])[0]

    return CurrentConditions(
        temperature=temperature,
        feels_like=_int(hourly_value("apparent_temperature"), temperature),
        humidity=_int(hourly_value("relativehumidity_2m"), 50),
        pressure=_int(hourly_value("pressure_msl"), 1013),
        wind_speed=_int(current.get("windspeed")),
        wind_direction=_int(current.get("winddirection")),
        description=description,
        icon=icon,
        code=_int(current.get("weathercode"), -1),
        sunrise=_local_timestamp(sunrise, zone),
        sunset=_local_timestamp(sunset, zone),
    )


@_record_boundary
def normalize_forecast(payload: Mapping[str, Any], now: datetime) -> Tuple[DailyForecast, ...]:
    """Daily summaries after the location's current day, ascending, at most six."""
    daily = payload.get("daily")
    if not daily:
        raise NormalizationSkipped("incomplete forecast payload")

    today = now.astimezone(_provider_zone(payload)).date()

    times = list(daily.get("time") or [])

    def column(name: str) -> List[Any]:
        values = list(daily.get(name) or [])
        return values + [None] * (len(times) - len(values))

    rows = zip(
        times,
        column("weathercode"),
        column("temperature_2m_min"),
        column("temperature_2m_max"),
        column("windspeed_10m_max"),
        column("precipitation_probability_max"),
    )

    days: List[DailyForecast] = []
    for raw_day, code, t_min, t_max, wind, precip in rows:
        try:
            day = date.fromisoformat(str(raw_day))
        except ValueError:
            continue
        if day <= today or t_min is None or t_max is None:
            continue
        description, icon = weather_description(code)
        days.append(DailyForecast(
            date=day,
            day_name=day.strftime("%A"),
            temp_min=_int(t_min),
            temp_max=_int(t_max),
            temp_avg=_int((float(t_min) + float(t_max)) / 2),
            description=description,
            icon=icon,
            code=_int(code, -1),
            wind_speed=_int(wind),
            precipitation=_int(precip),
        ))

    days.sort(key=lambda d: d.date)
    return tuple(days[:MAX_FORECAST_DAYS])


# -------------------------------------------------------- location / radio

@_record_boundary
def normalize_location(data: Mapping[str, Any]) -> Location:
    if data.get("error"):
        raise NormalizationSkipped(f"geolocation refused: {data.get('reason', 'unknown')}")
    lat, lon = data.get("latitude"), data.get("longitude")
    if lat is None or lon is None:
        raise NormalizationSkipped("geolocation without coordinates")
    return Location(
        name=data.get("city") or "Current location",
        country=data.get("country_name") or data.get("country") or "",
        latitude=float(lat),
        longitude=float(lon),
    )


@_record_boundary
def normalize_station(raw: Mapping[str, Any]) -> RadioStation:
    station_id = raw.get("stationuuid") or ""
    name = (raw.get("name") or "").strip()
    url = raw.get("url_resolved") or raw.get("url") or ""
    if not name or not url:
        raise NormalizationSkipped("station without name or stream url", station_id or None)

    tags = tuple(t.strip() for t in (raw.get("tags") or "").split(",") if t.strip())
    return RadioStation(
        id=station_id,
        name=name,
        url=url,
        country=raw.get("country") or "",
        genre=tags[0] if tags else "Various",
        tags=tags,
        favicon=raw.get("favicon") or "",
        votes=_int(raw.get("votes")),
        bitrate=_int(raw.get("bitrate")) or 128,
        codec=raw.get("codec") or "MP3",
        homepage=raw.get("homepage") or "",
        last_check_ok=raw.get("lastcheckok") == 1,
    )


# -------------------------------------------------------------------- news

@_record_boundary
def normalize_article(raw: Mapping[str, Any]) -> Article:
    title = (raw.get("title") or "").strip()
    url = raw.get("url") or ""
    # NewsAPI blanks out articles taken down by the publisher
    if not title or title == "[Removed]" or not url:
        raise NormalizationSkipped("article without title or url", url or None)

    published_at = None
    if raw.get("publishedAt"):
        try:
            published_at = _parse_iso(str(raw["publishedAt"]))
        except ValueError:
            published_at = None

    source = raw.get("source") or {}
    return Article(
        title=title,
        url=url,
        source=(source.get("name") or "") if isinstance(source, Mapping) else str(source),
        description=raw.get("description") or "",
        author=raw.get("author") or "",
        image_url=raw.get("urlToImage") or "",
        published_at=published_at,
    )
