"""Per-widget services: cached, normalized queries plus summary fan-out.

Each service owns its ``TTLCache``. Summary calls issue their sub-queries
concurrently and join them; any failure in the fan-out is logged and turned
into the zeroed summary so the caller always gets something to display.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import calendar_google, gmail, google_api
from .cache import MISS, TTLCache, make_key, token_fingerprint
from .errors import ApiError, NormalizationSkipped, RequestFailed, Unauthorized
from .geolocation import IpGeolocationClient
from .models import (
    CalendarEvent,
    CalendarSummary,
    CurrentConditions,
    DailyForecast,
    DayGroup,
    Location,
    MailMessage,
    MailSummary,
    NewsPage,
    RadioStation,
    WeatherSnapshot,
)
from .normalize import (
    normalize_article,
    normalize_current,
    normalize_event,
    normalize_forecast,
    normalize_message,
    normalize_station,
)
from .news import NewsApiClient
from .radio import RadioBrowserClient
from .summary import (
    build_calendar_summary,
    build_mail_summary,
    count_on_day,
    day_bounds,
    group_by_day,
)
from .weather import OpenMeteoClient

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def fan_out(*calls: Callable[[], Any]) -> List[Any]:
    """Run ``calls`` concurrently; results come back in argument order.

    Every call runs to completion before the first error is re-raised.
    """
    with ThreadPoolExecutor(max_workers=max(1, len(calls))) as pool:
        futures = [pool.submit(call) for call in calls]
    return [f.result() for f in futures]


def _normalize_all(raw: Iterable[Any], convert: Callable[[Any], Any]) -> List[Any]:
    records = []
    for item in raw:
        try:
            records.append(convert(item))
        except NormalizationSkipped as exc:
            logger.warning("Dropping record: %s", exc)
    return records


def _normalize_text(value: str | None) -> str:
    if not value:
        return ""
    return " ".join(value.strip().lower().split())


def _event_sort_key(e: CalendarEvent):
    return (e.start, 0 if e.all_day else 1, e.title.lower())


def _dedupe_events(events: List[CalendarEvent]) -> List[CalendarEvent]:
    # the same meeting shows up once per calendar it was shared into
    deduped: List[CalendarEvent] = []
    seen = set()
    for e in sorted(events, key=_event_sort_key):
        key = (
            _normalize_text(e.title),
            e.start.isoformat(),
            e.end.isoformat(),
            bool(e.all_day),
            _normalize_text(e.location),
        )
        if key in seen:
            continue
        seen.add(key)
        deduped.append(e)
    return deduped


class CalendarService:
    def __init__(
        self,
        cache: TTLCache,
        tz: tzinfo,
        calendar_ids: Sequence[str] = ("primary",),
        clock: Optional[Clock] = None,
    ) -> None:
        self.cache = cache
        self.tz = tz
        self.calendar_ids = tuple(calendar_ids) or ("primary",)
        self._clock = clock or (lambda: datetime.now(tz=tz))

    def events(
        self,
        token: str,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 10,
    ) -> Tuple[CalendarEvent, ...]:
        """Events overlapping the window, default now .. now + 7 days."""
        now = self._clock()
        time_min = time_min or now
        time_max = time_max or time_min + timedelta(days=7)

        key = make_key(
            "calendar",
            token_fingerprint(token),
            time_min.isoformat(),
            time_max.isoformat(),
            max_results,
            ",".join(self.calendar_ids),
        )
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached

        raw = calendar_google.list_events(token, time_min, time_max, max_results, self.calendar_ids)
        events = _normalize_all(raw, lambda pair: normalize_event(pair[1], now, self.tz, calendar_id=pair[0]))
        result = tuple(_dedupe_events(events))
        logger.debug("Fetched %d calendar events for %s..%s", len(result), time_min, time_max)
        self.cache.set(key, result)
        return result

    def today_events(self, token: str) -> Tuple[CalendarEvent, ...]:
        start, end = day_bounds(self._clock(), self.tz)
        return self.events(token, start, end, 20)

    def tomorrow_events(self, token: str) -> Tuple[CalendarEvent, ...]:
        start, end = day_bounds(self._clock(), self.tz, offset_days=1)
        return self.events(token, start, end, 20)

    def week_events(self, token: str) -> Tuple[CalendarEvent, ...]:
        # minute resolution keeps repeated refreshes on the same cache key
        start = self._clock().astimezone(self.tz).replace(second=0, microsecond=0)
        return self.events(token, start, start + timedelta(days=7), 50)

    def summary(self, token: str) -> CalendarSummary:
        try:
            today, tomorrow, week = fan_out(
                lambda: self.today_events(token),
                lambda: self.tomorrow_events(token),
                lambda: self.week_events(token),
            )
        except Exception:
            logger.warning("Calendar summary failed; showing an empty summary.", exc_info=True)
            return CalendarSummary()
        return build_calendar_summary(today, tomorrow, week)

    def week_by_day(self, token: str) -> List[DayGroup]:
        try:
            week = self.week_events(token)
        except ApiError:
            logger.warning("Calendar week fetch failed.", exc_info=True)
            return []
        return group_by_day(week, self.tz)

    def clear_cache(self) -> None:
        self.cache.clear()

    def validate_token(self, token: str) -> bool:
        return google_api.validate_token(token)


class MailService:
    def __init__(self, cache: TTLCache, tz: tzinfo, clock: Optional[Clock] = None) -> None:
        self.cache = cache
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(tz=tz))

    def messages(self, token: str, query: str = "", max_results: int = 20) -> Tuple[MailMessage, ...]:
        key = make_key("gmail", token_fingerprint(token), query, max_results)
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached

        now = self._clock()
        ids = gmail.list_message_ids(token, query, max_results)
        details = gmail.fetch_message_details(token, ids)
        result = tuple(_normalize_all(details, lambda data: normalize_message(data, now, self.tz)))
        logger.debug("Fetched %d messages for query %r", len(result), query)
        self.cache.set(key, result)
        return result

    def today_messages(self, token: str) -> Tuple[MailMessage, ...]:
        start, _ = day_bounds(self._clock(), self.tz)
        return self.messages(token, f"after:{int(start.timestamp())}", 50)

    def unread_messages(self, token: str) -> Tuple[MailMessage, ...]:
        return self.messages(token, "is:unread", 30)

    def important_messages(self, token: str) -> Tuple[MailMessage, ...]:
        return self.messages(token, "is:important", 20)

    def yesterday_count(self, token: str) -> int:
        """Messages dated on the previous local calendar day, midnight to midnight."""
        start, end = day_bounds(self._clock(), self.tz, offset_days=-1)
        query = f"after:{int(start.timestamp())} before:{int(end.timestamp())}"
        return count_on_day(self.messages(token, query, 100), start, end)

    def summary(self, token: str) -> MailSummary:
        try:
            today, unread, important, yesterday = fan_out(
                lambda: self.today_messages(token),
                lambda: self.unread_messages(token),
                lambda: self.important_messages(token),
                lambda: self.yesterday_count(token),
            )
        except Exception:
            logger.warning("Mail summary failed; showing an empty summary.", exc_info=True)
            return MailSummary()
        return build_mail_summary(today, unread, important, yesterday)

    def dashboard_messages(self, token: str, limit: int = 3) -> Tuple[MailMessage, ...]:
        try:
            return self.today_messages(token)[:limit]
        except ApiError:
            logger.warning("Mail preview failed.", exc_info=True)
            return ()

    def clear_cache(self) -> None:
        self.cache.clear()

    def validate_token(self, token: str) -> bool:
        return google_api.validate_token(token)


CITIES: Dict[str, Tuple[float, float]] = {
    "București": (44.4268, 26.1025),
    "Cluj-Napoca": (46.7712, 23.6236),
    "Timișoara": (45.7489, 21.2087),
    "Iași": (47.1517, 27.5879),
    "Constanța": (44.1807, 28.6343),
    "Craiova": (44.3193, 23.7965),
    "Brașov": (45.6486, 25.6061),
    "Galați": (45.4353, 28.0377),
    "Ploiești": (44.9396, 26.0192),
    "Oradea": (47.0465, 21.9189),
    "Brăila": (45.2652, 27.9595),
    "Arad": (46.1866, 21.3127),
    "Pitești": (44.8565, 24.8695),
    "Sibiu": (45.7983, 24.1256),
    "Bacău": (46.5670, 26.9145),
    "Târgu-Mureș": (46.5466, 24.5555),
    "Baia Mare": (47.6530, 23.5806),
    "Buzău": (45.1492, 26.8258),
    "Botoșani": (47.7489, 26.6701),
    "Satu Mare": (47.7792, 22.8910),
    "Râmnicu Vâlcea": (45.1039, 24.3756),
    "Drobeta-Turnu Severin": (44.6309, 22.6560),
    "Târgu Jiu": (45.0362, 23.2805),
    "Târgoviște": (44.9300, 25.4492),
    "Focșani": (45.6964, 27.1830),
    "Bistrița": (47.1359, 24.5079),
    "Reșița": (45.2931, 21.8442),
}


def city_location(name: str) -> Location:
    if name not in CITIES:
        raise KeyError(f"Unknown city: {name}")
    lat, lon = CITIES[name]
    return Location(name=name, country="RO", latitude=lat, longitude=lon)


class WeatherService:
    def __init__(
        self,
        cache: TTLCache,
        client: OpenMeteoClient,
        default_location: Location,
        geolocator: Optional[IpGeolocationClient] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.cache = cache
        self.client = client
        self.default_location = default_location
        self.geolocator = geolocator
        self._clock = clock or (lambda: datetime.now().astimezone())

    def _cached(self, kind: str, location: Location, fetch: Callable[[], Any]) -> Any:
        key = make_key(kind, location.latitude, location.longitude)
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached
        value = fetch()
        self.cache.set(key, value)
        return value

    def current(self, location: Location) -> CurrentConditions:
        return self._cached(
            "current",
            location,
            lambda: normalize_current(self.client.current(location.latitude, location.longitude), self._clock()),
        )

    def forecast(self, location: Location) -> Tuple[DailyForecast, ...]:
        return self._cached(
            "forecast",
            location,
            lambda: normalize_forecast(self.client.daily(location.latitude, location.longitude), self._clock()),
        )

    def resolve_location(self) -> Location:
        """IP lookup when enabled, otherwise (or on failure) the configured default.

        A successful lookup is cached like any weather payload; a failed one is not.
        """
        if self.geolocator is None:
            return self.default_location
        key = make_key("location")
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached
        try:
            location = self.geolocator.locate()
        except (ApiError, NormalizationSkipped, ValueError) as exc:
            logger.warning("IP geolocation failed (%s); using %s.", exc, self.default_location.name)
            return self.default_location
        self.cache.set(key, location)
        return location

    def snapshot(self, location: Optional[Location] = None) -> WeatherSnapshot:
        location = location or self.resolve_location()
        try:
            current, forecast = fan_out(
                lambda: self.current(location),
                lambda: self.forecast(location),
            )
        except Exception:
            logger.warning("Weather fetch failed for %s; showing no data.", location.name, exc_info=True)
            return WeatherSnapshot(location=location, current=None, forecast=(), fetched_at=self._clock())
        return WeatherSnapshot(location=location, current=current, forecast=forecast, fetched_at=self._clock())

    def weather_for_city(self, name: str) -> WeatherSnapshot:
        return self.snapshot(city_location(name))

    @staticmethod
    def available_cities() -> List[str]:
        return sorted(CITIES)

    def clear_cache(self) -> None:
        self.cache.clear()


GENRE_ICONS = {
    "pop": "🎵",
    "rock": "🎸",
    "jazz": "🎷",
    "classical": "🎻",
    "electronic": "🎧",
    "hip hop": "🎤",
    "country": "🤠",
    "folk": "🪕",
    "blues": "🎺",
    "metal": "🤘",
    "reggae": "🌴",
    "dance": "💃",
    "house": "🏠",
    "techno": "🤖",
    "ambient": "🌊",
    "news": "📰",
    "talk": "🗣️",
    "sports": "⚽",
    "top40": "🔝",
    "hits": "🎯",
}
DEFAULT_GENRE_ICON = "🎵"


def genre_icon(genre: str) -> str:
    lowered = genre.lower()
    for key, icon in GENRE_ICONS.items():
        if key in lowered:
            return icon
    return DEFAULT_GENRE_ICON


class RadioService:
    """Working stations from the directory; failures degrade to an empty list."""

    def __init__(self, client: RadioBrowserClient) -> None:
        self.client = client

    def _stations(self, fetch: Callable[[], List[Dict[str, Any]]], label: str) -> List[RadioStation]:
        try:
            raw = fetch()
        except ApiError:
            logger.warning("Radio directory request failed (%s).", label, exc_info=True)
            return []
        stations = _normalize_all(raw, normalize_station)
        return [s for s in stations if s.last_check_ok and s.url.startswith("http")]

    def stations(self, country_code: str = "RO", limit: int = 50) -> List[RadioStation]:
        return self._stations(lambda: self.client.by_country(country_code, limit), f"country {country_code}")

    def top(self, limit: int = 50) -> List[RadioStation]:
        return self._stations(lambda: self.client.top(limit), "top")

    def search(self, name: str, limit: int = 20) -> List[RadioStation]:
        return self._stations(lambda: self.client.search(name, limit), f"search {name!r}")

    def by_genre(self, genre: str, limit: int = 30) -> List[RadioStation]:
        return self._stations(lambda: self.client.by_tag(genre, limit), f"tag {genre!r}")

    @staticmethod
    def genres(stations: Iterable[RadioStation]) -> List[Tuple[str, str]]:
        names = {tag for s in stations for tag in s.tags if tag}
        return [(name, genre_icon(name)) for name in sorted(names, key=str.lower)]


ALL_CATEGORIES = "all"
DEFAULT_NEWS_QUERY = "artificial intelligence OR machine learning"
NEWS_LOOKBACK = timedelta(days=7)


class NewsService:
    """Paged headlines from NewsAPI.

    Romanian pages come from ``top-headlines`` for the country; every other
    language searches ``everything`` over the last week. Pages are cached per
    (category, search, page, language). A failed page is reported through
    ``NewsPage.error`` and is not cached.
    """

    def __init__(self, cache: TTLCache, client: NewsApiClient, clock: Optional[Clock] = None) -> None:
        self.cache = cache
        self.client = client
        self._clock = clock or (lambda: datetime.now().astimezone())

    def _fetch(self, category: str, search: str, page: int, language: str) -> Mapping[str, Any]:
        filtered = bool(category) and category.lower() != ALL_CATEGORIES
        if language == "ro":
            return self.client.top_headlines(
                country="ro",
                category=category.lower() if filtered else None,
                query=search or None,
                language=language,
                page=page,
            )
        query = search or DEFAULT_NEWS_QUERY
        if filtered:
            query = f"{query} {category}"
        return self.client.everything(
            query,
            from_date=(self._clock() - NEWS_LOOKBACK).date().isoformat(),
            language=language,
            page=page,
        )

    def headlines(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        language: str = "en",
    ) -> NewsPage:
        category, search = category or "", search or ""
        empty = NewsPage(category=category, search=search, page=page, language=language)
        if not self.client.api_key:
            logger.warning("News API key not configured; set NEWS_API_KEY.")
            return replace(empty, error=True, message="News API key not configured")

        key = make_key("news", category, search, page, language)
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached

        try:
            raw = self._fetch(category, search, page, language)
        except ApiError as exc:
            logger.warning("News fetch failed (%s).", exc, exc_info=True)
            if isinstance(exc, RequestFailed) and exc.status == 429:
                message = "Too many requests. Please try again later."
            elif isinstance(exc, Unauthorized):
                message = "News API key rejected"
            else:
                message = "Unable to fetch news at this time"
            return replace(empty, error=True, message=message)

        if not isinstance(raw, Mapping):
            raw = {}
        articles = _normalize_all(raw.get("articles") or [], normalize_article)
        result = replace(
            empty,
            articles=tuple(articles),
            total_results=_int_or_zero(raw.get("totalResults")),
        )
        logger.debug("Fetched %d articles (%s, %r, page %d)", len(articles), language, search, page)
        self.cache.set(key, result)
        return result

    def clear_cache(self) -> None:
        self.cache.clear()


def _int_or_zero(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
