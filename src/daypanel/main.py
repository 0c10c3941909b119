from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .cache import TTLCache
from .config import AppConfig, load_config
from .credentials import resolve_access_token
from .errors import Unauthorized
from .geolocation import IpGeolocationClient
from .http_client import create_session
from .models import CalendarEvent, CalendarSummary, Location, MailSummary, NewsPage, RadioStation, WeatherSnapshot
from .news import NewsApiClient, api_key_from_env
from .radio import RadioBrowserClient
from .services import CalendarService, MailService, NewsService, RadioService, WeatherService
from .weather import OpenMeteoClient, weather_glyph

CONFIG_PATH_DEFAULT = "config.yaml"
COMMANDS = ("calendar", "mail", "weather", "radio", "news", "all")
EXIT_REAUTH = 2


@dataclass
class Services:
    calendar: CalendarService
    mail: MailService
    weather: WeatherService
    radio: RadioService
    news: NewsService

    def clear_caches(self) -> None:
        self.calendar.clear_cache()
        self.mail.clear_cache()
        self.weather.clear_cache()
        self.news.clear_cache()


def build_services(cfg: AppConfig) -> Services:
    tz = ZoneInfo(cfg.timezone)
    session = create_session()
    timeout = cfg.http_timeout_seconds
    default_location = Location(
        name=cfg.weather.default_city,
        country=cfg.weather.country,
        latitude=cfg.weather.latitude,
        longitude=cfg.weather.longitude,
    )
    geolocator = IpGeolocationClient(session, timeout=timeout) if cfg.weather.use_ip_location else None
    return Services(
        calendar=CalendarService(TTLCache(cfg.cache.calendar_ttl_seconds), tz, cfg.google.calendar_ids),
        mail=MailService(TTLCache(cfg.cache.mail_ttl_seconds), tz),
        weather=WeatherService(
            TTLCache(cfg.cache.weather_ttl_seconds),
            OpenMeteoClient(session, timeout=timeout),
            default_location,
            geolocator=geolocator,
        ),
        radio=RadioService(RadioBrowserClient(session, timeout=timeout)),
        news=NewsService(
            TTLCache(cfg.cache.news_ttl_seconds),
            NewsApiClient(api_key_from_env(), timeout=timeout),
        ),
    )


def _fmt_event(e: CalendarEvent) -> str:
    when = "all day" if e.all_day else f"{e.start_time}-{e.end_time}"
    where = f" @ {e.location}" if e.location else ""
    return f"  {e.date_key} {when:<11} {e.title}{where}"


def format_calendar(summary: CalendarSummary) -> str:
    lines = [
        f"Calendar: {summary.total_today} today, {summary.total_tomorrow} tomorrow, "
        f"{summary.total_week} this week, {summary.ongoing_count} ongoing"
    ]
    for e in summary.ongoing:
        lines.append(f"  now: {e.title} (until {e.end_time})")
    if summary.next_event is not None:
        lines.append(f"  next: {summary.next_event.title} at {summary.next_event.start_time}")
    for label, window in (("Today", summary.today), ("Tomorrow", summary.tomorrow), ("Week", summary.week)):
        if not window.total:
            continue
        lines.append(f" {label}:")
        lines.extend(_fmt_event(e) for e in window.items)
        if window.has_more:
            lines.append(f"  ... +{window.total - len(window.items)} more")
    return "\n".join(lines)


def format_mail(summary: MailSummary) -> str:
    arrow = {"up": "↑", "down": "↓"}.get(summary.trend, "→")
    lines = [
        f"Mail: {summary.unread_count} unread, {summary.important_count} important, "
        f"{summary.today_count} today ({arrow} vs {summary.yesterday_count} yesterday)"
    ]
    for m in summary.recent_messages:
        marker = "*" if m.unread else " "
        lines.append(f" {marker} {m.time_label} {m.sender.name}: {m.subject}")
    return "\n".join(lines)


def format_weather(snapshot: WeatherSnapshot) -> str:
    loc = snapshot.location
    header = f"Weather: {loc.name}, {loc.country}" if loc.country else f"Weather: {loc.name}"
    if snapshot.current is None:
        return f"{header}\n  unavailable"
    c = snapshot.current
    lines = [
        header,
        f"  {weather_glyph(c.code)} {c.temperature}°C (feels {c.feels_like}°C), {c.description}",
        f"  humidity {c.humidity}%  pressure {c.pressure} hPa  wind {c.wind_speed} km/h @ {c.wind_direction}°",
    ]
    if c.sunrise and c.sunset:
        lines.append(f"  sunrise {c.sunrise:%H:%M}  sunset {c.sunset:%H:%M}")
    for day in snapshot.forecast:
        lines.append(
            f"  {day.day_name:<9} {weather_glyph(day.code)} {day.temp_min}..{day.temp_max}°C  "
            f"{day.description}, rain {day.precipitation}%"
        )
    return "\n".join(lines)


def format_radio(stations: List[RadioStation], limit: int = 10) -> str:
    lines = [f"Radio: {len(stations)} stations"]
    for s in stations[:limit]:
        lines.append(f"  {s.name} [{s.genre}] {s.codec} {s.bitrate}kbps  {s.url}")
    return "\n".join(lines)


def format_news(page: NewsPage, limit: int = 10) -> str:
    if page.error:
        return f"News: {page.message}"
    lines = [f"News: {page.total_results} results"]
    for a in page.articles[:limit]:
        source = f" ({a.source})" if a.source else ""
        lines.append(f"  {a.title}{source}")
    return "\n".join(lines)


def run_once(
    command: str = "all",
    config_path: str = CONFIG_PATH_DEFAULT,
    refresh: bool = False,
    services: Optional[Services] = None,
) -> int:
    load_dotenv()
    cfg = load_config(config_path)
    services = services or build_services(cfg)
    if refresh:
        services.clear_caches()

    needs_google = command in ("calendar", "mail", "all")
    token = ""
    if needs_google:
        try:
            token = resolve_access_token()
        except Unauthorized as exc:
            print(f"Google sign-in expired ({exc}); sign in again.")
            return EXIT_REAUTH
        if not token:
            print("No Google access token; set DAYPANEL_ACCESS_TOKEN or GOOGLE_CREDENTIALS_JSON/GOOGLE_TOKEN_JSON.")
            return EXIT_REAUTH
        if not services.calendar.validate_token(token):
            print("Google access token rejected; sign in again.")
            return EXIT_REAUTH

    if command in ("calendar", "all"):
        print(format_calendar(services.calendar.summary(token)))
    if command in ("mail", "all"):
        print(format_mail(services.mail.summary(token)))
    if command in ("weather", "all"):
        print(format_weather(services.weather.snapshot()))
    if command in ("radio", "all"):
        print(format_radio(services.radio.stations(cfg.radio.country_code, cfg.radio.limit)))
    if command in ("news", "all"):
        print(format_news(services.news.headlines(cfg.news.category, language=cfg.news.language)))
    return 0


def main():
    import argparse

    ap = argparse.ArgumentParser(description="Personal dashboard summaries from Google, Open-Meteo, radio-browser and NewsAPI")
    ap.add_argument("command", nargs="?", default="all", choices=COMMANDS)
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--refresh", action="store_true", help="drop cached responses first")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(run_once(args.command, config_path=args.config, refresh=args.refresh))


if __name__ == "__main__":
    main()
