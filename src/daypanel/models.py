from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple

@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime             # timezone-aware, configured zone
    end: datetime               # timezone-aware, configured zone
    all_day: bool = False
    description: str = ""
    location: str = ""
    color: str = "#4285F4"
    status: str = "confirmed"
    attendees: Tuple[str, ...] = ()
    creator: str = ""
    calendar_id: str = "primary"
    # derived against the instant the record was normalized at
    is_today: bool = False
    is_tomorrow: bool = False
    is_past: bool = False
    is_future: bool = False
    is_ongoing: bool = False
    start_time: str = ""        # "HH:MM"
    end_time: str = ""
    date_key: str = ""          # "YYYY-MM-DD" of start


@dataclass(frozen=True)
class Avatar:
    initials: str
    color: str


@dataclass(frozen=True)
class Sender:
    name: str
    email: str
    avatar: Avatar


@dataclass(frozen=True)
class MailMessage:
    id: str
    thread_id: str
    subject: str
    sender: Sender
    date: datetime
    recipient: str = ""
    snippet: str = ""
    unread: bool = False
    important: bool = False
    starred: bool = False
    labels: Tuple[str, ...] = ()
    size: int = 0
    date_label: str = ""        # "Today" / "Yesterday" / "5 Feb"
    time_label: str = ""


@dataclass(frozen=True)
class Location:
    name: str
    country: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class CurrentConditions:
    temperature: int
    feels_like: int
    humidity: int
    pressure: int
    wind_speed: int
    wind_direction: int
    description: str
    icon: str
    code: int = -1
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None


@dataclass(frozen=True)
class DailyForecast:
    date: date
    day_name: str
    temp_min: int
    temp_max: int
    temp_avg: int
    description: str
    icon: str
    code: int = -1
    wind_speed: int = 0
    precipitation: int = 0


@dataclass(frozen=True)
class WeatherSnapshot:
    location: Location
    current: Optional[CurrentConditions]
    forecast: Tuple[DailyForecast, ...] = ()
    fetched_at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.current is not None


@dataclass(frozen=True)
class RadioStation:
    id: str
    name: str
    url: str
    country: str = ""
    genre: str = "Various"
    tags: Tuple[str, ...] = ()
    favicon: str = ""
    votes: int = 0
    bitrate: int = 128
    codec: str = "MP3"
    homepage: str = ""
    last_check_ok: bool = False


@dataclass(frozen=True)
class Article:
    title: str
    url: str
    source: str = ""
    description: str = ""
    author: str = ""
    image_url: str = ""
    published_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewsPage:
    articles: Tuple[Article, ...] = ()
    total_results: int = 0
    category: str = ""
    search: str = ""
    page: int = 1
    language: str = "en"
    error: bool = False
    message: str = ""          # user-facing reason when error is set


@dataclass(frozen=True)
class WindowPreview:
    total: int = 0
    items: Tuple = ()
    has_more: bool = False


@dataclass(frozen=True)
class DayGroup:
    day: date
    events: Tuple[CalendarEvent, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CalendarSummary:
    today: WindowPreview = WindowPreview()
    tomorrow: WindowPreview = WindowPreview()
    week: WindowPreview = WindowPreview()
    upcoming: Tuple[CalendarEvent, ...] = ()
    ongoing: Tuple[CalendarEvent, ...] = ()
    next_event: Optional[CalendarEvent] = None

    @property
    def total_today(self) -> int:
        return self.today.total

    @property
    def total_tomorrow(self) -> int:
        return self.tomorrow.total

    @property
    def total_week(self) -> int:
        return self.week.total

    @property
    def ongoing_count(self) -> int:
        return len(self.ongoing)


@dataclass(frozen=True)
class MailSummary:
    unread_count: int = 0
    today_count: int = 0
    yesterday_count: int = 0
    important_count: int = 0
    trend: str = "stable"
    recent_messages: Tuple[MailMessage, ...] = ()
