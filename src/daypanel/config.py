from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List
import yaml

@dataclass
class GoogleConfig:
    calendar_ids: List[str] = field(default_factory=lambda: ["primary"])

@dataclass
class CacheConfig:
    calendar_ttl_seconds: float = 300.0
    mail_ttl_seconds: float = 120.0
    weather_ttl_seconds: float = 600.0
    news_ttl_seconds: float = 900.0

@dataclass
class WeatherConfig:
    default_city: str = "București"
    latitude: float = 44.4268
    longitude: float = 26.1025
    country: str = "RO"
    use_ip_location: bool = True

@dataclass
class RadioConfig:
    country_code: str = "RO"
    limit: int = 50

@dataclass
class NewsConfig:
    language: str = "en"
    category: str = ""

@dataclass
class AppConfig:
    timezone: str = "Europe/Bucharest"
    http_timeout_seconds: float = 10.0
    google: GoogleConfig = field(default_factory=GoogleConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    radio: RadioConfig = field(default_factory=RadioConfig)
    news: NewsConfig = field(default_factory=NewsConfig)

def load_config(path: str) -> AppConfig:
    p = Path(path)
    if not p.exists():
        return AppConfig()
    data: Dict[str, Any] = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    google = data.get("google") or {}
    cache = data.get("cache") or {}
    weather = data.get("weather") or {}
    radio = data.get("radio") or {}
    news = data.get("news") or {}

    return AppConfig(
        timezone=str(data.get("timezone", "Europe/Bucharest")),
        http_timeout_seconds=float(data.get("http_timeout_seconds", 10)),
        google=GoogleConfig(
            calendar_ids=list(google.get("calendar_ids", ["primary"])),
        ),
        cache=CacheConfig(
            calendar_ttl_seconds=float(cache.get("calendar_ttl_seconds", 300)),
            mail_ttl_seconds=float(cache.get("mail_ttl_seconds", 120)),
            weather_ttl_seconds=float(cache.get("weather_ttl_seconds", 600)),
            news_ttl_seconds=float(cache.get("news_ttl_seconds", 900)),
        ),
        weather=WeatherConfig(
            default_city=str(weather.get("default_city", "București")),
            latitude=float(weather.get("latitude", 44.4268)),
            longitude=float(weather.get("longitude", 26.1025)),
            country=str(weather.get("country", "RO")),
            use_ip_location=bool(weather.get("use_ip_location", True)),
        ),
        radio=RadioConfig(
            country_code=str(radio.get("country_code", "RO")),
            limit=int(radio.get("limit", 50)),
        ),
        news=NewsConfig(
            language=str(news.get("language", "en")),
            category=str(news.get("category") or ""),
        ),
    )
