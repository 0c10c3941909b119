from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from .http_client import DEFAULT_TIMEOUT, create_session, get_json

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

CURRENT_HOURLY_FIELDS = (
    "temperature_2m,relativehumidity_2m,apparent_temperature,pressure_msl,"
    "precipitation_probability,weathercode,windspeed_10m,winddirection_10m"
)
DAILY_FIELDS = (
    "weathercode,temperature_2m_max,temperature_2m_min,"
    "precipitation_probability_max,windspeed_10m_max"
)


def weather_glyph(weather_code: int) -> str:
    # WMO weather codes from Open-Meteo, reduced to a few plain-text glyphs.
    if weather_code == 0:
        return "☀"
    if weather_code in {1, 2, 3, 45, 48}:
        return "☁"
    if weather_code in {51, 53, 55, 56, 57}:
        return "☂"
    if weather_code in {61, 63, 65, 66, 67, 80, 81, 82}:
        return "☔"
    if weather_code in {71, 73, 75, 77, 85, 86}:
        return "❄"
    if weather_code in {95, 96, 99}:
        return "⚡"
    return "☁"


class OpenMeteoClient:
    """Raw Open-Meteo forecast payloads; no API key required."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._session = session or create_session()
        self.timeout = timeout

    def current(self, latitude: float, longitude: float) -> Dict[str, Any]:
        return get_json(
            self._session,
            OPEN_METEO_URL,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "current_weather": "true",
                "hourly": CURRENT_HOURLY_FIELDS,
                "daily": "sunrise,sunset",
                "timezone": "auto",
            },
            timeout=self.timeout,
        )

    def daily(self, latitude: float, longitude: float, days: int = 7) -> Dict[str, Any]:
        return get_json(
            self._session,
            OPEN_METEO_URL,
            params={
                "latitude": latitude,
                "longitude": longitude,
                "daily": DAILY_FIELDS,
                "forecast_days": days,
                "timezone": "auto",
            },
            timeout=self.timeout,
        )
