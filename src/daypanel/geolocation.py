from __future__ import annotations

from typing import Optional

import requests

from .http_client import DEFAULT_TIMEOUT, create_session, get_json
from .models import Location
from .normalize import normalize_location

IPAPI_URL = "https://ipapi.co/json/"


class IpGeolocationClient:
    """Best-effort location of the caller's public IP."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._session = session or create_session()
        self.timeout = timeout

    def locate(self) -> Location:
        return normalize_location(get_json(self._session, IPAPI_URL, timeout=self.timeout))
