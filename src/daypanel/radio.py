from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from .http_client import DEFAULT_TIMEOUT, create_session, get_json

RADIO_BROWSER_URL = "https://de1.api.radio-browser.info/json"


class RadioBrowserClient:
    """Station listings from the radio-browser.info directory, as raw dicts."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = RADIO_BROWSER_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session = session or create_session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _search(self, **params: Any) -> List[Dict[str, Any]]:
        params.setdefault("hidebroken", "true")
        return get_json(
            self._session,
            f"{self.base_url}/stations/search",
            params=params,
            timeout=self.timeout,
        ) or []

    def by_country(self, country_code: str = "RO", limit: int = 50) -> List[Dict[str, Any]]:
        return self._search(countrycode=country_code, limit=limit, order="votes", reverse="true")

    def by_tag(self, tag: str, limit: int = 30) -> List[Dict[str, Any]]:
        return self._search(tag=tag, limit=limit, order="clickcount", reverse="true")

    def search(self, name: str, limit: int = 20) -> List[Dict[str, Any]]:
        return self._search(name=name, limit=limit, order="clickcount", reverse="true")

    def top(self, limit: int = 50) -> List[Dict[str, Any]]:
        return get_json(
            self._session,
            f"{self.base_url}/stations/topvote/{int(limit)}",
            timeout=self.timeout,
        ) or []
