from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

import requests

from .http_client import DEFAULT_TIMEOUT, create_session, get_json

NEWS_API_URL = "https://newsapi.org/v2"
API_KEY_ENV = "NEWS_API_KEY"
PAGE_SIZE = 20


def api_key_from_env(environ: Mapping[str, str] = os.environ) -> str:
    return environ.get(API_KEY_ENV, "")


class NewsApiClient:
    """Raw NewsAPI listings.

    The key travels in the ``X-Api-Key`` header, so the client keeps a
    session of its own instead of sharing one with other hosts.
    """

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        base_url: str = NEWS_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self._session = session or create_session()
        self._session.headers.update({"X-Api-Key": api_key})
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, endpoint: str, **params: Any) -> Dict[str, Any]:
        params = {k: v for k, v in params.items() if v not in (None, "")}
        return get_json(self._session, f"{self.base_url}/{endpoint}", params=params, timeout=self.timeout) or {}

    def top_headlines(
        self,
        country: Optional[str] = None,
        category: Optional[str] = None,
        query: Optional[str] = None,
        language: Optional[str] = None,
        page: int = 1,
        page_size: int = PAGE_SIZE,
    ) -> Dict[str, Any]:
        return self._get(
            "top-headlines",
            country=country,
            category=category,
            q=query,
            language=language,
            page=page,
            pageSize=page_size,
        )

    def everything(
        self,
        query: str,
        from_date: Optional[str] = None,
        sort_by: str = "publishedAt",
        language: Optional[str] = None,
        page: int = 1,
        page_size: int = PAGE_SIZE,
    ) -> Dict[str, Any]:
        return self._get(
            "everything",
            q=query,
            sortBy=sort_by,
            language=language,
            page=page,
            pageSize=page_size,
            **{"from": from_date},
        )
