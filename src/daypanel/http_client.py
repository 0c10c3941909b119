"""Shared requests plumbing for the keyless JSON APIs."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests

from .errors import RequestFailed, TransportError, classify_status

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
USER_AGENT = "daypanel/0.1"


def create_session(user_agent: str = USER_AGENT) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
    return session


def get_json(
    session: requests.Session,
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """GET ``url`` and decode JSON, raising the package's error taxonomy."""
    logger.debug("GET %s params=%s", url, params)
    try:
        resp = session.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise TransportError(f"{url}: {exc}") from exc

    error = classify_status(resp.status_code, resp.text)
    if error is not None:
        raise error
    try:
        return resp.json()
    except ValueError as exc:
        raise RequestFailed(resp.status_code, "response is not JSON") from exc
