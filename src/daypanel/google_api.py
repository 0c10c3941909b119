from __future__ import annotations

import logging
from typing import Any

import httplib2
from google.auth.exceptions import RefreshError
from google.auth.exceptions import TransportError as AuthTransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError

from .errors import ApiError, RequestFailed, TransportError, Unauthorized, classify_status

logger = logging.getLogger(__name__)


def build_service(api: str, version: str, token: str) -> Resource:
    """Service bound to a bare bearer token; nothing is persisted."""
    creds = Credentials(token=token)
    return build(api, version, credentials=creds, cache_discovery=False)


def http_error_status(exc: HttpError) -> int:
    return int(exc.resp.status) if exc.resp is not None else 500


def as_api_error(exc: Exception) -> ApiError:
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, HttpError):
        content = exc.content
        body = content.decode("utf-8", "replace") if isinstance(content, bytes) else str(content or "")
        status = http_error_status(exc)
        return classify_status(status, body) or RequestFailed(status, body)
    if isinstance(exc, RefreshError):
        # a bare token cannot be refreshed; Google already answered 401
        return Unauthorized(f"access token rejected: {exc}")
    return TransportError(str(exc))


def execute(request: Any) -> Any:
    """Run a googleapiclient request (or batch) with errors classified."""
    try:
        return request.execute()
    except (HttpError, RefreshError, AuthTransportError, httplib2.HttpLib2Error, OSError) as exc:
        raise as_api_error(exc) from exc


def validate_token(token: str) -> bool:
    if not token:
        return False
    try:
        execute(build_service("oauth2", "v2", token).userinfo().get())
    except ApiError as exc:
        logger.info("Token validation failed: %s", exc)
        return False
    return True
