from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """Base class for everything this package raises on purpose."""


class ApiError(DashboardError):
    reauth_required = False


class Unauthorized(ApiError):
    """Credential missing or expired; the user has to sign in again."""

    reauth_required = True

    def __init__(self, message: str = "access token rejected (401)") -> None:
        super().__init__(message)


class Forbidden(ApiError):
    """The API is not enabled for the account (403)."""

    def __init__(self, message: str = "access forbidden (403); is the API enabled for this account?") -> None:
        super().__init__(message)


class RequestFailed(ApiError):
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"HTTP {status}: {body[:200]}" if body else f"HTTP {status}")


class TransportError(ApiError):
    """The request never produced an HTTP response."""


class NormalizationSkipped(DashboardError, ValueError):
    """A single provider record is unusable and gets dropped from its batch."""

    def __init__(self, reason: str, record_id: Optional[str] = None) -> None:
        self.reason = reason
        self.record_id = record_id
        label = f"record {record_id}" if record_id else "record"
        super().__init__(f"{label} skipped: {reason}")


def classify_status(status: int, body: str = "") -> Optional[ApiError]:
    """Map a non-2xx status to the matching error; None for success."""
    if 200 <= status < 300:
        return None
    if status == 401:
        return Unauthorized()
    if status == 403:
        return Forbidden()
    return RequestFailed(status, body)
