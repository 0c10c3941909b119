from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

from .google_api import build_service, execute

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]


def list_events(
    token: str,
    time_min: datetime,
    time_max: datetime,
    max_results: int,
    calendar_ids: Sequence[str] = ("primary",),
) -> List[Tuple[str, Dict[str, Any]]]:
    """Raw event items in ``[time_min, time_max)``, paired with their calendar id."""
    service = build_service("calendar", "v3", token)

    items: List[Tuple[str, Dict[str, Any]]] = []
    for cal_id in calendar_ids:
        resp = execute(service.events().list(
            calendarId=cal_id,
            timeMin=time_min.isoformat(),
            timeMax=time_max.isoformat(),
            maxResults=max_results,
            singleEvents=True,
            orderBy="startTime",
        ))
        items.extend((cal_id, item) for item in resp.get("items", []))

    return items
