from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from googleapiclient.errors import HttpError

from .errors import Unauthorized
from .google_api import as_api_error, build_service, execute, http_error_status

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
METADATA_HEADERS = ["Subject", "From", "To", "Date"]
BATCH_LIMIT = 50


def list_message_ids(
    token: str,
    query: str = "",
    max_results: int = 20,
    label_ids: Sequence[str] = ("INBOX",),
) -> List[str]:
    service = build_service("gmail", "v1", token)
    resp = execute(service.users().messages().list(
        userId="me",
        q=query,
        maxResults=max_results,
        labelIds=list(label_ids),
    ))
    return [m["id"] for m in resp.get("messages", []) if m.get("id")]


def fetch_message_details(token: str, message_ids: Sequence[str]) -> List[Dict[str, Any]]:
    """Header metadata for each id, in input order.

    Details are fetched as batch requests. A message whose own request fails
    is logged and left out; a 401 on any of them fails the whole call.
    """
    if not message_ids:
        return []

    service = build_service("gmail", "v1", token)
    found: Dict[str, Dict[str, Any]] = {}
    auth_failure: Optional[Exception] = None

    def _collect(request_id: str, response: Any, exception: Optional[Exception]) -> None:
        nonlocal auth_failure
        if exception is None:
            found[request_id] = response
            return
        if isinstance(exception, HttpError) and http_error_status(exception) == 401:
            auth_failure = exception
            return
        logger.warning("Skipping message %s: %s", request_id, as_api_error(exception))

    for offset in range(0, len(message_ids), BATCH_LIMIT):
        batch = service.new_batch_http_request(callback=_collect)
        for message_id in message_ids[offset:offset + BATCH_LIMIT]:
            batch.add(
                service.users().messages().get(
                    userId="me",
                    id=message_id,
                    format="metadata",
                    metadataHeaders=METADATA_HEADERS,
                ),
                request_id=message_id,
            )
        execute(batch)
        if auth_failure is not None:
            raise Unauthorized(f"access token rejected: {auth_failure}")

    return [found[mid] for mid in message_ids if mid in found]
