from __future__ import annotations
from typing import Mapping
import os

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from .calendar_google import SCOPES as CALENDAR_SCOPES
from .errors import Unauthorized
from .gmail import SCOPES as GMAIL_SCOPES

SCOPES = [
    *CALENDAR_SCOPES,
    *GMAIL_SCOPES,
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

ACCESS_TOKEN_ENV = "DAYPANEL_ACCESS_TOKEN"

def _save(token_path: str, creds: Credentials) -> None:
    directory = os.path.dirname(token_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(token_path, "w", encoding="utf-8") as f:
        f.write(creds.to_json())

def load_credentials(credentials_path: str, token_path: str) -> Credentials:
    creds = None
    if os.path.exists(token_path):
        creds = Credentials.from_authorized_user_file(token_path, SCOPES)

    if creds is not None and not creds.valid and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            # revoked, or expired (testing-mode apps expire them after 7 days)
            raise Unauthorized(f"stored Google token could not be refreshed: {exc}") from exc
        _save(token_path, creds)

    if creds is None or not creds.valid:
        flow = InstalledAppFlow.from_client_secrets_file(credentials_path, SCOPES)
        creds = flow.run_local_server(port=0)
        _save(token_path, creds)
    return creds

def resolve_access_token(environ: Mapping[str, str] = os.environ) -> str:
    """Bearer token from the environment, else from the stored OAuth client files."""
    token = environ.get(ACCESS_TOKEN_ENV, "")
    if token:
        return token

    creds_path = environ.get("GOOGLE_CREDENTIALS_JSON", "")
    token_path = environ.get("GOOGLE_TOKEN_JSON", "")
    if not (creds_path and token_path):
        return ""
    return load_credentials(creds_path, token_path).token or ""
