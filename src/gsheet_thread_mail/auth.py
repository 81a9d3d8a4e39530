"""Google OAuth credentials and API service construction.

Uses the installed-app flow: place the OAuth client file from Google
Cloud Console at GSHEET_MAIL_CREDENTIALS_PATH; the token is saved to
GSHEET_MAIL_TOKEN_PATH after the first consent and refreshed after that.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/spreadsheets.readonly",
]


def get_credentials(
    credentials_path: Path, token_path: Path, interactive: bool = False
):
    """
    Load OAuth credentials, refreshing or running consent as needed.

    Args:
        credentials_path: OAuth client secrets file
        token_path: Where the authorized-user token is cached
        interactive: Allow the browser consent flow. Scheduled runs
            pass False so a missing token fails fast instead of hanging.

    Raises:
        FileNotFoundError: If consent is needed but the client file is missing
        PermissionError: If consent is needed but interactive is False
    """
    from google.auth.transport.requests import Request
    from google.oauth2.credentials import Credentials
    from google_auth_oauthlib.flow import InstalledAppFlow

    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())
        logger.debug("Refreshed OAuth token")
    else:
        if not interactive:
            raise PermissionError(
                f"No valid OAuth token at {token_path}. "
                "Run 'gsheet-thread-mail auth' first."
            )
        if not credentials_path.exists():
            raise FileNotFoundError(
                f"Credentials file not found: {credentials_path}. "
                "Download the OAuth client JSON from Google Cloud Console."
            )
        flow = InstalledAppFlow.from_client_secrets_file(
            str(credentials_path), SCOPES
        )
        creds = flow.run_local_server(port=0)

    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    try:
        os.chmod(token_path, 0o600)
    except OSError as e:
        logger.warning("Could not set secure permissions on %s: %s", token_path, e)
    logger.info("OAuth token saved to %s", token_path)
    return creds


def build_gmail_service(creds) -> Any:
    """Build a Gmail v1 service."""
    from googleapiclient.discovery import build

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def build_sheets_service(creds) -> Any:
    """Build a Sheets v4 service."""
    from googleapiclient.discovery import build

    return build("sheets", "v4", credentials=creds, cache_discovery=False)
