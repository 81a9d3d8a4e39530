"""Configuration for gsheet-thread-mail."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# Default state/credential locations
DEFAULT_HOME = Path.home() / ".gsheet-thread-mail"
DEFAULT_STATE_PATH = DEFAULT_HOME / "properties.db"
DEFAULT_CREDENTIALS_PATH = DEFAULT_HOME / "credentials.json"
DEFAULT_TOKEN_PATH = DEFAULT_HOME / "token.json"

# Property keys shared with the Apps Script deployment
DEFAULT_THREAD_KEY = "riseTrackerThreadId"
DEFAULT_LAST_KNOWN_KEY = "riseTrackerLastKnownThreadId"


class ConfigError(Exception):
    """Raised when a required setting is missing or malformed."""


def _env_path(name: str, default: Path) -> Path:
    env_path = os.environ.get(name)
    if env_path:
        return Path(env_path).expanduser()
    return default


# ========== Spreadsheet ==========


def get_spreadsheet_id() -> str | None:
    """
    Get the source spreadsheet ID.

    Set GSHEET_MAIL_SPREADSHEET_ID to the ID from the sheet's URL.
    Required for real runs.
    """
    return os.environ.get("GSHEET_MAIL_SPREADSHEET_ID")


def get_data_sheet() -> str:
    """Sheet holding the tracker table. Defaults to "Daily Tracker"."""
    return os.environ.get("GSHEET_MAIL_DATA_SHEET", "Daily Tracker")


def get_form_sheet() -> str:
    """Sheet receiving form submissions. Defaults to "Form Responses 1"."""
    return os.environ.get("GSHEET_MAIL_FORM_SHEET", "Form Responses 1")


def get_data_range() -> str:
    """
    Get the A1 range of the tracker table.

    Set GSHEET_MAIL_DATA_RANGE to customize. Defaults to "A1:D33".
    """
    return os.environ.get("GSHEET_MAIL_DATA_RANGE", "A1:D33")


def get_comment_column() -> str:
    """
    Get the form-sheet column holding the comment.

    Set GSHEET_MAIL_COMMENT_COLUMN to a column letter. Defaults to "C".

    Raises:
        ConfigError: If the value is not a column letter.
    """
    column = os.environ.get("GSHEET_MAIL_COMMENT_COLUMN", "C").strip().upper()
    if not column.isalpha():
        raise ConfigError(f"Invalid comment column: {column!r}")
    return column


# ========== Email ==========


def get_subject() -> str:
    """
    Get the email subject.

    The subject stays constant across runs so replies keep one thread.
    Defaults to "5:00a rise tracking update".
    """
    return os.environ.get("GSHEET_MAIL_SUBJECT", "5:00a rise tracking update")


def get_title() -> str:
    """Heading rendered above the table. Defaults to "5:00a Rise Tracker"."""
    return os.environ.get("GSHEET_MAIL_TITLE", "5:00a Rise Tracker")


def get_recipient() -> str | None:
    """
    Get the recipient address (usually a distribution list).

    Set GSHEET_MAIL_RECIPIENT. Required for real runs.
    """
    return os.environ.get("GSHEET_MAIL_RECIPIENT")


# ========== State & credentials ==========


def get_state_path() -> Path:
    """
    Get the property store database path.

    Set GSHEET_MAIL_STATE_PATH to customize.
    Defaults to ~/.gsheet-thread-mail/properties.db
    """
    return _env_path("GSHEET_MAIL_STATE_PATH", DEFAULT_STATE_PATH)


def get_credentials_path() -> Path:
    """OAuth client secrets file (GSHEET_MAIL_CREDENTIALS_PATH)."""
    return _env_path("GSHEET_MAIL_CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH)


def get_token_path() -> Path:
    """Stored OAuth token (GSHEET_MAIL_TOKEN_PATH)."""
    return _env_path("GSHEET_MAIL_TOKEN_PATH", DEFAULT_TOKEN_PATH)


def get_thread_key() -> str:
    """Property key for the current thread ID."""
    return os.environ.get("GSHEET_MAIL_THREAD_KEY", DEFAULT_THREAD_KEY)


def get_last_known_key() -> str:
    """Property key where replaced thread IDs are archived."""
    return os.environ.get("GSHEET_MAIL_LAST_KNOWN_KEY", DEFAULT_LAST_KNOWN_KEY)


@dataclass(frozen=True)
class Settings:
    """Snapshot of all settings for one run."""

    spreadsheet_id: str
    recipient: str
    data_sheet: str = "Daily Tracker"
    form_sheet: str = "Form Responses 1"
    data_range: str = "A1:D33"
    comment_column: str = "C"
    subject: str = "5:00a rise tracking update"
    title: str = "5:00a Rise Tracker"
    state_path: Path = DEFAULT_STATE_PATH
    credentials_path: Path = DEFAULT_CREDENTIALS_PATH
    token_path: Path = DEFAULT_TOKEN_PATH
    thread_key: str = DEFAULT_THREAD_KEY
    last_known_key: str = DEFAULT_LAST_KNOWN_KEY


def load_settings() -> Settings:
    """
    Collect settings from the environment.

    Raises:
        ConfigError: If GSHEET_MAIL_SPREADSHEET_ID or GSHEET_MAIL_RECIPIENT
            is not set.
    """
    spreadsheet_id = get_spreadsheet_id()
    recipient = get_recipient()
    missing = [
        name
        for name, value in (
            ("GSHEET_MAIL_SPREADSHEET_ID", spreadsheet_id),
            ("GSHEET_MAIL_RECIPIENT", recipient),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing required settings: {', '.join(missing)}")

    return Settings(
        spreadsheet_id=spreadsheet_id,
        recipient=recipient,
        data_sheet=get_data_sheet(),
        form_sheet=get_form_sheet(),
        data_range=get_data_range(),
        comment_column=get_comment_column(),
        subject=get_subject(),
        title=get_title(),
        state_path=get_state_path(),
        credentials_path=get_credentials_path(),
        token_path=get_token_path(),
        thread_key=get_thread_key(),
        last_known_key=get_last_known_key(),
    )
