"""Trigger entry points.

send_daily_update() is what a scheduler or form-submission hook calls.
It never raises: every outcome is reported through the log so a failed
run cannot block the next scheduled one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol

from .config import Settings, load_settings
from .continuity import (
    SendResult,
    ThreadContinuityManager,
    ThreadState,
    load_state,
    save_state,
    with_thread_id,
)
from .properties import PropertyStore, SQLitePropertyStore
from .sheets import SheetFetcher, render_html_body

if TYPE_CHECKING:
    from .mail import MailProvider

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self) -> tuple[str, list[list[str]]]: ...


def open_store(settings: Settings) -> SQLitePropertyStore:
    """Open the configured property store."""
    return SQLitePropertyStore(settings.state_path)


@contextmanager
def _store_for(
    settings: Settings, store: PropertyStore | None
) -> Iterator[PropertyStore]:
    """Yield `store`, or open the configured one and close it afterwards."""
    if store is not None:
        yield store
        return
    with open_store(settings) as opened:
        yield opened


def build_fetcher(settings: Settings, interactive: bool = False) -> SheetFetcher:
    """SheetFetcher wired to the Sheets API."""
    from .auth import build_sheets_service, get_credentials

    creds = get_credentials(
        settings.credentials_path, settings.token_path, interactive=interactive
    )
    return SheetFetcher(
        service=build_sheets_service(creds),
        spreadsheet_id=settings.spreadsheet_id,
        data_sheet=settings.data_sheet,
        form_sheet=settings.form_sheet,
        data_range=settings.data_range,
        comment_column=settings.comment_column,
    )


def build_provider(settings: Settings, interactive: bool = False) -> MailProvider:
    """GmailProvider wired to the Gmail API."""
    from .auth import build_gmail_service, get_credentials
    from .mail import GmailProvider

    creds = get_credentials(
        settings.credentials_path, settings.token_path, interactive=interactive
    )
    return GmailProvider(build_gmail_service(creds))


def render_update(settings: Settings, fetcher: Fetcher) -> str:
    """Fetch the sheet data and render the email body."""
    comment, rows = fetcher.fetch()
    logger.info("Fetched %d rows; comment: %s", len(rows), comment)
    return render_html_body(comment, rows, settings.title)


def send_daily_update(
    settings: Settings | None = None,
    *,
    fetcher: Fetcher | None = None,
    provider: MailProvider | None = None,
    store: PropertyStore | None = None,
) -> SendResult | None:
    """
    Fetch, render and deliver today's update.

    Collaborators default to the configured Google services and the
    SQLite property store.

    Returns:
        The SendResult, or None if the run failed before delivery
    """
    try:
        if settings is None:
            settings = load_settings()
        if fetcher is None:
            fetcher = build_fetcher(settings)
        if provider is None:
            provider = build_provider(settings)

        body = render_update(settings, fetcher)
        with _store_for(settings, store) as active_store:
            manager = ThreadContinuityManager(
                provider,
                active_store,
                thread_key=settings.thread_key,
                last_known_key=settings.last_known_key,
            )
            result = manager.deliver(body, settings.recipient, settings.subject)
    except Exception as e:
        logger.error("Error sending email: %s", e)
        return None

    if result.ok:
        logger.info("Email update sent successfully!")
    else:
        logger.error("Error sending email: %s", "; ".join(result.errors))
    return result


def get_thread_state(
    settings: Settings, store: PropertyStore | None = None
) -> ThreadState:
    """Current persisted thread state."""
    with _store_for(settings, store) as active_store:
        return load_state(active_store, settings.thread_key, settings.last_known_key)


def set_thread_id_manually(
    settings: Settings, thread_id: str, store: PropertyStore | None = None
) -> ThreadState:
    """
    Point future runs at an existing conversation.

    Use this to repair a lost or wrong thread ID, e.g. with the ID from
    the conversation's Gmail URL. The previous ID is archived.

    Raises:
        ValueError: If thread_id is empty
    """
    thread_id = thread_id.strip()
    if not thread_id:
        raise ValueError("Thread ID must not be empty")

    with _store_for(settings, store) as active_store:
        before = load_state(
            active_store, settings.thread_key, settings.last_known_key
        )
        after = with_thread_id(before, thread_id)
        save_state(
            active_store, before, after, settings.thread_key, settings.last_known_key
        )
    logger.info("Thread ID has been manually set to: %s", thread_id)
    return after
