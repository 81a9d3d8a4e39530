"""Mail provider capability and its Gmail implementation.

The continuity manager only talks to a MailProvider, so the Gmail
backend can be swapped for a fake in tests. GmailProvider wraps a
`googleapiclient` Gmail v1 service object (see auth.build_gmail_service).
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from googleapiclient.errors import HttpError

if TYPE_CHECKING:
    from .headers import EmailDraft

logger = logging.getLogger(__name__)

# Lookup failures that mean "this ID points at nothing we can read"
_NOT_FOUND_STATUSES = {400, 404}

# Upper bound on messages scanned by the search fallback
SEARCH_PAGE_SIZE = 100


class MailError(Exception):
    """Raised when a mail provider call fails."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ThreadNotFoundError(MailError):
    """Raised when a conversation cannot be located."""


@dataclass
class ThreadInfo:
    """A provider-side conversation, messages oldest first."""

    id: str
    message_ids: list[str] = field(default_factory=list)

    @property
    def latest_message_id(self) -> str | None:
        return self.message_ids[-1] if self.message_ids else None


@dataclass
class SentMessage:
    """Handle returned by a successful send."""

    id: str
    thread_id: str


class MailProvider(Protocol):
    """Operations the continuity manager needs from a mail backend."""

    def get_thread(self, thread_id: str) -> ThreadInfo: ...

    def search_thread(self, thread_id: str, subject: str) -> ThreadInfo: ...

    def get_raw_message(self, message_id: str) -> str: ...

    def send(self, draft: EmailDraft) -> SentMessage: ...

    def send_via_draft(self, draft: EmailDraft) -> SentMessage: ...


def _status_of(error: HttpError) -> int | None:
    try:
        return int(error.resp.status)
    except (AttributeError, TypeError, ValueError):
        return None


def _decode_raw(data: str) -> str:
    """Decode a base64url `raw` field. Gmail omits padding."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


class GmailProvider:
    """
    MailProvider over the Gmail REST API.

    Args:
        service: Gmail v1 service from googleapiclient.discovery.build
        user_id: Mailbox to act on ("me" for the authorized user)
    """

    def __init__(self, service: Any, user_id: str = "me") -> None:
        self._service = service
        self._user_id = user_id

    def _users(self) -> Any:
        return self._service.users()

    def get_thread(self, thread_id: str) -> ThreadInfo:
        """
        Look up a conversation directly by ID.

        Raises:
            ThreadNotFoundError: If the ID is unknown, stale or empty
            MailError: On any other API failure
        """
        try:
            thread = (
                self._users()
                .threads()
                .get(userId=self._user_id, id=thread_id, format="minimal")
                .execute()
            )
        except HttpError as e:
            status = _status_of(e)
            if status in _NOT_FOUND_STATUSES:
                raise ThreadNotFoundError(
                    f"Thread not found: {thread_id}", status
                ) from e
            raise MailError(f"Thread lookup failed: {e}", status) from e

        message_ids = [m["id"] for m in thread.get("messages", []) if "id" in m]
        if not message_ids:
            raise ThreadNotFoundError(f"Thread has no messages: {thread_id}")
        return ThreadInfo(id=thread.get("id", thread_id), message_ids=message_ids)

    def search_thread(self, thread_id: str, subject: str) -> ThreadInfo:
        """
        Locate a conversation via message search.

        Catches threads that a direct lookup misses after being archived,
        relabeled or moved to spam/trash. A message matches when its
        thread ID equals `thread_id`, or its own ID does (Gmail reuses the
        first message's ID as the thread ID).

        Raises:
            ThreadNotFoundError: If no matching message is found
            MailError: On API failure
        """
        query = f'subject:"{subject}"' if subject else ""
        try:
            response = (
                self._users()
                .messages()
                .list(
                    userId=self._user_id,
                    q=query,
                    includeSpamTrash=True,
                    maxResults=SEARCH_PAGE_SIZE,
                )
                .execute()
            )
        except HttpError as e:
            raise MailError(f"Message search failed: {e}", _status_of(e)) from e

        messages = response.get("messages", [])
        match = next(
            (
                m
                for m in messages
                if thread_id in (m.get("threadId"), m.get("id"))
            ),
            None,
        )
        if match is None:
            raise ThreadNotFoundError(f"No messages found for thread {thread_id}")

        found_thread = match.get("threadId", thread_id)
        # messages.list returns newest first
        message_ids = [
            m["id"] for m in reversed(messages) if m.get("threadId") == found_thread
        ]
        return ThreadInfo(id=found_thread, message_ids=message_ids)

    def get_raw_message(self, message_id: str) -> str:
        """
        Fetch the full raw transport content of a message.

        Raises:
            MailError: If the message cannot be fetched or has no raw body
        """
        try:
            message = (
                self._users()
                .messages()
                .get(userId=self._user_id, id=message_id, format="raw")
                .execute()
            )
        except HttpError as e:
            raise MailError(
                f"Could not fetch message {message_id}: {e}", _status_of(e)
            ) from e

        raw = message.get("raw")
        if not raw:
            raise MailError(f"Message {message_id} has no raw content")
        return _decode_raw(raw)

    def send(self, draft: EmailDraft) -> SentMessage:
        """
        Send a message, into `draft.thread_id` when set.

        Raises:
            MailError: If the send call fails
        """
        body: dict[str, str] = {"raw": draft.encode()}
        if draft.thread_id:
            body["threadId"] = draft.thread_id
        try:
            sent = (
                self._users()
                .messages()
                .send(userId=self._user_id, body=body)
                .execute()
            )
        except HttpError as e:
            raise MailError(f"Send failed: {e}", _status_of(e)) from e
        return SentMessage(id=sent.get("id", ""), thread_id=sent.get("threadId", ""))

    def send_via_draft(self, draft: EmailDraft) -> SentMessage:
        """
        Create a draft, then send it.

        The draft-send response always carries the resulting thread ID.

        Raises:
            MailError: If either call fails or no thread ID comes back
        """
        drafts = self._users().drafts()
        try:
            created = drafts.create(
                userId=self._user_id, body={"message": {"raw": draft.encode()}}
            ).execute()
            logger.debug("Created draft %s", created.get("id"))
            sent = drafts.send(
                userId=self._user_id, body={"id": created["id"]}
            ).execute()
        except HttpError as e:
            raise MailError(f"Draft send failed: {e}", _status_of(e)) from e
        except KeyError as e:
            raise MailError("Draft creation returned no draft ID") from e

        thread_id = sent.get("threadId")
        if not thread_id:
            raise MailError("Draft send returned no thread ID")
        return SentMessage(id=sent.get("id", ""), thread_id=thread_id)
