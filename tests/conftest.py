"""Shared pytest fixtures for gsheet-thread-mail tests."""

from __future__ import annotations

import pytest

from gsheet_thread_mail.config import Settings
from gsheet_thread_mail.headers import EmailDraft
from gsheet_thread_mail.mail import (
    MailError,
    SentMessage,
    ThreadInfo,
    ThreadNotFoundError,
)
from gsheet_thread_mail.properties import MemoryPropertyStore

RECIPIENT = "inyourface@googlegroups.com"
SUBJECT = "5:00a rise tracking update"

RAW_FIRST_MESSAGE = (
    "Message-ID: <CAFirst123@mail.gmail.com>\r\n"
    "Subject: 5:00a rise tracking update\r\n"
    "To: inyourface@googlegroups.com\r\n"
    "Content-Type: text/html; charset=utf-8\r\n"
    "\r\n"
    "<p><b>Comment:</b> slept in</p>\r\n"
)

RAW_REPLY_MESSAGE = (
    "Message-ID: <CAThird789@mail.gmail.com>\r\n"
    "In-Reply-To: <CASecond456@mail.gmail.com>\r\n"
    "References: <CAFirst123@mail.gmail.com>\r\n"
    " <CASecond456@mail.gmail.com>\r\n"
    "Subject: 5:00a rise tracking update\r\n"
    "\r\n"
    "<p>day three</p>\r\n"
)

RAW_WITHOUT_MESSAGE_ID = (
    "Subject: 5:00a rise tracking update\r\n"
    "To: inyourface@googlegroups.com\r\n"
    "\r\n"
    "Message-ID: <quoted-in-body@example.com>\r\n"
)


class FakeMailProvider:
    """In-memory MailProvider recording everything it sends."""

    def __init__(self) -> None:
        self.threads: dict[str, ThreadInfo] = {}
        self.searchable: dict[str, ThreadInfo] = {}
        self.raw_messages: dict[str, str] = {}
        self.sent: list[EmailDraft] = []
        self.drafted: list[EmailDraft] = []
        self.fail_send = False
        self.fail_draft = False
        self.next_thread_id = "thread-new"
        self.lookups: list[tuple[str, str]] = []

    def add_thread(
        self, thread_id: str, raw_by_id: dict[str, str], searchable_only: bool = False
    ) -> None:
        info = ThreadInfo(id=thread_id, message_ids=list(raw_by_id))
        (self.searchable if searchable_only else self.threads)[thread_id] = info
        self.searchable.setdefault(thread_id, info)
        self.raw_messages.update(raw_by_id)

    def get_thread(self, thread_id: str) -> ThreadInfo:
        self.lookups.append(("direct", thread_id))
        if thread_id not in self.threads:
            raise ThreadNotFoundError(f"Thread not found: {thread_id}", 404)
        return self.threads[thread_id]

    def search_thread(self, thread_id: str, subject: str) -> ThreadInfo:
        self.lookups.append(("search", thread_id))
        if thread_id not in self.searchable:
            raise ThreadNotFoundError(f"No messages found for thread {thread_id}")
        return self.searchable[thread_id]

    def get_raw_message(self, message_id: str) -> str:
        if message_id not in self.raw_messages:
            raise MailError(f"Could not fetch message {message_id}")
        return self.raw_messages[message_id]

    def send(self, draft: EmailDraft) -> SentMessage:
        if self.fail_send:
            raise MailError("Send failed: 503 backend error", 503)
        self.sent.append(draft)
        return SentMessage(id=f"msg-{len(self.sent)}", thread_id=draft.thread_id or "")

    def send_via_draft(self, draft: EmailDraft) -> SentMessage:
        if self.fail_draft:
            raise MailError("Draft send failed: 503 backend error", 503)
        self.drafted.append(draft)
        return SentMessage(id="msg-draft", thread_id=self.next_thread_id)


@pytest.fixture
def provider() -> FakeMailProvider:
    """A fake mail provider with no threads."""
    return FakeMailProvider()


@pytest.fixture
def store() -> MemoryPropertyStore:
    """An empty in-memory property store."""
    return MemoryPropertyStore()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at temporary paths."""
    return Settings(
        spreadsheet_id="spreadsheet-123",
        recipient=RECIPIENT,
        subject=SUBJECT,
        state_path=tmp_path / "properties.db",
        credentials_path=tmp_path / "credentials.json",
        token_path=tmp_path / "token.json",
    )


@pytest.fixture
def sample_rows() -> list[list[str]]:
    """Display-formatted tracker rows."""
    return [
        ["Date", "Kent", "Alex", "Sam"],
        ["10/17/2026", "5:02 AM", "4:58 AM", "✗"],
    ]
