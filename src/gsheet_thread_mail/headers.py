"""
Threading header helpers and the outbound email draft.

The mail provider does not expose Message-ID or References as
structured fields, so they are pattern-matched out of the raw
transport content of the message being replied to.
"""

from __future__ import annotations

import base64
import re
import warnings
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

# Header block ends at the first empty line (RFC 5322 §2.1)
_HEADER_END_RE = re.compile(r"\r?\n\r?\n")

# Continuation lines start with whitespace
_FOLD_RE = re.compile(r"\r?\n[ \t]+")

_BRACKETED_ID_RE = re.compile(r"<([^<>\s]+)>")


def _header_block(raw: str) -> str:
    match = _HEADER_END_RE.search(raw)
    block = raw[: match.start()] if match else raw
    return _FOLD_RE.sub(" ", block)


def extract_header(raw: str, name: str) -> str | None:
    """
    Extract a header value from raw message content.

    Only the header block is searched, so a quoted header inside the
    body never matches. Folded values are unfolded.

    Args:
        raw: Full raw message (headers + body)
        name: Header name, matched case-insensitively

    Returns:
        Stripped header value, or None if absent or empty

    Example:
        >>> extract_header("Subject: Hi\\r\\n\\r\\nbody", "subject")
        'Hi'
    """
    if not raw:
        return None
    pattern = re.compile(
        rf"^{re.escape(name)}[ \t]*:[ \t]*(.*)$", re.IGNORECASE | re.MULTILINE
    )
    match = pattern.search(_header_block(raw))
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def extract_message_id(raw: str) -> str | None:
    """
    Extract the Message-ID of a raw message, without angle brackets.

    Returns:
        The message identifier, or None if no usable Message-ID exists
    """
    value = extract_header(raw, "Message-ID")
    if value is None:
        return None
    match = _BRACKETED_ID_RE.search(value)
    if match:
        return match.group(1)
    value = value.strip("<>").strip()
    if not value or any(c.isspace() for c in value):
        return None
    return value


def bracket(message_id: str) -> str:
    """Wrap a message identifier in exactly one pair of angle brackets."""
    return f"<{message_id.strip().strip('<>')}>"


def parse_references(value: str | None) -> list[str]:
    """
    Split a References header into bracketed message identifiers.

    Bare (unbracketed) identifiers are tolerated and bracketed.
    """
    if not value:
        return []
    found = _BRACKETED_ID_RE.findall(value)
    if found:
        return [bracket(ref) for ref in found]
    return [bracket(ref) for ref in value.split()]


def build_references(prior: str | None, message_id: str) -> str:
    """
    Build the outbound References header.

    Prior references come first, followed by the bracketed identifier
    of the message being replied to.

    Example:
        >>> build_references(None, "abc@mail.example.com")
        '<abc@mail.example.com>'
        >>> build_references("<a@x>", "b@x")
        '<a@x> <b@x>'
    """
    refs = parse_references(prior)
    current = bracket(message_id)
    if current not in refs:
        refs.append(current)
    return " ".join(refs)


def html_to_text(html: str) -> str:
    """Plain-text rendering of an HTML body for the text/plain part."""
    from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(separator="\n", strip=True)
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()


@dataclass
class EmailDraft:
    """
    An outbound email, built fresh for every run.

    Threading headers are only emitted when set. `thread_id` is the
    provider's conversation handle and is not part of the message.
    """

    recipient: str
    subject: str
    html_body: str
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)
    thread_id: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        """Threading headers as they will appear on the wire."""
        headers: dict[str, str] = {}
        if self.in_reply_to:
            headers["In-Reply-To"] = bracket(self.in_reply_to)
        if self.references:
            headers["References"] = " ".join(self.references)
        return headers

    def to_mime(self) -> MIMEMultipart:
        """Build a multipart/alternative message (text + HTML)."""
        mime = MIMEMultipart("alternative")
        mime["To"] = self.recipient
        mime["Subject"] = self.subject
        for name, value in self.headers.items():
            mime[name] = value
        mime.attach(MIMEText(html_to_text(self.html_body), "plain", "utf-8"))
        mime.attach(MIMEText(self.html_body, "html", "utf-8"))
        return mime

    def encode(self) -> str:
        """Return the message as base64url, as the Gmail API expects."""
        return base64.urlsafe_b64encode(self.to_mime().as_bytes()).decode("ascii")
