"""Thread-continuity manager.

Keeps successive daily updates in one email conversation. Each run:

1. loads the persisted thread ID (may be absent)
2. tries delivery strategies in order until one succeeds:
   - HeaderReply: find the thread (direct lookup, then search), pull the
     Message-ID/References of its latest message out of the raw headers
     and send with explicit In-Reply-To/References headers
   - PlainReply: thread found but no Message-ID could be extracted; send
     into the provider thread without threading headers
   - NewThread: draft-then-send a fresh message and remember its thread
3. persists state only after a successful send

A reply leaves the stored thread ID untouched. A new thread replaces it,
archiving the previous ID under the "last known" key. If every strategy
fails the store is left exactly as it was at entry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from .config import DEFAULT_LAST_KNOWN_KEY, DEFAULT_THREAD_KEY
from .headers import (
    EmailDraft,
    build_references,
    extract_header,
    extract_message_id,
)
from .mail import MailError, MailProvider, ThreadInfo
from .properties import PropertyStore

logger = logging.getLogger(__name__)

Action = Literal["replied", "replied_plain", "created", "failed"]


# ========== State ==========


@dataclass(frozen=True)
class ThreadState:
    """The persisted conversation pointer."""

    thread_id: str | None = None
    last_known_thread_id: str | None = None

    @property
    def has_thread(self) -> bool:
        return bool(self.thread_id)

    def replaced_by(self, new_thread_id: str) -> ThreadState:
        """State after switching to a new thread; the old ID is archived."""
        archived = self.thread_id or self.last_known_thread_id
        return ThreadState(thread_id=new_thread_id, last_known_thread_id=archived)


def load_state(
    store: PropertyStore,
    thread_key: str = DEFAULT_THREAD_KEY,
    last_known_key: str = DEFAULT_LAST_KNOWN_KEY,
) -> ThreadState:
    """Read the thread state from the property store."""
    return ThreadState(
        thread_id=store.get(thread_key) or None,
        last_known_thread_id=store.get(last_known_key) or None,
    )


def save_state(
    store: PropertyStore,
    before: ThreadState,
    after: ThreadState,
    thread_key: str = DEFAULT_THREAD_KEY,
    last_known_key: str = DEFAULT_LAST_KNOWN_KEY,
) -> None:
    """
    Write the keys that changed in one batch, archive first.

    Keys are never deleted: a None in `after` leaves the stored value.
    """
    changes: dict[str, str] = {}
    if (
        after.last_known_thread_id
        and after.last_known_thread_id != before.last_known_thread_id
    ):
        changes[last_known_key] = after.last_known_thread_id
    if after.thread_id and after.thread_id != before.thread_id:
        changes[thread_key] = after.thread_id
    if changes:
        store.set_many(changes)


# ========== Results ==========


@dataclass
class StrategyResult:
    """Outcome of one delivery tier."""

    ok: bool
    action: Action = "failed"
    state: ThreadState | None = None
    error: str | None = None
    skipped: bool = False

    @classmethod
    def failure(cls, error: str) -> StrategyResult:
        return cls(ok=False, error=error)

    @classmethod
    def skip(cls, reason: str) -> StrategyResult:
        """The tier does not apply to this run."""
        return cls(ok=False, error=reason, skipped=True)


@dataclass
class SendResult:
    """Outcome of a whole deliver() call."""

    ok: bool
    action: Action
    thread_id: str | None
    state: ThreadState
    errors: list[str] = field(default_factory=list)


# ========== Thread lookup ==========

ThreadLookup = Callable[[MailProvider, str, str], ThreadInfo]


def lookup_direct(provider: MailProvider, thread_id: str, subject: str) -> ThreadInfo:
    """Look the thread up by ID."""
    return provider.get_thread(thread_id)


def lookup_search(provider: MailProvider, thread_id: str, subject: str) -> ThreadInfo:
    """Find the thread through a search keyed on its ID."""
    return provider.search_thread(thread_id, subject)


DEFAULT_LOOKUPS: tuple[ThreadLookup, ...] = (lookup_direct, lookup_search)


@dataclass
class DeliveryContext:
    """
    Per-run scratch space shared by the strategies.

    The thread lookup runs at most once; its result and whether header
    extraction failed are kept here for the later tiers.
    """

    provider: MailProvider
    state: ThreadState
    recipient: str
    subject: str
    body: str
    lookups: Sequence[ThreadLookup] = DEFAULT_LOOKUPS
    thread: ThreadInfo | None = None
    extraction_failed: bool = False
    _resolved: bool = False

    def draft(self, **kwargs) -> EmailDraft:
        return EmailDraft(
            recipient=self.recipient,
            subject=self.subject,
            html_body=self.body,
            **kwargs,
        )

    def resolve_thread(self) -> ThreadInfo | None:
        """Run the lookup tiers once; None if the thread is unreachable."""
        if self._resolved:
            return self.thread
        self._resolved = True

        thread_id = self.state.thread_id
        if not thread_id:
            return None

        for lookup in self.lookups:
            try:
                self.thread = lookup(self.provider, thread_id, self.subject)
            except MailError as e:
                logger.info("%s missed thread %s: %s", lookup.__name__, thread_id, e)
                continue
            except Exception as e:
                logger.warning(
                    "%s failed for thread %s: %s", lookup.__name__, thread_id, e
                )
                continue
            logger.debug("%s found thread %s", lookup.__name__, self.thread.id)
            return self.thread

        logger.warning("Thread not found: %s", thread_id)
        return None


# ========== Strategies ==========


class HeaderReply:
    """Reply with explicit In-Reply-To/References headers.

    Addressing the configured recipient with explicit headers (rather
    than replying to the last sender) keeps delivery going to the
    distribution list.
    """

    name = "header_reply"

    def attempt(self, ctx: DeliveryContext) -> StrategyResult:
        if not ctx.state.has_thread:
            return StrategyResult.skip("no stored thread")

        thread = ctx.resolve_thread()
        if thread is None or thread.latest_message_id is None:
            return StrategyResult.failure(f"thread {ctx.state.thread_id} not found")

        try:
            raw = ctx.provider.get_raw_message(thread.latest_message_id)
        except MailError as e:
            ctx.extraction_failed = True
            return StrategyResult.failure(f"could not read latest message: {e}")

        message_id = extract_message_id(raw)
        if message_id is None:
            ctx.extraction_failed = True
            logger.warning(
                "Message-ID not found in message %s", thread.latest_message_id
            )
            return StrategyResult.failure("Message-ID not found in raw headers")

        references = build_references(extract_header(raw, "References"), message_id)
        draft = ctx.draft(
            in_reply_to=message_id,
            references=references.split(),
            thread_id=thread.id,
        )
        try:
            ctx.provider.send(draft)
        except MailError as e:
            return StrategyResult.failure(f"reply send failed: {e}")

        logger.info("Replied to existing thread: %s", ctx.state.thread_id)
        return StrategyResult(ok=True, action="replied", state=ctx.state)


class PlainReply:
    """Reply into the provider thread without threading headers.

    Only used when the thread exists but its Message-ID could not be
    recovered. The message is still addressed to the configured
    recipient; some mail clients may show it outside the conversation.
    """

    name = "plain_reply"

    def attempt(self, ctx: DeliveryContext) -> StrategyResult:
        if ctx.thread is None or not ctx.extraction_failed:
            return StrategyResult.skip("not applicable")

        try:
            ctx.provider.send(ctx.draft(thread_id=ctx.thread.id))
        except MailError as e:
            return StrategyResult.failure(f"plain reply send failed: {e}")

        logger.warning(
            "Replied to thread %s without threading headers", ctx.state.thread_id
        )
        return StrategyResult(ok=True, action="replied_plain", state=ctx.state)


class NewThread:
    """Start a new conversation via draft-then-send."""

    name = "new_thread"

    def attempt(self, ctx: DeliveryContext) -> StrategyResult:
        if ctx.state.has_thread:
            logger.info("Starting a new thread to replace %s", ctx.state.thread_id)
        else:
            logger.info("No stored thread ID; starting the first thread")

        try:
            sent = ctx.provider.send_via_draft(ctx.draft())
        except MailError as e:
            return StrategyResult.failure(f"new thread send failed: {e}")

        if ctx.state.has_thread:
            logger.info("Created new thread: %s", sent.thread_id)
        else:
            logger.info("Created new thread: %s (first thread)", sent.thread_id)
        return StrategyResult(
            ok=True, action="created", state=ctx.state.replaced_by(sent.thread_id)
        )


DEFAULT_STRATEGIES = (HeaderReply(), PlainReply(), NewThread())


# ========== Manager ==========


class ThreadContinuityManager:
    """
    Delivers HTML bodies into a single ongoing conversation.

    Args:
        provider: Mail backend
        store: Property store holding the thread state
        thread_key: Property key of the current thread ID
        last_known_key: Property key of the archived thread ID
        strategies: Delivery tiers, tried in order
        lookups: Thread lookup tiers, tried in order
    """

    def __init__(
        self,
        provider: MailProvider,
        store: PropertyStore,
        thread_key: str = DEFAULT_THREAD_KEY,
        last_known_key: str = DEFAULT_LAST_KNOWN_KEY,
        strategies: Sequence = DEFAULT_STRATEGIES,
        lookups: Sequence[ThreadLookup] = DEFAULT_LOOKUPS,
    ) -> None:
        self.provider = provider
        self.store = store
        self.thread_key = thread_key
        self.last_known_key = last_known_key
        self.strategies = list(strategies)
        self.lookups = tuple(lookups)

    def load_state(self) -> ThreadState:
        return load_state(self.store, self.thread_key, self.last_known_key)

    def deliver(self, body: str, recipient: str, subject: str) -> SendResult:
        """
        Send `body` as the next message of the ongoing conversation.

        Raises:
            ValueError: If body or recipient is empty
        """
        if not body or not body.strip():
            raise ValueError("Email body must not be empty")
        if not recipient:
            raise ValueError("Recipient must not be empty")

        state = self.load_state()
        ctx = DeliveryContext(
            provider=self.provider,
            state=state,
            recipient=recipient,
            subject=subject,
            body=body,
            lookups=self.lookups,
        )

        errors: list[str] = []
        for strategy in self.strategies:
            try:
                result = strategy.attempt(ctx)
            except Exception as e:
                result = StrategyResult.failure(f"unexpected error: {e}")

            if result.ok:
                new_state = result.state or state
                try:
                    save_state(
                        self.store,
                        state,
                        new_state,
                        self.thread_key,
                        self.last_known_key,
                    )
                except Exception as e:
                    error = f"{strategy.name}: message sent but state not saved: {e}"
                    logger.error(error)
                    return SendResult(
                        ok=False,
                        action=result.action,
                        thread_id=new_state.thread_id,
                        state=state,
                        errors=[*errors, error],
                    )
                return SendResult(
                    ok=True,
                    action=result.action,
                    thread_id=new_state.thread_id,
                    state=new_state,
                    errors=errors,
                )

            if result.skipped:
                logger.debug("%s skipped: %s", strategy.name, result.error)
                continue
            logger.warning("%s failed: %s", strategy.name, result.error)
            errors.append(f"{strategy.name}: {result.error}")

        logger.error("All delivery strategies failed: %s", "; ".join(errors))
        return SendResult(
            ok=False,
            action="failed",
            thread_id=state.thread_id,
            state=state,
            errors=errors,
        )


def with_thread_id(state: ThreadState, thread_id: str) -> ThreadState:
    """State after an operator points the manager at `thread_id`."""
    if thread_id == state.thread_id:
        return state
    return state.replaced_by(thread_id)
