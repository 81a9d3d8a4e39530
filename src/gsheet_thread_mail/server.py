"""
gsheet-thread-mail MCP Server

Exposes the daily update workflow to MCP clients.

TOOLS (4 total):
- send_update() - Fetch the sheet and deliver into the ongoing thread
- preview_update() - Render the HTML body without sending
- get_thread_state() - Current and archived thread IDs
- set_thread_id(thread_id) - Repair a lost thread ID
"""

from __future__ import annotations

import asyncio
from typing_extensions import TypedDict

from fastmcp import FastMCP

from .config import load_settings
from .update import (
    build_fetcher,
    get_thread_state as _get_thread_state,
    render_update,
    send_daily_update,
    set_thread_id_manually,
)

mcp = FastMCP("gsheet-thread-mail")


# ========== Response Type Definitions ==========


class ThreadStateInfo(TypedDict):
    """Persisted conversation pointer."""

    thread_id: str | None
    last_known_thread_id: str | None


class SendOutcome(TypedDict):
    """Result of a send_update call."""

    ok: bool
    action: str
    thread_id: str | None
    errors: list[str]


def _state_dict(state) -> ThreadStateInfo:
    return {
        "thread_id": state.thread_id,
        "last_known_thread_id": state.last_known_thread_id,
    }


# ========== MCP Tools ==========


@mcp.tool
async def send_update() -> SendOutcome:
    """
    Fetch the spreadsheet and send today's update.

    Replies into the stored thread when possible; otherwise starts a new
    thread and remembers it.

    Returns:
        Dict with 'ok', 'action' ("replied", "replied_plain", "created" or
        "failed"), the resulting 'thread_id' and any per-tier 'errors'.
    """
    result = await asyncio.to_thread(send_daily_update)
    if result is None:
        return {
            "ok": False,
            "action": "failed",
            "thread_id": None,
            "errors": ["run failed before delivery; see server log"],
        }
    return {
        "ok": result.ok,
        "action": result.action,
        "thread_id": result.thread_id,
        "errors": result.errors,
    }


@mcp.tool
async def preview_update() -> str:
    """
    Render today's update without sending it.

    Returns:
        The HTML email body.
    """
    settings = load_settings()

    def _render() -> str:
        return render_update(settings, build_fetcher(settings))

    return await asyncio.to_thread(_render)


@mcp.tool
async def get_thread_state() -> ThreadStateInfo:
    """
    Get the stored thread state.

    Returns:
        Dict with 'thread_id' (current conversation, or null) and
        'last_known_thread_id' (most recently replaced one, or null).
    """
    settings = load_settings()
    state = await asyncio.to_thread(_get_thread_state, settings)
    return _state_dict(state)


@mcp.tool
async def set_thread_id(thread_id: str) -> ThreadStateInfo:
    """
    Point future updates at an existing conversation.

    Args:
        thread_id: Conversation ID, e.g. the last segment of its Gmail URL.

    Returns:
        The updated thread state.
    """
    settings = load_settings()
    state = await asyncio.to_thread(set_thread_id_manually, settings, thread_id)
    return _state_dict(state)
