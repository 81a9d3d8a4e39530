"""Tests for MCP server tools.

Tests the 4 MCP tools exposed by server.py:
- send_update
- preview_update
- get_thread_state
- set_thread_id

Uses mocking to avoid real Google API calls.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from gsheet_thread_mail.continuity import SendResult, ThreadState


def _tool(name: str):
    """Return the undecorated tool function."""
    from gsheet_thread_mail import server

    tool = getattr(server, name)
    return getattr(tool, "fn", tool)


class TestSendUpdate:
    """Tests for send_update() tool."""

    @pytest.mark.asyncio
    @patch("gsheet_thread_mail.server.send_daily_update")
    async def test_reports_result(self, mock_send):
        mock_send.return_value = SendResult(
            ok=True,
            action="replied",
            thread_id="thread-1",
            state=ThreadState("thread-1"),
        )

        result = await _tool("send_update")()

        assert result == {
            "ok": True,
            "action": "replied",
            "thread_id": "thread-1",
            "errors": [],
        }

    @pytest.mark.asyncio
    @patch("gsheet_thread_mail.server.send_daily_update")
    async def test_reports_early_failure(self, mock_send):
        """A run that failed before delivery is reported, not raised."""
        mock_send.return_value = None

        result = await _tool("send_update")()

        assert result["ok"] is False
        assert result["action"] == "failed"
        assert result["errors"]


class TestPreviewUpdate:
    @pytest.mark.asyncio
    @patch("gsheet_thread_mail.server.render_update")
    @patch("gsheet_thread_mail.server.build_fetcher")
    @patch("gsheet_thread_mail.server.load_settings")
    async def test_returns_html(self, mock_settings, mock_fetcher, mock_render):
        mock_render.return_value = "<p>hi</p>"

        result = await _tool("preview_update")()

        assert result == "<p>hi</p>"
        mock_render.assert_called_once_with(
            mock_settings.return_value, mock_fetcher.return_value
        )


class TestThreadStateTools:
    """Tests for get_thread_state() and set_thread_id() tools."""

    @pytest.mark.asyncio
    @patch("gsheet_thread_mail.server._get_thread_state")
    @patch("gsheet_thread_mail.server.load_settings", MagicMock())
    async def test_get_thread_state(self, mock_state):
        mock_state.return_value = ThreadState("thread-2", "thread-1")

        result = await _tool("get_thread_state")()

        assert result == {
            "thread_id": "thread-2",
            "last_known_thread_id": "thread-1",
        }

    @pytest.mark.asyncio
    @patch("gsheet_thread_mail.server.set_thread_id_manually")
    @patch("gsheet_thread_mail.server.load_settings")
    async def test_set_thread_id(self, mock_settings, mock_set):
        mock_set.return_value = ThreadState("FMfcgz", "thread-1")

        result = await _tool("set_thread_id")("FMfcgz")

        assert result["thread_id"] == "FMfcgz"
        mock_set.assert_called_once_with(mock_settings.return_value, "FMfcgz")
