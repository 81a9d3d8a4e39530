"""Tests for sheets.py - spreadsheet fetching and HTML rendering."""

from __future__ import annotations

from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from gsheet_thread_mail.sheets import (
    NO_COMMENT,
    SheetError,
    SheetFetcher,
    column_index,
    range_width,
    render_html_body,
)


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": str(status)}), b"error")


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def fetcher(service) -> SheetFetcher:
    return SheetFetcher(service=service, spreadsheet_id="sheet-1")


def _values(service):
    return service.spreadsheets().values().get()


class TestColumnHelpers:
    @pytest.mark.parametrize(
        "letters, expected", [("A", 0), ("c", 2), ("Z", 25), ("AA", 26)]
    )
    def test_column_index(self, letters, expected):
        assert column_index(letters) == expected

    @pytest.mark.parametrize(
        "a1, expected",
        [("A1:D33", 4), ("B:B", 1), ("$A$1:$C$9", 3), ("D1:A3", None), ("A1", None)],
    )
    def test_range_width(self, a1, expected):
        assert range_width(a1) == expected


class TestFetchRows:
    """Tests for SheetFetcher.fetch_rows()."""

    def test_requests_formatted_values(self, fetcher, service):
        """Display values are requested, not raw typed values."""
        _values(service).execute.return_value = {"values": [["a"]]}

        fetcher.fetch_rows()

        service.spreadsheets().values().get.assert_called_with(
            spreadsheetId="sheet-1",
            range="'Daily Tracker'!A1:D33",
            valueRenderOption="FORMATTED_VALUE",
        )

    def test_pads_short_rows(self, fetcher, service, sample_rows):
        _values(service).execute.return_value = {
            "values": [sample_rows[0], ["10/18/2026", "5:00 AM"]]
        }

        rows = fetcher.fetch_rows()

        assert rows[1] == ["10/18/2026", "5:00 AM", "", ""]
        assert all(len(row) == 4 for row in rows)

    def test_missing_sheet_placeholder(self, fetcher, service):
        """A missing tab yields a marked placeholder, not an exception."""
        _values(service).execute.side_effect = _http_error(400)

        rows = fetcher.fetch_rows()

        assert rows == [["(no data: sheet 'Daily Tracker' not found)"]]

    @pytest.mark.parametrize("response", [{}, {"values": [["", ""]]}])
    def test_empty_range_placeholder(self, fetcher, service, response):
        _values(service).execute.return_value = response

        rows = fetcher.fetch_rows()

        assert rows == [["(no data: range A1:D33 is empty)"]]

    def test_other_errors_raise(self, fetcher, service):
        _values(service).execute.side_effect = _http_error(403)

        with pytest.raises(SheetError):
            fetcher.fetch_rows()

    def test_quotes_sheet_names(self, service):
        fetcher = SheetFetcher(service, "sheet-1", data_sheet="Kent's Tracker")
        _values(service).execute.return_value = {"values": [["a"]]}

        fetcher.fetch_rows()

        kwargs = service.spreadsheets().values().get.call_args.kwargs
        assert kwargs["range"] == "'Kent''s Tracker'!A1:D33"


class TestFetchComment:
    """Tests for SheetFetcher.fetch_comment()."""

    def test_last_row_comment_column(self, fetcher, service):
        _values(service).execute.return_value = {
            "values": [
                ["Timestamp", "Name", "Comment"],
                ["10/16/2026 5:01:00", "Kent", "early"],
                ["10/17/2026 6:15:00", "Kent", "slept in"],
            ]
        }

        assert fetcher.fetch_comment() == "slept in"

    def test_short_last_row(self, fetcher, service):
        """A submission without a comment cell gives the placeholder."""
        _values(service).execute.return_value = {
            "values": [["Timestamp", "Name", "Comment"], ["10/17/2026", "Kent"]]
        }

        assert fetcher.fetch_comment() == NO_COMMENT

    def test_missing_form_sheet(self, fetcher, service):
        _values(service).execute.side_effect = _http_error(400)

        assert fetcher.fetch_comment() == NO_COMMENT

    def test_custom_column(self, service):
        fetcher = SheetFetcher(service, "sheet-1", comment_column="B")
        _values(service).execute.return_value = {"values": [["t", "note"]]}

        assert fetcher.fetch_comment() == "note"


class TestFetch:
    def test_returns_comment_and_rows(self, fetcher, service):
        _values(service).execute.side_effect = [
            {"values": [["t", "n", "slept in"]]},
            {"values": [["Date", "Kent", "Alex", "Sam"]]},
        ]

        comment, rows = fetcher.fetch()

        assert comment == "slept in"
        assert rows == [["Date", "Kent", "Alex", "Sam"]]


class TestRenderHtmlBody:
    """Tests for render_html_body()."""

    def test_comment_and_title(self, sample_rows):
        html = render_html_body("slept in", sample_rows, "5:00a Rise Tracker")
        assert html.startswith("<p><b>Comment:</b> slept in</p>")
        assert "<h2>5:00a Rise Tracker</h2>" in html

    def test_alternating_row_colors(self, sample_rows):
        html = render_html_body("c", sample_rows + [["x"]], "t")
        assert html.count("#f0f0f0") == 2
        assert html.count("#ffffff") == 1
        assert html.index("#f0f0f0") < html.index("#ffffff")

    def test_one_cell_per_value(self, sample_rows):
        html = render_html_body("c", sample_rows, "t")
        assert html.count("<td ") == 8
        assert html.count("<tr ") == 2

    def test_escapes_cell_text(self):
        html = render_html_body("<b>late</b>", [["a < b & c"]], "t")
        assert "&lt;b&gt;late&lt;/b&gt;" in html
        assert "a &lt; b &amp; c" in html
