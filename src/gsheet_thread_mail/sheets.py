"""
Spreadsheet reading and HTML rendering of the daily update.

SheetFetcher reads display-formatted cells (what a person sees in the
sheet, not raw numbers/dates) through the Sheets v4 API.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Any

from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

NO_COMMENT = "(no comment)"

_RANGE_RE = re.compile(r"^\$?([A-Z]+)\$?\d*:\$?([A-Z]+)\$?\d*$", re.IGNORECASE)

# Sheets answers 400 "Unable to parse range" for a missing tab
_MISSING_STATUSES = {400, 404}


class SheetError(Exception):
    """Raised when the spreadsheet cannot be read for reasons other than
    a missing tab or empty range."""


def column_index(letters: str) -> int:
    """
    Convert a column letter to a zero-based index.

    Example:
        >>> column_index("A"), column_index("C"), column_index("AA")
        (0, 2, 26)
    """
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def range_width(a1_range: str) -> int | None:
    """Number of columns spanned by an A1 range, or None if unknown."""
    match = _RANGE_RE.match(a1_range.strip())
    if match is None:
        return None
    start, end = (column_index(g) for g in match.groups())
    return end - start + 1 if end >= start else None


def _quote_sheet(name: str) -> str:
    return "'" + name.replace("'", "''") + "'"


def placeholder_row(reason: str) -> list[str]:
    """A single-cell row marking missing data in the rendered table."""
    return [f"(no data: {reason})"]


@dataclass
class SheetFetcher:
    """
    Reads the tracker table and latest form comment.

    fetch() never raises for a missing tab or empty range: it returns a
    placeholder so the email still goes out with degraded content.
    """

    service: Any
    spreadsheet_id: str
    data_sheet: str = "Daily Tracker"
    form_sheet: str = "Form Responses 1"
    data_range: str = "A1:D33"
    comment_column: str = "C"

    def _get_values(self, a1: str) -> list[list[str]] | None:
        """Return formatted values, or None if the sheet doesn't exist."""
        try:
            response = (
                self.service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    range=a1,
                    valueRenderOption="FORMATTED_VALUE",
                )
                .execute()
            )
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            if status in _MISSING_STATUSES:
                return None
            raise SheetError(f"Could not read {a1}: {e}") from e
        return [[str(cell) for cell in row] for row in response.get("values", [])]

    def fetch_rows(self) -> list[list[str]]:
        """Display values of the data range, each row padded to full width."""
        a1 = f"{_quote_sheet(self.data_sheet)}!{self.data_range}"
        values = self._get_values(a1)
        if values is None:
            logger.warning(
                "Sheet '%s' not found. Please check the sheet name.",
                self.data_sheet,
            )
            return [placeholder_row(f"sheet '{self.data_sheet}' not found")]
        if not any(any(cell for cell in row) for row in values):
            logger.warning("Range %s is empty", a1)
            return [placeholder_row(f"range {self.data_range} is empty")]

        width = range_width(self.data_range) or max(len(row) for row in values)
        return [row + [""] * (width - len(row)) for row in values]

    def fetch_comment(self) -> str:
        """Comment from the last submitted form row."""
        values = self._get_values(_quote_sheet(self.form_sheet))
        if values is None:
            logger.warning(
                "Sheet '%s' not found. Please check the sheet name.",
                self.form_sheet,
            )
            return NO_COMMENT
        if not values:
            return NO_COMMENT

        # Trailing empty rows are not returned, so the last row is the
        # most recent submission.
        last_row = values[-1]
        index = column_index(self.comment_column)
        comment = last_row[index].strip() if index < len(last_row) else ""
        return comment or NO_COMMENT

    def fetch(self) -> tuple[str, list[list[str]]]:
        """Return (comment, rows)."""
        return self.fetch_comment(), self.fetch_rows()


def render_html_body(comment: str, rows: list[list[str]], title: str) -> str:
    """
    Render the comment and table as an HTML email body.

    Rows alternate between light grey and white; every cell gets a thin
    border so the grid reads clearly in mail clients.
    """
    parts = [
        f"<p><b>Comment:</b> {html.escape(comment)}</p>",
        f"<h2>{html.escape(title)}</h2>",
        '<table style="border-collapse: collapse;">',
    ]
    for row_index, row in enumerate(rows):
        background = "#f0f0f0" if row_index % 2 == 0 else "#ffffff"
        parts.append(f'<tr style="background-color: {background};">')
        for cell in row:
            parts.append(
                '<td style="border: 1px solid #cccccc; padding: 8px;">'
                f"{html.escape(cell)}</td>"
            )
        parts.append("</tr>")
    parts.append("</table>")
    return "".join(parts)
