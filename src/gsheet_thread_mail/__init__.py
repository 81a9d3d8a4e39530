"""gsheet-thread-mail - Spreadsheet updates delivered into one email thread.

Features:
- Reads a display-formatted cell range and the latest form comment
- Replies into the remembered Gmail thread with explicit threading headers
- Self-heals to a new thread when the remembered one disappears

Usage:
    gsheet-thread-mail            # Send today's update (default)
    gsheet-thread-mail preview    # Render without sending
    gsheet-thread-mail status     # Show stored thread IDs
    gsheet-thread-mail serve      # Run the MCP server
"""

from .cli import main
from .continuity import SendResult, ThreadContinuityManager, ThreadState

__all__ = ["SendResult", "ThreadContinuityManager", "ThreadState", "main"]
