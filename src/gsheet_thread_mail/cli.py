"""Command-line interface for gsheet-thread-mail.

Provides commands for:
- send: Fetch the sheet and deliver today's update (default)
- preview: Render the update without sending
- status: Show the stored thread state
- set-thread: Manually point future runs at a thread
- auth: Run the Google OAuth consent flow
- serve: Run the MCP server

Usage:
    gsheet-thread-mail               # Send today's update (default)
    gsheet-thread-mail preview       # Print the HTML body
    gsheet-thread-mail status        # Show thread IDs
    gsheet-thread-mail set-thread ID # Repair a lost thread ID
    gsheet-thread-mail auth          # Authorize Gmail + Sheets access
"""

import logging
import sys
from typing import Annotated

import cyclopts

from .config import ConfigError, get_credentials_path, get_token_path, load_settings

app = cyclopts.App(
    name="gsheet-thread-mail",
    help="Send spreadsheet updates into a single ongoing email thread.",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

Verbose = Annotated[
    bool,
    cyclopts.Parameter(name=["--verbose", "-v"], help="Enable debug logging"),
]


def _configure_logging(verbose: bool = False) -> None:
    """Timestamped log lines on stderr, one per step."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # googleapiclient is chatty at DEBUG
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def _load_settings_or_exit():
    try:
        return load_settings()
    except ConfigError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)


def _run_send() -> None:
    from .update import send_daily_update

    settings = _load_settings_or_exit()
    result = send_daily_update(settings)
    if result is None or not result.ok:
        sys.exit(1)


@app.command
def send(verbose: Verbose = False) -> None:
    """
    Fetch the sheet and deliver today's update.

    Replies to the stored thread when it can be found, otherwise starts
    a new thread and remembers it for the next run.
    """
    _configure_logging(verbose)
    _run_send()


@app.command
def preview(verbose: Verbose = False) -> None:
    """Render today's update as HTML and print it without sending."""
    _configure_logging(verbose)

    from .update import build_fetcher, render_update

    settings = _load_settings_or_exit()
    try:
        print(render_update(settings, build_fetcher(settings)))
    except Exception as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)


@app.command
def status(verbose: Verbose = False) -> None:
    """
    Show the stored thread state.

    Displays:
    - Current thread ID
    - Last known (archived) thread ID
    - Property store location
    """
    _configure_logging(verbose)

    from .update import get_thread_state, open_store

    settings = _load_settings_or_exit()
    with open_store(settings) as store:
        created = store.exists()
        state = get_thread_state(settings, store=store)

    print("gsheet-thread-mail Status")
    print("=" * 40)
    print(f"Store:        {settings.state_path}")
    if not created:
        print("              (not created yet)")
    print(f"Recipient:    {settings.recipient}")
    print(f"Subject:      {settings.subject}")
    print(f"Thread:       {state.thread_id or 'None'}")
    print(f"Last known:   {state.last_known_thread_id or 'None'}")

    if not state.has_thread:
        print()
        print("No thread yet. The next send will start one.")


@app.command(name="set-thread")
def set_thread(
    thread_id: Annotated[
        str,
        cyclopts.Parameter(help="Thread ID, e.g. from the Gmail URL"),
    ],
    verbose: Verbose = False,
) -> None:
    """
    Manually set the thread ID used by future runs.

    The previous thread ID is kept as the last known ID.
    """
    _configure_logging(verbose)

    from .update import set_thread_id_manually

    settings = _load_settings_or_exit()
    try:
        state = set_thread_id_manually(settings, thread_id)
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(1)
    print(f"✓ Thread ID set to {state.thread_id}")


@app.command
def auth(verbose: Verbose = False) -> None:
    """
    Authorize Gmail and Sheets access.

    Opens a browser for Google consent and stores the token for
    unattended runs.
    """
    _configure_logging(verbose)

    from .auth import get_credentials

    try:
        get_credentials(get_credentials_path(), get_token_path(), interactive=True)
    except FileNotFoundError as e:
        print(f"\n✗ Not found: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"\n✗ Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"✓ Token saved to {get_token_path()}")


@app.command
def serve(verbose: Verbose = False) -> None:
    """Run the MCP server."""
    _configure_logging(verbose)

    from .server import mcp

    mcp.run()


@app.default
def default_handler(verbose: Verbose = False) -> None:
    """Send today's update (default when no command specified)."""
    _configure_logging(verbose)
    _run_send()


def main() -> None:
    """Entry point for the CLI."""
    app()
