from __future__ import annotations

import html
from datetime import datetime

from shble.rules.models import AxisRuleText
from shble.runner import RunResult

BOT_COMMANDS = [
    ("start", "Connect this chat as a viewer"),
    ("stop", "Disconnect and drop pending output"),
    ("run", "Run a shell command"),
    ("rows", "Row separators (e.g. \\n)"),
    ("cols", "Column separators (e.g. \\s\\t)"),
    ("rowsplit", "Row regex separator"),
    ("colsplit", "Column regex separator"),
    ("rowfilter", "Row index filters (e.g. 1, 3..5, 9..)"),
    ("colfilter", "Column index filters"),
    ("rowmatch", "Row regex filter"),
    ("colmatch", "Column regex filter"),
    ("rowmode", "Combine row filters with and/or"),
    ("colmode", "Combine column filters with and/or"),
    ("rules", "Show current rules"),
    ("reset", "Restore default rules"),
    ("history", "Recent runs"),
]


def is_authorized(user_id: int, authorized_users: list[int]) -> bool:
    """Check whether a user ID is in the list of authorized users."""
    return user_id in authorized_users


def format_help() -> str:
    lines = ["<b>shble</b>: send a command, get its output as a table.", ""]
    lines += [f"/{cmd} — {html.escape(desc, quote=False)}" for cmd, desc in BOT_COMMANDS]
    lines += ["", "Plain text messages are run as commands."]
    return "\n".join(lines)


def format_rules(rows: AxisRuleText, columns: AxisRuleText) -> str:
    """Format both axes' raw rule strings as HTML."""
    parts = []
    for title, axis in (("Rows", rows), ("Columns", columns)):
        parts.append(f"<b>{title}</b>")
        for label, value in axis.describe():
            shown = f"<code>{html.escape(value, quote=False)}</code>" if value else "<i>none</i>"
            parts.append(f"  {label}: {shown}")
    return "\n".join(parts)


def format_run_status(result: RunResult, rows: int, columns: int) -> str:
    if result.timed_out:
        status = "⏱ timed out"
    elif result.exit_code is None and result.signal is None:
        status = "✗ did not start"
    elif result.exit_code == 0:
        status = "✓ exit 0"
    elif result.exit_code is not None:
        status = f"✗ exit {result.exit_code}"
    else:
        status = f"✗ killed by signal {result.signal}"
    return f"{status} · {rows}×{columns}"


def _format_timestamp(raw: str | None) -> str:
    """Format an ISO timestamp as a short human-readable string."""
    if not raw:
        return "?"
    try:
        return datetime.fromisoformat(raw).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return raw


def format_history_entry(entry: dict) -> str:
    """Format one run record from the database as HTML."""
    command = html.escape(entry["command"], quote=False)
    exit_code = entry.get("exit_code")
    exit_part = f" exit {exit_code}" if exit_code is not None else ""
    return (
        f"<code>{command}</code>\n"
        f"{_format_timestamp(entry.get('started_at'))} · {entry['status']}{exit_part}"
    )
