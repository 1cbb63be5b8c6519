"""Rendering of decoded tables and texts into Telegram messages."""

from __future__ import annotations

import html
import logging

from telegram import Bot
from telegram.error import TelegramError

from shble.errors import ErrorKind, ShbleError

logger = logging.getLogger(__name__)

TELEGRAM_MAX_LENGTH = 4096
_PRE_OVERHEAD = len("<pre></pre>")
# Escaping can grow a line up to 5x (& -> &amp;), so this keeps every
# escaped line well inside one message and split_message never hard-cuts
# through an entity
MAX_LINE_LENGTH = 800
MAX_CELL_WIDTH = 40
COLUMN_GAP = "  "

_ERROR_LABELS = {
    ErrorKind.USER_RULE: "Rule ignored",
    ErrorKind.PROTOCOL: "Transfer error",
    ErrorKind.DECODE: "Decode error",
    ErrorKind.ENCODING: "Output too large",
}


def split_message(text: str, max_length: int = TELEGRAM_MAX_LENGTH) -> list[str]:
    """Split rendered output into parts that each fit one Telegram message.

    Table lines are the natural cut points: blank lines first, then line
    ends, then spaces, and a hard cut only for a line longer than
    ``max_length``. Only newlines are stripped at a cut, so the leading
    indentation of a table line survives into the next part.

    Returns:
        The parts in order; ``[text]`` when it already fits.
    """
    if not text or len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        split_at = remaining.rfind("\n\n", 0, max_length)

        if split_at == -1:
            split_at = remaining.rfind("\n", 0, max_length)

        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_length)

        if split_at == -1:
            split_at = max_length

        chunks.append(remaining[:split_at].rstrip("\n"))
        remaining = remaining[split_at:].lstrip("\n")

    return chunks if chunks else [""]


def _cell_text(cell: str) -> str:
    flat = cell.replace("\t", " ").replace("\r", "").replace("\n", " ⏎ ")
    if len(flat) > MAX_CELL_WIDTH:
        return flat[: MAX_CELL_WIDTH - 1] + "…"
    return flat


def _clip(line: str) -> str:
    if len(line) > MAX_LINE_LENGTH:
        return line[: MAX_LINE_LENGTH - 1] + "…"
    return line


def format_table(table: list[list[str]]) -> str:
    """Lay out a table as aligned plain text.

    A single-cell table is the raw output and is shown verbatim.
    """
    if len(table) == 1 and len(table[0]) == 1:
        return "\n".join(_clip(line) for line in table[0][0].split("\n"))

    cells = [[_cell_text(cell) for cell in row] for row in table]
    widths: list[int] = []
    for row in cells:
        for i, cell in enumerate(row):
            if i == len(widths):
                widths.append(0)
            widths[i] = max(widths[i], len(cell))

    lines = [
        _clip(COLUMN_GAP.join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
        for row in cells
    ]
    return "\n".join(lines)


def render_pre(text: str) -> list[str]:
    """Escape text and wrap it in ``<pre>`` blocks that each fit a message."""
    escaped = html.escape(text, quote=False)
    return [
        f"<pre>{part}</pre>"
        for part in split_message(escaped, TELEGRAM_MAX_LENGTH - _PRE_OVERHEAD)
    ]


def render_table(table: list[list[str]]) -> list[str]:
    if not table:
        return ["<i>(no rows matched the current rules)</i>"]
    if not any(any(cell.strip() for cell in row) for row in table):
        return ["<i>(no output)</i>"]
    return render_pre(format_table(table))


def render_error(error: ShbleError) -> str:
    label = _ERROR_LABELS[error.kind]
    detail = html.escape(error.detail, quote=False)
    if error.rule is not None:
        return f"⚠️ <b>{label}</b>: <code>{html.escape(error.rule, quote=False)}</code> ({detail})"
    return f"⚠️ <b>{label}</b>: {detail}"


class TelegramViewer:
    """Viewer that renders decoded messages into a Telegram chat."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self.bot = bot
        self.chat_id = chat_id

    async def _send(self, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=text, parse_mode="HTML")
        except TelegramError as exc:
            logger.warning("Failed to send to chat %d: %s", self.chat_id, exc)

    async def show_table(self, message_id: int, table: list[list[str]]) -> None:
        logger.debug(
            "chat=%d message=%d table %dx%d",
            self.chat_id, message_id, len(table), len(table[0]) if table else 0,
        )
        for part in render_table(table):
            await self._send(part)

    async def show_text(self, message_id: int, text: str) -> None:
        if not text:
            return
        for part in render_pre(text):
            await self._send(part)

    async def show_error(self, error: ShbleError) -> None:
        await self._send(render_error(error))
