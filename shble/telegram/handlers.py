from __future__ import annotations

import html
import logging
import re

from telegram import Update
from telegram.ext import ContextTypes

from shble.errors import ShbleError
from shble.registry import ConnectionRegistry, ViewerSession
from shble.telegram.messages import (
    format_help,
    format_history_entry,
    format_rules,
    format_run_status,
    is_authorized,
)
from shble.telegram.render import TelegramViewer, render_error

logger = logging.getLogger(__name__)

# command -> (axis, AxisRuleText field)
RULE_COMMANDS = {
    "rows": ("rows", "separators"),
    "cols": ("columns", "separators"),
    "rowsplit": ("rows", "regex_separator"),
    "colsplit": ("columns", "regex_separator"),
    "rowfilter": ("rows", "index_filters"),
    "colfilter": ("columns", "index_filters"),
    "rowmatch": ("rows", "regex_filter"),
    "colmatch": ("columns", "regex_filter"),
    "rowmode": ("rows", "combination"),
    "colmode": ("columns", "combination"),
}

_FIELD_LABELS = {
    "separators": "separators",
    "regex_separator": "regex separator",
    "index_filters": "index filters",
    "regex_filter": "regex filter",
    "combination": "combination",
}

_COMMAND_RE = re.compile(r"^/(?P<name>[A-Za-z0-9_]+)(?:@\S+)?\s?(?P<arg>.*)$", re.DOTALL)


def parse_command(text: str) -> tuple[str, str]:
    """Split ``/name[@bot] argument`` into the name and the raw argument.

    The argument keeps its inner and trailing whitespace because separators
    and regexes are whitespace-sensitive.
    """
    match = _COMMAND_RE.match(text or "")
    if match is None:
        return "", text or ""
    return match.group("name").lower(), match.group("arg")


async def _check_auth(update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
    config = context.bot_data["config"]
    if not is_authorized(update.effective_user.id, config.telegram.authorized_users):
        await update.message.reply_text("You are not authorized to use this bot.")
        return False
    return True


def _ensure_session(update: Update, context: ContextTypes.DEFAULT_TYPE) -> ViewerSession:
    registry: ConnectionRegistry = context.bot_data["registry"]
    chat_id = update.effective_chat.id
    session = registry.get(chat_id)
    if session is None:
        session = registry.connect(chat_id, TelegramViewer(context.bot, chat_id))
    return session


async def _report_issues(update: Update, issues: list[ShbleError]) -> None:
    for issue in issues:
        await update.message.reply_text(render_error(issue), parse_mode="HTML")


# --- Connection handlers ---


async def handle_start(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /start by connecting the chat as a viewer and showing help."""
    logger.debug("handle_start user_id=%d", update.effective_user.id)
    if not await _check_auth(update, context):
        return
    _ensure_session(update, context)
    await update.message.reply_text(format_help(), parse_mode="HTML")


async def handle_stop(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /stop by closing the chat's connection.

    Any partially received output is discarded and the chat's rules are
    forgotten.
    """
    logger.debug("handle_stop user_id=%d", update.effective_user.id)
    if not await _check_auth(update, context):
        return
    registry: ConnectionRegistry = context.bot_data["registry"]
    if await registry.disconnect(update.effective_chat.id):
        await update.message.reply_text("Disconnected. Use /start to reconnect.")
    else:
        await update.message.reply_text("Not connected.")


# --- Command execution ---


async def run_command(
    update: Update, context: ContextTypes.DEFAULT_TYPE, command: str
) -> None:
    """Run a command and stream its transformed output to the chat.

    The table goes through the chat's connection (encode, chunk, frame,
    reassemble, decode, render). A status line is sent once the viewer
    has rendered everything.
    """
    chat_id = update.effective_chat.id
    runner = context.bot_data["runner"]
    db = context.bot_data["db"]
    session = _ensure_session(update, context)

    logger.info("chat=%d run %r", chat_id, command)
    run_id = await db.start_run(chat_id, command)
    await update.message.reply_text(
        f"$ <code>{html.escape(command, quote=False)}</code>", parse_mode="HTML"
    )

    result = await runner.run(command)
    table = await session.publish_output(result.output)
    if result.error:
        await session.connection.publish_text(result.error)
    await session.connection.drain()

    n_rows = len(table)
    n_cols = len(table[0]) if table else 0
    await update.message.reply_text(format_run_status(result, n_rows, n_cols))
    await db.finish_run(run_id, result.exit_code, result.status, n_rows, n_cols)


async def handle_run(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /run <command>."""
    logger.debug("handle_run user_id=%d", update.effective_user.id)
    if not await _check_auth(update, context):
        return
    _, command = parse_command(update.message.text)
    if not command.strip():
        await update.message.reply_text("Usage: /run <command>")
        return
    await run_command(update, context, command.strip())


async def handle_text_message(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Run plain text messages as commands."""
    if not await _check_auth(update, context):
        return
    command = (update.message.text or "").strip()
    if not command:
        return
    await run_command(update, context, command)


# --- Rule handlers ---


async def handle_rule(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle every rule-setting command listed in RULE_COMMANDS.

    Stores the raw rule string (an empty argument clears it), reports
    clauses that will be ignored, and re-renders the last output with the
    new rules.
    """
    if not await _check_auth(update, context):
        return
    name, argument = parse_command(update.message.text)
    if name not in RULE_COMMANDS:
        await update.message.reply_text(f"Unknown rule command /{name}.")
        return
    axis_name, field_name = RULE_COMMANDS[name]
    logger.debug("handle_rule %s.%s=%r", axis_name, field_name, argument)

    session = _ensure_session(update, context)
    setattr(session.axis(axis_name), field_name, argument)

    label = f"{axis_name.capitalize()} {_FIELD_LABELS[field_name]}"
    if argument:
        await update.message.reply_text(
            f"{label} set to <code>{html.escape(argument, quote=False)}</code>",
            parse_mode="HTML",
        )
    else:
        await update.message.reply_text(f"{label} cleared.")

    issues: list[ShbleError] = []
    session.compile_rules(issues)
    await _report_issues(update, issues)

    if session.last_output is not None:
        await session.publish_output(session.last_output)


async def handle_rules(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /rules by showing the chat's current rule strings."""
    if not await _check_auth(update, context):
        return
    session = _ensure_session(update, context)
    await update.message.reply_text(
        format_rules(session.rows, session.columns), parse_mode="HTML"
    )


async def handle_reset(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /reset by restoring the configured default rules."""
    if not await _check_auth(update, context):
        return
    registry: ConnectionRegistry = context.bot_data["registry"]
    session = _ensure_session(update, context)
    registry.reset_rules(session)
    await update.message.reply_text("Rules reset to defaults.")
    if session.last_output is not None:
        await session.publish_output(session.last_output)


async def handle_history(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /history by listing the chat's most recent runs."""
    logger.debug("handle_history user_id=%d", update.effective_user.id)
    if not await _check_auth(update, context):
        return
    db = context.bot_data["db"]
    runs = await db.list_runs(update.effective_chat.id)
    if not runs:
        await update.message.reply_text("No runs yet.")
        return
    lines = [format_history_entry(r) for r in runs]
    await update.message.reply_text("\n\n".join(lines), parse_mode="HTML")


async def handle_unknown_command(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Reply to unrecognised /commands instead of ignoring them."""
    if not await _check_auth(update, context):
        return
    name, _ = parse_command(update.message.text)
    await update.message.reply_text(f"Unknown command /{name}. Send /start for help.")
