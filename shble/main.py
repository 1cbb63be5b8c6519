from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from telegram import BotCommand
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
)

from shble.config import load_config
from shble.database import Database
from shble.log_setup import setup_logging
from shble.registry import ConnectionRegistry
from shble.runner import CommandRunner
from shble.telegram.handlers import (
    RULE_COMMANDS,
    handle_history,
    handle_reset,
    handle_rule,
    handle_rules,
    handle_run,
    handle_start,
    handle_stop,
    handle_text_message,
    handle_unknown_command,
)
from shble.telegram.messages import BOT_COMMANDS

logger = logging.getLogger(__name__)


def build_app(config_path: str, debug: bool = False, trace: bool = False, verbose: bool = False) -> Application:
    """Build and configure the Telegram bot application."""
    config = load_config(config_path)

    if debug:
        config.debug.enabled = True
    if trace:
        config.debug.trace = True
    if verbose:
        config.debug.verbose = True

    app = Application.builder().token(config.telegram.bot_token).build()

    db = Database(config.database.path)
    runner = CommandRunner(
        shell=config.runner.shell,
        timeout=config.runner.timeout_seconds,
        cwd=config.runner.cwd,
        env=config.runner.env,
    )
    registry = ConnectionRegistry(wire=config.wire, rules=config.rules)

    app.bot_data["config"] = config
    app.bot_data["db"] = db
    app.bot_data["runner"] = runner
    app.bot_data["registry"] = registry

    # Command handlers
    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("stop", handle_stop))
    app.add_handler(CommandHandler("run", handle_run))
    app.add_handler(CommandHandler(list(RULE_COMMANDS), handle_rule))
    app.add_handler(CommandHandler("rules", handle_rules))
    app.add_handler(CommandHandler("reset", handle_reset))
    app.add_handler(CommandHandler("history", handle_history))

    # Text handler registered after commands so they take priority
    app.add_handler(
        MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text_message)
    )

    # Catch-all for unknown /commands so the bot never silently ignores
    app.add_handler(MessageHandler(filters.COMMAND, handle_unknown_command))

    logger.debug("App built with %d handler groups", len(app.handlers))

    return app


async def _on_startup(app: Application) -> None:
    """Run one-time initialization tasks after the application starts."""
    db = app.bot_data["db"]
    await db.initialize()
    lost = await db.mark_running_lost()
    if lost:
        logger.info("Marked %d interrupted runs as lost on startup", lost)

    await app.bot.set_my_commands(
        [BotCommand(cmd, desc) for cmd, desc in BOT_COMMANDS]
    )


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="shble: shell output as tables over Telegram")
    parser.add_argument("config", nargs="?", default="config.yaml",
                        help="Path to YAML config file (default: config.yaml)")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug mode (verbose logging)")
    parser.add_argument("--trace", action="store_true",
                        help="Enable trace mode (writes trace file to debug/)")
    parser.add_argument("--verbose", action="store_true",
                        help="With --trace, also send trace output to terminal")
    return parser.parse_args()


async def main() -> None:
    """Entry point for the shble Telegram bot."""
    args = _parse_args()
    root_logger = setup_logging(
        debug=args.debug, trace=args.trace, verbose=args.verbose
    )

    app = build_app(args.config, debug=args.debug, trace=args.trace, verbose=args.verbose)

    root_logger.info("Starting shble bot...")
    await app.initialize()
    await _on_startup(app)
    await app.start()
    await app.updater.start_polling()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    root_logger.info("Bot is running. Press Ctrl+C to stop.")
    await stop_event.wait()

    # Second Ctrl+C during shutdown → force exit immediately
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.remove_signal_handler(sig)

    root_logger.info("Shutting down...")
    await app.updater.stop()
    await app.stop()
    registry = app.bot_data["registry"]
    await registry.close_all()
    db = app.bot_data["db"]
    await db.close()
    await app.shutdown()
    root_logger.info("Bye.")


def cli() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
