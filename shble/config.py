from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from shble.rules.models import AxisRuleText
from shble.wire.encoder import DEFAULT_MAX_CHUNK_SIZE, DEFAULT_MAX_OUTPUT_SIZE
from shble.wire.reassembler import DEFAULT_MAX_TOTAL_CHUNKS

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


@dataclass
class TelegramConfig:
    """Telegram bot connection and authorization settings."""

    bot_token: str
    authorized_users: list[int]


@dataclass
class RunnerConfig:
    """How commands are executed."""

    shell: str = "bash"
    timeout_seconds: int = 60
    cwd: str = "."
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class WireConfig:
    """Chunking limits on both sides of the wire."""

    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    max_total_chunks: int = DEFAULT_MAX_TOTAL_CHUNKS
    max_output_size: int = DEFAULT_MAX_OUTPUT_SIZE


@dataclass
class RulesConfig:
    """Default row and column rules applied to new viewers and on /reset."""

    rows: AxisRuleText = field(default_factory=lambda: AxisRuleText(separators="\\n"))
    columns: AxisRuleText = field(default_factory=AxisRuleText)


@dataclass
class DatabaseConfig:
    """SQLite database location settings."""

    path: str = "data/shble.db"


@dataclass
class DebugConfig:
    """Debug mode settings."""

    enabled: bool = False
    trace: bool = False
    verbose: bool = False


@dataclass
class AppConfig:
    """Top-level application configuration aggregating all subsections."""

    telegram: TelegramConfig
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    wire: WireConfig = field(default_factory=WireConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    debug: DebugConfig = field(default_factory=DebugConfig)

    def is_authorized(self, user_id: int) -> bool:
        """Check whether a Telegram user is allowed to use the bot."""
        return user_id in self.telegram.authorized_users


def _axis_rules(raw: dict, default: AxisRuleText) -> AxisRuleText:
    return AxisRuleText(
        separators=str(raw.get("separators", default.separators) or ""),
        regex_separator=str(raw.get("regex_separator", default.regex_separator) or ""),
        index_filters=str(raw.get("index_filters", default.index_filters) or ""),
        regex_filter=str(raw.get("regex_filter", default.regex_filter) or ""),
        combination=str(raw.get("combination", default.combination) or ""),
    )


def _positive_int(raw: dict, key: str, default: int, section: str) -> int:
    value = raw.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{section}.{key} must be a positive integer")
    return value


def load_config(path: str) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Reads the YAML file at the given path, validates that all required
    fields are present, and constructs a fully populated AppConfig with
    defaults applied for optional fields.

    Args:
        path: Filesystem path to the YAML configuration file.

    Returns:
        A fully populated AppConfig instance.

    Raises:
        ConfigError: If the file does not exist, required fields
            (bot_token, authorized_users) are missing, or a wire limit
            is not a positive integer.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    telegram_raw = raw.get("telegram", {}) or {}
    if not telegram_raw.get("bot_token"):
        raise ConfigError("telegram.bot_token is required")
    if not telegram_raw.get("authorized_users"):
        raise ConfigError("telegram.authorized_users must not be empty")

    # `or {}` fallback handles YAML null values for optional sections
    runner_raw = raw.get("runner", {}) or {}
    wire_raw = raw.get("wire", {}) or {}
    rules_raw = raw.get("rules", {}) or {}
    database_raw = raw.get("database", {}) or {}
    debug_raw = raw.get("debug", {}) or {}

    defaults = RulesConfig()

    logger.debug("Loaded config from %s", path)

    return AppConfig(
        telegram=TelegramConfig(
            bot_token=telegram_raw["bot_token"],
            authorized_users=telegram_raw["authorized_users"],
        ),
        runner=RunnerConfig(
            shell=runner_raw.get("shell", "bash"),
            timeout_seconds=_positive_int(runner_raw, "timeout_seconds", 60, "runner"),
            cwd=runner_raw.get("cwd", "."),
            env=runner_raw.get("env", {}) or {},
        ),
        wire=WireConfig(
            max_chunk_size=_positive_int(
                wire_raw, "max_chunk_size", DEFAULT_MAX_CHUNK_SIZE, "wire"),
            max_total_chunks=_positive_int(
                wire_raw, "max_total_chunks", DEFAULT_MAX_TOTAL_CHUNKS, "wire"),
            max_output_size=_positive_int(
                wire_raw, "max_output_size", DEFAULT_MAX_OUTPUT_SIZE, "wire"),
        ),
        rules=RulesConfig(
            rows=_axis_rules(rules_raw.get("rows", {}) or {}, defaults.rows),
            columns=_axis_rules(rules_raw.get("columns", {}) or {}, defaults.columns),
        ),
        database=DatabaseConfig(
            path=database_raw.get("path", "data/shble.db"),
        ),
        debug=DebugConfig(
            enabled=bool(debug_raw.get("enabled", False)),
            trace=bool(debug_raw.get("trace", False)),
            verbose=bool(debug_raw.get("verbose", False)),
        ),
    )
