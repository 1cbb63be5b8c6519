# tests/test_config.py
import pytest
import yaml

from shble.config import AppConfig, ConfigError, TelegramConfig, load_config
from shble.wire.encoder import DEFAULT_MAX_CHUNK_SIZE


def _write(tmp_path, data):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump(data))
    return str(config_file)


class TestLoadConfig:
    def test_loads_valid_config(self, tmp_path):
        path = _write(tmp_path, {
            "telegram": {
                "bot_token": "test-token-123",
                "authorized_users": [111, 222],
            },
            "runner": {"shell": "sh", "timeout_seconds": 5, "cwd": "/tmp", "env": {"A": "1"}},
            "wire": {"max_chunk_size": 1024, "max_total_chunks": 16},
            "rules": {
                "rows": {"separators": "\\n", "index_filters": "1.."},
                "columns": {"regex_separator": "\\s+", "combination": "or"},
            },
            "database": {"path": "data/runs.db"},
        })
        config = load_config(path)
        assert config.telegram.bot_token == "test-token-123"
        assert config.telegram.authorized_users == [111, 222]
        assert config.runner.shell == "sh"
        assert config.runner.timeout_seconds == 5
        assert config.runner.env == {"A": "1"}
        assert config.wire.max_chunk_size == 1024
        assert config.wire.max_total_chunks == 16
        assert config.rules.rows.index_filters == "1.."
        assert config.rules.columns.regex_separator == "\\s+"
        assert config.rules.columns.combination == "or"
        assert config.database.path == "data/runs.db"

    def test_defaults_applied(self, tmp_path):
        path = _write(tmp_path, {
            "telegram": {"bot_token": "t", "authorized_users": [1]},
        })
        config = load_config(path)
        assert config.runner.shell == "bash"
        assert config.runner.timeout_seconds == 60
        assert config.wire.max_chunk_size == DEFAULT_MAX_CHUNK_SIZE
        assert config.rules.rows.separators == "\\n"
        assert config.rules.columns.separators == ""
        assert config.database.path == "data/shble.db"
        assert config.debug.enabled is False

    def test_null_sections(self, tmp_path):
        path = _write(tmp_path, {
            "telegram": {"bot_token": "t", "authorized_users": [1]},
            "runner": None,
            "rules": {"rows": None},
        })
        config = load_config(path)
        assert config.runner.shell == "bash"
        assert config.rules.rows.separators == "\\n"

    def test_missing_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/config.yaml")

    def test_missing_bot_token_raises(self, tmp_path):
        path = _write(tmp_path, {"telegram": {"authorized_users": [111]}})
        with pytest.raises(ConfigError, match="bot_token"):
            load_config(path)

    def test_empty_authorized_users_raises(self, tmp_path):
        path = _write(tmp_path, {"telegram": {"bot_token": "t", "authorized_users": []}})
        with pytest.raises(ConfigError, match="authorized_users"):
            load_config(path)

    @pytest.mark.parametrize("value", [0, -1, "big", True])
    def test_invalid_wire_limit_raises(self, tmp_path, value):
        path = _write(tmp_path, {
            "telegram": {"bot_token": "t", "authorized_users": [1]},
            "wire": {"max_chunk_size": value},
        })
        with pytest.raises(ConfigError, match="wire.max_chunk_size"):
            load_config(path)

    def test_empty_file_raises(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        with pytest.raises(ConfigError):
            load_config(str(config_file))


class TestAppConfig:
    def test_is_authorized(self):
        config = AppConfig(telegram=TelegramConfig(bot_token="t", authorized_users=[5]))
        assert config.is_authorized(5)
        assert not config.is_authorized(6)
