#!/usr/bin/env python3
"""
Test Configuration

Tests:
- Defaults and inline comment stripping
- Required Telegram values and format checks
- Range validation
- Accessors and token masking
"""

import os

import pytest

from tradebot_platform.core.bot_state import NotificationLevel
from tradebot_platform.core.config import Config, ConfigValidationError

MANAGED_PREFIXES = (
    "TELEGRAM_", "SYMBOLS_", "STRATEGY_", "TICK_", "RESTART_", "STATUS_",
    "DEFAULT_NOTIFICATION", "AUTO_START", "LOG_", "DASHBOARD_",
)


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    """Isolate os.environ: load_dotenv writes into it and never overrides."""
    env = {k: v for k, v in os.environ.items() if not k.startswith(MANAGED_PREFIXES)}
    monkeypatch.setattr(os, "environ", env)
    return env


@pytest.fixture
def write_env(tmp_path):
    def _write(**values):
        values.setdefault("TELEGRAM_TOKEN", "123456:ABC-secret")
        values.setdefault("TELEGRAM_CHAT_ID", "987654")
        values.setdefault("SYMBOLS_CONFIG_PATH", str(tmp_path / "cfg" / "symbols.json"))
        path = tmp_path / "test.env"
        path.write_text("".join(f"{k}={v}\n" for k, v in values.items()))
        path.chmod(0o600)
        return path
    return _write


class TestConfigLoading:

    def test_missing_env_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(env_path=tmp_path / "absent.env")

    def test_defaults(self, write_env, tmp_path):
        config = Config(env_path=write_env())

        assert config.telegram_poll_timeout == 25
        assert config.strategy_interval_seconds == 60.0
        assert config.tick_timeout_seconds == 60.0
        assert config.restart_cooldown_seconds == 5.0
        assert config.status_request_timeout == 90.0
        assert config.default_notification_level is NotificationLevel.IMPORTANT
        assert config.auto_start is False
        assert config.log_dir == "logs"
        assert config.log_level == "INFO"
        assert config.dashboard_enabled is False
        assert config.dashboard_port == 8000
        # Symbols directory is created during validation
        assert (tmp_path / "cfg").is_dir()

    def test_inline_comments_and_overrides(self, write_env):
        config = Config(env_path=write_env(
            DEFAULT_NOTIFICATION_LEVEL="critical   # quiet nights",
            STRATEGY_INTERVAL_SECONDS="15",
            AUTO_START="true",
            DASHBOARD_ENABLED="yes",
            DASHBOARD_PORT="9001",
        ))

        assert config.default_notification_level is NotificationLevel.CRITICAL
        assert config.strategy_interval_seconds == 15.0
        assert config.auto_start is True
        assert config.dashboard_enabled is True
        assert config.dashboard_port == 9001

    def test_env_path_accepts_str(self, write_env):
        config = Config(env_path=str(write_env()))
        assert config.telegram_chat_id == "987654"


class TestConfigValidation:

    def test_missing_token(self, write_env):
        with pytest.raises(ConfigValidationError, match="TELEGRAM_TOKEN"):
            Config(env_path=write_env(TELEGRAM_TOKEN=""))

    def test_malformed_token(self, write_env):
        with pytest.raises(ConfigValidationError, match="appears invalid"):
            Config(env_path=write_env(TELEGRAM_TOKEN="no-colon"))

    def test_non_numeric_chat_id(self, write_env):
        with pytest.raises(ConfigValidationError, match="must be numeric"):
            Config(env_path=write_env(TELEGRAM_CHAT_ID="@mychannel"))

    def test_negative_group_chat_id_is_valid(self, write_env):
        config = Config(env_path=write_env(TELEGRAM_CHAT_ID="-100123456"))
        assert config.get_telegram_config()["chat_id"] == -100123456

    @pytest.mark.parametrize("key,value", [
        ("STRATEGY_INTERVAL_SECONDS", "0"),
        ("TICK_TIMEOUT_SECONDS", "abc"),
        ("RESTART_COOLDOWN_SECONDS", "-1"),
        ("TELEGRAM_POLL_TIMEOUT", "90"),
        ("DASHBOARD_PORT", "80"),
        ("DEFAULT_NOTIFICATION_LEVEL", "loud"),
    ])
    def test_out_of_range_values(self, write_env, key, value):
        with pytest.raises(ConfigValidationError):
            Config(env_path=write_env(**{key: value}))


class TestConfigAccessors:

    def test_supervisor_and_dashboard_config(self, write_env):
        config = Config(env_path=write_env(TICK_TIMEOUT_SECONDS="30", RESTART_COOLDOWN_SECONDS="2"))

        assert config.get_supervisor_config() == {"tick_timeout": 30.0, "restart_cooldown": 2.0}
        assert config.get_dashboard_config() == {"enabled": False, "host": "127.0.0.1", "port": 8000}

    def test_allowed_users_skips_invalid(self, write_env):
        config = Config(env_path=write_env(TELEGRAM_ALLOWED_USERS="11, 22,abc,"))
        assert config.get_telegram_allowed_users() == [11, 22]

    def test_summary_masks_token(self, write_env):
        summary = Config(env_path=write_env()).get_config_summary()

        assert "ABC-secret" not in str(summary)
        assert summary["telegram"]["chat_id"] == "987654"
