#!/usr/bin/env python3
"""
Test Telegram Command Controller

Tests:
- Authorization (allowed users / owner chat)
- start / stop / status / notify / update replies
- Symbol CRUD commands against a temp JSON file
"""

import json
from unittest.mock import Mock

import pytest

from tradebot_platform.api.telegram.command_controller import TelegramCommandController
from tradebot_platform.core.bot_state import BotState, NotificationLevel, SharedBotState
from tradebot_platform.core.errors import StatusChannelClosed, StatusChannelUnavailable

OWNER = 555


def message(text, user_id=OWNER, chat_id=OWNER):
    return {
        "update_id": 1,
        "message": {"from": {"id": user_id}, "chat": {"id": chat_id}, "text": text},
    }


@pytest.fixture
def symbols_file(tmp_path):
    path = tmp_path / "symbols.json"
    path.write_text(json.dumps([
        {"symbol": "BTCUSDT", "entry_amount": 100, "exit_amount": 100,
         "entry_threshold": 0.5, "exit_threshold": 1.0},
    ]))
    return path


@pytest.fixture
def controller(symbols_file):
    bot_state = SharedBotState(BotState(notification_level=NotificationLevel.IMPORTANT))
    runner = Mock()
    runner.is_alive.return_value = False
    channel = Mock()
    channel.request_status.return_value = "2 symbols watched"
    return TelegramCommandController(
        bot_state,
        runner,
        channel,
        owner_chat_id=OWNER,
        default_symbols_path=str(symbols_file),
        status_timeout=1.0,
    )


class TestAuthorization:

    def test_owner_chat_allowed_by_default(self, controller):
        assert "These commands are supported" in controller.handle_message(message("/help"))

    def test_stranger_ignored(self, controller):
        assert controller.handle_message(message("/startbot", user_id=1, chat_id=1)) is None
        controller.runner.start.assert_not_called()

    def test_allowed_users_list(self, controller):
        controller.allowed_users = {7}
        assert controller.handle_message(message("/help", user_id=7, chat_id=7)) is not None
        assert controller.handle_message(message("/help")) is None

    def test_plain_text_ignored(self, controller):
        assert controller.handle_message(message("hello")) is None

    def test_unknown_command_shows_help(self, controller):
        assert "/addsymbol" in controller.handle_message(message("/bogus"))


class TestLifecycleCommands:

    def test_startbot(self, controller):
        assert controller.handle_message(message("/startbot")) == "Trading bot started!"
        controller.runner.start.assert_called_once()

    def test_start_alias_with_bot_suffix(self, controller):
        assert controller.handle_message(message("/start@my_trading_bot")) == "Trading bot started!"

    def test_startbot_when_running(self, controller):
        controller.bot_state.set_running(True)
        controller.runner.is_alive.return_value = True

        assert controller.handle_message(message("/startbot")) == "Bot is already running."
        controller.runner.start.assert_not_called()

    def test_stopbot(self, controller):
        controller.runner.stop.return_value = True
        assert controller.handle_message(message("/stopbot")) == "Trading bot stopped."

        controller.runner.stop.return_value = False
        assert controller.handle_message(message("/stop")) == "Bot is not running."

    def test_handler_crash_is_reported(self, controller):
        controller.runner.start.side_effect = RuntimeError("boom")
        assert controller.handle_message(message("/startbot")) == "❌ Error processing command"


class TestStatusCommands:

    def test_status_when_stopped(self, controller):
        reply = controller.handle_message(message("/status"))
        assert reply == "Bot is stopped.\nNotification level: Important"
        controller.status_channel.request_status.assert_not_called()

    def test_status_when_running(self, controller):
        controller.bot_state.set_running(True)
        reply = controller.handle_message(message("/status"))
        assert reply == "Bot is running.\nNotification level: Important\n\n2 symbols watched"
        controller.status_channel.request_status.assert_called_once_with(timeout=1.0)

    def test_status_retrieval_failure(self, controller):
        controller.bot_state.set_running(True)
        controller.status_channel.request_status.side_effect = StatusChannelClosed()
        reply = controller.handle_message(message("/status"))
        assert reply == "Bot is running, but failed to retrieve status: Bot runner dropped status channel"

    def test_update(self, controller):
        assert controller.handle_message(message("/update")) == "Current status:\n2 symbols watched"

    def test_update_without_supervisor(self, controller):
        controller.status_channel.request_status.side_effect = StatusChannelUnavailable()
        reply = controller.handle_message(message("/update"))
        assert reply == "Unable to retrieve status from running bot: Bot runner unavailable"

    def test_status_text_is_html_escaped(self, controller):
        controller.status_channel.request_status.return_value = "<P&L>"
        assert controller.handle_message(message("/update")) == "Current status:\n&lt;P&amp;L&gt;"


class TestNotifyCommand:

    @pytest.mark.parametrize("arg,reply,level", [
        ("all", "Notification level set to All", NotificationLevel.ALL),
        ("CRITICAL", "Notification level set to Critical", NotificationLevel.CRITICAL),
        ("none", "Notifications disabled", NotificationLevel.NONE),
    ])
    def test_set_level(self, controller, arg, reply, level):
        assert controller.handle_message(message(f"/notify {arg}")) == reply
        assert controller.bot_state.notification_level is level

    @pytest.mark.parametrize("text", ["/notify", "/notify loud"])
    def test_invalid_level(self, controller, text):
        reply = controller.handle_message(message(text))
        assert reply == "Invalid level. Use: all, important, critical, or none"
        assert controller.bot_state.notification_level is NotificationLevel.IMPORTANT


class TestSymbolCommands:

    def test_symbols_table(self, controller):
        reply = controller.handle_message(message("/symbols"))
        assert reply.startswith("<pre>") and reply.endswith("</pre>")
        assert "BTCUSDT" in reply
        assert "100.00" in reply

    def test_config_path_from_state_wins(self, controller, tmp_path):
        other = tmp_path / "other.json"
        other.write_text("[]")
        controller.bot_state.update(config_path=str(other))

        reply = controller.handle_message(message("/symbols"))

        assert "BTCUSDT" not in reply

    def test_no_config_path(self, controller):
        controller.default_symbols_path = None
        reply = controller.handle_message(message("/symbols"))
        assert reply == "Configuration path is not set. Use /startbot first to initialize."

    def test_missing_file(self, controller, symbols_file):
        symbols_file.unlink()
        reply = controller.handle_message(message("/symbols"))
        assert reply.startswith("Failed to read symbols configuration. Ensure the file exists.")

    def test_addsymbol(self, controller, symbols_file):
        reply = controller.handle_message(message("/addsymbol ETHUSDT,50,50,0.75,1.5"))

        assert reply == "Symbol 'ETHUSDT' added successfully."
        saved = json.loads(symbols_file.read_text())
        assert [s["symbol"] for s in saved] == ["BTCUSDT", "ETHUSDT"]
        assert saved[1]["entry_threshold"] == 0.75

    def test_addsymbol_bad_format(self, controller, symbols_file):
        reply = controller.handle_message(message("/addsymbol ETHUSDT,50"))
        assert reply.startswith("Invalid format. Use: /addsymbol")
        assert len(json.loads(symbols_file.read_text())) == 1

    def test_addsymbol_non_numeric(self, controller):
        reply = controller.handle_message(message("/addsymbol ETHUSDT,a,b,c,d"))
        assert reply.startswith("Amounts and thresholds must be numbers")

    def test_removesymbol(self, controller, symbols_file):
        reply = controller.handle_message(message("/removesymbol BTCUSDT"))
        assert reply == "Symbol 'BTCUSDT' removed successfully."
        assert json.loads(symbols_file.read_text()) == []

    def test_removesymbol_not_found(self, controller):
        reply = controller.handle_message(message("/removesymbol DOGE"))
        assert reply == "Symbol 'DOGE' not found."

    def test_removesymbol_without_name(self, controller):
        assert controller.handle_message(message("/removesymbol")) == "Usage: /removesymbol SYMBOL"
