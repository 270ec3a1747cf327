#!/usr/bin/env python3
"""
Test Telegram transport and long-poll loop

Tests:
- send_message success / API error / HTTP error / network error
- get_updates offset handling and error behaviour
- TelegramPoller offset tracking, replies and backoff
"""

import json
import threading
import time
from unittest.mock import Mock

import pytest
import requests

from notifications.telegram import TelegramNotifier
from tradebot_platform.api.telegram.poller import MAX_BACKOFF, TelegramPoller, command_name


def response(status_code=200, payload=None, text=""):
    resp = Mock()
    resp.status_code = status_code
    resp.text = text
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def notifier(tmp_path):
    n = TelegramNotifier("123:abc", message_log_path=tmp_path / "logs" / "messages.jsonl")
    n.session = Mock()
    return n


class TestTelegramNotifier:

    def test_send_message_success_is_logged(self, notifier, tmp_path):
        notifier.session.post.return_value = response(payload={"ok": True, "result": {}})

        assert notifier.send_message(42, "<pre>hi</pre>", parse_mode="HTML") is True

        _, kwargs = notifier.session.post.call_args
        assert kwargs["json"] == {"chat_id": 42, "text": "<pre>hi</pre>", "parse_mode": "HTML"}
        logged = json.loads((tmp_path / "logs" / "messages.jsonl").read_text().strip())
        assert logged["chat_id"] == 42 and logged["message"] == "<pre>hi</pre>"

    def test_send_without_parse_mode(self, notifier):
        notifier.session.post.return_value = response(payload={"ok": True})
        notifier.send_message(1, "plain")
        _, kwargs = notifier.session.post.call_args
        assert "parse_mode" not in kwargs["json"]

    def test_api_error(self, notifier):
        notifier.session.post.return_value = response(payload={"ok": False, "description": "chat not found"})
        assert notifier.send_message(1, "x") is False

    def test_http_error(self, notifier):
        notifier.session.post.return_value = response(status_code=400, text="Bad Request")
        assert notifier.send_message(1, "x") is False

    def test_network_error(self, notifier):
        notifier.session.post.side_effect = requests.exceptions.ConnectionError("down")
        assert notifier.send_message(1, "x") is False

    def test_invalid_json(self, notifier):
        notifier.session.post.return_value = response(payload=ValueError("no json"))
        assert notifier.send_message(1, "x") is False

    def test_get_updates_passes_offset(self, notifier):
        notifier.session.get.return_value = response(payload={"ok": True, "result": [{"update_id": 5}]})

        assert notifier.get_updates(offset=5, timeout=3) == [{"update_id": 5}]
        _, kwargs = notifier.session.get.call_args
        assert kwargs["params"] == {"timeout": 3, "offset": 5}

    def test_get_updates_api_error_is_empty(self, notifier):
        notifier.session.get.return_value = response(payload={"ok": False})
        assert notifier.get_updates() == []

    def test_get_updates_network_error_propagates(self, notifier):
        notifier.session.get.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(requests.exceptions.RequestException):
            notifier.get_updates()


def update(update_id, text, chat_id=10):
    return {
        "update_id": update_id,
        "message": {"from": {"id": chat_id}, "chat": {"id": chat_id}, "text": text},
    }


class TestTelegramPoller:

    def test_process_updates_replies_and_advances_offset(self):
        transport = Mock()
        transport.send_message.return_value = True
        controller = Mock()
        controller.handle_message.side_effect = ["pong", None]

        poller = TelegramPoller(transport, controller)
        sent = poller.process_updates([update(7, "/help"), update(8, "hello")])

        assert sent == 1
        assert poller.offset == 9
        transport.send_message.assert_called_once_with(10, "pong", parse_mode="HTML")

    def test_backoff_on_network_errors(self):
        sleeps = []
        transport = Mock()
        controller = Mock()
        poller = TelegramPoller(transport, controller, sleep=sleeps.append)

        calls = {"n": 0}

        def get_updates(offset=None, timeout=25):
            calls["n"] += 1
            if calls["n"] > 7:
                poller._stop.set()
                return []
            raise requests.exceptions.ConnectionError("down")

        transport.get_updates.side_effect = get_updates
        poller._poll_loop()

        assert sleeps == [1.0, 2.0, 4.0, 8.0, 16.0, MAX_BACKOFF, MAX_BACKOFF]

    def test_start_and_stop(self):
        transport = Mock()
        transport.get_updates.side_effect = lambda offset=None, timeout=25: time.sleep(0.01) or []
        poller = TelegramPoller(transport, Mock(), poll_timeout=1)

        thread = poller.start()
        assert poller.start() is thread
        poller.stop(timeout=2.0)

        assert not thread.is_alive()

    def test_slow_status_does_not_block_stop(self):
        transport = Mock()
        transport.send_message.return_value = True
        release = threading.Event()

        def handle(payload):
            if payload["message"]["text"] == "/update":
                release.wait(timeout=2.0)
                return "Current status:\nidle"
            return "Trading bot stopped."

        controller = Mock()
        controller.handle_message.side_effect = handle
        poller = TelegramPoller(transport, controller)

        started = time.monotonic()
        sent = poller.process_updates([update(1, "/update"), update(2, "/stop")])

        assert time.monotonic() - started < 1.0
        assert sent == 1
        assert poller.offset == 3
        transport.send_message.assert_called_once_with(10, "Trading bot stopped.", parse_mode="HTML")

        release.set()
        deadline = time.monotonic() + 2.0
        while transport.send_message.call_count < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        transport.send_message.assert_called_with(10, "Current status:\nidle", parse_mode="HTML")

    @pytest.mark.parametrize("text, expected", [
        ("/status", "status"),
        ("/Update@TradeBot now", "update"),
        ("hello", None),
    ])
    def test_command_name(self, text, expected):
        assert command_name(update(1, text)) == expected
