#!/usr/bin/env python3
"""
TELEGRAM LONG-POLL LOOP
=======================

Feeds getUpdates results to TelegramCommandController and sends each
reply back to the originating chat as HTML.

- Offset advances past every update, handled or not
- Network errors back off exponentially (1s -> 30s)
- Handler errors never stop the loop
- /status and /update are answered on their own thread
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from notifications.telegram import TelegramNotifier
from tradebot_platform.api.telegram.command_controller import TelegramCommandController

logger = logging.getLogger("TELEGRAM_CONTROL.POLLER")

INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 30.0

# Answered off the poll thread (they block on the supervisor)
BACKGROUND_COMMANDS = frozenset({"status", "update"})


class TelegramPoller:

    def __init__(
        self,
        transport: TelegramNotifier,
        controller: TelegramCommandController,
        poll_timeout: int = 25,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.controller = controller
        self.poll_timeout = poll_timeout
        self._sleep = sleep
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._offset: Optional[int] = None

    def start(self) -> threading.Thread:
        if self._thread and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._poll_loop, name="TelegramPoller", daemon=True)
        self._thread.start()
        logger.info("📡 Telegram polling started")
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        logger.info("📡 Telegram polling stopped")

    @property
    def offset(self) -> Optional[int]:
        return self._offset

    def _poll_loop(self) -> None:
        backoff = INITIAL_BACKOFF
        while not self._stop.is_set():
            try:
                updates = self.transport.get_updates(offset=self._offset, timeout=self.poll_timeout)
            except requests.exceptions.RequestException as e:
                logger.warning(f"Telegram poll network error: {e} (retry in {backoff:.0f}s)")
                self._sleep(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)
                continue

            backoff = INITIAL_BACKOFF
            self.process_updates(updates)

    def process_updates(self, updates) -> int:
        """
        Handle one getUpdates batch. Returns the number of replies sent inline.

        Commands that wait on the supervisor (/status, /update) are answered
        on a worker thread so /stop and /notify are never queued behind them.
        """
        sent = 0
        for update in updates:
            update_id = update.get("update_id")
            if update_id is not None:
                self._offset = int(update_id) + 1

            if command_name(update) in BACKGROUND_COMMANDS:
                threading.Thread(
                    target=self._reply, args=(update,),
                    name=f"TelegramReply-{update_id}", daemon=True,
                ).start()
                continue

            if self._reply(update):
                sent += 1
        return sent

    def _reply(self, update: dict) -> bool:
        reply = self.controller.handle_message(update)
        if not reply:
            return False

        chat_id = ((update.get("message") or {}).get("chat") or {}).get("id")
        if chat_id is None:
            return False
        if self.transport.send_message(chat_id, reply, parse_mode="HTML"):
            return True
        logger.warning(f"Failed to send reply to chat {chat_id}")
        return False


def command_name(update: dict) -> Optional[str]:
    """'/Update@MyBot now' -> 'update'; None for non-command text."""
    text = ((update.get("message") or {}).get("text") or "").strip()
    if not text.startswith("/"):
        return None
    return text.split(" ", 1)[0][1:].split("@", 1)[0].lower()
