#!/usr/bin/env python3
"""
Telegram Notifier Module
Thin Telegram Bot API transport over HTTP requests
"""

import json
import logging
import time
from pathlib import Path
import requests
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

ChatId = Union[int, str]


class TelegramNotifier:
    """Send and receive Telegram messages using simple HTTP requests"""

    def __init__(
        self,
        bot_token: str,
        message_log_path: Optional[Union[str, Path]] = None,
        timeout: float = 10.0,
    ):
        self.bot_token = bot_token
        self.base_url = f"https://api.telegram.org/bot{bot_token}"
        self.session = requests.Session()
        self.timeout = timeout
        self.is_connected = False
        self._log_path = Path(message_log_path) if message_log_path else None
        if self._log_path is not None:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)

    def test_connection(self) -> bool:
        """Test Telegram bot connection"""
        try:
            response = self.session.get(f"{self.base_url}/getMe", timeout=self.timeout)

            if response.status_code == 200:
                bot_info = response.json()
                if bot_info.get('ok'):
                    logger.info(f"Telegram bot connected successfully: {bot_info['result']['first_name']}")
                    self.is_connected = True
                    return True
                logger.error(f"Telegram bot test failed: {bot_info}")
            else:
                logger.error(f"Telegram bot test failed: HTTP {response.status_code}")
                logger.error(f"Response: {response.text}")

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to test Telegram connection: {e}")

        self.is_connected = False
        return False

    def send_message(
        self,
        chat_id: ChatId,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> bool:
        """Send one message. Returns False on any HTTP, API or network error."""
        data: Dict[str, Any] = {
            'chat_id': chat_id,
            'text': text,
        }
        if parse_mode:
            data['parse_mode'] = parse_mode

        try:
            response = self.session.post(f"{self.base_url}/sendMessage", json=data, timeout=self.timeout)

            if response.status_code == 200:
                response_data = response.json()
                if response_data.get('ok'):
                    logger.debug("Telegram message sent successfully")
                    self._append_message_log(chat_id, text)
                    return True
                logger.error(f"Telegram API error: {response_data}")
                return False

            logger.error(f"Failed to send Telegram message: HTTP {response.status_code}")
            logger.error(f"Response: {response.text}")
            return False

        except requests.exceptions.Timeout:
            logger.error("Telegram message timeout")
            return False
        except requests.exceptions.RequestException as e:
            logger.error(f"Telegram request error: {e}")
            return False
        except ValueError as e:
            logger.error(f"Telegram returned invalid JSON: {e}")
            return False

    def get_updates(self, offset: Optional[int] = None, timeout: int = 25) -> List[Dict[str, Any]]:
        """
        Long-poll for new updates.

        Raises requests.exceptions.RequestException on network failures so
        the poller can back off; API level errors return an empty list.
        """
        params: Dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            params["offset"] = offset

        response = self.session.get(
            f"{self.base_url}/getUpdates",
            params=params,
            timeout=timeout + self.timeout,
        )
        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"getUpdates returned non-JSON body (HTTP {response.status_code})")
            return []

        if not payload.get("ok"):
            logger.warning(f"getUpdates failed: {payload}")
            return []
        return payload.get("result", [])

    def close(self) -> None:
        self.session.close()

    def _append_message_log(self, chat_id: ChatId, message: str) -> None:
        if self._log_path is None:
            return
        try:
            payload = {
                "ts": time.time(),
                "chat_id": chat_id,
                "message": message,
            }
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"Failed to log telegram message: {e}")
