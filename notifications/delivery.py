#!/usr/bin/env python3
"""
Notification Delivery
=====================

Level filtering and transport-sized chunking for outbound chat messages.

Chunking rules:
- Lines (with their trailing newline) are packed greedily into a chunk
- A single line longer than the limit is hard-split at the limit
- Concatenating the chunks reproduces the input exactly
- Empty text yields no chunks and no transport call
"""

import html
import logging
from typing import List, Optional

from tradebot_platform.core.bot_state import (
    NotificationLevel,
    SharedBotState,
    level_is_sufficient,
)
from tradebot_platform.core.errors import NotificationDeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_MAX_MESSAGE_LENGTH = 4096
PRE_OPEN = "<pre>"
PRE_CLOSE = "</pre>"
PRE_WRAP_OVERHEAD = len(PRE_OPEN) + len(PRE_CLOSE)
MAX_PAYLOAD_LENGTH = TELEGRAM_MAX_MESSAGE_LENGTH - PRE_WRAP_OVERHEAD


def _split_lines_inclusive(text: str) -> List[str]:
    """Split on newlines, keeping each newline attached to its line."""
    lines = text.split("\n")
    segments = [line + "\n" for line in lines[:-1]]
    if lines[-1]:
        segments.append(lines[-1])
    return segments


def split_message_chunks(message: str, max_len: int = MAX_PAYLOAD_LENGTH) -> List[str]:
    """Split message into ordered chunks of at most max_len characters."""
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got: {max_len}")
    if not message:
        return []

    chunks: List[str] = []
    current = ""

    for segment in _split_lines_inclusive(message):
        if len(current) + len(segment) <= max_len:
            current += segment
            continue

        if current:
            chunks.append(current)
            current = ""

        if len(segment) <= max_len:
            current = segment
            continue

        # Oversized line: hard split, keep the tail open for following lines
        pieces = [segment[i:i + max_len] for i in range(0, len(segment), max_len)]
        chunks.extend(pieces[:-1])
        current = pieces[-1]

    if current:
        chunks.append(current)

    return chunks


def deliver(
    transport,
    chat_id,
    message_level: NotificationLevel,
    current_level: NotificationLevel,
    text: str,
) -> None:
    """
    Send text to chat_id if message_level passes current_level.

    Each chunk goes out as one monospace HTML message, in order. The first
    rejected chunk aborts the delivery with NotificationDeliveryError.
    """
    if not level_is_sufficient(message_level, current_level):
        return
    send_chunks(transport, chat_id, text)


def send_chunks(transport, chat_id, text: str) -> None:
    """Unfiltered half of deliver(): chunk, wrap and send in order."""
    chunks = split_message_chunks(text)
    for index, chunk in enumerate(chunks, start=1):
        mono_message = f"{PRE_OPEN}{html.escape(chunk, quote=False)}{PRE_CLOSE}"
        if not transport.send_message(chat_id, mono_message, parse_mode="HTML"):
            logger.error(f"Failed to send Telegram message chunk {index}/{len(chunks)}")
            raise NotificationDeliveryError(
                f"Telegram error: chunk {index}/{len(chunks)} rejected"
            )


class NotificationDispatcher:
    """
    Best-effort notifier bound to one chat and the shared notification level.

    Transport failures are logged and reported as False, never raised, so a
    flaky chat connection cannot change supervisor state.
    """

    def __init__(self, transport, chat_id, bot_state: SharedBotState):
        self.transport = transport
        self.chat_id = chat_id
        self.bot_state = bot_state

    def notify(
        self,
        level: NotificationLevel,
        text: str,
        current_level: Optional[NotificationLevel] = None,
    ) -> bool:
        if current_level is None:
            current_level = self.bot_state.snapshot().notification_level
        try:
            deliver(self.transport, self.chat_id, level, current_level, text)
            return True
        except NotificationDeliveryError as e:
            logger.warning(f"Notification dropped ({level.value}): {e}")
            return False

    def announce(self, text: str) -> bool:
        """Send regardless of the notification level (supervisor lifecycle)."""
        try:
            send_chunks(self.transport, self.chat_id, text)
            return True
        except NotificationDeliveryError as e:
            logger.warning(f"Lifecycle announcement dropped: {e}")
            return False
