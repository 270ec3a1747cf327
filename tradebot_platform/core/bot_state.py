#!/usr/bin/env python3
"""
SHARED RUN STATE
================

One BotState record shared by the control front ends and the supervisor.

RULES:
- BotState is immutable; writers replace the whole value
- All access goes through SharedBotState (one lock, held only for the copy)
- Strategy ticks and transport calls NEVER run under this lock
- is_running False -> True does NOT start a supervisor (see BotRunner)
- is_running True -> False is the only cooperative stop signal
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class NotificationLevel(Enum):
    """Minimum severity that reaches the user."""
    ALL = "all"              # Send all messages
    IMPORTANT = "important"  # Only important updates and errors
    CRITICAL = "critical"    # Only critical errors and trade executions
    NONE = "none"            # No messages

    @classmethod
    def parse(cls, value: str) -> "NotificationLevel":
        """Parse a user supplied level name (case-insensitive)."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid notification level '{value}'. "
                "Use: all, important, critical, or none"
            )

    @property
    def label(self) -> str:
        return self.name.capitalize()


# Severity rank used by the delivery filter. NONE is only a threshold.
_SEVERITY_RANK = {
    NotificationLevel.ALL: 0,
    NotificationLevel.IMPORTANT: 1,
    NotificationLevel.CRITICAL: 2,
}


def level_is_sufficient(
    msg_level: NotificationLevel,
    current_level: NotificationLevel,
) -> bool:
    """
    Check whether a message of msg_level passes the current_level threshold.

    NONE suppresses everything; CRITICAL passes CRITICAL only; IMPORTANT
    passes CRITICAL and IMPORTANT; ALL passes everything. A message tagged
    NONE is never delivered.
    """
    if current_level is NotificationLevel.NONE or msg_level is NotificationLevel.NONE:
        return False
    return _SEVERITY_RANK[msg_level] >= _SEVERITY_RANK[current_level]


@dataclass(frozen=True)
class BotState:
    """Immutable snapshot of the run state."""
    is_running: bool = False
    notification_level: NotificationLevel = NotificationLevel.IMPORTANT
    config_path: Optional[str] = None
    interval_seconds: Optional[float] = None


class SharedBotState:
    """
    Mutex-guarded holder of the current BotState.

    Readers get a complete snapshot; writers swap the whole value.
    """

    def __init__(self, initial: Optional[BotState] = None):
        self._lock = threading.Lock()
        self._state = initial or BotState()

    def snapshot(self) -> BotState:
        with self._lock:
            return self._state

    def replace(self, state: BotState) -> BotState:
        """Swap in a new state, returning the previous one."""
        with self._lock:
            previous = self._state
            self._state = state
            return previous

    def update(self, **changes) -> BotState:
        """Atomically derive and install a new state from the current one."""
        with self._lock:
            self._state = replace(self._state, **changes)
            return self._state

    def set_running(self, running: bool) -> bool:
        """Set is_running and return its previous value."""
        with self._lock:
            previous = self._state.is_running
            if previous != running:
                self._state = replace(self._state, is_running=running)
            return previous

    def set_notification_level(self, level: NotificationLevel) -> BotState:
        return self.update(notification_level=level)

    @property
    def is_running(self) -> bool:
        return self.snapshot().is_running

    @property
    def notification_level(self) -> NotificationLevel:
        return self.snapshot().notification_level
