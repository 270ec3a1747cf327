#!/usr/bin/env python3
"""
STRATEGY CAPABILITY INTERFACE
=============================

The supervisor depends only on this contract:

    create()                 fallible construction (classmethod)
    get_interval_seconds()   tick period, read after each (re)construction
    execute(...)             one unit of work; raise to report failure
    get_status()             side-effect-free status text
    get_config_path()        optional symbols file used by the strategy
"""

from abc import ABC, abstractmethod
from typing import Optional

from tradebot_platform.core.bot_state import SharedBotState


class TradingStrategy(ABC):
    """Base class for strategies run by StrategySupervisor."""

    @classmethod
    @abstractmethod
    def create(cls) -> "TradingStrategy":
        """Build a ready-to-run instance. Any exception is a construction failure."""

    @abstractmethod
    def get_interval_seconds(self) -> float:
        """Seconds between two scheduled executions."""

    @abstractmethod
    def execute(self, bot_state: SharedBotState, notifier, chat_id) -> None:
        """
        Run one tick.

        Args:
            bot_state: Shared run state (read the notification level here)
            notifier: Chat transport, usable with notifications.delivery.deliver
            chat_id: Destination chat for notifications

        Raises:
            Exception: any error is treated as an execution failure and
                triggers one restart cycle
        """

    @abstractmethod
    def get_status(self) -> str:
        """Human-readable status snapshot for /status and /update."""

    def get_config_path(self) -> Optional[str]:
        return None
