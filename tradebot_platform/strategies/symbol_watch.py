#!/usr/bin/env python3
"""
SYMBOL WATCH STRATEGY
=====================
Reference strategy that places no orders.

Each tick:
    1. Reload the symbols file (unreadable or invalid file = tick failure)
    2. Report symbols added / removed since the previous tick (IMPORTANT)
    3. Emit a heartbeat line (ALL)

Useful for exercising the supervisor, the notification levels and the
/symbols commands end to end before plugging in a trading strategy.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from notifications.delivery import deliver
from tradebot_platform.core.bot_state import NotificationLevel, SharedBotState
from tradebot_platform.core.errors import NotificationDeliveryError
from tradebot_platform.strategies.base import TradingStrategy
from tradebot_platform.strategies.symbol_config import SymbolConfig, SymbolConfigStore

logger = logging.getLogger("STRATEGY.SYMBOL_WATCH")


class SymbolWatchStrategy(TradingStrategy):

    def __init__(self, symbols_path: str, interval_seconds: float):
        self.store = SymbolConfigStore(symbols_path)
        self.interval_seconds = interval_seconds

        # Fail construction early on a broken file
        self.symbols: Dict[str, SymbolConfig] = {
            s.symbol: s for s in self.store.load_symbols()
        }
        self.tick_count = 0
        self.last_tick_at: Optional[datetime] = None

        logger.info(
            f"SymbolWatchStrategy init | symbols={len(self.symbols)} | "
            f"interval={interval_seconds}s | file={symbols_path}"
        )

    @classmethod
    def from_config(cls, config) -> "SymbolWatchStrategy":
        return cls(config.symbols_config_path, config.strategy_interval_seconds)

    @classmethod
    def create(cls) -> "SymbolWatchStrategy":
        from tradebot_platform.core.config import Config
        return cls.from_config(Config())

    # ================================================================
    # ENGINE CONTRACT
    # ================================================================

    def get_interval_seconds(self) -> float:
        return self.interval_seconds

    def get_config_path(self) -> Optional[str]:
        return str(self.store.path)

    def execute(self, bot_state: SharedBotState, notifier, chat_id) -> None:
        current = {s.symbol: s for s in self.store.load_symbols()}
        added = sorted(set(current) - set(self.symbols))
        removed = sorted(set(self.symbols) - set(current))
        self.symbols = current
        self.tick_count += 1
        self.last_tick_at = datetime.now()

        level = bot_state.snapshot().notification_level
        if added or removed:
            lines = ["Symbol configuration changed"]
            lines += [f"+ {name}" for name in added]
            lines += [f"- {name}" for name in removed]
            self._notify(notifier, chat_id, NotificationLevel.IMPORTANT, level, "\n".join(lines))

        self._notify(
            notifier, chat_id, NotificationLevel.ALL, level,
            f"Tick {self.tick_count}: watching {len(current)} symbol(s)",
        )

    def get_status(self) -> str:
        last = self.last_tick_at.strftime("%Y-%m-%d %H:%M:%S") if self.last_tick_at else "never"
        names = ", ".join(sorted(self.symbols)) or "none"
        return (
            f"Strategy: SymbolWatch\n"
            f"Ticks: {self.tick_count} | Last tick: {last}\n"
            f"Interval: {self.interval_seconds}s\n"
            f"Symbols ({len(self.symbols)}): {names}"
        )

    # ================================================================

    @staticmethod
    def _notify(notifier, chat_id, msg_level, current_level, text) -> None:
        # Chat hiccups must not fail the tick
        try:
            deliver(notifier, chat_id, msg_level, current_level, text)
        except NotificationDeliveryError as e:
            logger.warning(f"Notification failed: {e}")
