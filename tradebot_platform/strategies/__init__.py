"""
Trading Bot - Strategy Layer
============================

1. **base** - TradingStrategy capability interface used by the supervisor
2. **symbol_config** - JSON symbol list behind /symbols, /addsymbol, /removesymbol
3. **symbol_watch** - Reference strategy (no orders) for end-to-end checks
"""

from .base import TradingStrategy
from .symbol_config import SymbolConfig, SymbolConfigError, SymbolConfigStore
from .symbol_watch import SymbolWatchStrategy

__all__ = [
    "TradingStrategy",
    "SymbolConfig",
    "SymbolConfigError",
    "SymbolConfigStore",
    "SymbolWatchStrategy",
]
