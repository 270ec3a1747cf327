#!/usr/bin/env python3
"""
SYMBOL CONFIGURATION STORE
==========================

CRUD over a JSON array of symbol records:

    [
      {"symbol": "BTCUSDT", "entry_amount": 100.0, "exit_amount": 100.0,
       "entry_threshold": 0.5, "exit_threshold": 1.0}
    ]

"name" is accepted as an alias of "symbol" when reading.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Union

from tabulate import tabulate

logger = logging.getLogger(__name__)

TABLE_HEADERS = ["Symbol", "Entry Amount", "Exit Amount", "Entry Threshold", "Exit Threshold"]
ADD_SYMBOL_FORMAT = "SYMBOL,ENTRY_AMOUNT,EXIT_AMOUNT,ENTRY_THRESHOLD,EXIT_THRESHOLD"


class SymbolConfigError(Exception):
    """Raised when the symbols file cannot be read, parsed or written."""
    pass


@dataclass
class SymbolConfig:
    symbol: str
    entry_amount: float
    exit_amount: float
    entry_threshold: float
    exit_threshold: float

    @classmethod
    def from_dict(cls, data: dict) -> "SymbolConfig":
        symbol = data.get("symbol", data.get("name"))
        if not symbol:
            raise SymbolConfigError(f"Symbol record without a name: {data}")
        try:
            return cls(
                symbol=str(symbol),
                entry_amount=float(data["entry_amount"]),
                exit_amount=float(data["exit_amount"]),
                entry_threshold=float(data["entry_threshold"]),
                exit_threshold=float(data["exit_threshold"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SymbolConfigError(f"Invalid record for '{symbol}': {e}")

    @classmethod
    def parse_command(cls, data: str) -> "SymbolConfig":
        """Parse 'SYMBOL,ENTRY_AMOUNT,EXIT_AMOUNT,ENTRY_THRESHOLD,EXIT_THRESHOLD'."""
        parts = [p.strip() for p in data.split(",")]
        if len(parts) != 5 or not parts[0]:
            raise SymbolConfigError(f"Invalid format. Use: /addsymbol {ADD_SYMBOL_FORMAT}")
        try:
            amounts = [float(p) for p in parts[1:]]
        except ValueError:
            raise SymbolConfigError(
                f"Amounts and thresholds must be numbers. Use: /addsymbol {ADD_SYMBOL_FORMAT}"
            )
        return cls(parts[0], *amounts)

    def to_dict(self) -> dict:
        return asdict(self)


class SymbolConfigStore:
    """JSON file backed list of SymbolConfig, serialized per instance."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load_symbols(self) -> List[SymbolConfig]:
        with self._lock:
            return self._read()

    def save_symbols(self, symbols: List[SymbolConfig]) -> None:
        with self._lock:
            self._write(symbols)

    def add_symbol(self, symbol: SymbolConfig) -> None:
        with self._lock:
            symbols = self._read()
            symbols.append(symbol)
            self._write(symbols)
        logger.info(f"Symbol added: {symbol.symbol}")

    def remove_symbol(self, symbol_name: str) -> bool:
        """Remove every record named symbol_name. False if none matched."""
        with self._lock:
            symbols = self._read()
            remaining = [s for s in symbols if s.symbol != symbol_name]
            if len(remaining) == len(symbols):
                return False
            self._write(remaining)
        logger.info(f"Symbol removed: {symbol_name}")
        return True

    def render_table(self) -> str:
        """Render the symbols as a plain-text grid."""
        rows = [
            [
                s.symbol,
                f"{s.entry_amount:.2f}",
                f"{s.exit_amount:.2f}",
                f"{s.entry_threshold:.2f}",
                f"{s.exit_threshold:.2f}",
            ]
            for s in self.load_symbols()
        ]
        return tabulate(rows, headers=TABLE_HEADERS, tablefmt="grid", disable_numparse=True)

    # ------------------------------------------------------------------

    def _read(self) -> List[SymbolConfig]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise SymbolConfigError(
                f"Failed to read symbols configuration. Ensure the file exists. ({e})"
            )
        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            raise SymbolConfigError(f"Failed to parse symbols configuration. ({e})")
        if not isinstance(raw, list):
            raise SymbolConfigError("Failed to parse symbols configuration. (expected a JSON array)")
        return [SymbolConfig.from_dict(item) for item in raw]

    def _write(self, symbols: List[SymbolConfig]) -> None:
        payload = json.dumps([s.to_dict() for s in symbols], indent=2)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            raise SymbolConfigError(f"Failed to update symbols configuration. ({e})")
