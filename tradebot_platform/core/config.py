#!/usr/bin/env python3
"""
Configuration Management Module

Responsibilities:
- Load environment variables exactly ONCE
- Validate required Telegram secrets with format checks
- Provide structured config access for supervisor, telegram, dashboard
- Secure credential handling (token never logged)

Create ONCE in main.py and pass everywhere.
"""
import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import Optional, Dict, Any, List

from tradebot_platform.core.bot_state import NotificationLevel

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class Config:
    """
    Central configuration object.

    Values come from config_env/primary.env (or an explicit env_path)
    layered under the process environment.
    """

    def __init__(self, env_path: Optional[Path] = None):
        self.env_path: Path = Path(env_path) if env_path else (PROJECT_ROOT / "config_env" / "primary.env")
        self._load_env()
        self._load_values()
        self._validate()

    # ------------------------------------------------------------------
    # ENV LOADING
    # ------------------------------------------------------------------

    def _load_env(self) -> None:
        """Load environment file with security checks."""
        if not self.env_path.exists():
            raise FileNotFoundError(f".env file not found: {self.env_path}")

        if os.name != 'nt':
            mode = self.env_path.stat().st_mode
            if mode & 0o004:
                logger.warning(
                    "⚠️ SECURITY: Environment file is world-readable. "
                    "Run: chmod 600 %s", self.env_path
                )

        load_dotenv(self.env_path)
        logger.info("Environment configuration loaded successfully")

    # ------------------------------------------------------------------
    # VALUE LOADING
    # ------------------------------------------------------------------

    def _load_values(self) -> None:
        """Load configuration values from environment."""

        # === Telegram ===
        self.telegram_bot_token: Optional[str] = self._strip_comment(os.getenv("TELEGRAM_TOKEN", "")) or None
        self.telegram_chat_id: Optional[str] = self._strip_comment(os.getenv("TELEGRAM_CHAT_ID", "")) or None
        self.telegram_poll_timeout: int = self._bounded("TELEGRAM_POLL_TIMEOUT", "25", int, 1, 50)

        # === Supervisor ===
        self.strategy_interval_seconds: float = self._bounded(
            "STRATEGY_INTERVAL_SECONDS", "60", float, 1, 86400
        )
        self.tick_timeout_seconds: float = self._bounded("TICK_TIMEOUT_SECONDS", "60", float, 1, 3600)
        self.restart_cooldown_seconds: float = self._bounded("RESTART_COOLDOWN_SECONDS", "5", float, 0, 600)
        self.status_request_timeout: float = self._bounded(
            "STATUS_REQUEST_TIMEOUT_SECONDS", "90", float, 1, 3600
        )
        self.default_notification_level: NotificationLevel = self._parse_level(
            os.getenv("DEFAULT_NOTIFICATION_LEVEL", "important")
        )
        self.auto_start: bool = self._parse_bool(os.getenv("AUTO_START", "false"))

        # === Symbols ===
        symbols_path = Path(
            self._strip_comment(os.getenv("SYMBOLS_CONFIG_PATH", "")) or "config_env/symbols.json"
        )
        if not symbols_path.is_absolute():
            symbols_path = PROJECT_ROOT / symbols_path
        self.symbols_config_path: str = str(symbols_path)

        # === Logging ===
        self.log_dir: str = self._strip_comment(os.getenv("LOG_DIR", "logs")) or "logs"
        self.log_level: str = (self._strip_comment(os.getenv("LOG_LEVEL", "INFO")) or "INFO").upper()

        # === Dashboard (optional) ===
        self.dashboard_enabled: bool = self._parse_bool(os.getenv("DASHBOARD_ENABLED", "false"))
        self.dashboard_host: str = self._strip_comment(os.getenv("DASHBOARD_HOST", "127.0.0.1"))
        self.dashboard_port: int = self._parse_port(os.getenv("DASHBOARD_PORT", "8000"))

    # ------------------------------------------------------------------
    # PARSING HELPERS
    # ------------------------------------------------------------------

    def _strip_comment(self, value: str) -> str:
        """Strip comments from config values (everything after #)."""
        if '#' in value:
            return value.split('#')[0].strip()
        return value.strip()

    def _parse_port(self, value: str) -> int:
        """Parse and validate port number, stripping comments."""
        try:
            port = int(self._strip_comment(value))
            if not (1024 <= port <= 65535):
                raise ValueError(f"Port must be between 1024-65535, got: {port}")
            return port
        except ValueError as e:
            raise ConfigValidationError(f"Invalid DASHBOARD_PORT value '{value}': {e}")

    def _bounded(self, key: str, default: str, cast, low, high):
        """Read env var `key` through `cast`, enforcing low <= value <= high."""
        raw = os.getenv(key, default)
        try:
            number = cast(self._strip_comment(raw))
        except ValueError:
            raise ConfigValidationError(f"Invalid {key} value '{raw}': not a number")
        if not (low <= number <= high):
            raise ConfigValidationError(
                f"Invalid {key} value '{raw}': expected {low}..{high}"
            )
        return number

    def _parse_bool(self, value: str) -> bool:
        return self._strip_comment(value).lower() in ("1", "true", "yes", "on")

    def _parse_level(self, value: str) -> NotificationLevel:
        try:
            return NotificationLevel.parse(self._strip_comment(value))
        except ValueError as e:
            raise ConfigValidationError(f"Invalid DEFAULT_NOTIFICATION_LEVEL: {e}")

    # ------------------------------------------------------------------
    # VALIDATION
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        """
        Validates:
        - Telegram credentials presence and chat id format
        - Supervisor timing consistency
        - Symbols file directory writability
        """
        required = {
            "TELEGRAM_TOKEN": self.telegram_bot_token,
            "TELEGRAM_CHAT_ID": self.telegram_chat_id,
        }
        missing = [k for k, v in required.items() if not v]
        if missing:
            raise ConfigValidationError(f"Missing required config values: {missing}")

        if ":" not in self.telegram_bot_token:
            raise ConfigValidationError(
                "TELEGRAM_TOKEN appears invalid. Expected '<bot_id>:<secret>'"
            )

        try:
            int(self.telegram_chat_id)
        except ValueError:
            raise ConfigValidationError(
                f"TELEGRAM_CHAT_ID must be numeric, got: {self.telegram_chat_id}"
            )

        if self.status_request_timeout <= self.tick_timeout_seconds:
            logger.warning(
                "⚠️ STATUS_REQUEST_TIMEOUT_SECONDS (%s) <= TICK_TIMEOUT_SECONDS (%s). "
                "Status requests issued during a slow tick may time out.",
                self.status_request_timeout, self.tick_timeout_seconds,
            )

        symbols_dir = os.path.dirname(self.symbols_config_path) or "."
        try:
            os.makedirs(symbols_dir, exist_ok=True)
        except OSError as e:
            raise ConfigValidationError(
                f"Cannot create SYMBOLS_CONFIG_PATH directory: {symbols_dir} - {e}"
            )
        if not os.access(symbols_dir, os.W_OK):
            raise ConfigValidationError(
                f"SYMBOLS_CONFIG_PATH directory not writable: {symbols_dir}"
            )

        logger.info("✅ Configuration validated successfully")

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------

    def get_telegram_config(self) -> Dict[str, Any]:
        """
        Get Telegram configuration.

        ⚠️ WARNING: Contains bot token. Handle securely.
        """
        return {
            "bot_token": self.telegram_bot_token,
            "chat_id": int(self.telegram_chat_id),
            "poll_timeout": self.telegram_poll_timeout,
        }

    def get_supervisor_config(self) -> Dict[str, Any]:
        return {
            "tick_timeout": self.tick_timeout_seconds,
            "restart_cooldown": self.restart_cooldown_seconds,
        }

    def get_dashboard_config(self) -> Dict[str, Any]:
        return {
            "enabled": self.dashboard_enabled,
            "host": self.dashboard_host,
            "port": self.dashboard_port,
        }

    def get_telegram_allowed_users(self) -> List[int]:
        """Get list of allowed Telegram user IDs (empty = chat owner only)."""
        users = self._strip_comment(os.getenv("TELEGRAM_ALLOWED_USERS", ""))
        result = []

        for u in users.split(","):
            u = u.strip()
            if u.isdigit():
                result.append(int(u))
            elif u:
                logger.warning(
                    "⚠️ Invalid user ID in TELEGRAM_ALLOWED_USERS: '%s' (not numeric)",
                    u
                )

        return result

    def get_config_summary(self) -> Dict[str, Any]:
        """Configuration summary for diagnostics (token masked)."""
        return {
            "telegram": {
                "token": self._mask_string(self.telegram_bot_token),
                "chat_id": self.telegram_chat_id,
                "poll_timeout": self.telegram_poll_timeout,
            },
            "supervisor": {
                "strategy_interval_seconds": self.strategy_interval_seconds,
                "tick_timeout_seconds": self.tick_timeout_seconds,
                "restart_cooldown_seconds": self.restart_cooldown_seconds,
                "status_request_timeout": self.status_request_timeout,
                "default_notification_level": self.default_notification_level.value,
                "auto_start": self.auto_start,
            },
            "symbols_config_path": self.symbols_config_path,
            "dashboard": self.get_dashboard_config(),
        }

    def _mask_string(self, value: Optional[str]) -> str:
        """Mask sensitive string for safe logging."""
        if not value:
            return "***MISSING***"
        if len(value) <= 4:
            return "***"
        return f"{value[:2]}***{value[-2:]}"
