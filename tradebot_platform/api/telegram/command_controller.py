"""Telegram Controller - bot lifecycle, status and symbol commands"""

import html
import logging
from typing import Callable, Dict, Iterable, Optional, Tuple

from tradebot_platform.core.bot_state import NotificationLevel, SharedBotState
from tradebot_platform.core.errors import StatusChannelError
from tradebot_platform.services.bot_runner import BotRunner
from tradebot_platform.services.status_channel import StatusRequestChannel
from tradebot_platform.strategies.symbol_config import (
    SymbolConfig,
    SymbolConfigError,
    SymbolConfigStore,
)

logger = logging.getLogger("TELEGRAM_CONTROL")

COMMAND_DESCRIPTIONS = [
    ("help", "display this text."),
    ("startbot", "start the trading bot."),
    ("stopbot", "stop the trading bot."),
    ("status", "check bot status."),
    ("notify", "set notification level (all/important/critical/none)"),
    ("update", "request immediate status update"),
    ("symbols", "display the contents of symbols configuration."),
    ("addsymbol", "add a new symbol to configuration."),
    ("removesymbol", "remove a symbol from configuration."),
]

COMMAND_ALIASES = {
    "start": "startbot",
    "stop": "stopbot",
}


class TelegramCommandController:
    """Handles Telegram messages and returns an HTML reply (or None to stay silent)"""

    def __init__(
        self,
        bot_state: SharedBotState,
        runner: BotRunner,
        status_channel: StatusRequestChannel,
        owner_chat_id: Optional[int] = None,
        allowed_users: Optional[Iterable[int]] = None,
        default_symbols_path: Optional[str] = None,
        status_timeout: Optional[float] = 90.0,
    ):
        self.bot_state = bot_state
        self.runner = runner
        self.status_channel = status_channel
        self.owner_chat_id = owner_chat_id
        self.allowed_users = set(allowed_users or ())
        self.default_symbols_path = default_symbols_path
        self.status_timeout = status_timeout
        self.commands: Dict[str, Callable[[str], str]] = {
            "help": self._cmd_help,
            "startbot": self._cmd_start,
            "stopbot": self._cmd_stop,
            "status": self._cmd_status,
            "notify": self._cmd_notify,
            "update": self._cmd_update,
            "symbols": self._cmd_symbols,
            "addsymbol": self._cmd_add_symbol,
            "removesymbol": self._cmd_remove_symbol,
        }

    def handle_message(self, payload: dict) -> Optional[str]:
        """Main update handler"""
        try:
            message = payload.get("message") or {}
            user_id = (message.get("from") or {}).get("id")
            chat_id = (message.get("chat") or {}).get("id")
            text = (message.get("text") or "").strip()

            if not user_id or not text.startswith("/"):
                return None

            if not self._is_authorized(user_id, chat_id):
                logger.warning(f"Unauthorized user: {user_id}")
                return None

            cmd, args = self._parse_command(text)
            handler = self.commands.get(cmd)
            if handler is None:
                return self._cmd_help("")

            logger.info(f"Command /{cmd} from user {user_id}")
            return handler(args)

        except Exception:
            logger.exception("TelegramController error")
            return "❌ Error processing command"

    def _is_authorized(self, user_id: int, chat_id: Optional[int]) -> bool:
        if self.allowed_users:
            return user_id in self.allowed_users
        return self.owner_chat_id is not None and chat_id == self.owner_chat_id

    @staticmethod
    def _parse_command(text: str) -> Tuple[str, str]:
        head, _, args = text.partition(" ")
        cmd = head[1:].split("@", 1)[0].lower()
        return COMMAND_ALIASES.get(cmd, cmd), args.strip()

    # -------------------------
    # LIFECYCLE COMMANDS
    # -------------------------
    def _cmd_help(self, _args: str) -> str:
        lines = ["These commands are supported:"]
        lines += [f"/{name} - {html.escape(desc)}" for name, desc in COMMAND_DESCRIPTIONS]
        return "\n".join(lines)

    def _cmd_start(self, _args: str) -> str:
        if self.bot_state.is_running and self.runner.is_alive():
            return "Bot is already running."
        self.runner.start()
        return "Trading bot started!"

    def _cmd_stop(self, _args: str) -> str:
        if self.runner.stop():
            return "Trading bot stopped."
        return "Bot is not running."

    def _cmd_notify(self, args: str) -> str:
        try:
            level = NotificationLevel.parse(args)
        except ValueError:
            return "Invalid level. Use: all, important, critical, or none"

        self.bot_state.set_notification_level(level)
        if level is NotificationLevel.NONE:
            return "Notifications disabled"
        return f"Notification level set to {level.label}"

    # -------------------------
    # STATUS COMMANDS
    # -------------------------
    def _cmd_status(self, _args: str) -> str:
        state = self.bot_state.snapshot()
        level = state.notification_level.label

        if not state.is_running:
            return f"Bot is stopped.\nNotification level: {level}"

        try:
            status = self.status_channel.request_status(timeout=self.status_timeout)
        except StatusChannelError as e:
            return f"Bot is running, but failed to retrieve status: {html.escape(str(e))}"
        return f"Bot is running.\nNotification level: {level}\n\n{html.escape(status)}"

    def _cmd_update(self, _args: str) -> str:
        try:
            status = self.status_channel.request_status(timeout=self.status_timeout)
        except StatusChannelError as e:
            return f"Unable to retrieve status from running bot: {html.escape(str(e))}"
        return f"Current status:\n{html.escape(status)}"

    # -------------------------
    # SYMBOL COMMANDS
    # -------------------------
    def _symbol_store(self) -> Optional[SymbolConfigStore]:
        path = self.bot_state.snapshot().config_path or self.default_symbols_path
        return SymbolConfigStore(path) if path else None

    def _cmd_symbols(self, _args: str) -> str:
        store = self._symbol_store()
        if store is None:
            return "Configuration path is not set. Use /startbot first to initialize."
        try:
            table = store.render_table()
        except SymbolConfigError as e:
            return html.escape(str(e))
        return f"<pre>{html.escape(table)}</pre>"

    def _cmd_add_symbol(self, args: str) -> str:
        store = self._symbol_store()
        if store is None:
            return "Configuration path is not set. Use /startbot first to initialize."
        try:
            symbol = SymbolConfig.parse_command(args)
            store.add_symbol(symbol)
        except SymbolConfigError as e:
            return html.escape(str(e))
        return f"Symbol '{html.escape(symbol.symbol)}' added successfully."

    def _cmd_remove_symbol(self, args: str) -> str:
        name = args.strip()
        if not name:
            return "Usage: /removesymbol SYMBOL"
        store = self._symbol_store()
        if store is None:
            return "Configuration path is not set. Use /startbot first to initialize."
        try:
            removed = store.remove_symbol(name)
        except SymbolConfigError as e:
            return html.escape(str(e))
        if not removed:
            return f"Symbol '{html.escape(name)}' not found."
        return f"Symbol '{html.escape(name)}' removed successfully."
