#!/usr/bin/env python3
"""
TRADING BOT SERVICE ENTRY POINT
===============================

Purpose:
- Load configuration and logging
- Wire bot state, status channel and supervisor lifecycle
- Serve Telegram commands (long polling)
- Optionally co-host the HTTP control dashboard

STRICT RULES:
- NO strategy logic here
- SINGLE SharedBotState / StatusRequestChannel per process
- Supervisor threads are only launched through BotRunner
"""

import argparse
import importlib
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import uvicorn

from notifications.telegram import TelegramNotifier
from tradebot_platform.api.dashboard.dashboard_app import create_dashboard_app
from tradebot_platform.api.telegram.command_controller import TelegramCommandController
from tradebot_platform.api.telegram.poller import TelegramPoller
from tradebot_platform.core.bot_state import BotState, SharedBotState
from tradebot_platform.core.config import Config
from tradebot_platform.logging.logger_config import get_component_logger, setup_application_logging
from tradebot_platform.services.bot_runner import BotRunner
from tradebot_platform.services.status_channel import StatusRequestChannel
from tradebot_platform.services.supervisor import StrategySupervisor

DEFAULT_STRATEGY = "tradebot_platform.strategies.symbol_watch:SymbolWatchStrategy"
SHUTDOWN_JOIN_TIMEOUT = 30.0

# ---------------------------------------------------------------------
# GLOBALS (FOR SIGNAL HANDLING & THREAD COORDINATION)
# ---------------------------------------------------------------------
logger = None
shutdown_event = threading.Event()


def load_strategy_factory(strategy_path: str, config: Config) -> Callable:
    """
    Resolve 'package.module:ClassName' into a zero-argument factory.

    Classes exposing from_config(config) reuse the already loaded Config;
    anything else is built through its create() classmethod.
    """
    module_name, sep, class_name = strategy_path.partition(":")
    if not sep or not module_name or not class_name:
        raise ValueError(f"Strategy must look like 'package.module:ClassName', got: {strategy_path}")

    strategy_cls = getattr(importlib.import_module(module_name), class_name)
    if hasattr(strategy_cls, "from_config"):
        return lambda: strategy_cls.from_config(config)
    return strategy_cls.create


def run_dashboard(server: uvicorn.Server) -> None:
    """Blocking uvicorn run; exits once server.should_exit is set."""
    try:
        server.run()
    except Exception as exc:
        if logger:
            logger.error(f"❌ Dashboard crashed: {exc}", exc_info=True)


def main(argv=None) -> int:
    global logger

    # -------------------------------------------------
    # CLI ARGUMENT PARSING
    # -------------------------------------------------
    parser = argparse.ArgumentParser(description="Telegram Trading Bot")
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: config_env/primary.env)",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=DEFAULT_STRATEGY,
        help="Strategy class as 'package.module:ClassName'",
    )
    args = parser.parse_args(argv)

    env_path = None
    if args.env:
        env_path = Path(args.env)
        if not env_path.is_absolute():
            env_path = Path(__file__).resolve().parent / env_path

    # -------------------------------------------------
    # CONFIG + LOGGING
    # -------------------------------------------------
    config = Config(env_path=env_path)

    setup_application_logging(
        log_dir=config.log_dir,
        level=config.log_level,
        max_bytes=10 * 1024 * 1024,
        backup_count=5,
        quiet_uvicorn=True,
    )
    logger = get_component_logger('bot_service')

    logger.info("=" * 70)
    logger.info("🚀 STARTING TRADING BOT SERVICE")
    logger.info("=" * 70)
    logger.info(f"PID: {os.getpid()}")
    logger.info(f"Python: {sys.version}")
    for key, value in config.get_config_summary().items():
        logger.info(f"  {key:<28}: {value}")

    # -------------------------------------------------
    # CORE WIRING
    # -------------------------------------------------
    telegram_cfg = config.get_telegram_config()
    supervisor_cfg = config.get_supervisor_config()
    chat_id = telegram_cfg["chat_id"]

    notifier = TelegramNotifier(
        telegram_cfg["bot_token"],
        message_log_path=str(Path(config.log_dir) / "telegram_messages.jsonl"),
    )
    if not notifier.test_connection():
        logger.warning("⚠️ Telegram connection test failed; continuing, polling will retry")

    bot_state = SharedBotState(BotState(notification_level=config.default_notification_level))
    status_channel = StatusRequestChannel()
    strategy_factory = load_strategy_factory(args.strategy, config)
    logger.info(f"Strategy: {args.strategy}")

    def supervisor_factory() -> StrategySupervisor:
        return StrategySupervisor(
            strategy_factory,
            bot_state,
            notifier,
            chat_id,
            status_channel,
            tick_timeout=supervisor_cfg["tick_timeout"],
            restart_cooldown=supervisor_cfg["restart_cooldown"],
        )

    runner = BotRunner(supervisor_factory, bot_state)

    controller = TelegramCommandController(
        bot_state,
        runner,
        status_channel,
        owner_chat_id=chat_id,
        allowed_users=config.get_telegram_allowed_users(),
        default_symbols_path=config.symbols_config_path,
        status_timeout=config.status_request_timeout,
    )
    poller = TelegramPoller(notifier, controller, poll_timeout=telegram_cfg["poll_timeout"])

    # -------------------------------------------------
    # DASHBOARD (OPTIONAL, SAME PROCESS)
    # -------------------------------------------------
    dashboard_server: Optional[uvicorn.Server] = None
    dashboard_thread: Optional[threading.Thread] = None
    dashboard_cfg = config.get_dashboard_config()
    if dashboard_cfg["enabled"]:
        app = create_dashboard_app(bot_state, runner, status_channel)
        dashboard_server = uvicorn.Server(uvicorn.Config(
            app=app,
            host=dashboard_cfg["host"],
            port=dashboard_cfg["port"],
            log_level="info",
            lifespan="on",
        ))
        dashboard_thread = threading.Thread(
            target=run_dashboard, args=(dashboard_server,), name="DashboardThread", daemon=True
        )
        dashboard_thread.start()
        logger.info(f"📊 Dashboard on http://{dashboard_cfg['host']}:{dashboard_cfg['port']}")

    # -------------------------------------------------
    # SIGNAL HANDLERS (MUST BE IN MAIN THREAD)
    # -------------------------------------------------
    def signal_handler(signum, frame):
        logger.warning(f"🛑 Received shutdown signal: {signum}")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    poller.start()
    if config.auto_start:
        logger.info("AUTO_START enabled, launching supervisor")
        runner.start()

    logger.info("=" * 70)
    logger.info("✅ TRADING BOT SERVICE READY - send /help on Telegram")
    logger.info("=" * 70)

    try:
        while not shutdown_event.is_set():
            shutdown_event.wait(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")

    # -------------------------------------------------
    # GRACEFUL SHUTDOWN
    # -------------------------------------------------
    shutdown_start = time.monotonic()
    logger.info("Initiating graceful shutdown...")

    runner.stop()
    status_channel.close()
    poller.stop()
    if not runner.join(timeout=SHUTDOWN_JOIN_TIMEOUT):
        logger.warning("⚠️ Supervisor did not exit in time (tick still running)")

    if dashboard_server:
        dashboard_server.should_exit = True
        dashboard_thread.join(timeout=5)

    notifier.close()
    logger.info(f"✅ Graceful shutdown complete in {time.monotonic() - shutdown_start:.1f}s")
    return 0


# ---------------------------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------------------------
if __name__ == "__main__":
    sys.exit(main())
