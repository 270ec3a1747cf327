#!/usr/bin/env python3
"""
BOT LOGGING SETUP
=================

One rotating file per bot component plus a catch-all file and stdout:

    logs/
      bot_service.log       process wiring / shutdown
      supervisor.log        supervisor lifecycle (ServiceLogger)
      strategy.log          STRATEGY.* loggers
      telegram_control.log  commands and long polling
      dashboard.log         HTTP control plane
      notifications.log     transport + delivery
      services.log          tradebot_platform.services.* (__name__ loggers)
      core.log              tradebot_platform.core.*
      application.log       everything

Call setup_application_logging() once from main(); modules keep using
logging.getLogger(...) and inherit the handlers through propagation.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s'
LOG_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

# File key -> logger name it is attached to
COMPONENT_NAMES = {
    'bot_service':       'BOT_SERVICE',
    'supervisor':        'SUPERVISOR',
    'strategy':          'STRATEGY',
    'telegram_control':  'TELEGRAM_CONTROL',
    'dashboard':         'DASHBOARD',
    'notifications':     'notifications',
    'services':          'tradebot_platform.services',
    'core':              'tradebot_platform.core',
}

# Handlers owned by this module, keyed by logger name
_file_handlers: Dict[str, logging.Handler] = {}


def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.handlers.RotatingFileHandler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _detach_owned(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            logger.removeHandler(handler)
            handler.close()


def setup_application_logging(
    log_dir: str = 'logs',
    level: str = 'INFO',
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    quiet_uvicorn: bool = True,
) -> None:
    """
    Configure root + per-component logging. Safe to call again (handlers
    from a previous call are replaced, not duplicated).

    Args:
        log_dir: directory for the .log files (created if missing)
        level: DEBUG / INFO / WARNING / ERROR / CRITICAL
        max_bytes: rotation size per file
        backup_count: rotated files kept per component
        quiet_uvicorn: raise uvicorn.access to WARNING
    """
    numeric_level = getattr(logging, level.upper())
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATETIME_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(numeric_level)
    console.setFormatter(formatter)
    root.addHandler(console)
    root.addHandler(_rotating_handler(
        log_path / "application.log", numeric_level, formatter, max_bytes, backup_count
    ))

    _file_handlers.clear()
    for key, logger_name in COMPONENT_NAMES.items():
        component_logger = logging.getLogger(logger_name)
        _detach_owned(component_logger)
        handler = _rotating_handler(
            log_path / f"{key}.log", numeric_level, formatter, max_bytes, backup_count
        )
        component_logger.addHandler(handler)
        _file_handlers[logger_name] = handler

    if quiet_uvicorn:
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    # getUpdates long polls make urllib3 chatty at INFO
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def get_component_logger(component_key: str) -> logging.Logger:
    """Logger for a COMPONENT_NAMES key (ValueError for unknown keys)."""
    try:
        logger_name = COMPONENT_NAMES[component_key]
    except KeyError:
        raise ValueError(
            f"Unknown component: {component_key}. Must be one of {sorted(COMPONENT_NAMES)}"
        )
    return logging.getLogger(logger_name)


def get_log_files() -> Dict[str, Path]:
    """Logger name -> active component log file."""
    return {name: Path(h.baseFilename) for name, h in _file_handlers.items()}


class ServiceLogger:
    """
    Structured messages on a component logger:

        svc = ServiceLogger('supervisor')
        svc.event("tick", "timed out", tick=12, timeout="60s")
        -> "[TICK] timed out | tick=12 | timeout=60s"
    """

    def __init__(self, component_key: str):
        self.logger = get_component_logger(component_key)

    @staticmethod
    def _format(message: str, context: dict) -> str:
        if not context:
            return message
        return message + " | " + " | ".join(f"{k}={v}" for k, v in context.items())

    def startup(self, message: str):
        self.logger.info(f"🚀 STARTUP: {message}")

    def shutdown(self, message: str):
        self.logger.info(f"🛑 SHUTDOWN: {message}")

    def event(self, event_type: str, action: str, **context):
        self.logger.info(self._format(f"[{event_type.upper()}] {action}", context))

    def warning(self, message: str, **context):
        self.logger.warning(self._format(f"⚠️  {message}", context))

    def error_with_context(self, message: str, exc_info: bool = False, **context):
        self.logger.error(self._format(f"❌ {message}", context), exc_info=exc_info)
