#!/usr/bin/env python3
"""
Trading Bot Control Dashboard – FastAPI Application
===================================================

Responsibilities:
- Mirror the Telegram lifecycle controls over HTTP
- Report bot state and the live strategy status
- NEVER touch the strategy directly (status goes through the channel)
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from tradebot_platform.core.bot_state import NotificationLevel, SharedBotState
from tradebot_platform.core.errors import StatusChannelError
from tradebot_platform.services.bot_runner import BotRunner
from tradebot_platform.services.status_channel import StatusRequestChannel

logger = logging.getLogger("DASHBOARD.APP")


# ==================================================
# SCHEMAS
# ==================================================

class HealthView(BaseModel):
    status: str = "ok"
    supervisor_alive: bool


class StatusView(BaseModel):
    is_running: bool
    notification_level: str
    config_path: Optional[str] = None
    interval_seconds: Optional[float] = None
    supervisor_state: Optional[str] = None
    strategy_status: Optional[str] = None
    status_error: Optional[str] = None


class ActionResult(BaseModel):
    ok: bool
    message: str


class NotifyRequest(BaseModel):
    level: str = Field(..., min_length=1)


# ==================================================
# APPLICATION FACTORY
# ==================================================

def create_dashboard_app(
    bot_state: SharedBotState,
    runner: BotRunner,
    status_channel: StatusRequestChannel,
    status_timeout: Optional[float] = 10.0,
) -> FastAPI:
    """
    Create the control dashboard bound to one bot instance.
    """
    app = FastAPI(
        title="Trading Bot Control Dashboard",
        version="1.0.0",
        description="Start / stop / status / notification controls",
    )

    @app.get("/health", response_model=HealthView)
    def health():
        return HealthView(supervisor_alive=runner.is_alive())

    @app.get("/status", response_model=StatusView)
    def get_status():
        state = bot_state.snapshot()
        last_state = runner.last_state
        view = StatusView(
            is_running=state.is_running,
            notification_level=state.notification_level.value,
            config_path=state.config_path,
            interval_seconds=state.interval_seconds,
            supervisor_state=last_state.value if last_state else None,
        )
        if state.is_running:
            try:
                view.strategy_status = status_channel.request_status(timeout=status_timeout)
            except StatusChannelError as e:
                view.status_error = str(e)
        return view

    @app.post("/start", response_model=ActionResult)
    def start_bot():
        if bot_state.is_running and runner.is_alive():
            return ActionResult(ok=False, message="Bot is already running.")
        runner.start()
        logger.info("🚀 Start requested from dashboard")
        return ActionResult(ok=True, message="Trading bot started!")

    @app.post("/stop", response_model=ActionResult)
    def stop_bot():
        if runner.stop():
            logger.info("🛑 Stop requested from dashboard")
            return ActionResult(ok=True, message="Trading bot stopped.")
        return ActionResult(ok=False, message="Bot is not running.")

    @app.post("/notify", response_model=ActionResult)
    def set_notification_level(payload: NotifyRequest):
        try:
            level = NotificationLevel.parse(payload.level)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

        bot_state.set_notification_level(level)
        logger.info(f"🔔 Notification level set to {level.value} from dashboard")
        if level is NotificationLevel.NONE:
            return ActionResult(ok=True, message="Notifications disabled")
        return ActionResult(ok=True, message=f"Notification level set to {level.label}")

    return app
