#!/usr/bin/env python3
"""
STRATEGY SUPERVISOR
===================

Owns ONE strategy instance, ticks it on the strategy's own interval,
answers status requests, and restarts the strategy by reconstruction when a
tick reports a failure.

STATE MACHINE:
    INITIALIZING → AWAITING_TICK ⇄ RUNNING
    RUNNING → RECOVERING → AWAITING_TICK          (tick raised, rebuild ok)
    RUNNING/AWAITING_TICK → STOPPED                (stop flag at tick, channel closed)
    INITIALIZING/RECOVERING → FAILED_PERMANENTLY   (construction failed)

RULES:
- Stop flag is checked ONLY when the timer fires, before a tick
- Only one tick or one status answer is handled at a time
- A timed-out tick is abandoned, NOT rebuilt, and the timer phase is kept
- A failed tick triggers exactly one rebuild after the cooldown
- Construction failures are never retried here (BotRunner.start() retries)
- A tick that is still running after its timeout blocks further calls into
  the instance: later ticks are skipped and status requests refused until
  it returns
- Lifecycle messages bypass the notification level and go out BEFORE the
  state or run flag changes
"""

import logging
import queue
import threading
import time
from concurrent.futures import Future, wait
from enum import Enum
from typing import Callable, Optional, Tuple

from notifications.delivery import NotificationDispatcher
from tradebot_platform.core.bot_state import NotificationLevel, SharedBotState
from tradebot_platform.core.errors import (
    StrategyConstructionError,
    StrategyExecutionError,
    StrategyTimeoutError,
)
from tradebot_platform.logging.logger_config import ServiceLogger
from tradebot_platform.services.status_channel import StatusRequest, StatusRequestChannel
from tradebot_platform.strategies.base import TradingStrategy

logger = logging.getLogger(__name__)

DEFAULT_TICK_TIMEOUT = 60.0
DEFAULT_RESTART_COOLDOWN = 5.0

MSG_INITIALIZED = "Trading bot has initialized and is now running."
MSG_INIT_FAILED = "Failed to initialize bot: {error}"
MSG_STOPPED = "Trading bot has been stopped."
MSG_EXECUTION_FAILED = "Strategy execution failed: {error}"
MSG_RESTARTING = "Stopping and restarting the bot due to error..."
MSG_RESTARTED = "Bot has been restarted."
MSG_REINITIALIZED = "Trading bot has been re-initialized."
MSG_REINIT_FAILED = "Failed to re-initialize bot: {error}"
MSG_TIMED_OUT = "Strategy execution timed out"
MSG_TICK_SKIPPED = "Previous strategy execution still running, tick skipped"
MSG_STATUS_BUSY = "Strategy is still running a timed-out tick; status unavailable"
STOPPED_STATUS_BANNER = "Bot is stopped; the supervisor exits at the next scheduled tick."


class SupervisorState(Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    AWAITING_TICK = "awaiting_tick"
    RECOVERING = "recovering"
    STOPPED = "stopped"
    FAILED_PERMANENTLY = "failed_permanently"

    @property
    def is_terminal(self) -> bool:
        return self in (SupervisorState.STOPPED, SupervisorState.FAILED_PERMANENTLY)


class TickOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class _Event(Enum):
    STATUS_REQUEST = "status_request"
    TIMER = "timer"
    CHANNEL_CLOSED = "channel_closed"


class IntervalTimer:
    """
    Periodic deadline on a monotonic clock.

    A fresh timer's immediate first tick is discarded, so the first firing
    is one full interval after arming. Periods missed while a tick ran long
    are skipped without shifting the schedule's phase.
    """

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got: {interval}")
        self.interval = interval
        self._clock = clock
        self._deadline = clock() + interval

    def remaining(self) -> float:
        return max(0.0, self._deadline - self._clock())

    def advance(self) -> int:
        """Move to the next deadline after now. Returns the number of skipped periods."""
        now = self._clock()
        self._deadline += self.interval
        skipped = 0
        while self._deadline <= now:
            self._deadline += self.interval
            skipped += 1
        return skipped


class StrategySupervisor:
    """
    Runs one strategy on its schedule. run() blocks the calling thread and
    returns the terminal SupervisorState; start() does the same on a daemon
    thread (used by BotRunner).
    """

    def __init__(
        self,
        strategy_factory: Callable[[], TradingStrategy],
        bot_state: SharedBotState,
        notifier,
        chat_id,
        status_channel: StatusRequestChannel,
        *,
        tick_timeout: float = DEFAULT_TICK_TIMEOUT,
        restart_cooldown: float = DEFAULT_RESTART_COOLDOWN,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._strategy_factory = strategy_factory
        self._bot_state = bot_state
        self._notifier = notifier
        self._chat_id = chat_id
        self._status_channel = status_channel
        self._tick_timeout = tick_timeout
        self._restart_cooldown = restart_cooldown
        self._sleep = sleep
        self._clock = clock

        self.dispatcher = NotificationDispatcher(notifier, chat_id, bot_state)
        self.svc_logger = ServiceLogger('supervisor')

        self._strategy: Optional[TradingStrategy] = None
        self._timer: Optional[IntervalTimer] = None
        self._last_served: Optional[_Event] = None
        self._abandoned_worker: Optional[threading.Thread] = None

        self._state = SupervisorState.INITIALIZING
        self._state_lock = threading.Lock()

        # Passive counters
        self.tick_count = 0
        self.timeout_count = 0
        self.skipped_count = 0
        self.restart_count = 0

    # ========================================================
    # STATE
    # ========================================================

    @property
    def state(self) -> SupervisorState:
        with self._state_lock:
            return self._state

    def _set_state(self, new_state: SupervisorState) -> None:
        with self._state_lock:
            old_state = self._state
            self._state = new_state
        if old_state != new_state:
            logger.debug(f"Supervisor state {old_state.value} → {new_state.value}")

    def get_stats(self) -> dict:
        return {
            "state": self.state.value,
            "ticks": self.tick_count,
            "timeouts": self.timeout_count,
            "skipped": self.skipped_count,
            "restarts": self.restart_count,
            "interval_seconds": self._timer.interval if self._timer else None,
        }

    # ========================================================
    # MAIN ENTRY
    # ========================================================

    def run(self) -> SupervisorState:
        """Supervise on the calling thread until stopped or permanently failed."""
        self._status_channel.attach_consumer()
        return self._run_attached()

    def start(self, name: str = "SupervisorThread") -> threading.Thread:
        """
        Attach to the status channel now, then supervise on a daemon thread.

        Attaching before the thread starts means status requests sent right
        after start() are queued instead of refused.
        """
        self._status_channel.attach_consumer()
        thread = threading.Thread(target=self._run_attached, name=name, daemon=True)
        thread.start()
        return thread

    def _run_attached(self) -> SupervisorState:
        self.svc_logger.startup(
            f"Supervisor started | tick_timeout={self._tick_timeout}s | cooldown={self._restart_cooldown}s"
        )
        try:
            if self._initialize():
                self._loop()
        except Exception as e:
            self.svc_logger.error_with_context("Supervisor crashed", exc_info=True, error=e)
            self._bot_state.set_running(False)
            self._set_state(SupervisorState.FAILED_PERMANENTLY)
        finally:
            self._status_channel.detach_consumer()
            self.svc_logger.shutdown(f"Supervisor exited | state={self.state.value}")
        return self.state

    def _initialize(self) -> bool:
        try:
            self._install(*self._build_strategy())
        except StrategyConstructionError as e:
            error_msg = MSG_INIT_FAILED.format(error=e)
            self.svc_logger.error_with_context(error_msg)
            self.dispatcher.announce(error_msg)
            self._set_state(SupervisorState.FAILED_PERMANENTLY)
            self._bot_state.set_running(False)
            return False

        self.dispatcher.announce(MSG_INITIALIZED)
        self._set_state(SupervisorState.AWAITING_TICK)
        return True

    def _loop(self) -> None:
        while True:
            event, request = self._wait_for_event()

            if event is _Event.CHANNEL_CLOSED:
                logger.info("Request channel closed, shutting down bot runner")
                self._set_state(SupervisorState.STOPPED)
                return

            if event is _Event.STATUS_REQUEST:
                self._answer_status(request)
                continue

            skipped = self._timer.advance()
            if skipped:
                logger.warning(f"Skipped {skipped} missed tick(s)")

            if not self._bot_state.snapshot().is_running:
                self.svc_logger.event("lifecycle", "Stop flag detected, shutting down bot")
                self.dispatcher.announce(MSG_STOPPED)
                self._set_state(SupervisorState.STOPPED)
                return

            if self._previous_tick_running():
                self.skipped_count += 1
                self.svc_logger.warning(MSG_TICK_SKIPPED, skipped=self.skipped_count)
                self.dispatcher.notify(NotificationLevel.ALL, MSG_TICK_SKIPPED)
                continue

            outcome, error = self._run_tick()
            if outcome is TickOutcome.FAILED and not self._recover(error):
                return
            self._set_state(SupervisorState.AWAITING_TICK)

    # ========================================================
    # EVENT WAIT
    # ========================================================

    def _wait_for_event(self) -> Tuple[_Event, Optional[StatusRequest]]:
        """
        Block until a status request arrives or the timer fires.

        When both are ready, the source not served last goes first.
        """
        remaining = self._timer.remaining()
        if remaining == 0 and self._last_served is _Event.STATUS_REQUEST:
            self._last_served = _Event.TIMER
            return _Event.TIMER, None

        try:
            request = self._status_channel.receive(timeout=remaining)
        except queue.Empty:
            self._last_served = _Event.TIMER
            return _Event.TIMER, None

        if request is None:
            return _Event.CHANNEL_CLOSED, None

        self._last_served = _Event.STATUS_REQUEST
        return _Event.STATUS_REQUEST, request

    def _answer_status(self, request: StatusRequest) -> None:
        if self._previous_tick_running():
            request.reply.fail(MSG_STATUS_BUSY)
            return
        try:
            status = self._strategy.get_status()
        except Exception as e:
            logger.warning(f"Strategy status failed: {e}")
            request.reply.fail(f"Failed to read strategy status: {e}")
            return

        if not self._bot_state.snapshot().is_running:
            status = f"{STOPPED_STATUS_BANNER}\n\n{status}"
        request.reply.send(status)

    # ========================================================
    # TICK EXECUTION
    # ========================================================

    def _run_tick(self) -> Tuple[TickOutcome, Optional[Exception]]:
        self._set_state(SupervisorState.RUNNING)
        self.tick_count += 1

        future: Future = Future()
        worker = threading.Thread(
            target=self._execute_into,
            args=(self._strategy, future),
            name=f"StrategyTick-{self.tick_count}",
            daemon=True,
        )
        worker.start()

        done, _ = wait([future], timeout=self._tick_timeout)
        if not done:
            self._abandoned_worker = worker
            self.timeout_count += 1
            self.svc_logger.warning(
                MSG_TIMED_OUT, tick=self.tick_count, timeout=f"{self._tick_timeout}s"
            )
            self.dispatcher.notify(NotificationLevel.ALL, MSG_TIMED_OUT)
            return TickOutcome.TIMED_OUT, StrategyTimeoutError(
                f"Tick {self.tick_count} exceeded {self._tick_timeout}s"
            )

        cause = future.exception()
        if cause is None:
            return TickOutcome.COMPLETED, None

        error = StrategyExecutionError(str(cause) or type(cause).__name__)
        error.__cause__ = cause
        return TickOutcome.FAILED, error

    def _previous_tick_running(self) -> bool:
        """True while a timed-out tick thread still holds the strategy instance."""
        worker = self._abandoned_worker
        if worker is None:
            return False
        if worker.is_alive():
            return True
        logger.info(f"Timed-out tick {worker.name} finished, resuming normal ticks")
        self._abandoned_worker = None
        return False

    def _execute_into(self, strategy: TradingStrategy, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            strategy.execute(self._bot_state, self._notifier, self._chat_id)
        except Exception as e:
            logger.debug("Strategy tick raised", exc_info=True)
            future.set_exception(e)
        else:
            future.set_result(None)

    # ========================================================
    # RECOVERY
    # ========================================================

    def _recover(self, error: Exception) -> bool:
        """One restart cycle. Returns False when the supervisor must terminate."""
        self._set_state(SupervisorState.RECOVERING)
        self.restart_count += 1

        error_msg = MSG_EXECUTION_FAILED.format(error=error)
        self.svc_logger.error_with_context(error_msg, restart=self.restart_count)
        self.dispatcher.announce(error_msg)
        self.dispatcher.announce(MSG_RESTARTING)

        self._bot_state.set_running(False)
        self._sleep(self._restart_cooldown)
        self._bot_state.set_running(True)

        self.dispatcher.announce(MSG_RESTARTED)

        try:
            self._install(*self._build_strategy())
        except StrategyConstructionError as e:
            init_error_msg = MSG_REINIT_FAILED.format(error=e)
            self.svc_logger.error_with_context(init_error_msg)
            self.dispatcher.announce(init_error_msg)
            self._set_state(SupervisorState.FAILED_PERMANENTLY)
            self._bot_state.set_running(False)
            return False

        self.svc_logger.event("lifecycle", "Strategy re-initialized", restart=self.restart_count)
        self.dispatcher.announce(MSG_REINITIALIZED)
        return True

    # ========================================================
    # CONSTRUCTION
    # ========================================================

    def _build_strategy(self) -> Tuple[TradingStrategy, float, Optional[str]]:
        try:
            strategy = self._strategy_factory()
            interval = float(strategy.get_interval_seconds())
            config_path = strategy.get_config_path()
        except Exception as e:
            raise StrategyConstructionError(str(e) or type(e).__name__) from e

        if interval <= 0:
            raise StrategyConstructionError(f"Invalid strategy interval: {interval}s")
        return strategy, interval, config_path

    def _install(self, strategy: TradingStrategy, interval: float, config_path: Optional[str]) -> None:
        """Replace the strategy slot and rearm the timer."""
        self._strategy = strategy
        self._timer = IntervalTimer(interval, clock=self._clock)
        self._last_served = None
        self._bot_state.update(config_path=config_path, interval_seconds=interval)
        self.svc_logger.event(
            "lifecycle", "Strategy installed",
            strategy=type(strategy).__name__, interval=f"{interval}s",
        )
