#!/usr/bin/env python3
"""
BOT RUNNER - SUPERVISOR LIFECYCLE
=================================

Starting is an explicit lifecycle action: flipping is_running to True only
matters to a supervisor that is alive. BotRunner owns at most one live
supervisor thread and launches a fresh one when asked to start while none
is alive (first start, after a stop, or after a permanent failure).
"""

import logging
import threading
from typing import Callable, Optional

from tradebot_platform.core.bot_state import SharedBotState
from tradebot_platform.services.supervisor import StrategySupervisor, SupervisorState

logger = logging.getLogger(__name__)

EXITING_SUPERVISOR_JOIN_TIMEOUT = 15.0


class BotRunner:
    """Launches and tracks StrategySupervisor threads."""

    def __init__(
        self,
        supervisor_factory: Callable[[], StrategySupervisor],
        bot_state: SharedBotState,
    ):
        self._supervisor_factory = supervisor_factory
        self._bot_state = bot_state
        self._lock = threading.Lock()
        self._supervisor: Optional[StrategySupervisor] = None
        self._thread: Optional[threading.Thread] = None
        self.launch_count = 0

    def start(self) -> bool:
        """
        Set is_running and launch a supervisor if none is alive.

        Returns True when a new supervisor thread was launched.
        """
        with self._lock:
            self._bot_state.set_running(True)

            if self._thread is not None and self._thread.is_alive():
                if not self._supervisor.state.is_terminal:
                    return False
                # Supervisor already decided to exit; wait for it to detach
                self._thread.join(timeout=EXITING_SUPERVISOR_JOIN_TIMEOUT)
                if self._thread.is_alive():
                    logger.error("❌ Previous supervisor did not exit; not launching a new one")
                    return False

            self._supervisor = self._supervisor_factory()
            self.launch_count += 1
            self._thread = self._supervisor.start(name=f"SupervisorThread-{self.launch_count}")
            logger.info(f"🚀 Supervisor launched (thread: {self._thread.name})")
            return True

    def stop(self) -> bool:
        """Clear is_running. Returns the previous value. Takes effect at the next tick."""
        previous = self._bot_state.set_running(False)
        if previous:
            logger.info("🛑 Stop requested; supervisor exits at its next tick")
        return previous

    def is_alive(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current supervisor thread. True if it has exited."""
        with self._lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    @property
    def supervisor(self) -> Optional[StrategySupervisor]:
        with self._lock:
            return self._supervisor

    @property
    def last_state(self) -> Optional[SupervisorState]:
        supervisor = self.supervisor
        return supervisor.state if supervisor else None
