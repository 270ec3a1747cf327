#!/usr/bin/env python3
"""
STATUS REQUEST CHANNEL
======================

One-shot request/response between control front ends (many producers) and
the running supervisor (single consumer).

Producer:  request_status() -> str
Consumer:  attach_consumer() / receive() / detach_consumer()

Failure modes seen by producers:
- StatusChannelUnavailable   no consumer attached, or channel closed
- StatusChannelClosed        consumer detached with the request still pending
- StatusRequestTimeout       no answer within the caller's timeout
- StatusChannelError         consumer answered with an error
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tradebot_platform.core.errors import (
    StatusChannelClosed,
    StatusChannelError,
    StatusChannelUnavailable,
    StatusRequestTimeout,
)

logger = logging.getLogger(__name__)

# Queue marker pushed by close(); the consumer sees it as "no more producers"
_CLOSED = object()


class StatusReply:
    """Single-use reply slot. The first send/fail/drop wins."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._status: Optional[str] = None
        self._error: Optional[StatusChannelError] = None

    def _complete(self, status: Optional[str], error: Optional[StatusChannelError]) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._status = status
            self._error = error
            self._event.set()
            return True

    def send(self, status: str) -> bool:
        return self._complete(status, None)

    def fail(self, message: str) -> bool:
        return self._complete(None, StatusChannelError(message))

    def drop(self) -> bool:
        return self._complete(None, StatusChannelClosed())

    @property
    def done(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> str:
        if not self._event.wait(timeout):
            raise StatusRequestTimeout(f"No status reply within {timeout}s")
        if self._error is not None:
            raise self._error
        return self._status


@dataclass
class StatusRequest:
    reply: StatusReply = field(default_factory=StatusReply)
    created_at: datetime = field(default_factory=datetime.now)


class StatusRequestChannel:
    """Unbounded FIFO of StatusRequest with consumer presence tracking."""

    def __init__(self):
        self._queue: "queue.Queue" = queue.Queue()
        self._lock = threading.Lock()
        self._consumer_attached = False
        self._closed = False

    # ------------------------------------------------------------------
    # PRODUCER SIDE
    # ------------------------------------------------------------------

    def request_status(self, timeout: Optional[float] = None) -> str:
        """Ask the live supervisor for its status and wait for the answer."""
        request = StatusRequest()
        with self._lock:
            if self._closed or not self._consumer_attached:
                raise StatusChannelUnavailable()
            self._queue.put(request)
        return request.reply.wait(timeout)

    def close(self) -> None:
        """Signal that no more requests will be produced."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSED)
        logger.info("Status request channel closed")

    # ------------------------------------------------------------------
    # CONSUMER SIDE
    # ------------------------------------------------------------------

    def attach_consumer(self) -> None:
        with self._lock:
            if self._consumer_attached:
                raise RuntimeError("Status request channel already has a consumer")
            self._consumer_attached = True

    def detach_consumer(self) -> int:
        """Detach and drop every pending request. Returns how many were dropped."""
        dropped = 0
        with self._lock:
            self._consumer_attached = False
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is _CLOSED:
                    continue
                if item.reply.drop():
                    dropped += 1
            if self._closed:
                # Keep the close marker visible to the next consumer
                self._queue.put(_CLOSED)
        if dropped:
            logger.warning(f"Dropped {dropped} pending status request(s) on detach")
        return dropped

    def receive(self, timeout: Optional[float] = None) -> Optional[StatusRequest]:
        """
        Wait for the next request.

        Returns None once the channel is closed; raises queue.Empty when
        nothing arrived within timeout.
        """
        if timeout is None:
            item = self._queue.get()
        elif timeout <= 0:
            item = self._queue.get_nowait()
        else:
            item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._queue.put(_CLOSED)
            return None
        return item

    @property
    def has_consumer(self) -> bool:
        with self._lock:
            return self._consumer_attached

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed
