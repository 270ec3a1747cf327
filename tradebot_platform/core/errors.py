#!/usr/bin/env python3
"""
ERROR TAXONOMY
==============

Every failure the supervisor can observe maps to exactly one class here:

    BotError
    ├── StrategyConstructionError   fatal, never retried automatically
    ├── StrategyExecutionError      recoverable, one restart cycle
    ├── StrategyTimeoutError        logged, tick skipped
    ├── StatusChannelError          status request failed
    │   ├── StatusChannelUnavailable    no live supervisor to ask
    │   ├── StatusChannelClosed         supervisor dropped the request
    │   └── StatusRequestTimeout        no answer in time
    └── NotificationDeliveryError   transport refused a chunk
"""


class BotError(Exception):
    """Base class for all supervisor errors."""
    pass


class StrategyConstructionError(BotError):
    """Raised when a strategy instance cannot be created."""
    pass


class StrategyExecutionError(BotError):
    """Raised when a strategy tick reports a failure."""
    pass


class StrategyTimeoutError(BotError):
    """Raised when a strategy tick exceeds its wall-clock budget."""
    pass


class StatusChannelError(BotError):
    """Raised when a status request cannot be answered."""
    pass


class StatusChannelUnavailable(StatusChannelError):
    """No supervisor is consuming status requests."""

    def __init__(self, message: str = "Bot runner unavailable"):
        super().__init__(message)


class StatusChannelClosed(StatusChannelError):
    """The supervisor went away without answering."""

    def __init__(self, message: str = "Bot runner dropped status channel"):
        super().__init__(message)


class StatusRequestTimeout(StatusChannelError):
    """The supervisor did not answer within the requester's deadline."""
    pass


class NotificationDeliveryError(BotError):
    """Raised when the chat transport rejects a message chunk."""
    pass
