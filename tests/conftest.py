"""Shared fixtures for the bot tests."""

import pytest

from tradebot_platform.core.bot_state import BotState, NotificationLevel, SharedBotState
from tradebot_platform.services.status_channel import StatusRequestChannel

from fake_transport import FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def bot_state():
    return SharedBotState(BotState(is_running=True, notification_level=NotificationLevel.ALL))


@pytest.fixture
def channel():
    ch = StatusRequestChannel()
    yield ch
    ch.close()
