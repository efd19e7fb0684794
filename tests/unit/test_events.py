"""Unit tests for gamification event delivery"""
import pytest
from unittest.mock import AsyncMock

from src.gamification.events import GamificationEvent, log_notifier, notify


@pytest.mark.asyncio
async def test_notify_without_notifier():
    assert await notify(None, GamificationEvent("points_earned", "user-123")) is False


@pytest.mark.asyncio
async def test_notify_delivers_event():
    notifier = AsyncMock()
    event = GamificationEvent("level_up", "user-123", {"new_level": 2})

    assert await notify(notifier, event) is True
    notifier.assert_awaited_once_with(event)


@pytest.mark.asyncio
async def test_notify_failure_is_not_raised():
    """A broken notifier never undoes a committed change"""
    notifier = AsyncMock(side_effect=RuntimeError("socket closed"))

    assert await notify(notifier, GamificationEvent("streak_updated", "user-123")) is False


@pytest.mark.asyncio
async def test_log_notifier(caplog):
    with caplog.at_level("INFO", logger="src.gamification.events"):
        await log_notifier(GamificationEvent("points_spent", "user-123", {"points": 5}))

    assert "points_spent" in caplog.text
    assert "user-123" in caplog.text
