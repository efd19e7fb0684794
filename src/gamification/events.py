"""
Gamification event notifications

State changes are committed first; notifications are delivered afterwards
through an injected async callback (e.g. a websocket broadcaster). Clients
must still re-fetch state, so a failed delivery is logged and never undoes
the committed change.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Literal, Optional

logger = logging.getLogger(__name__)

EventType = Literal[
    "points_earned",
    "points_spent",
    "level_up",
    "streak_updated",
    "achievement_unlocked",
    "daily_bonus_claimed",
    "challenge_joined",
    "challenge_progress",
    "challenge_completed",
]


@dataclass
class GamificationEvent:
    """A committed gamification state change"""
    event_type: EventType
    user_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Notifier = Callable[[GamificationEvent], Awaitable[None]]


async def notify(notifier: Optional[Notifier], event: GamificationEvent) -> bool:
    """
    Deliver an event to the notifier, if one was injected.

    Returns:
        True if the notifier accepted the event, False if there was no
        notifier or delivery failed
    """
    if notifier is None:
        return False

    try:
        await notifier(event)
        logger.debug(f"Delivered {event.event_type} event for user {event.user_id}")
        return True
    except Exception as e:
        logger.error(
            f"Failed to deliver {event.event_type} event for user {event.user_id}: {e}",
            exc_info=True
        )
        return False


async def log_notifier(event: GamificationEvent) -> None:
    """Default notifier: records events in the application log"""
    logger.info(f"Event {event.event_type} for user {event.user_id}: {event.payload}")
