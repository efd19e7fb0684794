"""
Activity Streak Tracking

Tracks consecutive days of activity at day granularity:
- First activity: streak starts at 1
- Activity exactly one day after the last: streak continues (+1)
- Activity two or more days later: streak resets to 1 (today counts)
- Activity the same day: no change

Features:
- Longest streak tracking
- Milestone reporting (7, 30, 100 days)

Streaks only change through apply_activity(); point awards alone and
profile edits never touch streak state.
"""

from typing import Dict, Optional
from datetime import datetime, timedelta, timezone
import logging

from src.db import queries
from src.db.connection import db
from src.exceptions import RecordNotFoundError
from src.gamification.events import GamificationEvent, Notifier, notify
from src.models.user import UserGamification
from src.observability import metrics

logger = logging.getLogger(__name__)

STREAK_MILESTONES = (7, 30, 100)


def days_since(last_activity: datetime, now: datetime) -> int:
    """Whole days elapsed between two instants, floor((now - last) / 1 day)"""
    return (now - last_activity) // timedelta(days=1)


def apply_activity(user: UserGamification, now: datetime) -> Dict[str, any]:
    """
    Record one day of activity on a user's state in place.

    Returns:
        {
            'current_streak': int,
            'longest_streak': int,
            'old_streak': int,
            'days_since_last_activity': Optional[int],  # None on first activity
            'streak_continued': bool,
            'streak_reset': bool,
            'milestone_reached': Optional[int]  # 7, 30 or 100 when just hit
        }
    """
    old_streak = user.current_streak
    gap = None
    continued = False
    reset = False

    if user.last_activity_date is None:
        user.current_streak = 1
    else:
        gap = days_since(user.last_activity_date, now)
        if gap == 1:
            user.current_streak += 1
            continued = True
        elif gap > 1:
            user.current_streak = 1
            reset = True
        # gap <= 0: already counted today

    user.longest_streak = max(user.longest_streak, user.current_streak)
    user.last_activity_date = now

    milestone = None
    if user.current_streak != old_streak and user.current_streak in STREAK_MILESTONES:
        milestone = user.current_streak

    return {
        "current_streak": user.current_streak,
        "longest_streak": user.longest_streak,
        "old_streak": old_streak,
        "days_since_last_activity": gap,
        "streak_continued": continued,
        "streak_reset": reset,
        "milestone_reached": milestone,
    }


async def announce_streak(user_id: str, result: Dict, notifier: Optional[Notifier] = None) -> None:
    """Log, count and notify a committed apply_activity() result"""
    if result["streak_reset"]:
        metrics.gamification_streak_resets_total.inc()
        logger.info(
            f"User {user_id} streak broken. Was {result['old_streak']}, "
            f"gap was {result['days_since_last_activity']} days"
        )

    logger.info(
        f"Updated streak for user {user_id}: "
        f"{result['old_streak']} → {result['current_streak']} days"
    )

    if result["current_streak"] != result["old_streak"]:
        await notify(notifier, GamificationEvent("streak_updated", user_id, {
            "current_streak": result["current_streak"],
            "longest_streak": result["longest_streak"],
            "milestone_reached": result["milestone_reached"],
        }))


async def record_activity(
    user_id: str,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> Dict[str, any]:
    """
    Update a user's streak for activity at `now` (defaults to current UTC time)

    Raises:
        RecordNotFoundError: unknown user
    """
    if now is None:
        now = datetime.now(timezone.utc)

    async with db.transaction() as conn:
        user = await queries.get_user_gamification(conn, user_id, for_update=True)
        if user is None:
            raise RecordNotFoundError(
                message=f"User {user_id} not found",
                record_type="User",
                record_id=user_id,
                operation="record_activity"
            )
        result = apply_activity(user, now)
        await queries.save_user_gamification(conn, user)

    await announce_streak(user_id, result, notifier)
    return result


async def get_user_streak(user_id: str) -> Dict[str, any]:
    """
    Get a user's streak summary

    Returns:
        {
            'current_streak': int,
            'longest_streak': int,
            'last_activity_date': Optional[datetime],
            'next_milestone': Optional[int]
        }
    """
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )

    next_milestone = next((m for m in STREAK_MILESTONES if m > user.current_streak), None)

    return {
        "current_streak": user.current_streak,
        "longest_streak": user.longest_streak,
        "last_activity_date": user.last_activity_date,
        "next_milestone": next_milestone,
    }
