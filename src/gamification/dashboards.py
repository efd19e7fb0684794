"""
Gamification Dashboards

Progress summary for a single user and the global leaderboards.
"""

import logging
from typing import Dict, List, Optional

from src.config import LEADERBOARD_MAX_LIMIT
from src.db import queries
from src.exceptions import RecordNotFoundError, ValidationError
from src.gamification.achievement_system import get_user_achievements
from src.gamification.xp_system import calculate_level_from_xp
from src.models.user import UserGamification

logger = logging.getLogger(__name__)

LEADERBOARD_CATEGORIES = ("points", "level", "streak")


def _validate_category(category: str) -> None:
    if category not in LEADERBOARD_CATEGORIES:
        raise ValidationError(
            message=f"Leaderboard category must be one of {', '.join(LEADERBOARD_CATEGORIES)}",
            field="category",
            value=category
        )


def build_progress_summary(
    user: UserGamification,
    points_rank: Optional[int],
    achievements: Dict[str, any]
) -> Dict[str, any]:
    """
    Assemble the progress summary from already-loaded state

    Args:
        user: User's gamification state
        points_rank: Rank by total points
        achievements: Result of get_user_achievements()
    """
    level_info = calculate_level_from_xp(user.experience)

    active = [c for c in user.active_challenges if not c.completed]
    completed = sorted(
        (c for c in user.active_challenges if c.completed),
        key=lambda c: c.completed_at or c.joined_at,
        reverse=True
    )

    return {
        "level": {
            "current": user.level,
            "progress": level_info["level_progress"],
            "current_xp": user.experience,
            "xp_for_next_level": level_info["xp_for_next_level"],
            "xp_to_next_level": level_info["xp_to_next_level"],
        },
        "points": {
            "total": user.total_points,
            "available": user.available_points,
            "rank": points_rank,
        },
        "streak": {
            "current": user.current_streak,
            "longest": user.longest_streak,
            "last_activity": user.last_activity_date,
        },
        "achievements": {
            "unlocked": achievements["total_unlocked"],
            "total": achievements["total_achievements"],
            "progress": achievements["completion_percentage"],
            "recent": achievements["unlocked"][:10],
        },
        "challenges": {
            "active": len(active),
            "completed": len(completed),
            "active_challenges": [c.model_dump() for c in active],
            "recent_completions": [c.model_dump() for c in completed[:5]],
        },
    }


async def get_progress_summary(user_id: str) -> Dict[str, any]:
    """
    Get a user's progress across levels, points, streaks, achievements and challenges

    Raises:
        RecordNotFoundError: unknown user
    """
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )

    rank = await queries.get_user_rank(user_id, "points")
    achievements = await get_user_achievements(user_id)

    return build_progress_summary(user, rank, achievements)


async def get_global_leaderboard(category: str = "points", limit: int = 10) -> List[Dict[str, any]]:
    """
    Top active users for a category

    Args:
        category: 'points', 'level' or 'streak'
        limit: Number of entries (capped at LEADERBOARD_MAX_LIMIT)
    """
    _validate_category(category)
    limit = max(1, min(limit, LEADERBOARD_MAX_LIMIT))

    leaderboard = await queries.get_leaderboard(category, limit)
    logger.debug(f"Loaded {category} leaderboard with {len(leaderboard)} entries")
    return leaderboard


async def get_user_rank(user_id: str, category: str = "points") -> int:
    """
    A user's 1-based rank among active users

    Raises:
        RecordNotFoundError: unknown user
    """
    _validate_category(category)

    rank = await queries.get_user_rank(user_id, category)
    if rank is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )
    return rank
