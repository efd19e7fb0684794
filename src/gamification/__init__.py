"""
Gamification system for WellnessHub

This module implements the gamification bookkeeping:
- Points ledger and leveling (level = floor(experience / 1000) + 1)
- Daily activity streaks
- Declarative achievements
- Challenges with progress tracking and leaderboards
"""

from src.gamification.xp_system import (
    award_points,
    spend_points,
    claim_daily_bonus,
    calculate_level,
    calculate_level_from_xp,
    get_user_level_info,
)
from src.gamification.streak_system import record_activity, get_user_streak
from src.gamification.achievement_system import (
    check_and_unlock_for_user,
    record_achievement_progress,
    get_user_achievements,
    build_user_stats,
)
from src.gamification.challenges import (
    create_challenge,
    join_challenge,
    update_challenge_progress,
    get_challenge_leaderboard,
)

__all__ = [
    "award_points",
    "spend_points",
    "claim_daily_bonus",
    "calculate_level",
    "calculate_level_from_xp",
    "get_user_level_info",
    "record_activity",
    "get_user_streak",
    "check_and_unlock_for_user",
    "record_achievement_progress",
    "get_user_achievements",
    "build_user_stats",
    "create_challenge",
    "join_challenge",
    "update_challenge_progress",
    "get_challenge_leaderboard",
]
