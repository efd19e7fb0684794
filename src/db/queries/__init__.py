"""
Database queries - re-exported so callers can use 'from src.db import queries'.

Functions taking a `conn` run on the caller's connection (normally inside
db.transaction()); the rest open their own connection.

Module organization:
- user.py: Gamification state per user, global leaderboard and rank
- achievements.py: Achievement catalog, user unlocks, aggregate stats
- challenges.py: Challenges, participants, challenge stats
"""

# User operations
from src.db.queries.user import (
    create_user,
    user_exists,
    get_user_gamification,
    fetch_user_gamification,
    save_user_gamification,
    deactivate_user,
    get_leaderboard,
    get_user_rank,
)

# Achievement operations
from src.db.queries.achievements import (
    create_achievement,
    get_active_achievements,
    get_achievement,
    fetch_achievement,
    list_achievements,
    upsert_user_achievement,
    increment_achievement_stats,
)

# Challenge operations
from src.db.queries.challenges import (
    insert_challenge,
    get_challenge,
    fetch_challenge,
    insert_participant,
    update_participant,
    save_challenge_stats,
    list_challenges,
)

__all__ = [
    # User
    "create_user",
    "user_exists",
    "get_user_gamification",
    "fetch_user_gamification",
    "save_user_gamification",
    "deactivate_user",
    "get_leaderboard",
    "get_user_rank",
    # Achievements
    "create_achievement",
    "get_active_achievements",
    "get_achievement",
    "fetch_achievement",
    "list_achievements",
    "upsert_user_achievement",
    "increment_achievement_stats",
    # Challenges
    "insert_challenge",
    "get_challenge",
    "fetch_challenge",
    "insert_participant",
    "update_participant",
    "save_challenge_stats",
    "list_challenges",
]
