"""User gamification state queries"""
import logging
from typing import List, Optional

import psycopg
from psycopg import sql

from src.db.connection import db
from src.models.user import ActiveChallenge, UserAchievement, UserGamification

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, username, total_points, available_points, experience, level,
    current_streak, longest_streak, last_activity_date, last_bonus_claimed_at,
    friends_count, is_active, created_at
"""

LEADERBOARD_COLUMNS = {
    "points": "total_points",
    "level": "experience",
    "streak": "current_streak",
}


def _row_to_user(row: dict) -> UserGamification:
    return UserGamification(
        user_id=row["id"],
        username=row["username"],
        total_points=row["total_points"],
        available_points=row["available_points"],
        experience=row["experience"],
        level=row["level"],
        current_streak=row["current_streak"],
        longest_streak=row["longest_streak"],
        last_activity_date=row["last_activity_date"],
        last_bonus_claimed_at=row["last_bonus_claimed_at"],
        friends_count=row["friends_count"],
        is_active=row["is_active"],
        created_at=row["created_at"],
    )


async def create_user(user_id: str, username: Optional[str] = None) -> UserGamification:
    """
    Create gamification state for a user (idempotent).

    An existing user keeps all counters; only a newly supplied username is
    applied.
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO users (id, username)
                VALUES (%s, %s)
                ON CONFLICT (id) DO UPDATE SET
                    username = COALESCE(EXCLUDED.username, users.username)
                RETURNING {USER_COLUMNS}
                """,
                (user_id, username)
            )
            row = await cur.fetchone()
            await conn.commit()

    logger.info(f"Ensured gamification user exists: {user_id}")
    return _row_to_user(row)


async def user_exists(conn: psycopg.AsyncConnection, user_id: str) -> bool:
    """Check for an active user"""
    async with conn.cursor() as cur:
        await cur.execute(
            "SELECT 1 FROM users WHERE id = %s AND is_active = TRUE",
            (user_id,)
        )
        return await cur.fetchone() is not None


async def get_user_gamification(
    conn: psycopg.AsyncConnection,
    user_id: str,
    for_update: bool = False
) -> Optional[UserGamification]:
    """
    Load a user's full gamification state on an existing connection

    Args:
        conn: Connection (inside a transaction when for_update is set)
        user_id: User ID
        for_update: Lock the user row until the transaction ends

    Returns:
        UserGamification with achievements and challenge participations, or
        None if the user does not exist
    """
    lock = " FOR UPDATE" if for_update else ""

    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = %s{lock}",
            (user_id,)
        )
        row = await cur.fetchone()
        if not row:
            return None

        user = _row_to_user(row)

        await cur.execute(
            """
            SELECT achievement_id, unlocked_at, progress
            FROM user_achievements
            WHERE user_id = %s
            ORDER BY unlocked_at NULLS LAST, achievement_id
            """,
            (user_id,)
        )
        user.achievements = [UserAchievement(**r) for r in await cur.fetchall()]

        # Participation is owned by challenge_participants; this is a projection
        await cur.execute(
            """
            SELECT cp.challenge_id, cp.joined_at, cp.progress, cp.completed,
                   cp.completed_at, cp.team_id, c.title, c.end_date
            FROM challenge_participants cp
            JOIN challenges c ON c.id = cp.challenge_id
            WHERE cp.user_id = %s
            ORDER BY cp.joined_at
            """,
            (user_id,)
        )
        user.active_challenges = [ActiveChallenge(**r) for r in await cur.fetchall()]

    return user


async def fetch_user_gamification(user_id: str) -> Optional[UserGamification]:
    """Read-only load of a user's gamification state"""
    async with db.connection() as conn:
        return await get_user_gamification(conn, user_id)


async def save_user_gamification(conn: psycopg.AsyncConnection, user: UserGamification) -> None:
    """Persist a user's scalar gamification counters"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE users
            SET total_points = %s,
                available_points = %s,
                experience = %s,
                level = %s,
                current_streak = %s,
                longest_streak = %s,
                last_activity_date = %s,
                last_bonus_claimed_at = %s,
                friends_count = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            """,
            (
                user.total_points,
                user.available_points,
                user.experience,
                user.level,
                user.current_streak,
                user.longest_streak,
                user.last_activity_date,
                user.last_bonus_claimed_at,
                user.friends_count,
                user.user_id,
            )
        )


async def deactivate_user(user_id: str) -> bool:
    """
    Soft-delete a user; all gamification fields are kept

    Returns:
        True if an active user was deactivated
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE users
                SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP
                WHERE id = %s AND is_active = TRUE
                RETURNING id
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            await conn.commit()

    if row:
        logger.info(f"Deactivated user {user_id}")
    return row is not None


async def get_leaderboard(category: str = "points", limit: int = 10) -> List[dict]:
    """
    Top active users by points, level or streak

    Returns:
        [{'rank', 'user_id', 'username', 'level', 'total_points', 'current_streak'}]
    """
    column = LEADERBOARD_COLUMNS[category]

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                sql.SQL(
                    """
                    SELECT id AS user_id, username, level, total_points, current_streak
                    FROM users
                    WHERE is_active = TRUE
                    ORDER BY {column} DESC, created_at ASC
                    LIMIT %s
                    """
                ).format(column=sql.Identifier(column)),
                (limit,)
            )
            rows = await cur.fetchall()

    return [{"rank": index + 1, **dict(row)} for index, row in enumerate(rows)]


async def get_user_rank(user_id: str, category: str = "points") -> Optional[int]:
    """
    1-based rank of a user among active users (ties share a rank)

    Returns:
        Rank, or None if the user does not exist
    """
    column = LEADERBOARD_COLUMNS[category]

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                sql.SQL(
                    """
                    SELECT 1 + (
                        SELECT COUNT(*) FROM users other
                        WHERE other.is_active = TRUE
                          AND other.{column} > target.{column}
                    ) AS rank
                    FROM users target
                    WHERE target.id = %s
                    """
                ).format(column=sql.Identifier(column)),
                (user_id,)
            )
            row = await cur.fetchone()

    return row["rank"] if row else None
