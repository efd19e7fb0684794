"""Achievement catalog and unlock queries"""
import json
import logging
from datetime import datetime
from typing import List, Optional

import psycopg

from src.db.connection import db
from src.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementRarity,
    AchievementStats,
)
from src.models.user import UserAchievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_COLUMNS = """
    id, title, description, icon, category, type, rarity, points,
    experience_points, difficulty, badge, criteria, prerequisites, series,
    is_active, is_public, is_secret, featured, available_from, available_to,
    total_unlocked, unique_users, first_unlocked_at, last_unlocked_at, tags
"""


def _row_to_achievement(row: dict) -> Achievement:
    return Achievement(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        icon=row["icon"],
        category=row["category"],
        type=row["type"],
        rarity=row["rarity"],
        points=row["points"],
        experience_points=row["experience_points"],
        difficulty=row["difficulty"],
        badge=row["badge"],
        criteria=row["criteria"],
        prerequisites=row["prerequisites"] or [],
        series=row["series"],
        is_active=row["is_active"],
        is_public=row["is_public"],
        is_secret=row["is_secret"],
        featured=row["featured"],
        available_from=row["available_from"],
        available_to=row["available_to"],
        stats=AchievementStats(
            total_unlocked=row["total_unlocked"],
            unique_users=row["unique_users"],
            first_unlocked_at=row["first_unlocked_at"],
            last_unlocked_at=row["last_unlocked_at"],
        ),
        tags=row["tags"] or [],
    )


async def create_achievement(achievement: Achievement) -> Achievement:
    """Insert an achievement definition into the catalog"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO achievements
                (id, title, description, icon, category, type, rarity, points,
                 experience_points, difficulty, badge, criteria, prerequisites, series,
                 is_active, is_public, is_secret, featured, available_from, available_to, tags)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, %s, %s)
                RETURNING {ACHIEVEMENT_COLUMNS}
                """,
                (
                    achievement.id,
                    achievement.title,
                    achievement.description,
                    achievement.icon,
                    achievement.category.value,
                    achievement.type.value,
                    achievement.rarity.value,
                    achievement.points,
                    achievement.experience_points,
                    achievement.difficulty.value,
                    achievement.badge,
                    json.dumps(achievement.criteria.model_dump(mode="json")),
                    json.dumps([p.model_dump() for p in achievement.prerequisites]),
                    json.dumps(achievement.series.model_dump()) if achievement.series else None,
                    achievement.is_active,
                    achievement.is_public,
                    achievement.is_secret,
                    achievement.featured,
                    achievement.available_from,
                    achievement.available_to,
                    achievement.tags,
                )
            )
            row = await cur.fetchone()
            await conn.commit()

    logger.info(f"Created achievement {achievement.id}: {achievement.title}")
    return _row_to_achievement(row)


async def get_active_achievements(conn: psycopg.AsyncConnection) -> List[Achievement]:
    """Active catalog in evaluation order"""
    async with conn.cursor() as cur:
        await cur.execute(
            f"""
            SELECT {ACHIEVEMENT_COLUMNS}
            FROM achievements
            WHERE is_active = TRUE
            ORDER BY created_at, id
            """
        )
        rows = await cur.fetchall()

    return [_row_to_achievement(row) for row in rows]


async def get_achievement(conn: psycopg.AsyncConnection, achievement_id: str) -> Optional[Achievement]:
    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {ACHIEVEMENT_COLUMNS} FROM achievements WHERE id = %s",
            (achievement_id,)
        )
        row = await cur.fetchone()

    return _row_to_achievement(row) if row else None


async def fetch_achievement(achievement_id: str) -> Optional[Achievement]:
    async with db.connection() as conn:
        return await get_achievement(conn, achievement_id)


async def list_achievements(
    category: Optional[AchievementCategory] = None,
    rarity: Optional[AchievementRarity] = None,
    rarities: Optional[List[AchievementRarity]] = None,
    featured: Optional[bool] = None,
    include_secret: bool = False,
    limit: Optional[int] = None
) -> List[Achievement]:
    """
    Active, public achievements matching the filters

    Ordered by series position then points, matching how the catalog is
    presented; featured and rare listings order by points (highest first).
    """
    conditions = ["is_active = TRUE", "is_public = TRUE"]
    params: list = []

    if not include_secret:
        conditions.append("is_secret = FALSE")
    if category is not None:
        conditions.append("category = %s")
        params.append(category.value)
    if rarity is not None:
        conditions.append("rarity = %s")
        params.append(rarity.value)
    if rarities:
        conditions.append("rarity = ANY(%s)")
        params.append([r.value for r in rarities])
    if featured is not None:
        conditions.append("featured = %s")
        params.append(featured)

    if featured or rarities:
        order = "points DESC, total_unlocked ASC, created_at DESC"
    else:
        order = "(series->>'order')::int NULLS LAST, points ASC, id"

    query = f"""
        SELECT {ACHIEVEMENT_COLUMNS}
        FROM achievements
        WHERE {' AND '.join(conditions)}
        ORDER BY {order}
    """
    if limit is not None:
        query += " LIMIT %s"
        params.append(limit)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query, params)
            rows = await cur.fetchall()

    return [_row_to_achievement(row) for row in rows]


async def upsert_user_achievement(
    conn: psycopg.AsyncConnection,
    user_id: str,
    entry: UserAchievement
) -> None:
    """
    Insert or advance a user's achievement row

    Progress never moves backward and an existing unlock time is kept, so
    concurrent writers converge on a single unlocked row.
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO user_achievements (user_id, achievement_id, unlocked_at, progress)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id, achievement_id) DO UPDATE SET
                progress = GREATEST(user_achievements.progress, EXCLUDED.progress),
                unlocked_at = COALESCE(user_achievements.unlocked_at, EXCLUDED.unlocked_at)
            """,
            (user_id, entry.achievement_id, entry.unlocked_at, entry.progress)
        )


async def increment_achievement_stats(
    conn: psycopg.AsyncConnection,
    achievement_id: str,
    unlocked_at: datetime
) -> None:
    """Bump aggregate unlock counters for one new unlock"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE achievements
            SET total_unlocked = total_unlocked + 1,
                unique_users = unique_users + 1,
                first_unlocked_at = COALESCE(first_unlocked_at, %s),
                last_unlocked_at = %s
            WHERE id = %s
            """,
            (unlocked_at, unlocked_at, achievement_id)
        )
