"""Challenge and participant queries"""
import json
import logging
from typing import List, Optional

import psycopg

from src.db.connection import db
from src.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeStats,
    ChallengeStatus,
    ChallengeType,
    Participant,
)

logger = logging.getLogger(__name__)

CHALLENGE_COLUMNS = """
    id, title, description, category, type, difficulty, points,
    experience_points, badge, duration, start_date, target, max_participants,
    min_participants, team_settings, total_participants, completion_rate,
    average_progress, total_points_awarded, created_by, status, featured,
    is_active, is_public, tags
"""

LIST_ORDERS = {
    "popular": "total_participants DESC, created_at DESC",
    "newest": "created_at DESC",
}


def _row_to_challenge(row: dict, participants: Optional[List[dict]] = None) -> Challenge:
    return Challenge(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        type=row["type"],
        difficulty=row["difficulty"],
        points=row["points"],
        experience_points=row["experience_points"],
        badge=row["badge"],
        duration=row["duration"],
        start_date=row["start_date"],
        target=row["target"],
        max_participants=row["max_participants"],
        min_participants=row["min_participants"],
        team_settings=row["team_settings"],
        participants=[Participant(**p) for p in participants or []],
        stats=ChallengeStats(
            total_participants=row["total_participants"],
            completion_rate=row["completion_rate"],
            average_progress=row["average_progress"],
            total_points_awarded=row["total_points_awarded"],
        ),
        created_by=row["created_by"],
        status=row["status"],
        featured=row["featured"],
        is_active=row["is_active"],
        is_public=row["is_public"],
        tags=row["tags"] or [],
    )


async def insert_challenge(challenge: Challenge) -> Challenge:
    """Store a new challenge definition (without participants)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO challenges
                (id, title, description, category, type, difficulty, points,
                 experience_points, badge, duration, start_date, end_date, target,
                 max_participants, min_participants, team_settings, created_by,
                 status, featured, is_active, is_public, tags)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {CHALLENGE_COLUMNS}
                """,
                (
                    challenge.id,
                    challenge.title,
                    challenge.description,
                    challenge.category.value,
                    challenge.type.value,
                    challenge.difficulty.value,
                    challenge.points,
                    challenge.experience_points,
                    challenge.badge,
                    challenge.duration,
                    challenge.start_date,
                    challenge.end_date,
                    json.dumps(challenge.target.model_dump(mode="json")),
                    challenge.max_participants,
                    challenge.min_participants,
                    json.dumps(challenge.team_settings.model_dump()),
                    challenge.created_by,
                    challenge.status.value,
                    challenge.featured,
                    challenge.is_active,
                    challenge.is_public,
                    challenge.tags,
                )
            )
            row = await cur.fetchone()
            await conn.commit()

    return _row_to_challenge(row)


async def get_challenge(
    conn: psycopg.AsyncConnection,
    challenge_id: str,
    for_update: bool = False
) -> Optional[Challenge]:
    """
    Load a challenge with all of its participants

    With for_update the challenge row is locked until the transaction ends,
    serializing joins and progress updates on the same challenge.
    """
    lock = " FOR UPDATE" if for_update else ""

    async with conn.cursor() as cur:
        await cur.execute(
            f"SELECT {CHALLENGE_COLUMNS} FROM challenges WHERE id = %s{lock}",
            (challenge_id,)
        )
        row = await cur.fetchone()
        if not row:
            return None

        await cur.execute(
            """
            SELECT user_id, joined_at, progress, completed, completed_at, team_id
            FROM challenge_participants
            WHERE challenge_id = %s
            ORDER BY joined_at, user_id
            """,
            (challenge_id,)
        )
        participants = await cur.fetchall()

    return _row_to_challenge(row, participants)


async def fetch_challenge(challenge_id: str) -> Optional[Challenge]:
    async with db.connection() as conn:
        return await get_challenge(conn, challenge_id)


async def insert_participant(
    conn: psycopg.AsyncConnection,
    challenge_id: str,
    participant: Participant
) -> None:
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO challenge_participants
            (challenge_id, user_id, joined_at, progress, completed, completed_at, team_id)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                challenge_id,
                participant.user_id,
                participant.joined_at,
                participant.progress,
                participant.completed,
                participant.completed_at,
                participant.team_id,
            )
        )


async def update_participant(
    conn: psycopg.AsyncConnection,
    challenge_id: str,
    participant: Participant
) -> None:
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE challenge_participants
            SET progress = %s,
                completed = %s,
                completed_at = %s
            WHERE challenge_id = %s AND user_id = %s
            """,
            (
                participant.progress,
                participant.completed,
                participant.completed_at,
                challenge_id,
                participant.user_id,
            )
        )


async def save_challenge_stats(conn: psycopg.AsyncConnection, challenge: Challenge) -> None:
    """Persist the aggregate counters recomputed from participants"""
    async with conn.cursor() as cur:
        await cur.execute(
            """
            UPDATE challenges
            SET total_participants = %s,
                completion_rate = %s,
                average_progress = %s,
                total_points_awarded = %s,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            """,
            (
                challenge.stats.total_participants,
                challenge.stats.completion_rate,
                challenge.stats.average_progress,
                challenge.stats.total_points_awarded,
                challenge.id,
            )
        )


async def list_challenges(
    category: Optional[ChallengeCategory] = None,
    challenge_type: Optional[ChallengeType] = None,
    difficulty: Optional[ChallengeDifficulty] = None,
    status: Optional[ChallengeStatus] = ChallengeStatus.ACTIVE,
    featured: Optional[bool] = None,
    order_by: str = "popular",
    limit: int = 20
) -> List[Challenge]:
    """
    Public, active challenges matching the filters

    Listings carry stats but not the participant list; load a single
    challenge for its participants.
    """
    conditions = ["is_active = TRUE", "is_public = TRUE"]
    params: list = []

    if status is not None:
        conditions.append("status = %s")
        params.append(status.value)
    if category is not None:
        conditions.append("category = %s")
        params.append(category.value)
    if challenge_type is not None:
        conditions.append("type = %s")
        params.append(challenge_type.value)
    if difficulty is not None:
        conditions.append("difficulty = %s")
        params.append(difficulty.value)
    if featured is not None:
        conditions.append("featured = %s")
        params.append(featured)

    params.append(limit)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {CHALLENGE_COLUMNS}
                FROM challenges
                WHERE {' AND '.join(conditions)}
                ORDER BY {LIST_ORDERS[order_by]}
                LIMIT %s
                """,
                params
            )
            rows = await cur.fetchall()

    return [_row_to_challenge(row) for row in rows]
