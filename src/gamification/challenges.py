"""
Challenge System

Time-boxed challenges that users join and report progress on (0-100%).

- Joining: one entry per user, optional capacity limit, team challenges
  close at start unless late joins are allowed
- Progress: capped at 100; reaching 100 marks the participant completed
  (sticky) and awards the challenge points once
- Leaderboard: completed first, then by progress, then by who finished
  (or joined) first
"""

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from src.db import queries
from src.db.connection import db
from src.exceptions import (
    AlreadyJoinedError,
    CapacityExceededError,
    ChallengeNotActiveError,
    JoinWindowClosedError,
    NotParticipatingError,
    RecordNotFoundError,
    ValidationError,
)
from src.gamification.events import GamificationEvent, Notifier, notify
from src.gamification.xp_system import apply_points
from src.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeStatus,
    ChallengeType,
    JOINABLE_STATUSES,
    LeaderboardEntry,
    Participant,
)
from src.observability import metrics

logger = logging.getLogger(__name__)


# ============================================
# Derived state
# ============================================

def current_status(challenge: Challenge, now: datetime) -> str:
    """'upcoming', 'active' or 'completed' based on the challenge dates"""
    if now < challenge.start_date:
        return "upcoming"
    if now > challenge.end_date:
        return "completed"
    return "active"


def days_remaining(challenge: Challenge, now: datetime) -> int:
    """Whole days left until end_date, rounded up, never negative"""
    remaining = (challenge.end_date - now) / timedelta(days=1)
    return max(0, math.ceil(remaining))


def refresh_stats(challenge: Challenge) -> None:
    """Recompute participant count, completion rate and average progress"""
    participants = challenge.participants
    total = len(participants)
    completed = sum(1 for p in participants if p.completed)

    challenge.stats.total_participants = total
    challenge.stats.completion_rate = round(completed / total * 100) if total else 0
    challenge.stats.average_progress = round(sum(p.progress for p in participants) / total) if total else 0


# ============================================
# Participation
# ============================================

def add_participant(
    challenge: Challenge,
    user_id: str,
    team_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Participant:
    """
    Add a user to a challenge in place

    Raises:
        AlreadyJoinedError: user already participates
        CapacityExceededError: max_participants reached
        JoinWindowClosedError: team challenge already started without late joins
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if challenge.find_participant(user_id) is not None:
        raise AlreadyJoinedError(challenge_id=challenge.id, user_id=user_id)

    if challenge.max_participants is not None and len(challenge.participants) >= challenge.max_participants:
        raise CapacityExceededError(
            max_participants=challenge.max_participants,
            challenge_id=challenge.id,
            user_id=user_id
        )

    if (
        challenge.type == ChallengeType.TEAM
        and not challenge.team_settings.allow_join_after_start
        and now > challenge.start_date
    ):
        raise JoinWindowClosedError(challenge_id=challenge.id, user_id=user_id)

    participant = Participant(user_id=user_id, joined_at=now, team_id=team_id)
    challenge.participants.append(participant)
    refresh_stats(challenge)
    return participant


def update_participant_progress(
    challenge: Challenge,
    user_id: str,
    progress: float,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Set a participant's progress in place

    Progress above 100 is stored as 100. The first time it reaches 100 the
    participant is marked completed; later updates may lower progress but
    never clear the completion.

    Returns:
        {
            'progress': float,
            'completed': bool,
            'newly_completed': bool
        }
    """
    if now is None:
        now = datetime.now(timezone.utc)

    participant = challenge.find_participant(user_id)
    if participant is None:
        raise NotParticipatingError(challenge_id=challenge.id, user_id=user_id)

    if (
        isinstance(progress, bool)
        or not isinstance(progress, (int, float))
        or not math.isfinite(progress)
        or progress < 0
    ):
        raise ValidationError(
            message="Progress must be a finite non-negative number",
            field="progress",
            value=progress,
            user_id=user_id
        )

    participant.progress = min(progress, 100)

    newly_completed = False
    if participant.progress >= 100 and not participant.completed:
        participant.completed = True
        participant.completed_at = now
        newly_completed = True

    refresh_stats(challenge)

    return {
        "progress": participant.progress,
        "completed": participant.completed,
        "newly_completed": newly_completed,
    }


def get_leaderboard(challenge: Challenge, limit: int = 10) -> List[LeaderboardEntry]:
    """Ranked participants, best first"""
    def sort_key(p: Participant):
        if p.completed:
            return (0, -p.progress, p.completed_at or p.joined_at)
        return (1, -p.progress, p.joined_at)

    ranked = sorted(challenge.participants, key=sort_key)[:limit]

    return [
        LeaderboardEntry(
            rank=index + 1,
            user_id=p.user_id,
            progress=p.progress,
            completed=p.completed,
            completed_at=p.completed_at,
            joined_at=p.joined_at,
            team_id=p.team_id,
        )
        for index, p in enumerate(ranked)
    ]


# ============================================
# Persistence-backed operations
# ============================================

async def _load_challenge(conn, challenge_id: str, operation: str) -> Challenge:
    challenge = await queries.get_challenge(conn, challenge_id, for_update=True)
    if challenge is None:
        raise RecordNotFoundError(
            message=f"Challenge {challenge_id} not found",
            record_type="Challenge",
            record_id=challenge_id,
            operation=operation
        )
    return challenge


async def create_challenge(
    payload: Dict[str, Any],
    created_by: Optional[str] = None,
    now: Optional[datetime] = None
) -> Challenge:
    """
    Create and publish a challenge

    Args:
        payload: title, description, category, type, difficulty, points,
            duration, target and optional settings
        created_by: Creating user ID
        now: Default start date

    Returns:
        The stored challenge
    """
    if now is None:
        now = datetime.now(timezone.utc)

    data = {
        "status": ChallengeStatus.PUBLISHED,
        "start_date": now,
        **payload,
        "id": str(uuid.uuid4()),
        "created_by": created_by,
    }
    data.setdefault("experience_points", data.get("points"))

    try:
        challenge = Challenge(**data)
    except PydanticValidationError as e:
        raise ValidationError(
            message=f"Invalid challenge: {e.errors()[0]['msg']}",
            field=".".join(str(part) for part in e.errors()[0]["loc"]),
            user_id=created_by,
            cause=e
        ) from e

    stored = await queries.insert_challenge(challenge)
    logger.info(f"Challenge created by {created_by}: {stored.title} ({stored.id})")
    return stored


async def join_challenge(
    challenge_id: str,
    user_id: str,
    team_id: Optional[str] = None,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> Dict[str, Any]:
    """
    Join a published or active challenge

    Raises:
        ChallengeNotActiveError: challenge is not open (draft, completed, ...)
        AlreadyJoinedError, CapacityExceededError, JoinWindowClosedError
        RecordNotFoundError: unknown challenge or user
    """
    if now is None:
        now = datetime.now(timezone.utc)

    async with db.transaction() as conn:
        challenge = await _load_challenge(conn, challenge_id, "join_challenge")

        if challenge.status not in JOINABLE_STATUSES or not challenge.is_active:
            raise ChallengeNotActiveError(
                status=challenge.status.value,
                challenge_id=challenge_id,
                user_id=user_id
            )

        if not await queries.user_exists(conn, user_id):
            raise RecordNotFoundError(
                message=f"User {user_id} not found",
                record_type="User",
                record_id=user_id,
                operation="join_challenge"
            )

        participant = add_participant(challenge, user_id, team_id, now)
        await queries.insert_participant(conn, challenge_id, participant)
        await queries.save_challenge_stats(conn, challenge)

    metrics.gamification_challenge_joins_total.labels(challenge_type=challenge.type.value).inc()
    logger.info(f"User {user_id} joined challenge: {challenge.title}")

    await notify(notifier, GamificationEvent("challenge_joined", user_id, {
        "challenge_id": challenge_id,
        "title": challenge.title,
        "participant_count": challenge.stats.total_participants,
    }))

    return {
        "challenge_id": challenge_id,
        "joined_at": participant.joined_at,
        "team_id": team_id,
        "participant_count": challenge.stats.total_participants,
    }


async def update_challenge_progress(
    challenge_id: str,
    user_id: str,
    progress: float,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> Dict[str, Any]:
    """
    Report a participant's progress; completion awards the challenge points

    Returns:
        {
            'challenge_id': str,
            'progress': float,
            'completed': bool,
            'newly_completed': bool,
            'points_earned': int,
            'level_up': Optional[dict]   # apply_points() result if the user leveled up
        }
    """
    if now is None:
        now = datetime.now(timezone.utc)

    points_result = None

    async with db.transaction() as conn:
        challenge = await _load_challenge(conn, challenge_id, "update_challenge_progress")
        result = update_participant_progress(challenge, user_id, progress, now)

        await queries.update_participant(conn, challenge_id, challenge.find_participant(user_id))

        if result["newly_completed"]:
            user = await queries.get_user_gamification(conn, user_id, for_update=True)
            if user is None:
                raise RecordNotFoundError(
                    message=f"User {user_id} not found",
                    record_type="User",
                    record_id=user_id,
                    operation="update_challenge_progress"
                )
            points_result = apply_points(user, challenge.points, f"Completed challenge: {challenge.title}")
            await queries.save_user_gamification(conn, user)
            challenge.stats.total_points_awarded += challenge.points

        await queries.save_challenge_stats(conn, challenge)

    await notify(notifier, GamificationEvent("challenge_progress", user_id, {
        "challenge_id": challenge_id,
        "progress": result["progress"],
        "completed": result["completed"],
    }))

    if result["newly_completed"]:
        metrics.gamification_challenge_completions_total.labels(challenge_type=challenge.type.value).inc()
        metrics.gamification_points_awarded_total.labels(source="challenge").inc(challenge.points)
        logger.info(f"User {user_id} completed challenge: {challenge.title} (+{challenge.points} points)")

        await notify(notifier, GamificationEvent("challenge_completed", user_id, {
            "challenge_id": challenge_id,
            "title": challenge.title,
            "points": challenge.points,
            "total_points": points_result["total_points"],
        }))
        if points_result["leveled_up"]:
            metrics.gamification_level_ups_total.inc()
            await notify(notifier, GamificationEvent("level_up", user_id, {
                "old_level": points_result["old_level"],
                "new_level": points_result["new_level"],
            }))

    return {
        "challenge_id": challenge_id,
        "progress": result["progress"],
        "completed": result["completed"],
        "newly_completed": result["newly_completed"],
        "points_earned": challenge.points if result["newly_completed"] else 0,
        "level_up": points_result if points_result and points_result["leveled_up"] else None,
    }


async def get_challenge(challenge_id: str) -> Challenge:
    challenge = await queries.fetch_challenge(challenge_id)
    if challenge is None:
        raise RecordNotFoundError(
            message=f"Challenge {challenge_id} not found",
            record_type="Challenge",
            record_id=challenge_id
        )
    return challenge


async def get_challenge_leaderboard(challenge_id: str, limit: int = 10) -> List[LeaderboardEntry]:
    challenge = await get_challenge(challenge_id)
    return get_leaderboard(challenge, limit)


async def list_challenges(
    category: Optional[ChallengeCategory] = None,
    challenge_type: Optional[ChallengeType] = None,
    difficulty: Optional[ChallengeDifficulty] = None,
    status: ChallengeStatus = ChallengeStatus.ACTIVE,
    limit: int = 20
) -> List[Challenge]:
    """Public challenges matching the filters, most popular first"""
    return await queries.list_challenges(
        category=category,
        challenge_type=challenge_type,
        difficulty=difficulty,
        status=status,
        limit=limit
    )


async def get_trending_challenges(limit: int = 10) -> List[Challenge]:
    """Active public challenges with the most participants"""
    return await queries.list_challenges(status=ChallengeStatus.ACTIVE, limit=limit)


async def get_featured_challenges(limit: int = 5) -> List[Challenge]:
    """Featured active challenges, newest first"""
    return await queries.list_challenges(
        status=ChallengeStatus.ACTIVE,
        featured=True,
        order_by="newest",
        limit=limit
    )
