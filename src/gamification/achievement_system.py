"""
Achievement System

Evaluates declarative achievement rules against a snapshot of user statistics:
- Each achievement has one criterion: user_stats[target] <operator> value
- Operators: >=, >, =, <, <=, in, between
- Optional availability window and required prerequisites

Features:
- Idempotent unlocks (one user_achievements row per user and achievement)
- Partial progress for progressive achievements
- Secret achievements hidden from catalog views until unlocked
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime, timezone
import logging

from src.db import queries
from src.db.connection import db
from src.exceptions import RecordNotFoundError, ValidationError
from src.gamification.events import GamificationEvent, Notifier, notify
from src.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementCriteria,
    AchievementRarity,
    CriteriaOperator,
    RARE_TIERS,
)
from src.models.user import UserAchievement, UserGamification
from src.observability import metrics

logger = logging.getLogger(__name__)

STAT_KEYS = ("steps", "water", "workouts", "savings", "posts")

_COMPARISONS = {
    CriteriaOperator.GTE: lambda stat, value: stat >= value,
    CriteriaOperator.GT: lambda stat, value: stat > value,
    CriteriaOperator.EQ: lambda stat, value: stat == value,
    CriteriaOperator.LT: lambda stat, value: stat < value,
    CriteriaOperator.LTE: lambda stat, value: stat <= value,
}


def check_criteria(criteria: AchievementCriteria, user_stats: Dict[str, Any]) -> bool:
    """
    Evaluate a criterion against user statistics

    A missing statistic, unknown operator or malformed value evaluates to
    False rather than raising. The criterion's timeframe is not applied; the
    caller is expected to pass statistics for the intended period.
    """
    if criteria.target not in user_stats:
        return False

    stat = user_stats[criteria.target]
    value = criteria.value

    try:
        if criteria.operator == CriteriaOperator.IN:
            return isinstance(value, (list, tuple)) and stat in value

        if criteria.operator == CriteriaOperator.BETWEEN:
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                return False
            low, high = value
            return low <= stat <= high

        comparison = _COMPARISONS.get(criteria.operator)
        if comparison is None:
            return False
        return bool(comparison(stat, value))

    except TypeError:
        # e.g. comparing a number with a string
        logger.debug(f"Criteria {criteria.target} {criteria.operator} {value!r} not comparable with {stat!r}")
        return False


def is_available(achievement: Achievement, now: datetime) -> bool:
    """Active and inside the optional availability window"""
    if not achievement.is_active:
        return False
    if achievement.available_from is not None and achievement.available_from > now:
        return False
    if achievement.available_to is not None and achievement.available_to < now:
        return False
    return True


def prerequisites_met(achievement: Achievement, unlocked_ids: Iterable[str]) -> bool:
    """Every required prerequisite is already unlocked"""
    unlocked = set(unlocked_ids)
    return all(
        prereq.achievement_id in unlocked
        for prereq in achievement.prerequisites
        if prereq.required
    )


def unlock_achievement(
    user: UserGamification,
    achievement_id: str,
    now: datetime,
    progress: int = 100
) -> bool:
    """
    Record achievement progress on a user in place.

    - No entry yet: append one
    - Partial entry: progress only moves up; reaching 100 unlocks it
    - Already unlocked: no change

    Returns:
        True only if the achievement became unlocked during this call
    """
    progress = max(0, min(progress, 100))
    entry = user.find_achievement(achievement_id)

    if entry is None:
        user.achievements.append(UserAchievement(
            achievement_id=achievement_id,
            unlocked_at=now if progress >= 100 else None,
            progress=progress
        ))
        return progress >= 100

    if entry.is_unlocked:
        return False

    entry.progress = max(entry.progress, progress)
    if entry.is_unlocked:
        entry.unlocked_at = now
        return True
    return False


def build_user_stats(user: UserGamification, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the statistics snapshot achievements are evaluated against

    Args:
        user: Current gamification state
        metadata: Activity metrics supplied by the caller (steps, water,
            workouts, savings, posts); extra keys are passed through

    Returns:
        Dict keyed by criteria target names
    """
    metadata = metadata or {}

    stats = {key: value for key, value in metadata.items() if key not in STAT_KEYS}
    stats.update({
        "total_points": user.total_points,
        "level": user.level,
        "streak": user.current_streak,
        "current_streak": user.current_streak,
        "challenges": user.completed_challenges_count,
        "friends": user.friends_count,
    })
    for key in STAT_KEYS:
        stats[key] = metadata.get(key, 0)

    return stats


def find_unlockable(
    user: UserGamification,
    catalog: List[Achievement],
    user_stats: Dict[str, Any],
    now: datetime
) -> List[Achievement]:
    """
    Achievements from the catalog that the user qualifies for right now

    Prerequisites are checked against the unlocked set as it was before this
    evaluation, so a chain of prerequisites advances one link per pass.
    """
    present = {entry.achievement_id for entry in user.achievements}
    unlocked = user.unlocked_achievement_ids

    matches = []
    for achievement in catalog:
        if achievement.id in present or not is_available(achievement, now):
            continue
        if not prerequisites_met(achievement, unlocked):
            continue
        if check_criteria(achievement.criteria, user_stats):
            matches.append(achievement)
    return matches


async def unlock_matching(
    conn,
    user: UserGamification,
    user_stats: Dict[str, Any],
    now: datetime
) -> List[Achievement]:
    """
    Unlock and persist every qualifying achievement on the caller's transaction

    The user row must already be locked by the caller. Events are not sent;
    pass the result to announce_unlocks() after commit.
    """
    newly_unlocked = []

    catalog = await queries.get_active_achievements(conn)

    for achievement in find_unlockable(user, catalog, user_stats, now):
        if not unlock_achievement(user, achievement.id, now):
            continue
        await queries.upsert_user_achievement(conn, user.user_id, user.find_achievement(achievement.id))
        await queries.increment_achievement_stats(conn, achievement.id, now)
        newly_unlocked.append(achievement)

    return newly_unlocked


async def announce_unlocks(
    user_id: str,
    achievements: List[Achievement],
    notifier: Optional[Notifier] = None
) -> None:
    for achievement in achievements:
        metrics.gamification_achievements_unlocked_total.labels(category=achievement.category.value).inc()
        logger.info(
            f"User {user_id} unlocked achievement: {achievement.id} "
            f"({achievement.title}) [{achievement.rarity.value}]"
        )
        await notify(notifier, GamificationEvent("achievement_unlocked", user_id, {
            "achievement_id": achievement.id,
            "title": achievement.title,
            "icon": achievement.icon,
            "rarity": achievement.rarity.value,
            "points": achievement.points,
        }))


async def check_and_unlock_for_user(
    user_id: str,
    user_stats: Dict[str, Any],
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> List[Achievement]:
    """
    Unlock every achievement whose criterion the user's stats satisfy

    Args:
        user_id: User ID
        user_stats: Snapshot from build_user_stats() (or any dict keyed by target)
        now: Evaluation time for availability windows
        notifier: Optional async callback for achievement_unlocked events

    Returns:
        Newly unlocked achievements in catalog order; [] for an unknown user
    """
    if now is None:
        now = datetime.now(timezone.utc)

    async with db.transaction() as conn:
        user = await queries.get_user_gamification(conn, user_id, for_update=True)
        if user is None:
            logger.warning(f"Achievement check for unknown user {user_id}")
            return []

        newly_unlocked = await unlock_matching(conn, user, user_stats, now)

    await announce_unlocks(user_id, newly_unlocked, notifier)
    return newly_unlocked


async def record_achievement_progress(
    user_id: str,
    achievement_id: str,
    progress: int,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> Dict[str, any]:
    """
    Record partial progress (0-100) toward an achievement; 100 unlocks it

    Returns:
        {
            'achievement_id': str,
            'progress': int,
            'unlocked': bool,        # currently unlocked
            'newly_unlocked': bool   # unlocked by this call
        }
    """
    if isinstance(progress, bool) or not isinstance(progress, int) or progress < 0:
        raise ValidationError(
            message="Progress must be a non-negative integer",
            field="progress",
            value=progress
        )

    if now is None:
        now = datetime.now(timezone.utc)

    async with db.transaction() as conn:
        user = await queries.get_user_gamification(conn, user_id, for_update=True)
        if user is None:
            raise RecordNotFoundError(
                message=f"User {user_id} not found",
                record_type="User",
                record_id=user_id,
                operation="record_achievement_progress"
            )

        achievement = await queries.get_achievement(conn, achievement_id)
        if achievement is None:
            raise RecordNotFoundError(
                message=f"Achievement {achievement_id} not found",
                record_type="Achievement",
                record_id=achievement_id,
                operation="record_achievement_progress"
            )

        newly_unlocked = unlock_achievement(user, achievement_id, now, progress)
        entry = user.find_achievement(achievement_id)
        await queries.upsert_user_achievement(conn, user_id, entry)
        if newly_unlocked:
            await queries.increment_achievement_stats(conn, achievement_id, now)

    if newly_unlocked:
        metrics.gamification_achievements_unlocked_total.labels(category=achievement.category.value).inc()
        logger.info(f"User {user_id} completed progressive achievement {achievement_id}")
        await notify(notifier, GamificationEvent("achievement_unlocked", user_id, {
            "achievement_id": achievement.id,
            "title": achievement.title,
            "icon": achievement.icon,
            "rarity": achievement.rarity.value,
            "points": achievement.points,
        }))

    return {
        "achievement_id": achievement_id,
        "progress": entry.progress,
        "unlocked": entry.is_unlocked,
        "newly_unlocked": newly_unlocked,
    }


def _summarize(achievement: Achievement) -> Dict[str, any]:
    return {
        "id": achievement.id,
        "title": achievement.title,
        "description": achievement.description,
        "icon": achievement.icon,
        "category": achievement.category.value,
        "rarity": achievement.rarity.value,
        "points": achievement.points,
    }


async def get_user_achievements(user_id: str) -> Dict[str, any]:
    """
    Get user's achievements, unlocked and locked

    Secret achievements only appear once unlocked.

    Returns:
        {
            'unlocked': [achievement summary + unlocked_at],
            'locked': [achievement summary + progress],
            'total_unlocked': int,
            'total_achievements': int,   # visible to this user
            'completion_percentage': int
        }
    """
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )

    catalog = await queries.list_achievements(include_secret=True)

    unlocked = []
    locked = []
    for achievement in catalog:
        entry = user.find_achievement(achievement.id)
        if entry is not None and entry.is_unlocked:
            unlocked.append({**_summarize(achievement), "unlocked_at": entry.unlocked_at})
        elif not achievement.is_secret and achievement.is_public:
            locked.append({**_summarize(achievement), "progress": entry.progress if entry else 0})

    # Most recent first
    unlocked.sort(key=lambda x: x["unlocked_at"] or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    total = len(unlocked) + len(locked)
    return {
        "unlocked": unlocked,
        "locked": locked,
        "total_unlocked": len(unlocked),
        "total_achievements": total,
        "completion_percentage": round(len(unlocked) / total * 100) if total else 0,
    }


async def list_achievements(
    category: Optional[AchievementCategory] = None,
    rarity: Optional[AchievementRarity] = None
) -> List[Achievement]:
    """Public, non-secret catalog ordered by series then points"""
    return await queries.list_achievements(category=category, rarity=rarity)


async def get_featured_achievements(limit: int = 10) -> List[Achievement]:
    return await queries.list_achievements(featured=True, limit=limit)


async def get_rare_achievements(limit: int = 20) -> List[Achievement]:
    """Epic, legendary and mythic achievements"""
    return await queries.list_achievements(rarities=list(RARE_TIERS), limit=limit)
