"""
Points Ledger and Leveling System

Manages point awards/spends, experience and level calculation.

Leveling Curve:
- level = floor(experience / 1000) + 1
- Level 1 starts at 0 XP; there is no level-down path

Points:
- total_points: cumulative, never decreases
- available_points: spendable balance
- experience: raised in lockstep with points on every award

Daily Bonus:
- Base: 50 points
- 7+ day streak: +25
- 30+ day streak: +50
- 100+ day streak: +100
"""

from typing import Dict, Optional
from datetime import datetime, timezone
import logging

from src.config import XP_PER_LEVEL, DAILY_BONUS_BASE
from src.db import queries
from src.db.connection import db
from src.exceptions import (
    ValidationError,
    InsufficientPointsError,
    RecordNotFoundError,
    DailyBonusAlreadyClaimedError,
)
from src.gamification.events import GamificationEvent, Notifier, notify
from src.gamification.streak_system import apply_activity
from src.models.user import UserGamification
from src.observability import metrics

logger = logging.getLogger(__name__)

STREAK_BONUSES = ((7, 25), (30, 50), (100, 100))


def calculate_level(experience: int) -> int:
    """Level for an experience total: floor(experience / 1000) + 1, never below 1"""
    return max(experience, 0) // XP_PER_LEVEL + 1


def calculate_level_from_xp(experience: int) -> Dict[str, int]:
    """
    Calculate level and in-level progress from total experience

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'xp_for_next_level': int,   # experience total at which the next level starts
            'level_progress': int       # percentage through the current level
        }
    """
    experience = max(experience, 0)
    level = calculate_level(experience)
    current_level_xp = (level - 1) * XP_PER_LEVEL
    next_level_xp = level * XP_PER_LEVEL
    xp_in_level = experience - current_level_xp

    return {
        "current_level": level,
        "xp_in_current_level": xp_in_level,
        "xp_to_next_level": next_level_xp - experience,
        "xp_for_next_level": next_level_xp,
        "level_progress": round(xp_in_level / XP_PER_LEVEL * 100),
    }


def _validate_amount(amount, field: str = "amount") -> None:
    # bool is an int subclass; True is not a valid amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            message="Amount must be a positive integer",
            field=field,
            value=amount
        )


def apply_points(user: UserGamification, amount: int, reason: str) -> Dict[str, any]:
    """
    Add points to a user's state in place.

    Raises total_points, available_points and experience by `amount` and
    recomputes the level. Streak state is not touched.
    """
    _validate_amount(amount)

    old_level = user.level
    user.total_points += amount
    user.available_points += amount
    user.experience += amount
    user.level = max(user.level, calculate_level(user.experience))

    return {
        "points_awarded": amount,
        "total_points": user.total_points,
        "available_points": user.available_points,
        "experience": user.experience,
        "old_level": old_level,
        "new_level": user.level,
        "leveled_up": user.level > old_level,
        "reason": reason,
    }


def apply_spend(user: UserGamification, amount: int, reason: str) -> Dict[str, any]:
    """
    Spend points from a user's available balance in place.

    Raises:
        ValidationError: amount is not a positive integer
        InsufficientPointsError: available_points < amount
    """
    _validate_amount(amount)

    if user.available_points < amount:
        raise InsufficientPointsError(
            requested=amount,
            available=user.available_points,
            user_id=user.user_id,
            operation="spend_points"
        )

    user.available_points -= amount

    return {
        "points_spent": amount,
        "available_points": user.available_points,
        "total_points": user.total_points,
        "reason": reason,
    }


def calculate_daily_bonus(current_streak: int) -> int:
    """Daily bonus points for a streak length"""
    bonus = DAILY_BONUS_BASE
    for threshold, extra in STREAK_BONUSES:
        if current_streak >= threshold:
            bonus += extra
    return bonus


def _claimed_on_same_utc_day(last_claim: Optional[datetime], now: datetime) -> bool:
    # psycopg returns timestamptz in the session time zone
    if last_claim is None:
        return False
    return last_claim.astimezone(timezone.utc).date() == now.astimezone(timezone.utc).date()


async def load_user_for_update(conn, user_id: str, operation: str) -> UserGamification:
    user = await queries.get_user_gamification(conn, user_id, for_update=True)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id,
            operation=operation
        )
    return user


async def announce_points(user_id: str, result: Dict, source: str, notifier: Optional[Notifier]) -> None:
    metrics.gamification_points_awarded_total.labels(source=source).inc(result["points_awarded"])

    logger.info(
        f"Awarded {result['points_awarded']} points to user {user_id} ({result['reason']}). "
        f"Total: {result['total_points']}, Level: {result['new_level']}"
    )

    await notify(notifier, GamificationEvent("points_earned", user_id, {
        "points": result["points_awarded"],
        "reason": result["reason"],
        "total_points": result["total_points"],
        "level": result["new_level"],
    }))

    if result["leveled_up"]:
        metrics.gamification_level_ups_total.inc()
        logger.info(f"User {user_id} leveled up from {result['old_level']} to {result['new_level']}!")
        await notify(notifier, GamificationEvent("level_up", user_id, {
            "old_level": result["old_level"],
            "new_level": result["new_level"],
        }))


async def award_points(
    user_id: str,
    amount: int,
    reason: str = "Activity completion",
    source: str = "activity",
    notifier: Optional[Notifier] = None
) -> Dict[str, any]:
    """
    Award points (and the same amount of XP) to a user

    Args:
        user_id: User ID
        amount: Positive number of points
        reason: Human-readable description, logged for audit
        source: Metrics label for where the points came from
        notifier: Optional async callback for points_earned/level_up events

    Returns:
        Result of apply_points()
    """
    _validate_amount(amount)

    async with db.transaction() as conn:
        user = await load_user_for_update(conn, user_id, "award_points")
        result = apply_points(user, amount, reason)
        await queries.save_user_gamification(conn, user)

    await announce_points(user_id, result, source, notifier)
    return result


async def spend_points(
    user_id: str,
    amount: int,
    reason: str = "Purchase",
    notifier: Optional[Notifier] = None
) -> Dict[str, any]:
    """
    Spend points from a user's available balance

    Raises:
        InsufficientPointsError: balance too low (nothing is changed)
        RecordNotFoundError: unknown user
    """
    _validate_amount(amount)

    async with db.transaction() as conn:
        user = await load_user_for_update(conn, user_id, "spend_points")
        result = apply_spend(user, amount, reason)
        await queries.save_user_gamification(conn, user)

    metrics.gamification_points_spent_total.inc(amount)
    logger.info(f"User {user_id} spent {amount} points ({reason}). Available: {result['available_points']}")

    await notify(notifier, GamificationEvent("points_spent", user_id, {
        "points": amount,
        "reason": reason,
        "available_points": result["available_points"],
    }))
    return result


async def claim_daily_bonus(
    user_id: str,
    now: Optional[datetime] = None,
    notifier: Optional[Notifier] = None
) -> Dict[str, any]:
    """
    Claim the once-per-day login bonus

    Records today's activity first, so the bonus reflects the updated streak.

    Raises:
        DailyBonusAlreadyClaimedError: bonus already claimed on this UTC calendar day
    """
    if now is None:
        now = datetime.now(timezone.utc)

    async with db.transaction() as conn:
        user = await load_user_for_update(conn, user_id, "claim_daily_bonus")

        if _claimed_on_same_utc_day(user.last_bonus_claimed_at, now):
            raise DailyBonusAlreadyClaimedError(user_id=user_id, operation="claim_daily_bonus")

        streak = apply_activity(user, now)
        bonus = calculate_daily_bonus(user.current_streak)
        result = apply_points(user, bonus, f"Daily login bonus ({user.current_streak} day streak)")
        user.last_bonus_claimed_at = now
        await queries.save_user_gamification(conn, user)

    await announce_points(user_id, result, "daily_bonus", notifier)
    await notify(notifier, GamificationEvent("daily_bonus_claimed", user_id, {
        "points": bonus,
        "streak": user.current_streak,
    }))

    return {
        **result,
        "bonus_points": bonus,
        "current_streak": streak["current_streak"],
        "longest_streak": streak["longest_streak"],
    }


async def get_user_level_info(user_id: str) -> Dict[str, any]:
    """
    Get user's points, XP and level information

    Returns:
        {
            'user_id': str,
            'total_points': int,
            'available_points': int,
            'experience': int,
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'xp_for_next_level': int,
            'level_progress': int
        }
    """
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )

    return {
        "user_id": user_id,
        "total_points": user.total_points,
        "available_points": user.available_points,
        "experience": user.experience,
        **calculate_level_from_xp(user.experience),
    }
