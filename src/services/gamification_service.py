"""
GamificationService - Gamification Business Logic

Coordinates the points ledger, streaks and achievement matcher for a user
activity, and serves the wellness calculators.
"""

import logging
from typing import Dict, List, Any, Optional
from datetime import datetime, timezone

from src.config import LIFE_CALCULATOR_POINTS
from src.db import queries
from src.db.connection import db
from src.exceptions import WellnessHubError, wrap_external_exception
from src.gamification.achievement_system import announce_unlocks, build_user_stats, unlock_matching
from src.gamification.events import Notifier
from src.gamification.streak_system import announce_streak, apply_activity
from src.gamification.xp_system import announce_points, apply_points, award_points, load_user_for_update
from src.utils.wellness_scores import (
    calculate_financial_health_score,
    calculate_goal_progress,
    calculate_insurance_coverage_score,
    calculate_life_insurance_needs,
)

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Awarding points for health, wealth and insurance activities
    - Recording daily activity for streaks
    - Checking and unlocking achievements
    - Wellness calculators (life insurance use earns points)
    """

    def __init__(self, db_connection, notifier: Optional[Notifier] = None):
        """
        Initialize GamificationService.

        Args:
            db_connection: Database connection instance
            notifier: Optional async callback receiving GamificationEvents
        """
        self.db = db_connection
        self.notifier = notifier
        logger.debug("GamificationService initialized")

    async def process_activity(
        self,
        user_id: str,
        points: int,
        reason: str,
        activity: str,
        metadata: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Process gamification for a logged activity.

        Awards the points, records the day's activity for the streak, then
        evaluates achievements against the refreshed statistics. All writes
        share one transaction on the locked user row; events go out only
        after it commits.

        Args:
            user_id: User ID
            points: Points earned for the activity
            reason: Human-readable description
            activity: Activity type (steps, water, workout, ...)
            metadata: Activity metrics (steps, water, workouts, savings, posts)
            now: Activity time (defaults to current UTC time)

        Returns:
            {
                'points_earned': int,
                'total_points': int,
                'level': int,
                'leveled_up': bool,
                'current_streak': int,
                'new_achievements': list
            }
        """
        if now is None:
            now = datetime.now(timezone.utc)

        try:
            async with db.transaction() as conn:
                user = await load_user_for_update(conn, user_id, "process_activity")

                points_result = apply_points(user, points, reason)
                streak_result = apply_activity(user, now)
                await queries.save_user_gamification(conn, user)

                user_stats = build_user_stats(user, metadata)
                new_achievements = await unlock_matching(conn, user, user_stats, now)

        except WellnessHubError:
            raise
        except Exception as e:
            # wrap_external_exception logs with the original traceback
            raise wrap_external_exception(e, operation="process_activity", user_id=user_id) from e

        await announce_points(user_id, points_result, activity, self.notifier)
        await announce_streak(user_id, streak_result, self.notifier)
        await announce_unlocks(user_id, new_achievements, self.notifier)

        logger.info(
            f"Gamification processed for {activity}: user={user_id}, "
            f"points={points}, streak={user.current_streak}, "
            f"achievements={len(new_achievements)}"
        )

        return {
            "points_earned": points,
            "total_points": user.total_points,
            "level": user.level,
            "leveled_up": points_result["leveled_up"],
            "current_streak": user.current_streak,
            "new_achievements": self._summarize_achievements(new_achievements),
        }

    async def calculate_life_insurance(
        self,
        user_id: str,
        inputs: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Run the DIME life insurance calculator and reward the user for using it.

        Returns:
            Calculator result plus 'points_earned'
        """
        result = calculate_life_insurance_needs(**inputs)

        await award_points(
            user_id=user_id,
            amount=LIFE_CALCULATOR_POINTS,
            reason="Used life insurance calculator",
            source="calculator",
            notifier=self.notifier
        )

        return {**result, "points_earned": LIFE_CALCULATOR_POINTS}

    def score_financial_health(self, inputs: Dict[str, Any]) -> Dict[str, int]:
        return {"score": calculate_financial_health_score(**inputs)}

    def score_goal_progress(self, inputs: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        return calculate_goal_progress(now=now, **inputs)

    def score_insurance_coverage(
        self,
        policies: List[Dict[str, Any]],
        annual_income: float = 0,
        now: Optional[datetime] = None
    ) -> Dict[str, int]:
        """Coverage score for the policies a user holds (read only, no points)"""
        return {"score": calculate_insurance_coverage_score(policies, annual_income, now=now)}

    @staticmethod
    def _summarize_achievements(achievements) -> List[Dict[str, Any]]:
        return [
            {
                "id": a.id,
                "title": a.title,
                "description": a.description,
                "icon": a.icon,
                "points": a.points,
            }
            for a in achievements
        ]
