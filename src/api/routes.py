"""API routes for WellnessHub gamification"""
import logging
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.models import (
    CreateUserRequest,
    AwardPointsRequest, SpendPointsRequest, PointsResponse, DailyBonusResponse,
    ActivityRequest, ActivityResponse,
    AchievementCheckRequest, AchievementProgressRequest, AchievementResponse,
    CreateChallengeRequest, JoinChallengeRequest,
    ChallengeProgressRequest, ChallengeProgressResponse,
    LifeInsuranceRequest, FinancialHealthRequest, GoalProgressRequest, InsuranceCoverageRequest, ScoreResponse,
    HealthCheckResponse,
)
from src.api.auth import verify_api_key
from src.api.middleware import limiter
from src.config import LEADERBOARD_MAX_LIMIT
from src.db import queries
from src.db.connection import db
from src.exceptions import RecordNotFoundError
from src.gamification import achievement_system, challenges, dashboards, streak_system, xp_system
from src.gamification.events import Notifier
from src.models.achievement import Achievement, AchievementCategory, AchievementRarity
from src.models.challenge import (
    Challenge,
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeStatus,
    ChallengeType,
    LeaderboardEntry,
)
from src.models.user import UserGamification
from src.services.container import get_container
from src.services.gamification_service import GamificationService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notifier() -> Optional[Notifier]:
    return get_container().notifier


def get_gamification_service() -> GamificationService:
    return get_container().gamification_service


# ==========================================
# Users
# ==========================================

@router.post("/api/v1/users", response_model=UserGamification, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_user_endpoint(
    request: Request,
    payload: CreateUserRequest,
    api_key: str = Depends(verify_api_key)
):
    """Create gamification state for a user, idempotently (Rate limit: 20/minute)"""
    user = await queries.create_user(payload.user_id, payload.username)
    logger.info(f"Created user via API: {payload.user_id}")
    return user


@router.get("/api/v1/users/{user_id}", response_model=UserGamification)
@limiter.limit("30/minute")
async def get_user(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get a user's full gamification state (Rate limit: 30/minute)"""
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    return user


@router.delete("/api/v1/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
async def deactivate_user(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Deactivate a user; gamification history is kept (Rate limit: 20/minute)"""
    if not await queries.deactivate_user(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    return None


# ==========================================
# Points, level, streak
# ==========================================

@router.post("/api/v1/users/{user_id}/points", response_model=PointsResponse)
@limiter.limit("50/minute")
async def award_points(
    request: Request,
    user_id: str,
    payload: AwardPointsRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Award points without recording an activity (Rate limit: 50/minute)"""
    result = await xp_system.award_points(
        user_id, payload.points, payload.reason, source="api", notifier=notifier
    )
    return PointsResponse(
        user_id=user_id,
        total_points=result["total_points"],
        available_points=result["available_points"],
        experience=result["experience"],
        level=result["new_level"],
        leveled_up=result["leveled_up"],
    )


@router.post("/api/v1/users/{user_id}/points/spend", response_model=PointsResponse)
@limiter.limit("30/minute")
async def spend_points(
    request: Request,
    user_id: str,
    payload: SpendPointsRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Spend available points (Rate limit: 30/minute)"""
    result = await xp_system.spend_points(user_id, payload.points, payload.reason, notifier=notifier)
    return PointsResponse(
        user_id=user_id,
        total_points=result["total_points"],
        available_points=result["available_points"],
    )


@router.post("/api/v1/users/{user_id}/daily-bonus", response_model=DailyBonusResponse)
@limiter.limit("10/minute")
async def claim_daily_bonus(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Claim today's login bonus (Rate limit: 10/minute)"""
    result = await xp_system.claim_daily_bonus(user_id, notifier=notifier)
    return DailyBonusResponse(
        bonus_points=result["bonus_points"],
        total_points=result["total_points"],
        level=result["new_level"],
        current_streak=result["current_streak"],
        longest_streak=result["longest_streak"],
    )


@router.post("/api/v1/users/{user_id}/activity", response_model=ActivityResponse)
@limiter.limit("50/minute")
async def log_activity(
    request: Request,
    user_id: str,
    payload: ActivityRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_gamification_service)
):
    """
    Log a completed activity

    Awards the points, records the day for the streak and checks achievements.
    Rate limit: 50/minute
    """
    result = await service.process_activity(
        user_id=user_id,
        points=payload.points,
        reason=payload.reason,
        activity=payload.activity,
        metadata=payload.metadata
    )
    return ActivityResponse(**result)


@router.get("/api/v1/users/{user_id}/level")
@limiter.limit("30/minute")
async def get_level(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get points, XP and level progress (Rate limit: 30/minute)"""
    return await xp_system.get_user_level_info(user_id)


@router.get("/api/v1/users/{user_id}/streak")
@limiter.limit("30/minute")
async def get_streak(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get current and longest streak (Rate limit: 30/minute)"""
    return await streak_system.get_user_streak(user_id)


@router.post("/api/v1/users/{user_id}/streak")
@limiter.limit("10/minute")
async def record_streak_activity(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Count today toward the streak without awarding points (Rate limit: 10/minute)"""
    return await streak_system.record_activity(user_id, notifier=notifier)


@router.get("/api/v1/users/{user_id}/progress")
@limiter.limit("30/minute")
async def get_progress(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get the user's progress summary (Rate limit: 30/minute)"""
    return await dashboards.get_progress_summary(user_id)


@router.get("/api/v1/users/{user_id}/rank")
@limiter.limit("30/minute")
async def get_rank(
    request: Request,
    user_id: str,
    category: str = Query(default="points"),
    api_key: str = Depends(verify_api_key)
):
    """Get the user's global rank (Rate limit: 30/minute)"""
    rank = await dashboards.get_user_rank(user_id, category)
    return {"user_id": user_id, "category": category, "rank": rank}


@router.get("/api/v1/leaderboard")
@limiter.limit("30/minute")
async def get_leaderboard(
    request: Request,
    category: str = Query(default="points"),
    limit: int = Query(default=10, ge=1, le=LEADERBOARD_MAX_LIMIT),
    api_key: str = Depends(verify_api_key)
):
    """Global leaderboard by points, level or streak (Rate limit: 30/minute)"""
    entries = await dashboards.get_global_leaderboard(category, limit)
    return {"category": category, "leaderboard": entries}


# ==========================================
# Achievements
# ==========================================

@router.get("/api/v1/achievements", response_model=List[Achievement])
@limiter.limit("30/minute")
async def list_achievements(
    request: Request,
    category: Optional[AchievementCategory] = None,
    rarity: Optional[AchievementRarity] = None,
    api_key: str = Depends(verify_api_key)
):
    """Public achievement catalog (Rate limit: 30/minute)"""
    return await achievement_system.list_achievements(category, rarity)


@router.get("/api/v1/achievements/featured", response_model=List[Achievement])
@limiter.limit("30/minute")
async def featured_achievements(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
    api_key: str = Depends(verify_api_key)
):
    return await achievement_system.get_featured_achievements(limit)


@router.get("/api/v1/achievements/rare", response_model=List[Achievement])
@limiter.limit("30/minute")
async def rare_achievements(
    request: Request,
    limit: int = Query(default=20, ge=1, le=50),
    api_key: str = Depends(verify_api_key)
):
    return await achievement_system.get_rare_achievements(limit)


@router.get("/api/v1/users/{user_id}/achievements", response_model=AchievementResponse)
@limiter.limit("30/minute")
async def get_user_achievements(
    request: Request,
    user_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get unlocked and locked achievements (Rate limit: 30/minute)"""
    result = await achievement_system.get_user_achievements(user_id)
    return AchievementResponse(user_id=user_id, **result)


@router.post("/api/v1/users/{user_id}/achievements/check", response_model=List[Achievement])
@limiter.limit("30/minute")
async def check_achievements(
    request: Request,
    user_id: str,
    payload: AchievementCheckRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Evaluate achievements against the user's current stats (Rate limit: 30/minute)"""
    user = await queries.fetch_user_gamification(user_id)
    if user is None:
        raise RecordNotFoundError(
            message=f"User {user_id} not found",
            record_type="User",
            record_id=user_id
        )

    user_stats = achievement_system.build_user_stats(user, payload.metadata)
    return await achievement_system.check_and_unlock_for_user(user_id, user_stats, notifier=notifier)


@router.post("/api/v1/users/{user_id}/achievements/{achievement_id}/progress")
@limiter.limit("30/minute")
async def achievement_progress(
    request: Request,
    user_id: str,
    achievement_id: str,
    payload: AchievementProgressRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Record progress toward a progressive achievement (Rate limit: 30/minute)"""
    return await achievement_system.record_achievement_progress(
        user_id, achievement_id, payload.progress, notifier=notifier
    )


# ==========================================
# Challenges
# ==========================================

@router.get("/api/v1/challenges", response_model=List[Challenge])
@limiter.limit("30/minute")
async def list_challenges(
    request: Request,
    category: Optional[ChallengeCategory] = None,
    type: Optional[ChallengeType] = None,
    difficulty: Optional[ChallengeDifficulty] = None,
    challenge_status: ChallengeStatus = Query(default=ChallengeStatus.ACTIVE, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    api_key: str = Depends(verify_api_key)
):
    """List public challenges (Rate limit: 30/minute)"""
    return await challenges.list_challenges(category, type, difficulty, challenge_status, limit)


@router.post("/api/v1/challenges", response_model=Challenge, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def create_challenge(
    request: Request,
    payload: CreateChallengeRequest,
    api_key: str = Depends(verify_api_key)
):
    """Create and publish a challenge (Rate limit: 5/minute)"""
    data = payload.model_dump(exclude_none=True, exclude={"created_by"})
    return await challenges.create_challenge(data, created_by=payload.created_by)


@router.get("/api/v1/challenges/trending", response_model=List[Challenge])
@limiter.limit("30/minute")
async def trending_challenges(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
    api_key: str = Depends(verify_api_key)
):
    return await challenges.get_trending_challenges(limit)


@router.get("/api/v1/challenges/featured", response_model=List[Challenge])
@limiter.limit("30/minute")
async def featured_challenges(
    request: Request,
    limit: int = Query(default=5, ge=1, le=50),
    api_key: str = Depends(verify_api_key)
):
    return await challenges.get_featured_challenges(limit)


@router.get("/api/v1/challenges/{challenge_id}")
@limiter.limit("30/minute")
async def get_challenge(
    request: Request,
    challenge_id: str,
    api_key: str = Depends(verify_api_key)
):
    """Get a challenge with participants and derived status (Rate limit: 30/minute)"""
    challenge = await challenges.get_challenge(challenge_id)
    now = datetime.now(timezone.utc)
    return {
        **challenge.model_dump(),
        "current_status": challenges.current_status(challenge, now),
        "days_remaining": challenges.days_remaining(challenge, now),
    }


@router.post("/api/v1/challenges/{challenge_id}/join")
@limiter.limit("20/minute")
async def join_challenge(
    request: Request,
    challenge_id: str,
    payload: JoinChallengeRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Join a challenge (Rate limit: 20/minute)"""
    return await challenges.join_challenge(
        challenge_id, payload.user_id, payload.team_id, notifier=notifier
    )


@router.post("/api/v1/challenges/{challenge_id}/progress", response_model=ChallengeProgressResponse)
@limiter.limit("30/minute")
async def challenge_progress(
    request: Request,
    challenge_id: str,
    payload: ChallengeProgressRequest,
    api_key: str = Depends(verify_api_key),
    notifier: Optional[Notifier] = Depends(get_notifier)
):
    """Report progress in a challenge (Rate limit: 30/minute)"""
    result = await challenges.update_challenge_progress(
        challenge_id, payload.user_id, payload.progress, notifier=notifier
    )
    return ChallengeProgressResponse(
        challenge_id=challenge_id,
        progress=result["progress"],
        completed=result["completed"],
        newly_completed=result["newly_completed"],
        points_earned=result["points_earned"],
        value=payload.value,
    )


@router.get("/api/v1/challenges/{challenge_id}/leaderboard", response_model=List[LeaderboardEntry])
@limiter.limit("30/minute")
async def challenge_leaderboard(
    request: Request,
    challenge_id: str,
    limit: int = Query(default=10, ge=1, le=LEADERBOARD_MAX_LIMIT),
    api_key: str = Depends(verify_api_key)
):
    return await challenges.get_challenge_leaderboard(challenge_id, limit)


# ==========================================
# Calculators
# ==========================================

@router.post("/api/v1/users/{user_id}/calculators/life-insurance")
@limiter.limit("10/minute")
async def life_insurance_calculator(
    request: Request,
    user_id: str,
    payload: LifeInsuranceRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_gamification_service)
):
    """DIME life insurance needs; using it earns points (Rate limit: 10/minute)"""
    return await service.calculate_life_insurance(user_id, payload.model_dump())


@router.post("/api/v1/calculators/financial-health", response_model=ScoreResponse)
@limiter.limit("30/minute")
async def financial_health_calculator(
    request: Request,
    payload: FinancialHealthRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_gamification_service)
):
    """Financial health score from 0 to 100"""
    return service.score_financial_health(payload.model_dump())


@router.post("/api/v1/calculators/goal-progress")
@limiter.limit("30/minute")
async def goal_progress_calculator(
    request: Request,
    payload: GoalProgressRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_gamification_service)
):
    return service.score_goal_progress(payload.model_dump())


@router.post("/api/v1/calculators/insurance-coverage", response_model=ScoreResponse)
@limiter.limit("30/minute")
async def insurance_coverage_calculator(
    request: Request,
    payload: InsuranceCoverageRequest,
    api_key: str = Depends(verify_api_key),
    service: GamificationService = Depends(get_gamification_service)
):
    """Coverage score for the policies held (Rate limit: 30/minute)"""
    policies = [policy.model_dump() for policy in payload.policies]
    return service.score_insurance_coverage(policies, payload.annual_income)


# ==========================================
# Health
# ==========================================

@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    try:
        async with db.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                await cur.fetchone()

        db_status = "connected"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "disconnected"

    return HealthCheckResponse(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        timestamp=datetime.now(timezone.utc)
    )
