"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any, Literal
from pydantic import AwareDatetime, BaseModel, Field
from datetime import datetime

from src.models.challenge import (
    ChallengeCategory,
    ChallengeDifficulty,
    ChallengeTarget,
    ChallengeType,
    TeamSettings,
)

ActivityType = Literal["steps", "water", "workout", "savings", "challenge", "social", "learning", "insurance"]
InsurancePolicyType = Literal["life", "health", "auto", "home", "disability", "travel", "umbrella", "pet"]


class CreateUserRequest(BaseModel):
    """Request to create gamification state for a user"""
    user_id: str = Field(..., min_length=1, description="User identifier")
    username: Optional[str] = Field(default=None, max_length=30)


class AwardPointsRequest(BaseModel):
    """Request to award points"""
    points: int = Field(..., ge=1, le=1000, description="Points to award")
    reason: str = Field(..., min_length=3, max_length=100, description="Why the points were earned")


class SpendPointsRequest(BaseModel):
    """Request to spend available points"""
    points: int = Field(..., ge=1, description="Points to spend")
    reason: str = Field(default="Purchase", min_length=3, max_length=100)


class ActivityRequest(BaseModel):
    """A completed activity worth points"""
    points: int = Field(..., ge=1, le=1000)
    reason: str = Field(..., min_length=3, max_length=100)
    activity: ActivityType
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Activity metrics (steps, water, workouts, savings, posts)"
    )


class ActivityResponse(BaseModel):
    """Result of processing an activity"""
    points_earned: int
    total_points: int
    level: int
    leveled_up: bool
    current_streak: int
    new_achievements: List[Dict[str, Any]]


class PointsResponse(BaseModel):
    """Points balances after a ledger change"""
    user_id: str
    total_points: int
    available_points: int
    experience: Optional[int] = None
    level: Optional[int] = None
    leveled_up: bool = False


class DailyBonusResponse(BaseModel):
    bonus_points: int
    total_points: int
    level: int
    current_streak: int
    longest_streak: int


class AchievementCheckRequest(BaseModel):
    """Activity metrics to evaluate achievements against"""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AchievementProgressRequest(BaseModel):
    progress: int = Field(..., ge=0, description="Progress percentage (100 unlocks)")


class AchievementResponse(BaseModel):
    """Response with a user's achievements"""
    user_id: str
    unlocked: List[Dict[str, Any]]
    locked: List[Dict[str, Any]]
    total_unlocked: int
    total_achievements: int
    completion_percentage: int


class CreateChallengeRequest(BaseModel):
    """Request to create a challenge"""
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    category: ChallengeCategory
    type: ChallengeType
    difficulty: ChallengeDifficulty
    points: int = Field(..., ge=10, le=1000)
    duration: int = Field(..., ge=1, le=365, description="Length in days")
    target: ChallengeTarget
    start_date: Optional[datetime] = Field(default=None, description="Defaults to now")
    max_participants: Optional[int] = Field(default=None, ge=1)
    team_settings: Optional[TeamSettings] = None
    badge: Optional[str] = None
    featured: bool = False
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = Field(default=None, description="Creating user ID")


class JoinChallengeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    team_id: Optional[str] = None


class ChallengeProgressRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    progress: float = Field(..., ge=0, description="Progress percentage; values above 100 count as 100")
    value: Optional[float] = Field(default=None, description="Raw measured value, echoed back")


class ChallengeProgressResponse(BaseModel):
    challenge_id: str
    progress: float
    completed: bool
    newly_completed: bool
    points_earned: int
    value: Optional[float] = None


class LifeInsuranceRequest(BaseModel):
    """DIME life insurance calculator inputs"""
    annual_income: float = Field(..., ge=0)
    dependents: int = Field(..., ge=0)
    debts: float = Field(..., ge=0)
    years_of_income: int = Field(..., ge=1, le=50)
    existing_coverage: float = Field(default=0, ge=0)
    funeral_expenses: float = Field(default=15000, ge=0)
    education_expenses: float = Field(default=0, ge=0)
    age: int = Field(default=35, ge=18, le=100)


class FinancialHealthRequest(BaseModel):
    """Monthly cash flow and outstanding debts"""
    monthly_income: float = Field(default=0, ge=0)
    monthly_expenses: float = Field(default=0, ge=0)
    current_savings: float = Field(default=0, ge=0)
    monthly_investments: float = Field(default=0, ge=0)
    debts: List[float] = Field(default_factory=list, description="Outstanding debt balances")


class GoalProgressRequest(BaseModel):
    """Savings goal to evaluate"""
    current_amount: float = Field(..., ge=0)
    target_amount: float = Field(..., gt=0)
    target_date: AwareDatetime
    created_at: AwareDatetime


class InsurancePolicyInput(BaseModel):
    type: InsurancePolicyType
    coverage_amount: float = Field(default=0, ge=0)
    added_at: Optional[AwareDatetime] = None


class InsuranceCoverageRequest(BaseModel):
    """Policies held plus income for the life cover rule"""
    policies: List[InsurancePolicyInput] = Field(default_factory=list)
    annual_income: float = Field(default=0, ge=0)


class ScoreResponse(BaseModel):
    score: int = Field(..., ge=0, le=100)


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    database: str = Field(..., description="Database connection status")
    timestamp: datetime = Field(..., description="Check timestamp")
