"""Challenge models for gamification"""
from datetime import datetime, timedelta
from enum import Enum
from pydantic import BaseModel, Field, computed_field
from typing import List, Optional


class ChallengeCategory(str, Enum):
    HEALTH = "health"
    WEALTH = "wealth"
    INSURANCE = "insurance"
    WELLNESS = "wellness"
    COMMUNITY = "community"
    LEARNING = "learning"


class ChallengeType(str, Enum):
    """Who competes in the challenge"""
    INDIVIDUAL = "individual"
    TEAM = "team"
    COMMUNITY = "community"
    GLOBAL = "global"


class ChallengeDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class ChallengeStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


JOINABLE_STATUSES = (ChallengeStatus.PUBLISHED, ChallengeStatus.ACTIVE)


class TargetType(str, Enum):
    COUNT = "count"
    DURATION = "duration"
    AMOUNT = "amount"
    FREQUENCY = "frequency"
    COMPLETION = "completion"


class ChallengeTarget(BaseModel):
    type: TargetType
    value: float
    unit: Optional[str] = None  # steps, minutes, dollars, times, tasks


class TeamSettings(BaseModel):
    max_team_size: int = 5
    min_team_size: int = 2
    allow_join_after_start: bool = False


class Participant(BaseModel):
    """One user's progress in a challenge (0-100)"""
    user_id: str
    joined_at: datetime
    progress: float = Field(default=0, ge=0, le=100)
    completed: bool = False
    completed_at: Optional[datetime] = None
    team_id: Optional[str] = None


class ChallengeStats(BaseModel):
    total_participants: int = 0
    completion_rate: int = 0
    average_progress: int = 0
    total_points_awarded: int = 0


class Challenge(BaseModel):
    """Challenge definition plus its participants"""
    id: str
    title: str = Field(..., max_length=100)
    description: str = Field(..., max_length=500)
    category: ChallengeCategory
    type: ChallengeType
    difficulty: ChallengeDifficulty

    points: int = Field(..., ge=1)
    experience_points: int = Field(..., ge=1)
    badge: Optional[str] = None

    duration: int = Field(..., ge=1, le=365)  # days
    start_date: datetime
    target: ChallengeTarget

    max_participants: Optional[int] = Field(default=None, ge=1)  # None means unlimited
    min_participants: int = 1
    team_settings: TeamSettings = Field(default_factory=TeamSettings)

    participants: List[Participant] = Field(default_factory=list)
    stats: ChallengeStats = Field(default_factory=ChallengeStats)

    created_by: Optional[str] = None
    status: ChallengeStatus = ChallengeStatus.DRAFT
    featured: bool = False
    is_active: bool = True
    is_public: bool = True
    tags: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def end_date(self) -> datetime:
        return self.start_date + timedelta(days=self.duration)

    def find_participant(self, user_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    progress: float
    completed: bool
    completed_at: Optional[datetime] = None
    joined_at: datetime
    team_id: Optional[str] = None
