"""Achievement models for gamification"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, List, Optional


class AchievementCategory(str, Enum):
    """Achievement categories"""
    HEALTH = "health"
    WEALTH = "wealth"
    INSURANCE = "insurance"
    SOCIAL = "social"
    STREAK = "streak"
    LEVEL = "level"
    CHALLENGE = "challenge"
    MILESTONE = "milestone"


class AchievementType(str, Enum):
    """How an achievement is earned"""
    PROGRESS = "progress"
    MILESTONE = "milestone"
    STREAK = "streak"
    COMPLETION = "completion"
    SOCIAL = "social"
    SPECIAL = "special"


class AchievementRarity(str, Enum):
    """Achievement rarity tiers"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


RARE_TIERS = (AchievementRarity.EPIC, AchievementRarity.LEGENDARY, AchievementRarity.MYTHIC)


class AchievementDifficulty(str, Enum):
    TRIVIAL = "trivial"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXTREME = "extreme"
    IMPOSSIBLE = "impossible"


class CriteriaOperator(str, Enum):
    GTE = ">="
    GT = ">"
    EQ = "="
    LT = "<"
    LTE = "<="
    IN = "in"
    BETWEEN = "between"


class Timeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    TOTAL = "total"
    CONSECUTIVE = "consecutive"


class AchievementCriteria(BaseModel):
    """Declarative unlock rule: user_stats[target] <operator> value"""
    target: str
    operator: CriteriaOperator
    value: Any
    timeframe: Timeframe = Timeframe.TOTAL


class AchievementPrerequisite(BaseModel):
    achievement_id: str
    required: bool = True


class AchievementSeries(BaseModel):
    name: str
    order: int
    total: Optional[int] = None


class AchievementStats(BaseModel):
    """Aggregate unlock counters (not per-user)"""
    total_unlocked: int = 0
    unique_users: int = 0
    first_unlocked_at: Optional[datetime] = None
    last_unlocked_at: Optional[datetime] = None


class Achievement(BaseModel):
    """Achievement definition"""
    id: str
    title: str = Field(..., max_length=100)
    description: str = Field(..., max_length=300)
    icon: str
    category: AchievementCategory
    type: AchievementType
    rarity: AchievementRarity
    points: int = Field(..., ge=1)
    experience_points: int = Field(..., ge=1)
    difficulty: AchievementDifficulty = AchievementDifficulty.MEDIUM
    badge: Optional[str] = None

    criteria: AchievementCriteria
    prerequisites: List[AchievementPrerequisite] = Field(default_factory=list)
    series: Optional[AchievementSeries] = None

    is_active: bool = True
    is_public: bool = True
    is_secret: bool = False
    featured: bool = False
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

    stats: AchievementStats = Field(default_factory=AchievementStats)
    tags: List[str] = Field(default_factory=list)
