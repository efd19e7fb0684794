"""User-related Pydantic models"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class UserAchievement(BaseModel):
    """Achievement progress/unlock recorded on a user"""
    achievement_id: str
    unlocked_at: Optional[datetime] = None
    progress: int = Field(default=0, ge=0, le=100)

    @property
    def is_unlocked(self) -> bool:
        return self.progress >= 100


class ActiveChallenge(BaseModel):
    """User's view of one challenge participation (built from challenge_participants)"""
    challenge_id: str
    joined_at: datetime
    progress: float = 0
    completed: bool = False
    completed_at: Optional[datetime] = None
    team_id: Optional[str] = None
    title: Optional[str] = None
    end_date: Optional[datetime] = None


class UserGamification(BaseModel):
    """Gamification state owned by a user"""
    user_id: str
    username: Optional[str] = None

    # Points & leveling
    total_points: int = Field(default=0, ge=0)
    available_points: int = Field(default=0, ge=0)
    experience: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)

    # Streaks
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity_date: Optional[datetime] = None
    last_bonus_claimed_at: Optional[datetime] = None

    achievements: List[UserAchievement] = Field(default_factory=list)
    active_challenges: List[ActiveChallenge] = Field(default_factory=list)

    friends_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    def find_achievement(self, achievement_id: str) -> Optional[UserAchievement]:
        for entry in self.achievements:
            if entry.achievement_id == achievement_id:
                return entry
        return None

    @property
    def unlocked_achievement_ids(self) -> set[str]:
        return {a.achievement_id for a in self.achievements if a.is_unlocked}

    @property
    def completed_challenges_count(self) -> int:
        return sum(1 for c in self.active_challenges if c.completed)
