"""Global test fixtures and utilities for WellnessHub tests"""
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime, timedelta, timezone

from src.models.achievement import Achievement
from src.models.challenge import Challenge, Participant
from src.models.user import UserGamification


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def now():
    """Fixed evaluation time so day-boundary tests are deterministic"""
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_conn():
    """Connection handed out by the patched transaction()"""
    conn = MagicMock()
    conn.execute = AsyncMock()
    return conn


@pytest.fixture
def mock_transaction(mock_conn):
    """
    Replace db.transaction() with a context manager yielding mock_conn.

    Every gamification module shares the same Database instance, so one
    patch covers them all.
    """
    @asynccontextmanager
    async def fake_transaction():
        yield mock_conn

    with patch("src.db.connection.db.transaction", fake_transaction):
        yield mock_conn


# ============================================================================
# Model Factories
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def make_user(test_user_id):
    """Factory for UserGamification state"""
    def _make(**overrides):
        data = {"user_id": test_user_id, "username": "tester"}
        data.update(overrides)
        return UserGamification(**data)
    return _make


@pytest.fixture
def make_achievement():
    """Factory for Achievement definitions with a >= criterion by default"""
    def _make(achievement_id="first_steps", target="steps", operator=">=", value=1000, **overrides):
        data = {
            "id": achievement_id,
            "title": achievement_id.replace("_", " ").title(),
            "description": f"Reach {value} {target}",
            "icon": "🏅",
            "category": "health",
            "type": "milestone",
            "rarity": "common",
            "points": 50,
            "experience_points": 50,
            "criteria": {"target": target, "operator": operator, "value": value},
        }
        data.update(overrides)
        return Achievement(**data)
    return _make


@pytest.fixture
def make_challenge(now):
    """Factory for a published challenge that started a day ago"""
    def _make(**overrides):
        data = {
            "id": "challenge-1",
            "title": "10k Steps Week",
            "description": "Walk ten thousand steps every day",
            "category": "health",
            "type": "individual",
            "difficulty": "medium",
            "points": 200,
            "experience_points": 200,
            "duration": 7,
            "start_date": now - timedelta(days=1),
            "target": {"type": "count", "value": 70000, "unit": "steps"},
            "status": "published",
        }
        data.update(overrides)
        return Challenge(**data)
    return _make


@pytest.fixture
def make_participant(now):
    """Factory for challenge participants"""
    def _make(user_id, progress=0, joined_offset_minutes=0, completed=False, completed_offset_minutes=None):
        joined_at = now + timedelta(minutes=joined_offset_minutes)
        completed_at = None
        if completed:
            completed_at = now + timedelta(minutes=completed_offset_minutes or joined_offset_minutes + 60)
        return Participant(
            user_id=user_id,
            joined_at=joined_at,
            progress=progress,
            completed=completed,
            completed_at=completed_at,
        )
    return _make


# ============================================================================
# Notifier Fixtures
# ============================================================================

@pytest.fixture
def notifier():
    """Async notifier that records delivered events"""
    return AsyncMock()
