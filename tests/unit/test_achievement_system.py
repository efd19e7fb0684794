"""Unit tests for Achievement System (src/gamification/achievement_system.py)"""
import pytest
from unittest.mock import AsyncMock, patch
from datetime import timedelta

from src.exceptions import RecordNotFoundError, ValidationError
from src.gamification.achievement_system import (
    build_user_stats,
    check_and_unlock_for_user,
    check_criteria,
    find_unlockable,
    get_user_achievements,
    is_available,
    prerequisites_met,
    record_achievement_progress,
    unlock_achievement,
)
from src.models.achievement import AchievementCriteria
from src.models.user import ActiveChallenge, UserAchievement


# ============================================================================
# Criteria Evaluation
# ============================================================================

@pytest.mark.parametrize("operator,value,stat,expected", [
    (">=", 10, 10, True),
    (">=", 10, 9, False),
    (">", 10, 10, False),
    (">", 10, 11, True),
    ("=", 5, 5, True),
    ("=", 5, 6, False),
    ("<", 5, 4, True),
    ("<", 5, 5, False),
    ("<=", 5, 5, True),
    ("<=", 5, 6, False),
    ("in", [1, 3, 5], 3, True),
    ("in", [1, 3, 5], 4, False),
    ("between", [10, 20], 10, True),
    ("between", [10, 20], 20, True),
    ("between", [10, 20], 21, False),
])
def test_check_criteria_operators(operator, value, stat, expected):
    criteria = AchievementCriteria(target="steps", operator=operator, value=value)
    assert check_criteria(criteria, {"steps": stat}) is expected


def test_check_criteria_missing_stat_is_false():
    """An absent statistic never satisfies a criterion"""
    criteria = AchievementCriteria(target="savings", operator=">=", value=0)
    assert check_criteria(criteria, {"steps": 100}) is False


@pytest.mark.parametrize("operator,value", [
    ("between", [10]),
    ("between", 10),
    ("between", [1, 2, 3]),
    ("in", 5),
])
def test_check_criteria_malformed_values_are_false(operator, value):
    criteria = AchievementCriteria(target="steps", operator=operator, value=value)
    assert check_criteria(criteria, {"steps": 5}) is False


def test_check_criteria_incomparable_types_are_false():
    """Comparing a number with a string does not raise"""
    criteria = AchievementCriteria(target="steps", operator=">=", value="many")
    assert check_criteria(criteria, {"steps": 5}) is False


# ============================================================================
# Availability & Prerequisites
# ============================================================================

def test_is_available_respects_window(make_achievement, now):
    inside = make_achievement(available_from=now - timedelta(days=1), available_to=now + timedelta(days=1))
    not_started = make_achievement(available_from=now + timedelta(days=1))
    expired = make_achievement(available_to=now - timedelta(seconds=1))
    inactive = make_achievement(is_active=False)

    assert is_available(inside, now) is True
    assert is_available(not_started, now) is False
    assert is_available(expired, now) is False
    assert is_available(inactive, now) is False


def test_prerequisites_only_required_ones_count(make_achievement):
    achievement = make_achievement(prerequisites=[
        {"achievement_id": "a", "required": True},
        {"achievement_id": "b", "required": False},
    ])

    assert prerequisites_met(achievement, {"a"}) is True
    assert prerequisites_met(achievement, {"b"}) is False


# ============================================================================
# Unlocking
# ============================================================================

def test_unlock_achievement_is_idempotent(make_user, now):
    """A second unlock of the same achievement changes nothing"""
    user = make_user()

    assert unlock_achievement(user, "first_steps", now) is True
    assert unlock_achievement(user, "first_steps", now + timedelta(days=1)) is False

    assert len(user.achievements) == 1
    assert user.achievements[0].unlocked_at == now


def test_unlock_achievement_partial_progress(make_user, now):
    """Progress only moves up and unlocks at 100"""
    user = make_user()

    assert unlock_achievement(user, "marathon", now, progress=40) is False
    assert unlock_achievement(user, "marathon", now, progress=20) is False
    assert user.find_achievement("marathon").progress == 40

    assert unlock_achievement(user, "marathon", now, progress=150) is True
    entry = user.find_achievement("marathon")
    assert entry.progress == 100
    assert entry.unlocked_at == now


# ============================================================================
# User Stats
# ============================================================================

def test_build_user_stats(make_user, now):
    user = make_user(
        total_points=1200,
        level=2,
        current_streak=4,
        friends_count=3,
        active_challenges=[
            ActiveChallenge(challenge_id="c1", joined_at=now, progress=100, completed=True),
            ActiveChallenge(challenge_id="c2", joined_at=now, progress=30),
        ],
    )

    stats = build_user_stats(user, {"steps": 12000, "sleep_hours": 8})

    assert stats["total_points"] == 1200
    assert stats["level"] == 2
    assert stats["streak"] == 4
    assert stats["current_streak"] == 4
    assert stats["challenges"] == 1
    assert stats["friends"] == 3
    assert stats["steps"] == 12000
    assert stats["water"] == 0
    assert stats["sleep_hours"] == 8


def test_build_user_stats_metadata_cannot_override_state(make_user):
    """Derived statistics win over caller-supplied keys"""
    user = make_user(level=1)

    stats = build_user_stats(user, {"level": 99})

    assert stats["level"] == 1


# ============================================================================
# Matching
# ============================================================================

def test_find_unlockable_skips_present_and_locked_prereqs(make_achievement, make_user, now):
    starter = make_achievement("starter", value=1)
    walker = make_achievement("walker", value=1, prerequisites=[{"achievement_id": "starter"}])
    already = make_achievement("already", value=1)

    user = make_user(achievements=[UserAchievement(achievement_id="already", progress=30)])

    matches = find_unlockable(user, [starter, walker, already], {"steps": 50}, now)

    # walker's prerequisite is only unlocked during this pass
    assert [a.id for a in matches] == ["starter"]


def test_find_unlockable_prereq_already_unlocked(make_achievement, make_user, now):
    walker = make_achievement("walker", value=1, prerequisites=[{"achievement_id": "starter"}])
    user = make_user(achievements=[UserAchievement(achievement_id="starter", progress=100, unlocked_at=now)])

    matches = find_unlockable(user, [walker], {"steps": 50}, now)

    assert [a.id for a in matches] == ["walker"]


@pytest.mark.asyncio
async def test_level_achievement_unlocks_exactly_once(mock_transaction, make_achievement, make_user, now, notifier):
    """Level >= 10 unlocks once; a second check returns nothing"""
    level_ten = make_achievement("level_10", target="level", value=10, category="level", rarity="rare")
    user = make_user(level=10, experience=9000, total_points=9000)
    stats = build_user_stats(user)

    with patch('src.gamification.achievement_system.queries.get_user_gamification', AsyncMock(return_value=user)):
        with patch('src.gamification.achievement_system.queries.get_active_achievements', AsyncMock(return_value=[level_ten])):
            with patch('src.gamification.achievement_system.queries.upsert_user_achievement', AsyncMock()) as mock_upsert:
                with patch('src.gamification.achievement_system.queries.increment_achievement_stats', AsyncMock()) as mock_stats:
                    first = await check_and_unlock_for_user(user.user_id, stats, now=now, notifier=notifier)
                    second = await check_and_unlock_for_user(user.user_id, stats, now=now, notifier=notifier)

    assert [a.id for a in first] == ["level_10"]
    assert second == []
    assert mock_upsert.await_count == 1
    mock_stats.assert_awaited_once_with(mock_transaction, "level_10", now)

    event = notifier.await_args.args[0]
    assert event.event_type == "achievement_unlocked"
    assert event.payload["achievement_id"] == "level_10"


@pytest.mark.asyncio
async def test_challenge_completion_achievement(mock_transaction, make_achievement, make_user, now):
    """Completing a challenge satisfies challenges >= 1"""
    challenger = make_achievement("challenger", target="challenges", value=1, category="challenge")
    user = make_user(active_challenges=[
        ActiveChallenge(challenge_id="c1", joined_at=now, progress=100, completed=True, completed_at=now),
    ])

    with patch('src.gamification.achievement_system.queries.get_user_gamification', AsyncMock(return_value=user)):
        with patch('src.gamification.achievement_system.queries.get_active_achievements', AsyncMock(return_value=[challenger])):
            with patch('src.gamification.achievement_system.queries.upsert_user_achievement', AsyncMock()):
                with patch('src.gamification.achievement_system.queries.increment_achievement_stats', AsyncMock()):
                    unlocked = await check_and_unlock_for_user(user.user_id, build_user_stats(user), now=now)

    assert [a.id for a in unlocked] == ["challenger"]


@pytest.mark.asyncio
async def test_check_unknown_user_returns_empty(mock_transaction):
    with patch('src.gamification.achievement_system.queries.get_user_gamification', AsyncMock(return_value=None)):
        with patch('src.gamification.achievement_system.queries.get_active_achievements', AsyncMock()) as mock_catalog:
            assert await check_and_unlock_for_user("ghost", {"steps": 1}) == []

    mock_catalog.assert_not_awaited()


# ============================================================================
# Progressive Achievements
# ============================================================================

@pytest.mark.asyncio
async def test_record_achievement_progress_unlocks_at_100(mock_transaction, make_achievement, make_user, now):
    achievement = make_achievement("marathon")
    user = make_user(achievements=[UserAchievement(achievement_id="marathon", progress=60)])

    with patch('src.gamification.achievement_system.queries.get_user_gamification', AsyncMock(return_value=user)):
        with patch('src.gamification.achievement_system.queries.get_achievement', AsyncMock(return_value=achievement)):
            with patch('src.gamification.achievement_system.queries.upsert_user_achievement', AsyncMock()):
                with patch('src.gamification.achievement_system.queries.increment_achievement_stats', AsyncMock()) as mock_stats:
                    result = await record_achievement_progress(user.user_id, "marathon", 100, now=now)

    assert result == {"achievement_id": "marathon", "progress": 100, "unlocked": True, "newly_unlocked": True}
    mock_stats.assert_awaited_once()


@pytest.mark.asyncio
async def test_record_achievement_progress_unknown_achievement(mock_transaction, make_user):
    with patch('src.gamification.achievement_system.queries.get_user_gamification', AsyncMock(return_value=make_user())):
        with patch('src.gamification.achievement_system.queries.get_achievement', AsyncMock(return_value=None)):
            with pytest.raises(RecordNotFoundError):
                await record_achievement_progress("user-123", "nope", 10)


@pytest.mark.asyncio
async def test_record_achievement_progress_rejects_negative():
    with pytest.raises(ValidationError):
        await record_achievement_progress("user-123", "marathon", -1)


# ============================================================================
# Listing
# ============================================================================

@pytest.mark.asyncio
async def test_get_user_achievements_hides_locked_secrets(make_achievement, make_user, now):
    public = make_achievement("public_one")
    secret_locked = make_achievement("secret_locked", is_secret=True)
    secret_unlocked = make_achievement("secret_unlocked", is_secret=True)

    user = make_user(achievements=[
        UserAchievement(achievement_id="secret_unlocked", progress=100, unlocked_at=now),
        UserAchievement(achievement_id="public_one", progress=25),
    ])

    with patch('src.gamification.achievement_system.queries.fetch_user_gamification', AsyncMock(return_value=user)):
        with patch('src.gamification.achievement_system.queries.list_achievements',
                   AsyncMock(return_value=[public, secret_locked, secret_unlocked])):
            result = await get_user_achievements(user.user_id)

    assert [a["id"] for a in result["unlocked"]] == ["secret_unlocked"]
    assert [a["id"] for a in result["locked"]] == ["public_one"]
    assert result["locked"][0]["progress"] == 25
    assert result["total_achievements"] == 2
    assert result["completion_percentage"] == 50
