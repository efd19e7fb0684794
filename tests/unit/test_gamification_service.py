"""Unit tests for GamificationService"""

import pytest
from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg

from src.exceptions import ConnectionError, RecordNotFoundError, ValidationError, WellnessHubError
from src.services.container import get_container, init_container
from src.services.gamification_service import GamificationService


@pytest.fixture
def gamification_service(notifier):
    """Create GamificationService instance with mocks"""
    return GamificationService(MagicMock(), notifier)


@pytest.fixture
def tracked_transaction(mock_conn):
    """db.transaction() that counts commits and rollbacks"""
    state = {"opened": 0, "committed": 0, "rolled_back": 0}

    @asynccontextmanager
    async def fake_transaction():
        state["opened"] += 1
        try:
            yield mock_conn
        except Exception:
            state["rolled_back"] += 1
            raise
        state["committed"] += 1

    with patch("src.db.connection.db.transaction", fake_transaction):
        yield state


@pytest.fixture
def activity_queries(make_user, make_achievement, now):
    """Patch every query process_activity touches"""
    user = make_user(
        total_points=990, available_points=990, experience=990, level=1,
        current_streak=3, longest_streak=3, last_activity_date=now - timedelta(days=1)
    )
    mocks = {
        "user": user,
        "get": AsyncMock(return_value=user),
        "save": AsyncMock(),
        "catalog": AsyncMock(return_value=[make_achievement("walker", value=5000)]),
        "upsert": AsyncMock(),
        "increment": AsyncMock(),
    }

    with patch('src.db.queries.get_user_gamification', mocks["get"]), \
            patch('src.db.queries.save_user_gamification', mocks["save"]), \
            patch('src.db.queries.get_active_achievements', mocks["catalog"]), \
            patch('src.db.queries.upsert_user_achievement', mocks["upsert"]), \
            patch('src.db.queries.increment_achievement_stats', mocks["increment"]):
        yield mocks


# ============================================================================
# Activity processing
# ============================================================================

@pytest.mark.asyncio
async def test_process_activity(
    gamification_service, tracked_transaction, activity_queries, mock_conn, notifier, now
):
    """Points, streak and achievements are written in one transaction"""
    user = activity_queries["user"]

    result = await gamification_service.process_activity(
        user_id=user.user_id,
        points=30,
        reason="Morning run",
        activity="workout",
        metadata={"steps": 6000},
        now=now,
    )

    assert tracked_transaction == {"opened": 1, "committed": 1, "rolled_back": 0}
    activity_queries["get"].assert_awaited_once_with(mock_conn, user.user_id, for_update=True)
    activity_queries["save"].assert_awaited_once_with(mock_conn, user)
    activity_queries["upsert"].assert_awaited_once_with(mock_conn, user.user_id, user.find_achievement("walker"))

    assert result["points_earned"] == 30
    assert result["total_points"] == 1020
    assert result["level"] == 2
    assert result["leveled_up"] is True
    assert result["current_streak"] == 4
    assert result["new_achievements"][0]["id"] == "walker"

    event_types = [call.args[0].event_type for call in notifier.await_args_list]
    assert event_types == ["points_earned", "level_up", "streak_updated", "achievement_unlocked"]


@pytest.mark.asyncio
async def test_process_activity_failure_after_award_saves_nothing(
    gamification_service, tracked_transaction, activity_queries, mock_conn, notifier, now
):
    """A failure in the achievement step rolls back the points and streak with it"""
    activity_queries["catalog"].side_effect = psycopg.OperationalError("server closed the connection")

    with pytest.raises(ConnectionError) as exc_info:
        await gamification_service.process_activity("user-123", 30, "Morning run", "workout", now=now)

    assert exc_info.value.operation == "process_activity"
    assert exc_info.value.status_code == 503

    # The points were only ever written inside the transaction that rolled back
    activity_queries["save"].assert_awaited_once_with(mock_conn, activity_queries["user"])
    assert tracked_transaction == {"opened": 1, "committed": 0, "rolled_back": 1}
    notifier.assert_not_awaited()


@pytest.mark.asyncio
async def test_process_activity_unknown_user(gamification_service, tracked_transaction, activity_queries, notifier):
    """Expected gamification errors reach the caller unchanged"""
    activity_queries["get"].return_value = None

    with pytest.raises(RecordNotFoundError):
        await gamification_service.process_activity("ghost", 10, "Run", "workout")

    activity_queries["save"].assert_not_awaited()
    assert tracked_transaction["committed"] == 0
    notifier.assert_not_awaited()


@pytest.mark.asyncio
async def test_process_activity_rejects_invalid_points(gamification_service, tracked_transaction, activity_queries):
    with pytest.raises(ValidationError):
        await gamification_service.process_activity("user-123", 0, "Run", "workout")

    activity_queries["save"].assert_not_awaited()
    assert activity_queries["user"].total_points == 990
    assert tracked_transaction["committed"] == 0


@pytest.mark.asyncio
async def test_process_activity_wraps_unexpected_errors(gamification_service, tracked_transaction, activity_queries):
    activity_queries["save"].side_effect = RuntimeError("boom")

    with pytest.raises(WellnessHubError) as exc_info:
        await gamification_service.process_activity("user-123", 10, "Run", "workout")

    assert isinstance(exc_info.value.cause, RuntimeError)
    assert tracked_transaction["rolled_back"] == 1


# ============================================================================
# Calculators
# ============================================================================

@pytest.mark.asyncio
@patch('src.services.gamification_service.award_points', new_callable=AsyncMock)
async def test_calculate_life_insurance_awards_points(mock_award, gamification_service):
    result = await gamification_service.calculate_life_insurance("user-123", {
        "annual_income": 50000,
        "dependents": 2,
        "debts": 10000,
        "years_of_income": 10,
    })

    assert result["total_needs"] == 525000
    assert result["points_earned"] == 20
    assert mock_award.await_args.kwargs["source"] == "calculator"


@patch('src.services.gamification_service.award_points', new_callable=AsyncMock)
def test_score_financial_health(mock_award, gamification_service):
    result = gamification_service.score_financial_health({
        "monthly_income": 5000,
        "monthly_expenses": 3000,
        "current_savings": 15000,
        "monthly_investments": 500,
        "debts": [],
    })

    # 30 savings rate + 20 emergency fund + 25 investing + 20 no debt
    assert result == {"score": 95}
    mock_award.assert_not_called()


def test_score_goal_progress(gamification_service, now):
    result = gamification_service.score_goal_progress({
        "current_amount": 500,
        "target_amount": 1000,
        "target_date": now + timedelta(days=10),
        "created_at": now - timedelta(days=10),
    }, now=now)

    assert result["percentage"] == 50
    assert result["days_remaining"] == 10
    assert result["on_track"] is True


def test_score_insurance_coverage(gamification_service, now):
    policies = [
        {"type": "health", "coverage_amount": 0, "added_at": now - timedelta(days=400)},
        {"type": "auto", "coverage_amount": 0, "added_at": now - timedelta(days=400)},
        {"type": "life", "coverage_amount": 500000, "added_at": now - timedelta(days=30)},
    ]

    result = gamification_service.score_insurance_coverage(policies, annual_income=50000, now=now)

    # 40 essential types + 30 adequate life cover + 10 recently reviewed
    assert result == {"score": 80}


def test_container_lazy_loads_service():
    container = init_container(MagicMock())

    assert get_container() is container
    assert container.gamification_service is container.gamification_service
