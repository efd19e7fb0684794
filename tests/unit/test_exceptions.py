"""Unit tests for custom exception hierarchy"""
import pytest
from datetime import datetime

import psycopg

from src.exceptions import (
    WellnessHubError,
    ValidationError,
    DatabaseError,
    ConnectionError,
    QueryError,
    RecordNotFoundError,
    AuthenticationError,
    ConfigurationError,
    GamificationError,
    InsufficientPointsError,
    DailyBonusAlreadyClaimedError,
    ChallengeError,
    AlreadyJoinedError,
    NotParticipatingError,
    CapacityExceededError,
    JoinWindowClosedError,
    ChallengeNotActiveError,
    wrap_external_exception
)


class TestWellnessHubError:
    """Test base exception class"""

    def test_basic_exception(self):
        error = WellnessHubError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)
        assert error.status_code == 500

    def test_exception_with_context(self):
        error = WellnessHubError(
            message="Save failed",
            user_id="user-123",
            operation="award_points",
            context={"amount": 50},
            user_message="Could not save your points"
        )
        assert error.user_id == "user-123"
        assert error.operation == "award_points"
        assert error.context["amount"] == 50
        assert error.user_message == "Could not save your points"

    def test_to_dict(self):
        error = WellnessHubError("Test error", request_id="req-1")
        data = error.to_dict()

        assert data["error"] == "WellnessHubError"
        assert data["message"] == "Test error"
        assert data["request_id"] == "req-1"
        assert "timestamp" in data


class TestValidationError:

    def test_field_in_context(self):
        error = ValidationError("must be positive", field="amount", value=-5, user_id="user-123")

        assert error.status_code == 400
        assert error.field == "amount"
        assert error.context == {"field": "amount", "value": -5}
        assert error.user_message == "Invalid amount: must be positive"
        assert error.user_id == "user-123"

    def test_extra_context_is_merged(self):
        error = ValidationError("bad", field="progress", context={"challenge_id": "c1"})

        assert error.context["challenge_id"] == "c1"
        assert error.context["field"] == "progress"


class TestDatabaseErrors:

    def test_hierarchy(self):
        assert issubclass(ConnectionError, DatabaseError)
        assert issubclass(QueryError, DatabaseError)
        assert issubclass(RecordNotFoundError, DatabaseError)

    def test_record_not_found(self):
        error = RecordNotFoundError("User 42 not found", record_type="User", record_id="42")

        assert error.status_code == 404
        assert error.user_message == "User not found."
        assert error.context["record_id"] == "42"


class TestGamificationErrors:

    @pytest.mark.parametrize("error,status", [
        (InsufficientPointsError(requested=10, available=5), 400),
        (DailyBonusAlreadyClaimedError(), 409),
        (AlreadyJoinedError(challenge_id="c1"), 409),
        (NotParticipatingError(challenge_id="c1"), 404),
        (CapacityExceededError(max_participants=3, challenge_id="c1"), 409),
        (JoinWindowClosedError(challenge_id="c1"), 400),
        (ChallengeNotActiveError(status="draft", challenge_id="c1"), 400),
    ])
    def test_status_codes(self, error, status):
        assert isinstance(error, GamificationError)
        assert error.status_code == status

    def test_challenge_errors_carry_challenge_id(self):
        error = CapacityExceededError(max_participants=3, challenge_id="c1", user_id="user-123")

        assert isinstance(error, ChallengeError)
        assert error.challenge_id == "c1"
        assert error.context == {"challenge_id": "c1"}
        assert "3" in error.message

    def test_insufficient_points_message(self):
        error = InsufficientPointsError(requested=10, available=5)

        assert error.requested == 10
        assert error.available == 5
        assert error.user_message == "You only have 5 points available."


class TestMiscErrors:

    def test_authentication_error(self):
        assert AuthenticationError().status_code == 401

    def test_configuration_error(self):
        error = ConfigurationError("missing", config_key="DATABASE_URL")
        assert error.context == {"config_key": "DATABASE_URL"}


class TestWrapExternalException:

    def test_wraps_operational_error(self):
        original = psycopg.OperationalError("connection refused")
        error = wrap_external_exception(original, operation="award_points", user_id="user-123")

        assert isinstance(error, ConnectionError)
        assert error.cause is original
        assert error.user_id == "user-123"

    def test_wraps_query_error(self):
        error = wrap_external_exception(psycopg.ProgrammingError("syntax"), operation="save")
        assert isinstance(error, QueryError)

    def test_wraps_generic_exception(self):
        error = wrap_external_exception(ValueError("odd"), operation="process_activity")

        assert type(error) is WellnessHubError
        assert "process_activity failed" in error.message
