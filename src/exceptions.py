"""
Standardized exception hierarchy for WellnessHub
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class WellnessHubError(Exception):
    """
    Base exception for all WellnessHub errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - HTTP status code for the API layer
    - Automatic logging

    Example:
        raise WellnessHubError(
            message="Failed to save user state",
            user_id="123456",
            operation="award_points",
            context={"amount": 50}
        )
    """

    status_code: int = 500
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (User Input)
# ==========================================

class ValidationError(WellnessHubError):
    """
    Raised when input fails validation

    Example:
        raise ValidationError(
            message="Amount must be a positive integer",
            field="amount",
            value=-5,
            user_id="123456"
        )
    """

    status_code = 400
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={**(kwargs.pop("context", None) or {}), "field": field, "value": value},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(WellnessHubError):
    """
    Base class for database-related errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    status_code = 503

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your data. Please try again.",
            context={**(kwargs.pop("context", None) or {}), "query": query},
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested database record does not exist"""

    status_code = 404
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={**(kwargs.pop("context", None) or {}), "record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Authentication
# ==========================================

class AuthenticationError(WellnessHubError):
    """Authentication failed"""

    status_code = 401
    log_level = logging.WARNING

    def __init__(
        self,
        message: str = "Authentication failed",
        **kwargs
    ):
        super().__init__(
            message=message,
            user_message="Authentication failed. Please check your credentials.",
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(WellnessHubError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Gamification Errors
# ==========================================

class GamificationError(WellnessHubError):
    """Expected, user-facing gamification state violation"""

    status_code = 400
    log_level = logging.WARNING


class InsufficientPointsError(GamificationError):
    """Spend exceeds the user's available points"""

    def __init__(self, requested: int, available: int, **kwargs):
        self.requested = requested
        self.available = available
        super().__init__(
            message=f"Insufficient points: requested {requested}, available {available}",
            user_message=f"You only have {available} points available.",
            context={"requested": requested, "available": available},
            **kwargs
        )


class DailyBonusAlreadyClaimedError(GamificationError):
    """Daily bonus was already claimed today"""

    status_code = 409

    def __init__(self, message: str = "Daily bonus already claimed today", **kwargs):
        super().__init__(
            message=message,
            user_message="You've already claimed today's bonus. Come back tomorrow!",
            **kwargs
        )


# ==========================================
# Challenge Errors
# ==========================================

class ChallengeError(GamificationError):
    """Base class for challenge participation errors"""

    def __init__(self, message: str, challenge_id: Optional[str] = None, **kwargs):
        self.challenge_id = challenge_id
        kwargs.setdefault("user_message", message)
        kwargs.setdefault("context", {"challenge_id": challenge_id})
        super().__init__(message=message, **kwargs)


class AlreadyJoinedError(ChallengeError):
    """User already has a participant entry"""

    status_code = 409

    def __init__(self, challenge_id: Optional[str] = None, **kwargs):
        super().__init__(
            message="User is already participating in this challenge",
            challenge_id=challenge_id,
            **kwargs
        )


class NotParticipatingError(ChallengeError):
    """User has no participant entry"""

    status_code = 404

    def __init__(self, challenge_id: Optional[str] = None, **kwargs):
        super().__init__(
            message="User is not participating in this challenge",
            challenge_id=challenge_id,
            **kwargs
        )


class CapacityExceededError(ChallengeError):
    """Challenge reached max participants"""

    status_code = 409

    def __init__(self, max_participants: int, challenge_id: Optional[str] = None, **kwargs):
        self.max_participants = max_participants
        super().__init__(
            message=f"Challenge has reached maximum participants ({max_participants})",
            challenge_id=challenge_id,
            **kwargs
        )


class JoinWindowClosedError(ChallengeError):
    """Team challenge already started and late joins are disallowed"""

    def __init__(self, challenge_id: Optional[str] = None, **kwargs):
        super().__init__(
            message="Cannot join team challenge after it has started",
            challenge_id=challenge_id,
            **kwargs
        )


class ChallengeNotActiveError(ChallengeError):
    """Challenge is not open for participation"""

    def __init__(self, status: str, challenge_id: Optional[str] = None, **kwargs):
        self.status = status
        super().__init__(
            message=f"Challenge is not active (status: {status})",
            challenge_id=challenge_id,
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> WellnessHubError:
    """
    Wrap external exceptions (psycopg, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate WellnessHubError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="award_points", user_id="123456")
    """
    import psycopg

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    return WellnessHubError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
