"""
Prometheus metrics definitions for WellnessHub.

Metrics are organized by category:
- HTTP/API metrics: Request counts and errors
- Gamification metrics: Points, levels, streaks, achievements, challenges

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
import os
import sys
from prometheus_client import Counter, Histogram, Info

logger = logging.getLogger(__name__)

# =============================================================================
# HTTP/API Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# =============================================================================
# Error Metrics
# =============================================================================

errors_total = Counter(
    "errors_total",
    "Total errors by type and component",
    ["error_type", "component"],  # component: api/database/gamification
)

# =============================================================================
# Gamification Metrics
# =============================================================================

gamification_points_awarded_total = Counter(
    "gamification_points_awarded_total",
    "Total points awarded",
    ["source"],  # activity/daily_bonus/challenge/calculator
)

gamification_points_spent_total = Counter(
    "gamification_points_spent_total",
    "Total points spent",
)

gamification_level_ups_total = Counter(
    "gamification_level_ups_total",
    "Total level-ups",
)

gamification_streak_resets_total = Counter(
    "gamification_streak_resets_total",
    "Total streaks broken and restarted at day 1",
)

gamification_achievements_unlocked_total = Counter(
    "gamification_achievements_unlocked_total",
    "Total achievements unlocked",
    ["category"],
)

gamification_challenge_joins_total = Counter(
    "gamification_challenge_joins_total",
    "Total challenge joins",
    ["challenge_type"],
)

gamification_challenge_completions_total = Counter(
    "gamification_challenge_completions_total",
    "Total challenge completions",
    ["challenge_type"],
)

# =============================================================================
# Application Info
# =============================================================================

app_info = Info(
    "app_info",
    "Application information",
)


def init_metrics():
    """
    Initialize metrics with application information.

    This should be called once at application startup to set
    static metadata about the application.
    """
    from src.config import SENTRY_ENVIRONMENT

    app_info.info(
        {
            "version": os.getenv("GIT_COMMIT_SHA", "dev")[:7],
            "environment": SENTRY_ENVIRONMENT,
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}",
        }
    )

    logger.info("Prometheus metrics initialized")
