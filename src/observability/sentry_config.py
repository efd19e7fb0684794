"""Sentry configuration and initialization for error tracking."""

import logging
import os
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from src.exceptions import WellnessHubError

logger = logging.getLogger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for error tracking.

    Environment variables:
        ENABLE_SENTRY: Feature flag to enable/disable Sentry
        SENTRY_DSN: Sentry project DSN
        SENTRY_ENVIRONMENT: Environment name (development, staging, production)
        SENTRY_TRACES_SAMPLE_RATE: Share of transactions to sample (0.0-1.0)
        GIT_COMMIT_SHA: Git commit SHA for release tracking (optional)

    Returns:
        True if Sentry was initialized
    """
    from src.config import (
        SENTRY_DSN,
        SENTRY_ENVIRONMENT,
        SENTRY_TRACES_SAMPLE_RATE,
        ENABLE_SENTRY,
    )

    if not ENABLE_SENTRY:
        logger.info("Sentry is disabled (ENABLE_SENTRY=false)")
        return False

    if not SENTRY_DSN:
        logger.warning("Sentry DSN not configured - error tracking disabled")
        return False

    commit = os.getenv("GIT_COMMIT_SHA")
    release = f"wellnesshub@{commit[:7]}" if commit else "wellnesshub@dev"

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        release=release,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            # Breadcrumbs from INFO, events from ERROR
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        attach_stacktrace=True,
        send_default_pii=False,
        before_send=_before_send,
    )

    logger.info(
        f"Sentry initialized: environment={SENTRY_ENVIRONMENT}, "
        f"release={release}, traces_sample_rate={SENTRY_TRACES_SAMPLE_RATE}"
    )
    return True


def _before_send(event, hint):
    """
    Drop expected, user-facing errors before they reach Sentry.

    Domain errors and HTTP exceptions with a 4xx status are normal outcomes
    (insufficient points, already joined, not found); only 5xx are reported.
    Domain errors that are reported get their request id and operation as tags.
    """
    if "exc_info" not in hint:
        return event

    exc_type, exc_value, tb = hint["exc_info"]
    status_code = getattr(exc_value, "status_code", None)
    if status_code is not None and status_code < 500:
        return None

    if isinstance(exc_value, WellnessHubError):
        event.setdefault("tags", {})
        event["tags"]["request_id"] = exc_value.request_id
        if exc_value.operation:
            event["tags"]["operation"] = exc_value.operation

    return event


def shutdown_sentry() -> None:
    """Flush pending events before the process exits."""
    client = sentry_sdk.get_client()
    if client.is_active():
        logger.info("Flushing Sentry events before shutdown...")
        sentry_sdk.flush(timeout=2.0)
        logger.info("Sentry shutdown complete")
