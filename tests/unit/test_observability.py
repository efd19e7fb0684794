"""Unit tests for Sentry filtering and request metrics helpers"""
from unittest.mock import MagicMock

from fastapi import HTTPException

from src.exceptions import InsufficientPointsError, QueryError
from src.observability.metrics_middleware import route_template
from src.observability.sentry_config import _before_send, init_sentry


def _hint(error):
    return {"exc_info": (type(error), error, None)}


class TestBeforeSend:

    def test_events_without_exception_pass_through(self):
        event = {"message": "hello"}
        assert _before_send(event, {}) is event

    def test_expected_domain_errors_are_dropped(self):
        error = InsufficientPointsError(requested=10, available=0)
        assert _before_send({}, _hint(error)) is None

    def test_client_http_errors_are_dropped(self):
        assert _before_send({}, _hint(HTTPException(status_code=404))) is None

    def test_server_errors_are_tagged(self):
        error = QueryError("insert failed", operation="save_user_gamification", request_id="req-9")

        event = _before_send({}, _hint(error))

        assert event["tags"]["request_id"] == "req-9"
        assert event["tags"]["operation"] == "save_user_gamification"

    def test_plain_exceptions_are_kept(self):
        event = {"level": "error"}
        assert _before_send(event, _hint(RuntimeError("boom"))) is event


def test_init_sentry_disabled_by_default(monkeypatch):
    monkeypatch.setattr("src.config.ENABLE_SENTRY", False)
    assert init_sentry() is False


def test_route_template_uses_matched_route():
    request = MagicMock()
    request.scope = {"route": MagicMock(path="/api/v1/users/{user_id}")}

    assert route_template(request) == "/api/v1/users/{user_id}"


def test_route_template_unmatched():
    request = MagicMock()
    request.scope = {}

    assert route_template(request) == "unmatched"
