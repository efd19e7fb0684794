"""Tests for configuration validation"""
import importlib

import pytest

from src import config
from src.exceptions import ConfigurationError


class TestConfigValidation:
    """Test validate_config() against module-level settings"""

    def test_defaults_are_valid(self):
        config.validate_config()

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.setattr(config, "DATABASE_URL", "")

        with pytest.raises(ConfigurationError, match="DATABASE_URL") as exc_info:
            config.validate_config()

        assert exc_info.value.config_key == "DATABASE_URL"

    def test_pool_bounds(self, monkeypatch):
        monkeypatch.setattr(config, "DB_POOL_MIN_SIZE", 20)
        monkeypatch.setattr(config, "DB_POOL_MAX_SIZE", 5)

        with pytest.raises(ConfigurationError, match="DB_POOL_MIN_SIZE"):
            config.validate_config()

    def test_sentry_requires_dsn(self, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_SENTRY", True)
        monkeypatch.setattr(config, "SENTRY_DSN", "")

        with pytest.raises(ConfigurationError, match="SENTRY_DSN") as exc_info:
            config.validate_config()

        assert exc_info.value.config_key == "SENTRY_DSN"

    def test_sentry_with_dsn(self, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_SENTRY", True)
        monkeypatch.setattr(config, "SENTRY_DSN", "https://key@sentry.example.com/1")

        config.validate_config()


class TestGamificationDefaults:

    def test_leveling_constants(self):
        assert config.XP_PER_LEVEL == 1000
        assert config.DAILY_BONUS_BASE == 50

    def test_leveling_curve_ignores_environment(self, monkeypatch):
        """XP_PER_LEVEL is a constant; re-reading the environment cannot change it"""
        monkeypatch.setenv("XP_PER_LEVEL", "250")
        reloaded = importlib.reload(config)

        try:
            assert reloaded.XP_PER_LEVEL == 1000
        finally:
            monkeypatch.delenv("XP_PER_LEVEL")
            importlib.reload(config)
