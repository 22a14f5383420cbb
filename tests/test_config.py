"""Tests for configuration."""
import pytest
from resale_metrics.config import Config, EngineSettings
from resale_metrics.tier_limits import TIER_LIMITS


class TestConfig:
    def test_defaults(self, monkeypatch):
        for var in ("STALE_THRESHOLD_DAYS", "MILEAGE_RATE", "INCLUDE_UNSELLABLE_IN_COST",
                    "PUSH_RETRIES"):
            monkeypatch.delenv(var, raising=False)
        cfg = Config()
        assert cfg.STALE_THRESHOLD_DAYS == 30
        assert cfg.MILEAGE_RATE == 0.70
        assert cfg.INCLUDE_UNSELLABLE_IN_COST is True
        cfg.validate()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("STALE_THRESHOLD_DAYS", "45")
        monkeypatch.setenv("INCLUDE_UNSELLABLE_IN_COST", "no")
        cfg = Config()
        assert cfg.STALE_THRESHOLD_DAYS == 45
        assert cfg.INCLUDE_UNSELLABLE_IN_COST is False

    @pytest.mark.parametrize("var,value", [
        ("STALE_THRESHOLD_DAYS", "0"),
        ("MILEAGE_RATE", "-0.1"),
        ("PUSH_RETRIES", "0"),
    ])
    def test_validate_rejects(self, monkeypatch, var, value):
        monkeypatch.setenv(var, value)
        with pytest.raises(ValueError):
            Config().validate()

    def test_engine_settings(self, monkeypatch):
        monkeypatch.delenv("STALE_THRESHOLD_DAYS", raising=False)
        cfg = Config()
        assert cfg.engine_settings().stale_threshold_days == 30
        assert cfg.engine_settings(14).stale_threshold_days == 14


def test_engine_settings_defaults():
    settings = EngineSettings()
    assert settings.max_insights == 3
    assert settings.tier_limits is TIER_LIMITS
