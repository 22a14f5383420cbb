"""Configuration management."""
import os
from dataclasses import dataclass, field
from typing import Optional

from resale_metrics.tier_limits import TIER_LIMITS, LimitTable

DEFAULT_STALE_THRESHOLD_DAYS = 30
DEFAULT_MILEAGE_RATE = 0.70  # IRS standard rate, USD per mile


@dataclass(frozen=True)
class EngineSettings:
    """Settings passed explicitly into the calculators."""
    stale_threshold_days: int = DEFAULT_STALE_THRESHOLD_DAYS
    include_unsellable_in_cost: bool = True
    max_insights: int = 3
    tier_limits: LimitTable = field(default_factory=lambda: TIER_LIMITS)


class Config:
    def __init__(self):
        self.REDIS_URL: str = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        self.EXPO_PUSH_URL: str = os.environ.get(
            "EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send"
        )
        self.PUSH_TIMEOUT: int = int(os.environ.get("PUSH_TIMEOUT", "30"))
        self.PUSH_RETRIES: int = int(os.environ.get("PUSH_RETRIES", "3"))
        self.STALE_THRESHOLD_DAYS: int = int(
            os.environ.get("STALE_THRESHOLD_DAYS", str(DEFAULT_STALE_THRESHOLD_DAYS))
        )
        self.MILEAGE_RATE: float = float(os.environ.get("MILEAGE_RATE", str(DEFAULT_MILEAGE_RATE)))
        self.INCLUDE_UNSELLABLE_IN_COST: bool = os.environ.get(
            "INCLUDE_UNSELLABLE_IN_COST", "true"
        ).lower() in ("1", "true", "yes")
        self.LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    def validate(self):
        if self.STALE_THRESHOLD_DAYS < 1:
            raise ValueError("STALE_THRESHOLD_DAYS must be at least 1")
        if self.MILEAGE_RATE < 0:
            raise ValueError("MILEAGE_RATE cannot be negative")
        if self.PUSH_RETRIES < 1:
            raise ValueError("PUSH_RETRIES must be at least 1")

    def engine_settings(self, stale_threshold_days: Optional[int] = None) -> EngineSettings:
        """Snapshot the calculator settings; a per-user threshold overrides the default."""
        return EngineSettings(
            stale_threshold_days=stale_threshold_days or self.STALE_THRESHOLD_DAYS,
            include_unsellable_in_cost=self.INCLUDE_UNSELLABLE_IN_COST,
        )


config = Config()
