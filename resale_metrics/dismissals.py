"""Redis-backed dismissal and notification de-dup state."""
import logging
import time
from datetime import date
from typing import Optional

import redis

logger = logging.getLogger(__name__)

NOTIFIED_TTL_SECONDS = 2 * 24 * 3600


class DismissalStore:
    """Per-user dismissed completion prompts and sent-notification markers.

    Falls back to in-memory state when Redis is unreachable.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", client=None):
        self.redis = client
        self._memory_dismissed: dict[str, set[str]] = {}
        self._memory_notified: dict[str, float] = {}
        if self.redis is None:
            try:
                self.redis = redis.from_url(redis_url, decode_responses=True)
                self.redis.ping()
            except (redis.exceptions.RedisError, ValueError) as e:
                logger.warning("Redis unavailable at %s, using in-memory dismissals: %s", redis_url, e)
                self.redis = None

    def dismiss_completion_prompt(self, user_id: str, lot_id: str):
        if self.redis:
            self.redis.sadd(f"dismissed:{user_id}", lot_id)
        else:
            self._memory_dismissed.setdefault(user_id, set()).add(lot_id)

    def restore_completion_prompt(self, user_id: str, lot_id: str):
        if self.redis:
            self.redis.srem(f"dismissed:{user_id}", lot_id)
        else:
            self._memory_dismissed.get(user_id, set()).discard(lot_id)

    def dismissed_lot_ids(self, user_id: str) -> set[str]:
        if self.redis:
            return set(self.redis.smembers(f"dismissed:{user_id}"))
        return set(self._memory_dismissed.get(user_id, set()))

    def mark_notified(self, user_id: str, kind: str, day: Optional[date] = None):
        """Record that ``kind`` was sent to the user on ``day``."""
        key = f"notified:{user_id}:{kind}:{(day or date.today()).isoformat()}"
        if self.redis:
            self.redis.set(key, "1", ex=NOTIFIED_TTL_SECONDS)
        else:
            self._memory_notified[key] = time.time() + NOTIFIED_TTL_SECONDS

    def was_notified(self, user_id: str, kind: str, day: Optional[date] = None) -> bool:
        key = f"notified:{user_id}:{kind}:{(day or date.today()).isoformat()}"
        if self.redis:
            return bool(self.redis.exists(key))
        expires = self._memory_notified.get(key)
        return expires is not None and expires > time.time()
