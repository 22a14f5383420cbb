"""Tests for dismissal and notification de-dup state."""
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import redis
from resale_metrics.dismissals import NOTIFIED_TTL_SECONDS, DismissalStore


@pytest.fixture
def memory_store():
    with patch("resale_metrics.dismissals.redis.from_url") as from_url:
        from_url.return_value.ping.side_effect = redis.exceptions.ConnectionError("refused")
        store = DismissalStore(redis_url="redis://invalid:9999/0")
    return store


class TestInMemory:
    def test_falls_back(self, memory_store):
        assert memory_store.redis is None

    def test_malformed_url_falls_back(self):
        store = DismissalStore(redis_url="not-a-redis-url")
        assert store.redis is None
        store.dismiss_completion_prompt("u1", "lot-1")
        assert store.dismissed_lot_ids("u1") == {"lot-1"}

    def test_dismiss_and_restore(self, memory_store):
        memory_store.dismiss_completion_prompt("u1", "lot-1")
        memory_store.dismiss_completion_prompt("u1", "lot-2")
        assert memory_store.dismissed_lot_ids("u1") == {"lot-1", "lot-2"}
        assert memory_store.dismissed_lot_ids("u2") == set()
        memory_store.restore_completion_prompt("u1", "lot-1")
        assert memory_store.dismissed_lot_ids("u1") == {"lot-2"}

    def test_restore_unknown_user(self, memory_store):
        memory_store.restore_completion_prompt("ghost", "lot-1")
        assert memory_store.dismissed_lot_ids("ghost") == set()

    def test_notified_per_day(self, memory_store):
        day = date(2026, 10, 18)
        assert not memory_store.was_notified("u1", "stale_inventory", day)
        memory_store.mark_notified("u1", "stale_inventory", day)
        assert memory_store.was_notified("u1", "stale_inventory", day)
        assert not memory_store.was_notified("u1", "stale_inventory", date(2026, 10, 19))
        assert not memory_store.was_notified("u1", "limit_warning", day)


class TestRedis:
    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_dismiss_uses_set(self, client):
        store = DismissalStore(client=client)
        store.dismiss_completion_prompt("u1", "lot-1")
        client.sadd.assert_called_once_with("dismissed:u1", "lot-1")

    def test_dismissed_ids(self, client):
        client.smembers.return_value = {"lot-1"}
        assert DismissalStore(client=client).dismissed_lot_ids("u1") == {"lot-1"}
        client.smembers.assert_called_once_with("dismissed:u1")

    def test_mark_notified_expires(self, client):
        DismissalStore(client=client).mark_notified("u1", "weekly_summary", date(2026, 10, 18))
        client.set.assert_called_once_with("notified:u1:weekly_summary:2026-10-18", "1",
                                           ex=NOTIFIED_TTL_SECONDS)

    def test_was_notified(self, client):
        client.exists.return_value = 1
        assert DismissalStore(client=client).was_notified("u1", "x", date(2026, 10, 18))
        client.exists.return_value = 0
        assert not DismissalStore(client=client).was_notified("u1", "x", date(2026, 10, 18))
