"""Tests for the inventory health analyzer."""
from datetime import date, datetime, timedelta, timezone

import pytest
from resale_metrics.config import EngineSettings
from resale_metrics.inventory_health import (
    TargetType,
    UserStage,
    analyze_inventory,
    average_days_to_sell,
    days_since_listed,
    days_to_sell,
    generate_insights,
    get_empty_state,
    get_stale_items,
    get_user_stage,
    is_lot_ready_to_complete,
    is_stale,
    lifecycle_counts,
)
from resale_metrics.models import Item, ItemStatus, Lot, LotStatus

TODAY = date(2026, 10, 18)


def ago(days):
    return (TODAY - timedelta(days=days)).isoformat()


def listed(id, days_listed, lot_id=None, price=20.0):
    return Item(id=id, name=id, lot_id=lot_id, status=ItemStatus.LISTED,
                listing_price=price, listing_date=ago(days_listed))


def sold(id, sale_days_ago, price=30.0, cost=10.0, lot_id=None, days_listed=None):
    listing = ago(sale_days_ago + days_listed) if days_listed is not None else None
    return Item(id=id, name=id, lot_id=lot_id, status=ItemStatus.SOLD, sale_price=price,
                allocated_cost=cost, sale_date=ago(sale_days_ago), listing_date=listing)


# ── Staleness ──

class TestStale:
    def test_listed_past_threshold(self):
        assert is_stale(listed("a", 35), 30, TODAY)

    def test_exactly_at_threshold(self):
        assert is_stale(listed("a", 30), 30, TODAY)
        assert not is_stale(listed("a", 29), 30, TODAY)

    def test_relisting_resets_staleness(self):
        item = listed("a", 35)
        assert is_stale(item, 30, TODAY)
        relisted = item.relist(15.0, today=TODAY)
        assert relisted.listing_date == TODAY
        assert not is_stale(relisted, 30, TODAY)

    def test_same_price_keeps_listing_date(self):
        item = listed("a", 35, price=20.0)
        assert item.relist(20.0, today=TODAY).listing_date == item.listing_date

    def test_unlisted_and_sold_never_stale(self):
        unlisted = Item(id="u", name="u", listing_date=ago(100))
        sold_item = sold("s", 1, days_listed=200)
        assert not is_stale(unlisted, 30, TODAY)
        assert not is_stale(sold_item, 30, TODAY)

    def test_no_listing_date(self):
        item = Item(id="a", name="a", status=ItemStatus.LISTED)
        assert not is_stale(item, 30, TODAY)
        assert days_since_listed(item, TODAY) is None

    def test_timestamps_floor_elapsed_days(self):
        item = Item(id="a", name="a", status=ItemStatus.LISTED,
                    listing_date="2026-09-18T23:00:00")
        now = datetime(2026, 10, 18, 22, 0)
        assert days_since_listed(item, now) == 29
        assert not is_stale(item, 30, now)
        assert is_stale(item, 30, datetime(2026, 10, 18, 23, 0))

    def test_timestamp_against_calendar_day(self):
        item = Item(id="a", name="a", status=ItemStatus.LISTED,
                    listing_date="2026-09-18T23:00:00Z")
        assert days_since_listed(item, TODAY) == 30
        assert days_since_listed(item, datetime(2026, 10, 18, 1, 0)) == 30

    def test_aware_timestamps(self):
        item = Item(id="a", name="a", status=ItemStatus.LISTED,
                    listing_date="2026-10-17T23:30:00Z")
        assert days_since_listed(item, datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)) == 0

    def test_insights_accept_timestamps(self):
        item = Item(id="a", name="a", status=ItemStatus.LISTED,
                    listing_date="2026-09-18T23:00:00")
        insights = generate_insights([], [item], today=datetime(2026, 10, 18, 22, 0))
        assert not any(i.id == "stale-inventory" for i in insights)

    def test_stale_items_sorted_oldest_first(self):
        lots = [Lot(id="l", name="Pallet A")]
        items = [listed("a", 40), listed("b", 90, lot_id="l"), listed("c", 5)]
        stale = get_stale_items(items, lots, 30, TODAY)
        assert [s.id for s in stale] == ["b", "a"]
        assert stale[0].lot_name == "Pallet A"
        assert stale[0].days_listed == 90


class TestLifecycle:
    def test_counts(self):
        items = [Item(id="u", name="u"), listed("l", 1), sold("s1", 1), sold("s2", 2)]
        counts = lifecycle_counts(items)
        assert (counts.unlisted, counts.listed, counts.sold) == (1, 1, 2)
        assert counts.total == 4

    def test_days_to_sell(self):
        assert days_to_sell(sold("s", 2, days_listed=5)) == 5
        assert days_to_sell(listed("l", 5)) is None
        assert average_days_to_sell([sold("a", 1, days_listed=2), sold("b", 1, days_listed=4),
                                     sold("c", 1)]) == 3.0
        assert average_days_to_sell([]) is None


# ── Lot completion ──

class TestLotReadiness:
    @pytest.fixture
    def lot(self):
        return Lot(id="l", name="Pallet", status=LotStatus.PROCESSING)

    def test_ready(self, lot):
        items = [listed("a", 1, lot_id="l"), sold("b", 1, lot_id="l")]
        assert is_lot_ready_to_complete(lot, items)

    def test_unlisted_item_blocks(self, lot):
        items = [listed("a", 1, lot_id="l"), Item(id="b", name="b", lot_id="l")]
        assert not is_lot_ready_to_complete(lot, items)

    def test_empty_lot_not_ready(self, lot):
        assert not is_lot_ready_to_complete(lot, [])

    def test_dismissed(self, lot):
        items = [listed("a", 1, lot_id="l")]
        assert not is_lot_ready_to_complete(lot, items, dismissed_lot_ids={"l"})

    @pytest.mark.parametrize("status", [LotStatus.UNPROCESSED, LotStatus.COMPLETED])
    def test_only_processing(self, status):
        lot = Lot(id="l", name="Pallet", status=status)
        assert not is_lot_ready_to_complete(lot, [listed("a", 1, lot_id="l")])


# ── Insights ──

class TestInsights:
    def test_first_sale_is_top(self):
        items = [sold("s", 1, price=30.0, cost=10.0), listed("old", 45)]
        insights = generate_insights([], items, today=TODAY)
        assert insights[0].id == "first-sale"
        assert "$20.00" in insights[0].message
        assert insights[0].target_type == TargetType.ITEM
        assert insights[0].target_id == "s"

    def test_stale_single_item_targets_it(self):
        insights = generate_insights([], [listed("old", 45)], today=TODAY)
        assert insights[0].id == "stale-inventory"
        assert insights[0].target_id == "old"
        assert "1 item listed 30+ days" in insights[0].message

    def test_stale_many_items_has_no_target(self):
        insights = generate_insights([], [listed("a", 45), listed("b", 60)], today=TODAY)
        assert insights[0].target_id is None
        assert "2 items" in insights[0].message

    def test_threshold_from_settings(self):
        settings = EngineSettings(stale_threshold_days=60)
        insights = generate_insights([], [listed("a", 45)], settings, today=TODAY)
        assert not any(i.id == "stale-inventory" for i in insights)

    def test_ready_lot_targets_lot(self):
        lot = Lot(id="l", name="Pallet 7", status=LotStatus.PROCESSING)
        insights = generate_insights([lot], [listed("a", 1, lot_id="l")], today=TODAY)
        assert insights[0].id == "lot-ready-l"
        assert insights[0].target_type == TargetType.LOT
        assert insights[0].target_id == "l"
        assert "Pallet 7" in insights[0].message

    def test_dismissed_lot_has_no_insight(self):
        lot = Lot(id="l", name="Pallet 7", status=LotStatus.PROCESSING)
        insights = generate_insights([lot], [listed("a", 1, lot_id="l")], today=TODAY,
                                     dismissed_lot_ids=["l"])
        assert insights == []

    def test_best_source(self):
        lots = [Lot(id="good", name="Good Pallet"), Lot(id="meh", name="Meh Pallet")]
        items = [
            sold("a", 60, price=40.0, cost=10.0, lot_id="good"),
            sold("b", 60, price=40.0, cost=10.0, lot_id="good"),
            sold("c", 60, price=12.0, cost=10.0, lot_id="meh"),
            sold("d", 60, price=12.0, cost=10.0, lot_id="meh"),
        ]
        insights = generate_insights(lots, items, today=TODAY)
        best = next(i for i in insights if i.id == "best-source")
        assert "Good Pallet" in best.message
        assert "300%" in best.message
        assert best.target_id == "good"

    def test_quick_flips(self):
        items = [sold("a", 3, days_listed=2), sold("b", 5, days_listed=4),
                 sold("old", 60, days_listed=1)]
        insights = generate_insights([], items, today=TODAY)
        flip = next(i for i in insights if i.id == "quick-flips")
        assert "2 items sold within a week, avg 3 days" == flip.message

    def test_unlisted_reminder(self):
        items = [Item(id=str(n), name="x") for n in range(5)]
        insights = generate_insights([], items, today=TODAY)
        assert [i.id for i in insights] == ["unlisted-items"]

    def test_milestone(self):
        items = [sold(str(n), 200) for n in range(12)]
        insights = generate_insights([], items, today=TODAY)
        assert insights[0].id == "milestone-10"

    def test_limited_and_sorted(self):
        lot = Lot(id="l", name="P", status=LotStatus.PROCESSING)
        items = ([sold("s", 1, lot_id="l", days_listed=1)] + [listed("x", 40, lot_id="l")]
                 + [Item(id=str(n), name="x") for n in range(5)])
        insights = generate_insights([lot], items, today=TODAY)
        assert len(insights) == 3
        priorities = [i.priority for i in insights]
        assert priorities == sorted(priorities, reverse=True)

    def test_nothing_triggers(self):
        assert generate_insights([], [], today=TODAY) == []


class TestStages:
    def test_new_user(self):
        assert get_user_stage([], []) == UserStage.NEW_USER

    def test_lot_without_items_is_not_new(self):
        assert get_user_stage([Lot(id="l", name="P")], []) == UserStage.HAS_INVENTORY

    def test_has_listings(self):
        assert get_user_stage([], [listed("a", 1)]) == UserStage.HAS_LISTINGS

    def test_making_sales_and_established(self):
        assert get_user_stage([], [sold("a", 1)]) == UserStage.MAKING_SALES
        assert get_user_stage([], [sold(str(n), 1) for n in range(10)]) == UserStage.ESTABLISHED

    def test_empty_state_messages_differ(self):
        titles = {get_empty_state(stage).title for stage in UserStage}
        assert len(titles) == len(UserStage)


class TestAnalyzeInventory:
    def test_empty_state_for_new_user(self):
        health = analyze_inventory([], [], today=TODAY)
        assert health.insights == []
        assert health.empty_state.title == "Welcome!"

    def test_summary(self):
        lot = Lot(id="l", name="P", status=LotStatus.PROCESSING)
        items = [listed("a", 40, lot_id="l"), sold("b", 3, lot_id="l")]
        health = analyze_inventory([lot], items, today=TODAY)
        assert health.counts.listed == 1
        assert [s.id for s in health.stale_items] == ["a"]
        assert health.ready_lot_ids == ["l"]
        assert health.empty_state is None
