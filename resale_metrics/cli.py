"""CLI over a JSON inventory snapshot.

Usage:
    python -m resale_metrics.cli summary --data snapshot.json [--period month]
    python -m resale_metrics.cli stale --data snapshot.json [--threshold 30]
    python -m resale_metrics.cli insights --data snapshot.json
    python -m resale_metrics.cli limits --data snapshot.json [--tier pro]
    python -m resale_metrics.cli export --data snapshot.json --kind items [-o items.csv]
"""
import argparse
import json
import logging
import sys

from resale_metrics.config import config
from resale_metrics.models import Snapshot, load_snapshot


def _load(path: str) -> Snapshot:
    try:
        with open(path) as f:
            return load_snapshot(json.load(f))
    except (OSError, ValueError, KeyError) as e:
        print(f"❌ Cannot read snapshot {path}: {e}")
        sys.exit(1)


def cmd_summary(args):
    """Profit and ROI for a period, with the previous period for comparison."""
    from resale_metrics.periods import period_label
    from resale_metrics.profit import calculate_profit_report

    snapshot = _load(args.data)
    report = calculate_profit_report(args.period, snapshot.items, snapshot.expenses)
    print(f"📊 {period_label(args.period)}")
    print(report.summary())


def cmd_stale(args):
    from resale_metrics.inventory_health import get_stale_items

    snapshot = _load(args.data)
    threshold = args.threshold or config.STALE_THRESHOLD_DAYS
    stale = get_stale_items(snapshot.items, snapshot.lots, threshold)
    if not stale:
        print(f"✅ No items listed {threshold}+ days")
        return
    print(f"⏳ {len(stale)} stale item(s):")
    for s in stale:
        price = f"${s.listing_price:.2f}" if s.listing_price is not None else "-"
        source = f" [{s.lot_name}]" if s.lot_name else ""
        print(f"  {s.days_listed:>4}d  {price:>9}  {s.name}{source}")


def cmd_insights(args):
    from resale_metrics.inventory_health import analyze_inventory

    snapshot = _load(args.data)
    health = analyze_inventory(snapshot.lots, snapshot.items,
                               config.engine_settings(args.threshold))
    c = health.counts
    print(f"📦 Unlisted: {c.unlisted}  Listed: {c.listed}  Sold: {c.sold}")
    if health.empty_state:
        print(f"{health.empty_state.title} {health.empty_state.message}")
        return
    for insight in health.insights:
        print(f"  💡 {insight.title}: {insight.message}")


def cmd_limits(args):
    from resale_metrics.tier_limits import (
        TIER_PRICING, LimitKey, can_perform, count_usage, required_tier_for, resolve_tier,
        usage_percent,
    )

    snapshot = _load(args.data)
    tier = resolve_tier(args.tier or snapshot.tier)
    usage = count_usage(snapshot.lots, snapshot.items)
    monthly = TIER_PRICING[tier]["monthly"]
    price = "custom pricing" if monthly is None else f"${monthly:.2f}/mo"
    print(f"🔒 Tier: {tier.value} ({price})")
    for key in (LimitKey.ACTIVE_LOTS, LimitKey.ARCHIVED_LOTS,
                LimitKey.ACTIVE_ITEMS, LimitKey.ARCHIVED_ITEMS):
        count = usage.for_key(key)
        pct = usage_percent(tier, key, count)
        shown = "unlimited" if pct is None else f"{pct:.0f}%"
        allowed = can_perform(tier, key, count)
        flag = "✅" if allowed else "⛔"
        print(f"  {flag} {key.value:<16} {count:>5}  {shown}")
        if not allowed:
            upgrade = required_tier_for(key, count)
            if upgrade:
                print(f"     ⬆️  Upgrade to {upgrade.value} for more")


def cmd_export(args):
    from resale_metrics.export import EXPORTERS

    snapshot = _load(args.data)
    data = EXPORTERS[args.kind](snapshot)
    if args.output:
        with open(args.output, "w", newline="") as f:
            f.write(data)
        print(f"💾 Saved to {args.output}")
    else:
        print(data, end="")


def main(argv=None):
    logging.basicConfig(level=config.LOG_LEVEL.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(
        prog="resale-metrics",
        description="Profit, ROI and inventory health for reseller inventory",
    )
    sub = parser.add_subparsers(dest="command", help="Command")

    p = sub.add_parser("summary", help="Profit and ROI for a period")
    p.add_argument("--data", "-d", required=True, help="Snapshot JSON file")
    p.add_argument("--period", choices=["week", "month", "year", "all"], default="month")

    p = sub.add_parser("stale", help="List stale items")
    p.add_argument("--data", "-d", required=True, help="Snapshot JSON file")
    p.add_argument("--threshold", type=int, help="Days listed before an item is stale")

    p = sub.add_parser("insights", help="Dashboard insights")
    p.add_argument("--data", "-d", required=True, help="Snapshot JSON file")
    p.add_argument("--threshold", type=int, help="Days listed before an item is stale")

    p = sub.add_parser("limits", help="Tier usage")
    p.add_argument("--data", "-d", required=True, help="Snapshot JSON file")
    p.add_argument("--tier", help="Override the snapshot's tier")

    p = sub.add_parser("export", help="Export records to CSV")
    p.add_argument("--data", "-d", required=True, help="Snapshot JSON file")
    p.add_argument("--kind", choices=["items", "lots", "expenses"], default="items")
    p.add_argument("--output", "-o", help="Save output to file")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "summary": cmd_summary,
        "stale": cmd_stale,
        "insights": cmd_insights,
        "limits": cmd_limits,
        "export": cmd_export,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
