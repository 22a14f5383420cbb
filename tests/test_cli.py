"""Tests for the command line interface."""
import json
from datetime import date, timedelta

import pytest
from resale_metrics.cli import main

TODAY = date.today()


@pytest.fixture
def snapshot_file(tmp_path):
    data = {
        "tier": "free",
        "pallets": [
            {"id": "l1", "name": "Pallet A", "purchase_cost": 100, "status": "processing"},
            {"id": "l2", "name": "Pallet B", "purchase_cost": 50, "status": "unprocessed"},
        ],
        "items": [
            {"id": "a", "name": "Stale Lamp", "pallet_id": "l1", "status": "listed",
             "listing_price": 25, "listing_date": (TODAY - timedelta(days=45)).isoformat()},
            {"id": "b", "name": "Sold Rug", "pallet_id": "l1", "status": "sold",
             "sale_price": 60, "allocated_cost": 20,
             "sale_date": TODAY.isoformat()},
        ],
        "expenses": [{"id": "e", "amount": 10, "category": "supplies",
                      "expense_date": TODAY.isoformat()}],
    }
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestCommands:
    def test_summary(self, snapshot_file, capsys):
        main(["summary", "--data", snapshot_file, "--period", "all"])
        out = capsys.readouterr().out
        assert "All Time" in out
        assert "Net Profit:     $30.00" in out

    def test_stale(self, snapshot_file, capsys):
        main(["stale", "-d", snapshot_file])
        out = capsys.readouterr().out
        assert "1 stale item(s)" in out
        assert "Stale Lamp [Pallet A]" in out

    def test_stale_custom_threshold(self, snapshot_file, capsys):
        main(["stale", "-d", snapshot_file, "--threshold", "60"])
        assert "No items listed 60+ days" in capsys.readouterr().out

    def test_insights(self, snapshot_file, capsys):
        main(["insights", "-d", snapshot_file])
        out = capsys.readouterr().out
        assert "Unlisted: 0  Listed: 1  Sold: 1" in out
        assert "First Sale!" in out

    def test_limits(self, snapshot_file, capsys):
        main(["limits", "-d", snapshot_file])
        out = capsys.readouterr().out
        assert "Tier: free ($0.00/mo)" in out
        assert "⛔ active_lots" in out
        assert "Upgrade to starter" in out

    def test_limits_override(self, snapshot_file, capsys):
        main(["limits", "-d", snapshot_file, "--tier", "pro"])
        out = capsys.readouterr().out
        assert "Tier: pro ($24.99/mo)" in out
        assert "unlimited" in out
        assert "Upgrade to" not in out

    def test_export_to_file(self, snapshot_file, tmp_path, capsys):
        out_path = tmp_path / "items.csv"
        main(["export", "-d", snapshot_file, "--kind", "items", "-o", str(out_path)])
        assert "Saved to" in capsys.readouterr().out
        assert "Stale Lamp" in out_path.read_text()

    def test_export_stdout(self, snapshot_file, capsys):
        main(["export", "-d", snapshot_file, "--kind", "lots"])
        assert "Pallet B" in capsys.readouterr().out


class TestErrors:
    def test_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["summary", "-d", str(tmp_path / "nope.json")])
        assert exc.value.code == 1
        assert "Cannot read snapshot" in capsys.readouterr().out

    def test_bad_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit):
            main(["stale", "-d", str(path)])

    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])
