"""
Tests for pds_audit/cli.py (typer CliRunner, temporary config and database).

What we test
------------
  - init-db creates the database and reports the table count.
  - validate-config prints key values; --full adds the JSON dump; a bad
    config exits 1.
  - import-data --dry-run writes nothing; a real import feeds run-audit.
  - run-audit prints the report and writes --output (JSON or CSV).
  - forecast / store-report print ASCII reports; unknown store exits 1.
  - latest-audit and dashboard before and after an audit.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pds_audit.cli import app

runner = CliRunner()


def _months_back(n: int) -> list[str]:
    today = datetime.now(tz=timezone.utc).date()
    labels = []
    for k in range(n, 0, -1):
        idx = today.year * 12 + today.month - 1 - k
        labels.append(f"{idx // 12:04d}-{idx % 12 + 1:02d}")
    return labels


@pytest.fixture
def cli_env(tmp_path: Path) -> dict[str, str]:
    """Config file pointing at a temporary database, plus a snapshot file."""
    db_path = tmp_path / "db" / "pds.db"
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f"""
[database]
db_path = "{db_path.as_posix()}"
wal_mode = false

[logging]
level = "WARNING"
log_file = ""

[forecast]
tracked_items = ["rice", "sugar"]
""",
        encoding="utf-8",
    )

    recent = (datetime.now(tz=timezone.utc) - timedelta(hours=2)).isoformat()
    snapshot = {
        "stores": [{
            "store_id": "S1", "name": "Ward 4 Fair Price Shop",
            "latitude": 12.97159, "longitude": 77.59456, "district": "Bengaluru Urban",
        }],
        "beneficiaries": [
            {"user_id": "U1", "ration_card_type": "white", "household_members": 2,
             "verification_status": "verified"},
        ],
        "orders": [
            {"id": "O1", "customer_id": "U1", "store_id": "S1", "total_amount": 150,
             "created_at": recent, "items": ["Premium Rice (5kg)"]},
        ],
        "demand_history": [
            {"store_id": "S1", "item_id": "rice", "period": p, "actual_demand": 100}
            for p in _months_back(6)
        ],
        "stock": [{"store_id": "S1", "item_id": "rice", "quantity": 50}],
    }
    snapshot_path = tmp_path / "snapshot.json"
    snapshot_path.write_text(json.dumps(snapshot), encoding="utf-8")

    return {
        "config": str(config_path),
        "db": str(db_path),
        "snapshot": str(snapshot_path),
        "tmp": str(tmp_path),
    }


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _import(env) -> None:
    result = _invoke("import-data", "--file", env["snapshot"], "--config", env["config"])
    assert result.exit_code == 0, result.output


class TestSetupCommands:
    def test_init_db(self, cli_env):
        result = _invoke("init-db", "--config", cli_env["config"])
        assert result.exit_code == 0, result.output
        assert "Tables: 6 created/verified." in result.output
        assert Path(cli_env["db"]).exists()

    def test_validate_config(self, cli_env):
        result = _invoke("validate-config", "--config", cli_env["config"], "--full")
        assert result.exit_code == 0, result.output
        assert "Tracked items:     rice, sugar" in result.output
        assert "Full config (JSON):" in result.output
        assert "[OK] Config valid." in result.output

    def test_invalid_config_exits(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[audit]\ncompliance_basis = \"vibes\"\n", encoding="utf-8")
        result = _invoke("validate-config", "--config", str(bad))
        assert result.exit_code == 1

    def test_missing_config_exits(self, tmp_path):
        result = _invoke("validate-config", "--config", str(tmp_path / "none.toml"))
        assert result.exit_code == 1


class TestImport:
    def test_dry_run_writes_nothing(self, cli_env):
        result = _invoke(
            "import-data", "--file", cli_env["snapshot"], "--config", cli_env["config"],
            "--dry-run",
        )
        assert result.exit_code == 0, result.output
        assert "[DRY RUN]" in result.output
        assert not Path(cli_env["db"]).exists()

    def test_missing_file(self, cli_env):
        result = _invoke("import-data", "--file", "nope.json", "--config", cli_env["config"])
        assert result.exit_code == 1

    def test_import(self, cli_env):
        result = _invoke("import-data", "-f", cli_env["snapshot"], "--config", cli_env["config"])
        assert result.exit_code == 0, result.output
        assert "[OK] Snapshot imported." in result.output


class TestAuditCommands:
    def test_run_audit_with_json_output(self, cli_env):
        _import(cli_env)
        out = Path(cli_env["tmp"]) / "reports" / "audit.json"
        result = _invoke(
            "run-audit", "--store", "S1", "--config", cli_env["config"], "-o", str(out)
        )
        assert result.exit_code == 0, result.output
        assert "White ration card holder" in result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["total_orders"] == 1
        assert data["flagged_orders"][0]["risk_score"] == 85.0

    def test_run_audit_csv_output(self, cli_env):
        _import(cli_env)
        out = Path(cli_env["tmp"]) / "audit.csv"
        result = _invoke("run-audit", "-s", "S1", "--config", cli_env["config"], "-o", str(out))
        assert result.exit_code == 0, result.output
        assert out.read_text(encoding="utf-8").startswith("report_id,store_id")

    def test_latest_audit_and_dashboard(self, cli_env):
        _import(cli_env)
        before = _invoke("latest-audit", "--store", "S1", "--config", cli_env["config"])
        assert "no audits for store S1" in before.output

        _invoke("run-audit", "--store", "S1", "--config", cli_env["config"])

        latest = _invoke("latest-audit", "--store", "S1", "--config", cli_env["config"])
        assert latest.exit_code == 0, latest.output
        assert "=== Audit Report AUDIT-" in latest.output

        dash = _invoke("dashboard", "--config", cli_env["config"])
        assert dash.exit_code == 0, dash.output
        assert "Audits retained:     1" in dash.output
        assert "critical=1" in dash.output

    def test_empty_dashboard(self, cli_env):
        result = _invoke("dashboard", "--config", cli_env["config"])
        assert result.exit_code == 0, result.output
        assert "no audits yet" in result.output


class TestForecastCommands:
    def test_forecast(self, cli_env):
        _import(cli_env)
        result = _invoke(
            "forecast", "--store", "S1", "--item", "rice", "--horizon", "2",
            "--config", cli_env["config"],
        )
        assert result.exit_code == 0, result.output
        assert "=== Demand Forecast: rice @ S1 ===" in result.output
        assert "understock" in result.output

    def test_store_report_output(self, cli_env):
        _import(cli_env)
        out = Path(cli_env["tmp"]) / "s1.csv"
        result = _invoke(
            "store-report", "--store", "S1", "--config", cli_env["config"], "-o", str(out)
        )
        assert result.exit_code == 0, result.output
        assert "Store Demand Report: Ward 4 Fair Price Shop (S1)" in result.output
        assert len(out.read_text(encoding="utf-8").strip().splitlines()) == 3

    def test_store_report_unknown_store(self, cli_env):
        result = _invoke("store-report", "--store", "S9", "--config", cli_env["config"])
        assert result.exit_code == 1
