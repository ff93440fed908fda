"""
Tests for pds_audit/db/store.py.

What we test
------------
SqliteDataStore:
  - Seeding methods and DataStore reads agree with the in-memory adapter.
  - Report history is capped per kind; the oldest report goes first.
  - Reports survive a fresh store instance on the same file.
  - Unknown store → StoreNotFoundError; SQLite failures → StoreError.
"""

from __future__ import annotations

import pytest

from pds_audit.config import DatabaseConfig
from pds_audit.db.store import SqliteDataStore
from pds_audit.exceptions import StoreError, StoreNotFoundError

from conftest import NOW, monthly_points


@pytest.fixture
def sqlite_store(tmp_path, store_info) -> SqliteDataStore:
    store = SqliteDataStore(
        str(tmp_path / "pds.db"), wal_mode=False, history_cap=3, clock=lambda: NOW
    )
    store.initialize()
    store.add_store(store_info)
    return store


class TestReads:
    def test_store_info(self, sqlite_store, store_info):
        assert sqlite_store.fetch_store_info("S1") == store_info
        with pytest.raises(StoreNotFoundError):
            sqlite_store.fetch_store_info("S404")

    def test_orders_and_history(self, sqlite_store, make_order):
        assert sqlite_store.add_orders([
            make_order(order_id="recent", hours_ago=5),
            make_order(order_id="stale", hours_ago=24 * 45),
        ]) == 2
        assert [o.id for o in sqlite_store.fetch_orders("S1")] == ["stale", "recent"]
        history = sqlite_store.fetch_order_history("U1", within_days=30)
        assert [o.id for o in history] == ["recent"]

    def test_beneficiaries(self, sqlite_store, make_profile):
        sqlite_store.add_beneficiaries([make_profile("U1"), make_profile("U2")])
        assert sqlite_store.fetch_beneficiary("U2").user_id == "U2"
        assert sqlite_store.fetch_beneficiary("U3") is None

    def test_demand_and_stock(self, sqlite_store):
        points = monthly_points([100.0, 110.0, 120.0])
        sqlite_store.add_demand_history("S1", "rice", points)
        sqlite_store.set_stock("S1", "rice", 42.0)
        assert sqlite_store.fetch_demand_history("S1", "rice", 2) == points[1:]
        assert sqlite_store.fetch_current_stock("S1", "rice") == 42.0
        assert sqlite_store.fetch_current_stock("S1", "tea") == 0.0


class TestReportHistory:
    def test_cap_per_kind(self, sqlite_store, make_audit_report):
        reports = [make_audit_report(minutes_ago=10 - i) for i in range(5)]
        for r in reports:
            sqlite_store.append_report(r)
        kept = sqlite_store.fetch_reports("audit")
        assert [r.id for r in kept] == [r.id for r in reports[2:]]

    def test_persists_across_instances(self, sqlite_store, make_audit_report):
        report = make_audit_report()
        sqlite_store.append_report(report)
        reopened = SqliteDataStore(sqlite_store.db_path, wal_mode=False)
        assert reopened.fetch_reports("audit", "S1") == [report]

    def test_from_config(self, tmp_path):
        cfg = DatabaseConfig(db_path=str(tmp_path / "x.db"), wal_mode=False)
        store = SqliteDataStore.from_config(cfg, history_cap=7)
        assert store.history_cap == 7
        assert store.db_path == cfg.db_path


class TestErrors:
    def test_sqlite_error_wrapped(self, tmp_path):
        store = SqliteDataStore(str(tmp_path / "empty.db"), wal_mode=False)
        # schema never applied
        with pytest.raises(StoreError, match="no such table"):
            store.fetch_orders("S1")
