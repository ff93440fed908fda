"""
Tests for pds_audit/service.py.

What we test
------------
AuditService audits:
  - audit_store_orders() persists the report; a failing append is logged
    and the report is still returned.
  - run_automated_audit() audits only the lookback window, looks up each
    distinct customer once, flags unknown customers, and returns None
    (with an error log) when the store fails.
  - get_latest_audit_for_store(): newest timestamp wins, ties go to the
    last appended report; None when the store has no audits.
  - get_audit_dashboard_data(): totals, mean compliance, critical issue
    count, newest-first recent list, risk distribution over every level.

AuditService forecasts:
  - generate_demand_forecast() reads history and stock, persists nothing.
  - generate_store_demand_report() persists to the demand history.
"""

from __future__ import annotations

import logging

import pytest

from pds_audit.config import AppConfig, AuditConfig, ForecastConfig
from pds_audit.exceptions import StoreError
from pds_audit.service import AuditService
from pds_audit.store.memory import InMemoryDataStore
from pds_audit.taxonomy.pds_taxonomy import IssueType, RiskLevel, Severity, StockRisk

from conftest import NOW, monthly_points


class _FailingAppendStore(InMemoryDataStore):
    def append_report(self, report):
        raise StoreError("disk full")


class _FailingReadStore(InMemoryDataStore):
    def fetch_orders(self, store_id, since=None):
        raise StoreError("connection refused")


def _service(store, **sections) -> AuditService:
    return AuditService(store, AppConfig(**sections), clock=lambda: NOW)


# ── Audits ────────────────────────────────────────────────────────────────────

class TestAuditStoreOrders:
    def test_report_is_persisted(self, memory_store, make_order, make_profile):
        service = _service(memory_store)
        report = service.audit_store_orders("S1", [make_order()], [make_profile()])
        assert service.get_audit_history() == [report]
        assert report.timestamp == NOW

    def test_persist_failure_still_returns(self, make_order, make_profile, caplog):
        service = _service(_FailingAppendStore(clock=lambda: NOW))
        with caplog.at_level(logging.ERROR, logger="pds_audit.service"):
            report = service.audit_store_orders("S1", [make_order()], [make_profile()])
        assert report.total_orders == 1
        assert "disk full" in caplog.text


class TestAutomatedAudit:
    def test_lookback_and_unknown_customers(self, memory_store, make_order, make_profile):
        memory_store.add_beneficiaries([make_profile("U1")])
        memory_store.add_orders([
            make_order(customer_id="U1", hours_ago=2),
            make_order(customer_id="U1", hours_ago=30),
            make_order(customer_id="U2", hours_ago=3),
            make_order(customer_id="U1", hours_ago=24 * 31),
        ])
        report = _service(memory_store).run_automated_audit("S1")
        assert report is not None
        assert report.total_orders == 3
        unknown = [i for i in report.flagged_orders if i.severity == Severity.CRITICAL]
        assert [i.user_id for i in unknown] == ["U2"]
        assert memory_store.fetch_reports("audit") == [report]

    def test_custom_lookback(self, memory_store, make_order, make_profile):
        memory_store.add_beneficiaries([make_profile("U1")])
        memory_store.add_orders([
            make_order(hours_ago=2),
            make_order(hours_ago=24 * 3),
        ])
        service = _service(memory_store, audit=AuditConfig(automated_lookback_days=1))
        assert service.run_automated_audit("S1").total_orders == 1

    def test_store_failure_returns_none(self, caplog):
        service = _service(_FailingReadStore(clock=lambda: NOW))
        with caplog.at_level(logging.ERROR, logger="pds_audit.service"):
            assert service.run_automated_audit("S1") is None
        assert "connection refused" in caplog.text

    def test_empty_window(self, memory_store):
        report = _service(memory_store).run_automated_audit("S1")
        assert report.total_orders == 0
        assert report.compliance_rate == pytest.approx(100.0)


class TestLatestAudit:
    def test_none_when_empty(self, memory_store):
        assert _service(memory_store).get_latest_audit_for_store("S1") is None

    def test_newest_timestamp_wins(self, memory_store, make_audit_report):
        newer = make_audit_report(minutes_ago=1)
        older = make_audit_report(minutes_ago=90)
        memory_store.append_report(newer)
        memory_store.append_report(older)
        memory_store.append_report(make_audit_report("S2"))
        assert _service(memory_store).get_latest_audit_for_store("S1") == newer

    def test_tie_goes_to_last_appended(self, memory_store, make_audit_report):
        first = make_audit_report()
        second = make_audit_report()
        memory_store.append_report(first)
        memory_store.append_report(second)
        assert _service(memory_store).get_latest_audit_for_store("S1").id == second.id


class TestDashboard:
    def test_empty_history(self, memory_store):
        data = _service(memory_store).get_audit_dashboard_data()
        assert data.total_audits == 0
        assert data.average_compliance == 0.0
        assert data.recent_reports == []
        assert data.risk_distribution == {"low": 0, "medium": 0, "high": 0, "critical": 0}

    def test_roll_up(self, memory_store, make_order, make_profile):
        service = _service(memory_store)
        clean = service.audit_store_orders("S1", [make_order()], [make_profile()])
        ghost = service.audit_store_orders("S1", [make_order(customer_id="ghost")], [])

        data = service.get_audit_dashboard_data()
        assert data.total_audits == 2
        assert data.average_compliance == pytest.approx(50.0)
        assert data.critical_issues == 1
        assert [r.id for r in data.recent_reports] == [ghost.id, clean.id]
        assert data.risk_distribution == {"low": 1, "medium": 0, "high": 0, "critical": 1}
        assert ghost.issues_of(IssueType.ELIGIBILITY)
        assert ghost.risk_score == RiskLevel.CRITICAL

    def test_recent_is_limited(self, memory_store, make_audit_report):
        reports = [make_audit_report(minutes_ago=10 - i) for i in range(7)]
        for r in reports:
            memory_store.append_report(r)
        data = _service(memory_store).get_audit_dashboard_data()
        assert data.total_audits == 7
        assert [r.id for r in data.recent_reports] == [r.id for r in reversed(reports[-5:])]


# ── Forecasts ─────────────────────────────────────────────────────────────────

class TestForecasts:
    def test_single_forecast_not_persisted(self, memory_store):
        memory_store.add_demand_history("S1", "rice", monthly_points([100.0] * 6))
        memory_store.set_stock("S1", "rice", 50.0)
        fc = _service(memory_store).generate_demand_forecast("S1", "rice")
        assert fc.forecasted_demand == pytest.approx(100.0)
        assert fc.recommended_stock == 120
        assert fc.risk_assessment == StockRisk.UNDERSTOCK
        assert memory_store.fetch_reports("demand") == []

    def test_store_report_persisted(self, memory_store):
        memory_store.add_demand_history("S1", "rice", monthly_points([100.0] * 6))
        service = _service(memory_store, forecast=ForecastConfig(tracked_items=["rice", "wheat"]))
        report = service.generate_store_demand_report("S1")
        assert [f.item_id for f in report.item_forecasts] == ["rice", "wheat"]
        assert memory_store.fetch_reports("demand") == [report]
        assert report.generated_at == NOW

    def test_history_window_from_config(self, memory_store):
        memory_store.add_demand_history(
            "S1", "rice", monthly_points([1000.0] * 6 + [100.0] * 3)
        )
        service = _service(memory_store, forecast=ForecastConfig(history_months=3))
        fc = service.generate_demand_forecast("S1", "rice", horizon_months=1)
        assert fc.forecasted_demand == pytest.approx(100.0)
        assert fc.forecast_period == "2026-11"
