"""
Service facade: the operations exposed to callers (admin panel, CLI,
schedulers).

``AuditService`` wires the pure engines to an injected ``DataStore``:

  audit_store_orders            audit a caller-supplied batch, persist, return
  run_automated_audit           audit the store's last N days; None on failure
  generate_demand_forecast      one (store, item) forecast
  generate_store_demand_report  every tracked commodity + store report, persisted
  get_latest_audit_for_store    newest retained audit report for a store
  get_audit_history             all retained audit reports, oldest first
  get_audit_dashboard_data      roll-up of the retained audit history

Persisting a report is best effort: a failed ``append_report`` is logged and
the report is still returned. Read failures from the store propagate,
except in ``run_automated_audit`` which logs them and returns ``None``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from pds_audit.audit.orchestrator import AuditOrchestrator
from pds_audit.config import AppConfig
from pds_audit.forecast.aggregator import ReportAggregator
from pds_audit.forecast.engine import ForecastEngine
from pds_audit.models.audit import AuditDashboard, AuditReport
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.demand import DemandForecast, StoreDemandReport
from pds_audit.models.order import Order
from pds_audit.store.base import DataStore, Report
from pds_audit.taxonomy.pds_taxonomy import RiskLevel, Severity
from pds_audit.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class AuditService:
    """Exposed audit and forecasting operations over one data store.

    Attributes:
        store: Data-store collaborator.
        config: Application configuration.
        orchestrator: Audit engine built from ``config.policy``.
        engine: Forecast engine built from ``config.forecast``.
        aggregator: Store-report builder.
    """

    def __init__(
        self,
        store: DataStore,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.config = config or AppConfig()
        self._clock = clock
        self.orchestrator = AuditOrchestrator(self.config.policy, self.config.audit)
        self.engine = ForecastEngine(self.config.forecast)
        self.aggregator = ReportAggregator(self.engine, self.config.forecast)

    # ── Audits ────────────────────────────────────────────────────────────────

    def audit_store_orders(
        self,
        store_id: str,
        orders: list[Order],
        beneficiaries: list[BeneficiaryProfile],
    ) -> AuditReport:
        """Audit ``orders`` against ``beneficiaries`` and persist the report."""
        report = self.orchestrator.audit_store_orders(
            store_id, orders, beneficiaries, now=self._clock()
        )
        self._persist(report)
        return report

    def run_automated_audit(self, store_id: str) -> AuditReport | None:
        """Audit the store's orders from the trailing lookback window.

        Beneficiary profiles are looked up in the store for every distinct
        customer; customers without a profile are flagged by the engine.

        Returns:
            The report, or ``None`` if the data store failed.
        """
        lookback = self.config.audit.automated_lookback_days
        try:
            since = self._clock() - timedelta(days=lookback)
            orders = self.store.fetch_orders(store_id, since=since)

            beneficiaries: list[BeneficiaryProfile] = []
            seen: set[str] = set()
            for order in orders:
                if order.customer_id in seen:
                    continue
                seen.add(order.customer_id)
                profile = self.store.fetch_beneficiary(order.customer_id)
                if profile is not None:
                    beneficiaries.append(profile)
        except Exception as exc:
            logger.error("Automated audit failed for store=%s: %s", store_id, exc)
            return None

        logger.info(
            "Automated audit | store=%s lookback=%dd orders=%d known_beneficiaries=%d",
            store_id, lookback, len(orders), len(beneficiaries),
        )
        return self.audit_store_orders(store_id, orders, beneficiaries)

    def get_latest_audit_for_store(self, store_id: str) -> AuditReport | None:
        reports = self.store.fetch_reports("audit", store_id=store_id)
        if not reports:
            return None
        # max() keeps the first of equal timestamps; scan newest-appended first
        return max(reversed(reports), key=lambda r: r.timestamp)

    def get_audit_history(self) -> list[AuditReport]:
        return list(self.store.fetch_reports("audit"))

    def get_audit_dashboard_data(self) -> AuditDashboard:
        """Totals, average compliance and risk mix over the retained history."""
        reports = self.get_audit_history()
        total = len(reports)
        return AuditDashboard(
            total_audits=total,
            average_compliance=(
                sum(r.compliance_rate for r in reports) / total if total else 0.0
            ),
            critical_issues=sum(r.count_severity(Severity.CRITICAL) for r in reports),
            recent_reports=list(reversed(reports[-self.config.audit.dashboard_recent:])),
            risk_distribution={
                str(level): sum(1 for r in reports if r.risk_score == level)
                for level in RiskLevel
            },
        )

    # ── Forecasts ─────────────────────────────────────────────────────────────

    def generate_demand_forecast(
        self,
        store_id: str,
        item_id: str,
        horizon_months: int = 3,
    ) -> DemandForecast:
        """Forecast one commodity at one store. Store errors propagate."""
        cfg = self.config.forecast
        history = self.store.fetch_demand_history(store_id, item_id, cfg.history_months)
        stock = self.store.fetch_current_stock(store_id, item_id)
        forecast = self.engine.forecast(
            store_id, item_id, history, stock, horizon_months, now=self._clock()
        )
        logger.info(
            "Demand forecast | store=%s item=%s demand=%.2f confidence=%.1f risk=%s",
            store_id, item_id, forecast.forecasted_demand,
            forecast.confidence_level, forecast.risk_assessment,
        )
        return forecast

    def generate_store_demand_report(self, store_id: str) -> StoreDemandReport:
        """Forecast every tracked commodity and persist the store report."""
        report = self.aggregator.generate(self.store, store_id, now=self._clock())
        self._persist(report)
        return report

    # ── Internals ─────────────────────────────────────────────────────────────

    def _persist(self, report: Report) -> None:
        """Append ``report`` to the store history; log and continue on failure."""
        try:
            self.store.append_report(report)
        except Exception as exc:
            logger.error(
                "Failed to persist %s for store=%s: %s",
                type(report).__name__, report.store_id, exc,
            )
