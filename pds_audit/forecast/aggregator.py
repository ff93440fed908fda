"""
Store-level demand report: one ensemble forecast per tracked commodity,
plus a fixed rule table turning the per-item stock risks into actions.

Overall store risk
------------------
    risky items = understock + overstock
    high    if risky items > half of the tracked items
    medium  if at least one risky item
    low     otherwise

Confidence score is the unweighted mean of per-item confidence levels.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from pds_audit.config import ForecastConfig
from pds_audit.forecast.engine import ForecastEngine
from pds_audit.models.demand import (
    DemandForecast,
    StoreDemandReport,
    StoreInfo,
    StoreRecommendations,
    StoreReportSummary,
)
from pds_audit.store.base import DataStore
from pds_audit.taxonomy.pds_taxonomy import PredictionBasis, StockRisk, StoreRisk
from pds_audit.utils.time_utils import forecast_period_label, utcnow

logger = logging.getLogger(__name__)


def overall_store_risk(forecasts: list[DemandForecast]) -> StoreRisk:
    risky = sum(1 for f in forecasts if f.risk_assessment != StockRisk.OPTIMAL)
    if risky > len(forecasts) / 2:
        return StoreRisk.HIGH
    if risky >= 1:
        return StoreRisk.MEDIUM
    return StoreRisk.LOW


def mean_confidence(forecasts: list[DemandForecast]) -> float:
    if not forecasts:
        return 0.0
    return round(sum(f.confidence_level for f in forecasts) / len(forecasts), 1)


def _qty(value: float) -> str:
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def build_store_recommendations(
    forecasts: list[DemandForecast],
    overall: StoreRisk,
    low_confidence_threshold: float,
) -> StoreRecommendations:
    """Immediate actions, procurement plan and risk mitigation for a store.

    Rules:
        understock item        → immediate restock (shortfall to recommended stock)
        every item             → procurement line (recommended stock for the period)
        overstock item         → redistribute surplus
        confidence < threshold → manual review of the forecast
        overall risk high      → weekly stock review
    """
    immediate: list[str] = []
    procurement: list[str] = []
    mitigation: list[str] = []

    for f in forecasts:
        if f.risk_assessment == StockRisk.UNDERSTOCK:
            shortfall = max(f.recommended_stock - f.current_stock, 0.0)
            immediate.append(
                f"Restock {f.item_id}: {_qty(shortfall)} units short of the "
                f"recommended {f.recommended_stock}"
            )
        procurement.append(
            f"{f.item_id}: procure {f.recommended_stock} units for {f.forecast_period} "
            f"(forecast {_qty(f.forecasted_demand)}/month)"
        )

    for f in forecasts:
        if f.risk_assessment == StockRisk.OVERSTOCK:
            surplus = max(f.current_stock - f.recommended_stock, 0.0)
            mitigation.append(
                f"Redistribute surplus {f.item_id} ({_qty(surplus)} units) to "
                f"neighbouring stores"
            )
    for f in forecasts:
        if f.confidence_level < low_confidence_threshold:
            mitigation.append(
                f"Review {f.item_id} forecast manually: confidence {f.confidence_level:.1f}%"
            )
    if overall == StoreRisk.HIGH:
        mitigation.append("Schedule weekly stock review until inventory stabilises")

    if not immediate:
        immediate.append("No immediate restocking required")

    return StoreRecommendations(
        immediate_actions=immediate,
        procurement_plan=procurement,
        risk_mitigation=mitigation,
    )


def build_key_insights(
    forecasts: list[DemandForecast],
    low_confidence_threshold: float,
) -> list[str]:
    """Narrative bullets: risk distribution, top item, dominant signals."""
    if not forecasts:
        return ["No tracked items to forecast"]

    counts = {risk: 0 for risk in StockRisk}
    for f in forecasts:
        counts[f.risk_assessment] += 1

    insights = [
        f"{counts[StockRisk.OPTIMAL]} of {len(forecasts)} items optimally stocked, "
        f"{counts[StockRisk.UNDERSTOCK]} understocked, "
        f"{counts[StockRisk.OVERSTOCK]} overstocked"
    ]

    top = max(forecasts, key=lambda f: f.forecasted_demand)
    if top.forecasted_demand > 0:
        insights.append(
            f"Highest demand: {top.item_id} at {_qty(top.forecasted_demand)} units/month"
        )

    trending = [f.item_id for f in forecasts if f.prediction_basis == PredictionBasis.TREND]
    if trending:
        insights.append(f"Trend-driven demand: {', '.join(trending)}")
    seasonal = [f.item_id for f in forecasts if f.prediction_basis == PredictionBasis.SEASONAL]
    if seasonal:
        insights.append(f"Seasonal demand pattern: {', '.join(seasonal)}")

    uncertain = [f.item_id for f in forecasts if f.confidence_level < low_confidence_threshold]
    if uncertain:
        insights.append(f"Low forecast confidence: {', '.join(uncertain)}")
    return insights


class ReportAggregator:
    """Forecast every tracked commodity of a store and compose the report.

    Attributes:
        engine: Forecast engine used per item.
        config: Tracked items, horizon, worker count, thresholds.
    """

    def __init__(self, engine: ForecastEngine, config: ForecastConfig | None = None) -> None:
        self.engine = engine
        self.config = config or engine.config

    def collect_forecasts(
        self,
        store: DataStore,
        store_id: str,
        horizon_months: int | None = None,
        now: datetime | None = None,
    ) -> list[DemandForecast]:
        """One forecast per tracked item, in tracking order.

        Store errors propagate to the caller.
        """
        now = now or utcnow()
        cfg = self.config

        def _one(item_id: str) -> DemandForecast:
            history = store.fetch_demand_history(store_id, item_id, cfg.history_months)
            stock = store.fetch_current_stock(store_id, item_id)
            return self.engine.forecast(store_id, item_id, history, stock, horizon_months, now)

        if cfg.max_workers > 1:
            # map() yields results in input order
            with ThreadPoolExecutor(max_workers=cfg.max_workers) as pool:
                return list(pool.map(_one, cfg.tracked_items))
        return [_one(item_id) for item_id in cfg.tracked_items]

    def build_report(
        self,
        info: StoreInfo,
        forecasts: list[DemandForecast],
        horizon_months: int | None = None,
        now: datetime | None = None,
    ) -> StoreDemandReport:
        now = now or utcnow()
        cfg = self.config
        horizon = cfg.default_horizon_months if horizon_months is None else horizon_months

        overall = overall_store_risk(forecasts)
        report = StoreDemandReport(
            store_id=info.store_id,
            store_name=info.name,
            location=info.location,
            generated_at=now,
            forecast_period=forecast_period_label(now.date(), horizon),
            total_monthly_demand={f.item_id: f.forecasted_demand for f in forecasts},
            item_forecasts=forecasts,
            recommendations=build_store_recommendations(
                forecasts, overall, cfg.low_confidence_threshold
            ),
            summary=StoreReportSummary(
                overall_risk=overall,
                confidence_score=mean_confidence(forecasts),
                key_insights=build_key_insights(forecasts, cfg.low_confidence_threshold),
            ),
        )
        logger.info(
            "Store demand report | store=%s items=%d risk=%s confidence=%.1f",
            info.store_id, len(forecasts), overall, report.summary.confidence_score,
        )
        return report

    def generate(
        self,
        store: DataStore,
        store_id: str,
        horizon_months: int | None = None,
        now: datetime | None = None,
    ) -> StoreDemandReport:
        """Fetch store info, forecast every tracked item and build the report."""
        now = now or utcnow()
        info = store.fetch_store_info(store_id)
        forecasts = self.collect_forecasts(store, store_id, horizon_months, now)
        return self.build_report(info, forecasts, horizon_months, now)
