"""
Ensemble demand forecaster for one (store, item) pair.

Pipeline
--------
1. Trim history to the trailing ``history_months`` points (oldest first).
2. Run every estimator from ``build_estimators`` on the demand values.
3. Combine:
     forecast   = Σ prediction_i × w_i        (rounded to 2 dp)
     confidence = Σ confidence_i × w_i        (0–1, reported as 0–100)
4. Pick the prediction basis, stock recommendation and stock risk.

Everything here is deterministic and performs no I/O; the service layer
fetches history and stock and persists nothing for single forecasts.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from pds_audit.config import ForecastConfig
from pds_audit.forecast.estimators import build_estimators
from pds_audit.models.demand import DemandForecast, EstimatorResult, HistoricalDemandPoint
from pds_audit.taxonomy.pds_taxonomy import PredictionBasis, StockRisk
from pds_audit.utils.time_utils import forecast_period_label, utcnow

logger = logging.getLogger(__name__)


def ensemble(results: list[EstimatorResult], weights: list[float]) -> tuple[float, float]:
    """Weighted (forecast, confidence) over estimator results.

    Raises:
        ValueError: If ``results`` and ``weights`` differ in length.
    """
    if len(results) != len(weights):
        raise ValueError(
            f"Got {len(results)} estimator results for {len(weights)} weights."
        )
    forecast = sum(r.prediction * w for r, w in zip(results, weights))
    confidence = sum(r.confidence * w for r, w in zip(results, weights))
    return round(forecast, 2), max(0.0, min(1.0, confidence))


def select_basis(results: list[EstimatorResult], threshold: float) -> PredictionBasis:
    """Basis of the most confident estimator if it clears ``threshold``.

    Ties go to the earliest estimator. Below the threshold no single signal
    dominates and the forecast is reported as ``historical``.
    """
    if not results:
        return PredictionBasis.HISTORICAL
    best = results[0]
    for result in results[1:]:
        if result.confidence > best.confidence:
            best = result
    if best.confidence > threshold:
        return best.basis
    return PredictionBasis.HISTORICAL


def recommended_stock(forecast: float, safety_factor: float) -> int:
    """``ceil(forecast × safety_factor)``, never negative."""
    # round first so 100 × 1.2 = 120.00000000000001 does not ceil to 121
    return max(0, math.ceil(round(forecast * safety_factor, 6)))


def assess_stock_risk(
    current_stock: float,
    forecast: float,
    understock_ratio: float,
    overstock_ratio: float,
) -> StockRisk:
    """Compare on-hand stock with forecast demand.

    understock: stock <  forecast × understock_ratio
    overstock:  stock >  forecast × overstock_ratio
    optimal:    otherwise (both bounds inclusive)
    """
    if current_stock < forecast * understock_ratio:
        return StockRisk.UNDERSTOCK
    if current_stock > forecast * overstock_ratio:
        return StockRisk.OVERSTOCK
    return StockRisk.OPTIMAL


class ForecastEngine:
    """Run the estimator ensemble and package a ``DemandForecast``.

    Attributes:
        config: Weights, estimator parameters and stocking ratios.
    """

    def __init__(self, config: ForecastConfig | None = None) -> None:
        self.config = config or ForecastConfig()

    def forecast(
        self,
        store_id: str,
        item_id: str,
        history: list[HistoricalDemandPoint],
        current_stock: float,
        horizon_months: int | None = None,
        now: datetime | None = None,
    ) -> DemandForecast:
        """Forecast monthly demand for ``item_id`` at ``store_id``.

        Args:
            store_id: Store the forecast is for.
            item_id: Commodity code.
            history: Monthly demand points, oldest first.
            current_stock: On-hand stock.
            horizon_months: Months to forecast (defaults to config).
            now: Reference time for the forecast period label.

        Raises:
            ValueError: If ``horizon_months < 1``.
        """
        cfg = self.config
        horizon = cfg.default_horizon_months if horizon_months is None else horizon_months
        if horizon < 1:
            raise ValueError(f"horizon_months must be >= 1, got {horizon}.")
        now = now or utcnow()

        window = history[-cfg.history_months:] if cfg.history_months > 0 else []
        values = [p.actual_demand for p in window]
        shown = window[-cfg.history_display_months:] if cfg.history_display_months > 0 else []

        results = [est.estimate(values, horizon) for est in build_estimators(cfg)]
        demand, confidence = ensemble(results, cfg.ensemble_weights)
        basis = select_basis(results, cfg.basis_confidence_threshold)

        fc = DemandForecast(
            store_id=store_id,
            item_id=item_id,
            forecasted_demand=demand,
            confidence_level=round(confidence * 100.0, 1),
            prediction_basis=basis,
            forecast_period=forecast_period_label(now.date(), horizon),
            historical_data=shown,
            recommended_stock=recommended_stock(demand, cfg.safety_stock_factor),
            risk_assessment=assess_stock_risk(
                current_stock, demand, cfg.understock_ratio, cfg.overstock_ratio
            ),
            current_stock=current_stock,
            estimator_results=results,
        )
        logger.debug(
            "Forecast | store=%s item=%s points=%d demand=%.2f conf=%.1f basis=%s risk=%s",
            store_id, item_id, len(values), demand, fc.confidence_level, basis,
            fc.risk_assessment,
        )
        return fc
