"""
Demand history, forecast and store-report models.

``HistoricalDemandPoint`` is read-only forecasting input. ``DemandForecast``
is the ensemble output for one (store, item) pair; ``StoreDemandReport``
combines one forecast per tracked commodity into a store-level report.

All models are frozen.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from pds_audit.taxonomy.pds_taxonomy import PredictionBasis, StockRisk, StoreRisk


class HistoricalDemandPoint(BaseModel):
    """Actual demand for one month.

    Attributes:
        period: Month label, ``YYYY-MM``.
        actual_demand: Quantity distributed in that month.
        factors: Tags for anything that influenced demand (festival, policy change).
    """

    model_config = ConfigDict(frozen=True)

    period: str
    actual_demand: float
    factors: list[str] = []

    @field_validator("actual_demand")
    @classmethod
    def validate_demand(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"actual_demand must be non-negative, got {v}.")
        return v


class EstimatorResult(BaseModel):
    """Output of one forecasting estimator.

    Attributes:
        name: Estimator name, e.g. ``"moving_average"``.
        basis: Kind of signal this estimator captures.
        prediction: Expected monthly demand.
        confidence: Estimator confidence in [0, 1].
    """

    model_config = ConfigDict(frozen=True)

    name: str
    basis: PredictionBasis
    prediction: float
    confidence: float

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(1.0, float(v)))


class DemandForecast(BaseModel):
    """Ensemble demand forecast and stocking advice for one store item.

    Attributes:
        store_id: Store the forecast is for.
        item_id: Commodity / item identifier.
        forecasted_demand: Expected monthly demand over the forecast period.
        confidence_level: Ensemble confidence, 0–100.
        prediction_basis: Dominant signal (see ``ForecastEngine``).
        forecast_period: Label of the forecast months, ``YYYY-MM to YYYY-MM``.
        historical_data: The last six history points used.
        recommended_stock: ``ceil(forecasted_demand × safety factor)``.
        risk_assessment: Current stock vs. forecast.
        current_stock: On-hand stock at forecast time.
        estimator_results: Individual estimator outputs, in ensemble order.
    """

    model_config = ConfigDict(frozen=True)

    store_id: str
    item_id: str
    forecasted_demand: float
    confidence_level: float
    prediction_basis: PredictionBasis
    forecast_period: str
    historical_data: list[HistoricalDemandPoint]
    recommended_stock: int
    risk_assessment: StockRisk
    current_stock: float = 0.0
    estimator_results: list[EstimatorResult] = []

    @field_validator("confidence_level")
    @classmethod
    def clamp_confidence_level(cls, v: float) -> float:
        return max(0.0, min(100.0, float(v)))


class StoreInfo(BaseModel):
    """Store master data supplied by the data store."""

    model_config = ConfigDict(frozen=True)

    store_id: str
    name: str
    latitude: float
    longitude: float
    district: str

    @property
    def location(self) -> str:
        return f"{self.district} ({self.latitude:.4f}, {self.longitude:.4f})"


class StoreRecommendations(BaseModel):
    model_config = ConfigDict(frozen=True)

    immediate_actions: list[str]
    procurement_plan: list[str]
    risk_mitigation: list[str]


class StoreReportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_risk: StoreRisk
    confidence_score: float
    key_insights: list[str]

    @field_validator("confidence_score")
    @classmethod
    def clamp_confidence_score(cls, v: float) -> float:
        return max(0.0, min(100.0, float(v)))


class StoreDemandReport(BaseModel):
    """Composite demand report for one store.

    Attributes:
        store_id: Store identifier.
        store_name: Store display name.
        location: District and coordinates.
        generated_at: UTC datetime the report was produced.
        forecast_period: Forecast months label.
        total_monthly_demand: Forecast demand per tracked commodity.
        item_forecasts: One forecast per tracked commodity, in tracking order.
        recommendations: Immediate actions, procurement plan, risk mitigation.
        summary: Overall risk, mean confidence, key insights.
    """

    model_config = ConfigDict(frozen=True)

    store_id: str
    store_name: str
    location: str
    generated_at: datetime
    forecast_period: str
    total_monthly_demand: dict[str, float]
    item_forecasts: list[DemandForecast]
    recommendations: StoreRecommendations
    summary: StoreReportSummary
