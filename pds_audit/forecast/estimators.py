"""
Monthly demand estimators combined by the ensemble forecaster.

Each estimator tests one hypothesis about how ration demand behaves:

  MovingAverageEstimator        → "Demand is stable; the last few months are
                                   the best guide."
  ExponentialSmoothingEstimator → "Demand drifts slowly; recent months matter
                                   more than old ones."
  LinearTrendEstimator          → "Demand is rising or falling steadily
                                   (enrolment growth, migration)."
  SeasonalEstimator             → "Demand repeats on a cycle (harvest, festival
                                   months)."

Interface contract
------------------
All estimators implement:

  fit(values: list[float]) → None
    Receive monthly demand, oldest first.  Replaces any previous state.

  predict(horizon_months: int) → float
    Expected *monthly* demand averaged over the next ``horizon_months``.
    0.0 when there is no history.

  confidence → float
    How well the hypothesis fits the fitted history, in [0, 1].

``estimate(values, horizon_months)`` runs fit + predict and packages the
result as an ``EstimatorResult``.  No estimator uses randomness, so the same
history always yields the same result.
"""

from __future__ import annotations

import math

from pds_audit.config import ForecastConfig
from pds_audit.models.demand import EstimatorResult
from pds_audit.taxonomy.pds_taxonomy import PredictionBasis

# Confidence given to a single observation: something to go on, not much.
_SINGLE_POINT_CONFIDENCE = 0.3


class BaseEstimator:
    name = "base"
    basis = PredictionBasis.HISTORICAL

    def __init__(self) -> None:
        self._confidence = 0.0

    @property
    def confidence(self) -> float:
        return self._confidence

    def fit(self, values: list[float]) -> None:
        raise NotImplementedError

    def predict(self, horizon_months: int) -> float:
        raise NotImplementedError

    def estimate(self, values: list[float], horizon_months: int) -> EstimatorResult:
        self.fit(values)
        return EstimatorResult(
            name=self.name,
            basis=self.basis,
            prediction=max(0.0, self.predict(horizon_months)),
            confidence=self.confidence,
        )


class MovingAverageEstimator(BaseEstimator):
    """Simple moving average over the last ``window`` months.

    Confidence is ``1 - CV`` of the window (coefficient of variation),
    scaled down when fewer than ``window`` months exist.
    """

    name = "moving_average"
    basis = PredictionBasis.HISTORICAL

    def __init__(self, window: int = 3) -> None:
        super().__init__()
        self._window = window
        self._mean = 0.0

    def fit(self, values: list[float]) -> None:
        self._mean = 0.0
        self._confidence = 0.0
        tail = values[-self._window:]
        if not tail:
            return
        mean = sum(tail) / len(tail)
        coverage = len(tail) / self._window
        if mean > 0:
            std = math.sqrt(sum((v - mean) ** 2 for v in tail) / len(tail))
            stability = _clamp(1.0 - std / mean)
        else:
            stability = 1.0
        self._mean = mean
        self._confidence = _clamp(stability * coverage)

    def predict(self, horizon_months: int) -> float:
        return self._mean


class ExponentialSmoothingEstimator(BaseEstimator):
    """Simple exponential smoothing: ``level = α·x + (1-α)·level``.

    Confidence is ``1 - MAPE`` of the one-step-ahead errors made while
    smoothing through the history.
    """

    name = "exponential_smoothing"
    basis = PredictionBasis.HISTORICAL

    def __init__(self, alpha: float = 0.3) -> None:
        super().__init__()
        self._alpha = alpha
        self._level = 0.0

    def fit(self, values: list[float]) -> None:
        self._level = 0.0
        self._confidence = 0.0
        if not values:
            return

        level = values[0]
        errors: list[float] = []
        for v in values[1:]:
            if v > 0:
                errors.append(abs(v - level) / v)
            else:
                errors.append(0.0 if level == 0 else 1.0)
            level = self._alpha * v + (1.0 - self._alpha) * level

        self._level = level
        if errors:
            self._confidence = _clamp(1.0 - sum(errors) / len(errors))
        else:
            self._confidence = _SINGLE_POINT_CONFIDENCE

    def predict(self, horizon_months: int) -> float:
        return self._level


class LinearTrendEstimator(BaseEstimator):
    """Least-squares line through the whole history.

    The prediction is the mean of the fitted line over the next
    ``horizon_months`` months.  Confidence is R²; a perfectly flat history is
    a perfect (zero-slope) fit.
    """

    name = "linear_regression"
    basis = PredictionBasis.TREND

    def __init__(self) -> None:
        super().__init__()
        self._slope = 0.0
        self._intercept = 0.0
        self._n = 0

    @property
    def slope(self) -> float:
        return self._slope

    def fit(self, values: list[float]) -> None:
        n = len(values)
        self._n = n
        self._slope = 0.0
        self._intercept = values[0] if values else 0.0
        self._confidence = 0.0
        if n < 2:
            return

        x_mean = (n - 1) / 2.0
        y_mean = sum(values) / n
        sxx = sum((x - x_mean) ** 2 for x in range(n))
        sxy = sum((x - x_mean) * (y - y_mean) for x, y in enumerate(values))
        slope = sxy / sxx
        intercept = y_mean - slope * x_mean

        ss_tot = sum((y - y_mean) ** 2 for y in values)
        ss_res = sum((y - (intercept + slope * x)) ** 2 for x, y in enumerate(values))
        r2 = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

        self._slope = slope
        self._intercept = intercept
        self._confidence = _clamp(r2)

    def predict(self, horizon_months: int) -> float:
        if self._n == 0:
            return 0.0
        last_x = self._n - 1
        fitted = [
            self._intercept + self._slope * (last_x + k)
            for k in range(1, horizon_months + 1)
        ]
        return sum(fitted) / len(fitted)


class SeasonalEstimator(BaseEstimator):
    """Seasonal-index model over the strongest repeating cycle.

    Candidate cycle lengths (``periods``, in months) are scored by the
    autocorrelation of the history at that lag; a candidate needs two full
    cycles of data.  The best positive lag defines per-phase seasonal
    indices (phase mean / overall mean).  The prediction is the
    deseasonalised level of the last cycle times the mean index of the
    forecast months.

    Without a detectable cycle the estimator falls back to the overall mean
    with zero confidence.
    """

    name = "seasonal_adjustment"
    basis = PredictionBasis.SEASONAL

    def __init__(self, periods: list[int] | None = None) -> None:
        super().__init__()
        self._periods = periods or [2, 3, 4, 6]
        self._period: int | None = None
        self._indices: list[float] = []
        self._level = 0.0
        self._n = 0

    @property
    def period(self) -> int | None:
        """Detected cycle length in months, or None."""
        return self._period

    def fit(self, values: list[float]) -> None:
        n = len(values)
        self._n = n
        self._period = None
        self._indices = []
        self._confidence = 0.0
        self._level = (sum(values) / n) if n else 0.0
        if n == 0:
            return

        mean = self._level
        variance = sum((v - mean) ** 2 for v in values)
        if variance == 0 or mean <= 0:
            return

        best_period: int | None = None
        best_r = 0.0
        for p in self._periods:
            if p < 2 or n < 2 * p:
                continue
            r = sum(
                (values[t] - mean) * (values[t + p] - mean) for t in range(n - p)
            ) / variance
            if r > best_r:
                best_period, best_r = p, r

        if best_period is None:
            return

        p = best_period
        indices: list[float] = []
        for phase in range(p):
            phase_values = values[phase::p]
            indices.append((sum(phase_values) / len(phase_values)) / mean)

        last_cycle = range(n - p, n)
        deseasonalised = [
            values[t] / indices[t % p] for t in last_cycle if indices[t % p] > 0
        ]
        self._level = (
            sum(deseasonalised) / len(deseasonalised) if deseasonalised else mean
        )
        self._period = p
        self._indices = indices
        self._confidence = _clamp(best_r)

    def predict(self, horizon_months: int) -> float:
        if self._period is None:
            return self._level
        p = self._period
        upcoming = [self._indices[(self._n + k) % p] for k in range(horizon_months)]
        return self._level * (sum(upcoming) / len(upcoming))


def build_estimators(config: ForecastConfig) -> list[BaseEstimator]:
    """Fresh estimators in ensemble-weight order.

    Each call returns new instances (no state shared between forecasts).
    """
    return [
        MovingAverageEstimator(window=config.moving_average_window),
        ExponentialSmoothingEstimator(alpha=config.smoothing_alpha),
        LinearTrendEstimator(),
        SeasonalEstimator(periods=list(config.seasonal_periods)),
    ]


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))
