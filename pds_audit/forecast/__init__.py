"""
Demand forecasting.

Modules
-------
estimators : moving average, exponential smoothing, linear trend and
             seasonal estimators with a common fit/predict interface.
engine     : ForecastEngine; weighted ensemble, basis, stock advice.
aggregator : ReportAggregator; one forecast per tracked commodity and the
             store-level demand report.
"""
