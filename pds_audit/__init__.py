"""pds_audit: rule-based order auditing and ensemble demand forecasting for
Public Distribution System ration stores."""

__version__ = "0.1.0"
