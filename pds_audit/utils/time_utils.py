"""
Time and date utilities for audit windows and monthly forecasting.

Key concepts:
  - Audit period: the calendar month-to-date label on every audit report.
  - Month labels: ``YYYY-MM`` strings used by demand history and forecasts.
  - Forecast period: the months following "now" covered by a forecast.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the Unix epoch for ``moment``."""
    return int(moment.timestamp() * 1000)


def month_label(moment: date) -> str:
    """``YYYY-MM`` label for the month containing ``moment``."""
    return f"{moment.year:04d}-{moment.month:02d}"


def add_months(moment: date, months: int) -> date:
    """Return the first day of the month ``months`` after ``moment``'s month.

    Args:
        moment: Reference date (day is ignored).
        months: Number of months to move; may be negative.

    Returns:
        A ``date`` on day 1 of the target month.
    """
    index = moment.year * 12 + (moment.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def audit_period_label(moment: datetime) -> str:
    """Month-to-date label, e.g. ``"2026-10-01 to 2026-10-18"``."""
    return f"{month_label(moment)}-01 to {moment.date().isoformat()}"


def forecast_period_label(moment: date, horizon_months: int) -> str:
    """Label for the ``horizon_months`` months after ``moment``'s month.

    ``forecast_period_label(date(2026, 10, 18), 3)`` → ``"2026-11 to 2027-01"``.
    A one-month horizon yields a single label, e.g. ``"2026-11"``.

    Raises:
        ValueError: If ``horizon_months < 1``.
    """
    if horizon_months < 1:
        raise ValueError(f"horizon_months must be >= 1, got {horizon_months}.")
    first = month_label(add_months(moment, 1))
    last = month_label(add_months(moment, horizon_months))
    return first if first == last else f"{first} to {last}"
