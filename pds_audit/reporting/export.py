"""
Export helpers for audit and demand reports.

Every function writes to disk and returns the written ``Path``. JSON
exports keep the full nested report; CSV exports are flat (one row per
issue or per item forecast) so they open directly in a spreadsheet.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from pds_audit.models.audit import AuditReport
from pds_audit.models.demand import StoreDemandReport

AUDIT_ISSUE_COLUMNS = [
    "report_id", "store_id", "timestamp", "order_id", "user_id",
    "issue_type", "severity", "risk_score", "description", "evidence",
]

FORECAST_COLUMNS = [
    "store_id", "item_id", "forecast_period", "forecasted_demand",
    "confidence_level", "prediction_basis", "recommended_stock",
    "current_stock", "risk_assessment",
]


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file.

    Args:
        records:    Row dicts.
        path:       Destination (parent dirs created if missing).
        fieldnames: Column order; defaults to the first record's keys.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if not records and not fieldnames:
        path.write_text("", encoding="utf-8")
        return path
    cols = fieldnames or list(records[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(records)
    return path


def export_to_json(data: dict | list, path: Path) -> Path:
    """Write ``data`` as pretty-printed JSON (parent dirs created if missing)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    return path


def flatten_audit_issues(report: AuditReport) -> list[dict]:
    """One flat row per flagged issue."""
    return [
        {
            "report_id":   report.id,
            "store_id":    report.store_id,
            "timestamp":   report.timestamp.isoformat(),
            "order_id":    issue.order_id,
            "user_id":     issue.user_id,
            "issue_type":  str(issue.issue_type),
            "severity":    str(issue.severity),
            "risk_score":  issue.risk_score,
            "description": issue.description,
            "evidence":    issue.evidence,
        }
        for issue in report.flagged_orders
    ]


def flatten_item_forecasts(report: StoreDemandReport) -> list[dict]:
    """One flat row per item forecast."""
    return [
        {
            "store_id":          f.store_id,
            "item_id":           f.item_id,
            "forecast_period":   f.forecast_period,
            "forecasted_demand": f.forecasted_demand,
            "confidence_level":  f.confidence_level,
            "prediction_basis":  str(f.prediction_basis),
            "recommended_stock": f.recommended_stock,
            "current_stock":     f.current_stock,
            "risk_assessment":   str(f.risk_assessment),
        }
        for f in report.item_forecasts
    ]


def export_audit_report(report: AuditReport, path: Path) -> Path:
    """Write ``report`` to ``path``; ``.csv`` writes the issue rows, anything else JSON."""
    if path.suffix.lower() == ".csv":
        return export_to_csv(flatten_audit_issues(report), path, AUDIT_ISSUE_COLUMNS)
    return export_to_json(report.model_dump(mode="json"), path)


def export_demand_report(report: StoreDemandReport, path: Path) -> Path:
    """Write ``report`` to ``path``; ``.csv`` writes the forecast rows, anything else JSON."""
    if path.suffix.lower() == ".csv":
        return export_to_csv(flatten_item_forecasts(report), path, FORECAST_COLUMNS)
    return export_to_json(report.model_dump(mode="json"), path)
