"""
ASCII terminal formatters for CLI reporting commands.

All formatters take report models and return plain multi-line strings for
``typer.echo()``. No third-party dependencies.
"""

from __future__ import annotations

from pds_audit.models.audit import AuditDashboard, AuditReport
from pds_audit.models.demand import DemandForecast, StoreDemandReport

_RULE = "-" * 78


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


# ── Audit ─────────────────────────────────────────────────────────────────────


def format_audit_report(report: AuditReport, max_issues: int = 20) -> str:
    """Header, totals, issue table and recommendations for one audit.

    Example::

        === Audit Report AUDIT-1760745600000-3F2A ===
          Store:       S1
          Period:      2026-10-01 to 2026-10-18
          Orders:      10   Amount: 4,250.00   Compliance: 80.0%   Risk: LOW
    """
    lines: list[str] = [
        "",
        f"=== Audit Report {report.id} ===",
        f"  Store:       {report.store_id}",
        f"  Period:      {report.period}",
        f"  Policy:      {report.policy_version or '-'}",
        (
            f"  Orders:      {report.total_orders}   "
            f"Amount: {report.total_amount:,.2f}   "
            f"Compliance: {report.compliance_rate:.1f}%   "
            f"Risk: {str(report.risk_score).upper()}"
        ),
    ]
    if report.total_quantity:
        qty = ", ".join(f"{k}={v:g}" for k, v in report.total_quantity.items())
        lines.append(f"  Quantities:  {qty}")

    lines.append("")
    if not report.flagged_orders:
        lines.append("  No issues flagged.")
    else:
        lines.append(
            f"    {'Order':<14}  {'User':<12}  {'Type':<17}  {'Severity':<8}  "
            f"{'Risk':>5}  Description"
        )
        lines.append("    " + _RULE)
        for issue in report.flagged_orders[:max_issues]:
            lines.append(
                f"    {_truncate(issue.order_id, 14):<14}  "
                f"{_truncate(issue.user_id, 12):<12}  "
                f"{str(issue.issue_type):<17}  {str(issue.severity):<8}  "
                f"{issue.risk_score:>5.0f}  {_truncate(issue.description, 60)}"
            )
        hidden = len(report.flagged_orders) - max_issues
        if hidden > 0:
            lines.append(f"    ... {hidden} more issue(s)")

    lines.append("")
    lines.append("  Recommendations:")
    for rec in report.recommendations:
        lines.append(f"    - {rec}")
    lines.append("")
    lines.append(f"  {report.summary}")
    return "\n".join(lines)


def format_dashboard(dashboard: AuditDashboard) -> str:
    lines = [
        "",
        "=== Audit Dashboard ===",
        f"  Audits retained:     {dashboard.total_audits}",
        f"  Average compliance:  {dashboard.average_compliance:.1f}%",
        f"  Critical issues:     {dashboard.critical_issues}",
        "  Risk distribution:   "
        + ", ".join(f"{k}={v}" for k, v in dashboard.risk_distribution.items()),
        "",
    ]
    if not dashboard.recent_reports:
        lines.append("  (no audits yet -- run 'run-audit' first)")
        return "\n".join(lines)

    lines.append(f"    {'Report':<28}  {'Store':<10}  {'Orders':>6}  {'Compl.':>7}  Risk")
    lines.append("    " + _RULE)
    for r in dashboard.recent_reports:
        lines.append(
            f"    {r.id:<28}  {_truncate(r.store_id, 10):<10}  {r.total_orders:>6}  "
            f"{r.compliance_rate:>6.1f}%  {str(r.risk_score).upper()}"
        )
    return "\n".join(lines)


# ── Demand ────────────────────────────────────────────────────────────────────


def _forecast_row(f: DemandForecast) -> str:
    return (
        f"    {f.item_id:<8}  {f.forecasted_demand:>10.2f}  {f.confidence_level:>6.1f}%  "
        f"{str(f.prediction_basis):<10}  {f.current_stock:>9.1f}  "
        f"{f.recommended_stock:>9}  {str(f.risk_assessment)}"
    )


def _forecast_header() -> list[str]:
    return [
        f"    {'Item':<8}  {'Forecast':>10}  {'Conf.':>7}  {'Basis':<10}  "
        f"{'Stock':>9}  {'Recommend':>9}  Risk",
        "    " + _RULE,
    ]


def format_demand_forecast(forecast: DemandForecast) -> str:
    lines = [
        "",
        f"=== Demand Forecast: {forecast.item_id} @ {forecast.store_id} ===",
        f"  Period: {forecast.forecast_period}",
        "",
        *_forecast_header(),
        _forecast_row(forecast),
    ]
    if forecast.estimator_results:
        lines.append("")
        lines.append("  Estimators:")
        for r in forecast.estimator_results:
            lines.append(
                f"    {r.name:<22}  {r.prediction:>10.2f}  conf={r.confidence:.2f}"
            )
    if forecast.historical_data:
        history = ", ".join(f"{p.period}={p.actual_demand:g}" for p in forecast.historical_data)
        lines.append(f"  Recent history: {history}")
    return "\n".join(lines)


def format_store_demand_report(report: StoreDemandReport) -> str:
    lines = [
        "",
        f"=== Store Demand Report: {report.store_name} ({report.store_id}) ===",
        f"  Location:   {report.location}",
        f"  Period:     {report.forecast_period}",
        f"  Risk:       {str(report.summary.overall_risk).upper()}   "
        f"Confidence: {report.summary.confidence_score:.1f}%",
        "",
        *_forecast_header(),
    ]
    lines.extend(_forecast_row(f) for f in report.item_forecasts)

    recs = report.recommendations
    for title, items in (
        ("Immediate actions", recs.immediate_actions),
        ("Procurement plan", recs.procurement_plan),
        ("Risk mitigation", recs.risk_mitigation),
        ("Key insights", report.summary.key_insights),
    ):
        if not items:
            continue
        lines.append("")
        lines.append(f"  {title}:")
        lines.extend(f"    - {item}" for item in items)
    return "\n".join(lines)
