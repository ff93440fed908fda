"""
Audit output models.

``AuditIssue`` is one finding produced by a rule; ``AuditReport`` is the
aggregate result of one audit run over a store's order batch.

Both models are frozen: a report is created once per run and appended to
the report history; historical reports are never rewritten.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from pds_audit.taxonomy.pds_taxonomy import IssueType, RiskLevel, Severity

BENEFICIARY_LEVEL_ORDER_ID = "N/A"


class AuditIssue(BaseModel):
    """A single flagged finding.

    Attributes:
        order_id: Offending order, or ``"N/A"`` for beneficiary-level findings.
        user_id: Beneficiary the finding concerns.
        issue_type: Kind of finding.
        severity: Severity band.
        description: Human-readable explanation.
        evidence: Values that triggered the rule.
        risk_score: Contribution to the report's average risk, in [0, 100].
    """

    model_config = ConfigDict(frozen=True)

    order_id: str
    user_id: str
    issue_type: IssueType
    severity: Severity
    description: str
    evidence: str
    risk_score: float

    @field_validator("risk_score")
    @classmethod
    def clamp_risk_score(cls, v: float) -> float:
        return max(0.0, min(100.0, float(v)))


class AuditReport(BaseModel):
    """Result of one audit run for one store.

    Attributes:
        id: Generated report id, ``AUDIT-<epoch ms>-<suffix>``.
        timestamp: UTC datetime the report was produced.
        period: Audited window label, ``YYYY-MM-01 to YYYY-MM-DD``.
        store_id: Audited store.
        total_orders: Number of orders in the batch.
        total_quantity: Ordered quantity per bucket (rice/wheat/sugar/other).
        total_amount: Sum of order totals.
        flagged_orders: Every issue raised, in evaluation order.
        risk_score: Overall risk level derived from ``average_risk``.
        compliance_rate: Percentage of compliant orders, in [0, 100].
        recommendations: Ordered follow-up actions.
        summary: One-paragraph narrative.
        policy_version: ``PolicyConfig.version`` the audit ran against.
        average_risk: Total issue risk divided by order count.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    period: str
    store_id: str
    total_orders: int
    total_quantity: dict[str, float]
    total_amount: float
    flagged_orders: list[AuditIssue]
    risk_score: RiskLevel
    compliance_rate: float
    recommendations: list[str]
    summary: str
    policy_version: str = ""
    average_risk: float = 0.0

    @field_validator("compliance_rate")
    @classmethod
    def clamp_compliance(cls, v: float) -> float:
        return max(0.0, min(100.0, float(v)))

    def issues_of(self, issue_type: IssueType) -> list[AuditIssue]:
        return [i for i in self.flagged_orders if i.issue_type == issue_type]

    def count_severity(self, severity: Severity) -> int:
        return sum(1 for i in self.flagged_orders if i.severity == severity)


class AuditDashboard(BaseModel):
    """Roll-up of the audit history for the admin dashboard.

    Attributes:
        total_audits: Reports in the retained history.
        average_compliance: Mean compliance rate across those reports.
        critical_issues: Critical-severity issues across those reports.
        recent_reports: Most recent reports, newest first.
        risk_distribution: Report count per risk level.
    """

    model_config = ConfigDict(frozen=True)

    total_audits: int
    average_compliance: float
    critical_issues: int
    recent_reports: list[AuditReport]
    risk_distribution: dict[str, int]
