"""
Audit orchestrator: runs every rule over an order batch and aggregates the
findings into an ``AuditReport``.

Aggregation
-----------
    avg_risk        = sum(issue.risk_score) / order_count        (0 if no orders)
    risk level      = critical >= 80 > high >= 60 > medium >= 40 > low
    compliance_rate = (order_count - flagged) / order_count * 100 (100 if no orders)

``flagged`` is the raw issue count under the default ``"issues"`` basis, so
an order with two issues counts twice against compliance. The result is
clamped to [0, 100]. ``AuditConfig.compliance_basis = "orders"`` counts
distinct flagged orders instead.

The orchestrator is pure: it performs no I/O. Persisting the report is the
caller's job (see ``pds_audit.service.AuditService``).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from uuid import uuid4

from pds_audit.audit import rules
from pds_audit.config import AuditConfig, PolicyConfig
from pds_audit.models.audit import AuditIssue, AuditReport
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.order import Order
from pds_audit.taxonomy.pds_taxonomy import IssueType, RiskLevel, Severity, audit_bucket
from pds_audit.utils.time_utils import audit_period_label, epoch_millis, utcnow

logger = logging.getLogger(__name__)


def risk_level_for(avg_risk: float, policy: PolicyConfig) -> RiskLevel:
    """Map an average risk score onto a report risk level."""
    thresholds = policy.risk_level_thresholds
    if avg_risk >= thresholds["critical"]:
        return RiskLevel.CRITICAL
    if avg_risk >= thresholds["high"]:
        return RiskLevel.HIGH
    if avg_risk >= thresholds["medium"]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def compliance_rate_for(order_count: int, flagged_count: int) -> float:
    """Percentage of compliant orders, clamped to [0, 100]."""
    if order_count <= 0:
        return 100.0
    rate = (order_count - flagged_count) / order_count * 100.0
    return max(0.0, min(100.0, rate))


def build_recommendations(
    issues: list[AuditIssue],
    risk_level: RiskLevel,
    compliance_rate: float,
    policy: PolicyConfig,
) -> list[str]:
    """Fixed decision table from findings to follow-up actions.

    Rules (all that apply, in this order):
        1. compliance below review threshold → verification review
        2. quota_excess present              → quota monitoring
        3. eligibility present               → stricter eligibility checks
        4. unusual_pattern present           → monitor ordering frequency
        5. duplicate present                 → duplicate-order safeguards
        6. suspicious_amount present         → billing review
        7. risk level high or critical       → escalate + consider suspension
        8. nothing above                     → continue monitoring
    """
    kinds = {i.issue_type for i in issues}
    recs: list[str] = []

    if compliance_rate < policy.compliance_review_threshold:
        recs.append("Immediate review of beneficiary verification process required")
    if IssueType.QUOTA_EXCESS in kinds:
        recs.append("Strengthen quota monitoring and enforcement systems")
    if IssueType.ELIGIBILITY in kinds:
        recs.append("Implement stricter beneficiary eligibility checks")
    if IssueType.UNUSUAL_PATTERN in kinds:
        recs.append("Monitor high-frequency ordering patterns for potential abuse")
    if IssueType.DUPLICATE in kinds:
        recs.append("Enable duplicate-order safeguards at the point of sale")
    if IssueType.SUSPICIOUS_AMOUNT in kinds:
        recs.append("Review billing amounts for manipulated or inflated totals")
    if risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
        recs.append("Escalate to fraud investigation unit for detailed analysis")
        recs.append("Consider temporary suspension of suspicious accounts")

    if not recs:
        recs.append("Continue monitoring - no immediate action required")
    return recs


def build_summary(
    issues: list[AuditIssue],
    risk_level: RiskLevel,
    compliance_rate: float,
    total_orders: int,
) -> str:
    """Templated narrative for the report header."""
    critical = sum(1 for i in issues if i.severity == Severity.CRITICAL)
    high = sum(1 for i in issues if i.severity == Severity.HIGH)

    parts = [f"Audit completed for {total_orders} orders."]
    if compliance_rate >= 95:
        parts.append(f"Excellent compliance rate of {compliance_rate:.1f}%.")
    elif compliance_rate >= 85:
        parts.append(f"Good compliance rate of {compliance_rate:.1f}%.")
    else:
        parts.append(f"Concerning compliance rate of {compliance_rate:.1f}%.")
    if critical:
        parts.append(f"{critical} critical issues require immediate attention.")
    if high:
        parts.append(f"{high} high-priority issues need review.")
    parts.append(f"Overall risk assessment: {str(risk_level).upper()}.")
    return " ".join(parts)


def quantity_totals(orders: list[Order]) -> dict[str, float]:
    """Ordered quantity per audit bucket (rice, wheat, sugar, other).

    Only buckets that received at least one line item appear in the result.
    """
    totals: dict[str, float] = {}
    for order in orders:
        for item in order.items:
            bucket = audit_bucket(item.commodity)
            totals[bucket] = totals.get(bucket, 0.0) + item.quantity
    return totals


class AuditOrchestrator:
    """Run the rules engine over a batch of orders for one store.

    Attributes:
        policy: Entitlement ceilings, thresholds and risk bands.
        audit_config: Compliance basis and related run settings.
    """

    def __init__(self, policy: PolicyConfig, audit_config: AuditConfig | None = None) -> None:
        self.policy = policy
        self.audit_config = audit_config or AuditConfig()

    def evaluate_order(
        self,
        order: Order,
        profile: BeneficiaryProfile | None,
        history: list[Order],
        now: datetime,
    ) -> list[AuditIssue]:
        """All findings for one order, in rule order.

        Args:
            order: The order under audit.
            profile: Its beneficiary, or ``None`` if unknown.
            history: All orders of the same beneficiary in the batch.
            now: Reference time for trailing windows.
        """
        if profile is None:
            return [rules.unknown_beneficiary_issue(order)]

        others = [o for o in history if o.id != order.id]
        checks = [
            rules.check_eligibility(profile, order, self.policy),
            rules.check_quota_excess(profile, order, self.policy),
            rules.check_order_frequency(profile, history, self.policy, now),
            rules.check_high_value_orders(profile, history, self.policy, now),
            rules.check_suspicious_amount(order, profile, self.policy),
            rules.check_duplicate_order(order, others, self.policy),
        ]
        return [issue for issue in checks if issue is not None]

    def audit_store_orders(
        self,
        store_id: str,
        orders: list[Order],
        beneficiaries: list[BeneficiaryProfile],
        now: datetime | None = None,
    ) -> AuditReport:
        """Audit every order in ``orders`` and build the report.

        Args:
            store_id: Store being audited.
            orders: Order batch, audited in the given order.
            beneficiaries: Beneficiary roster; unknown customers are flagged.
            now: Reference time (defaults to the current UTC time).

        Returns:
            A completed, immutable ``AuditReport``.
        """
        now = now or utcnow()
        logger.info(
            "Audit starting | store=%s orders=%d beneficiaries=%d",
            store_id, len(orders), len(beneficiaries),
        )

        roster = {b.user_id: b for b in beneficiaries}
        by_customer: dict[str, list[Order]] = defaultdict(list)
        for order in orders:
            by_customer[order.customer_id].append(order)

        issues: list[AuditIssue] = []
        flagged_order_ids: set[str] = set()
        total_risk = 0.0

        for order in orders:
            found = self.evaluate_order(
                order,
                roster.get(order.customer_id),
                by_customer[order.customer_id],
                now,
            )
            if found:
                flagged_order_ids.add(order.id)
            issues.extend(found)
            total_risk += sum(i.risk_score for i in found)

        order_count = len(orders)
        avg_risk = total_risk / order_count if order_count else 0.0
        level = risk_level_for(avg_risk, self.policy)

        if self.audit_config.compliance_basis == "orders":
            flagged_count = len(flagged_order_ids)
        else:
            flagged_count = len(issues)
        compliance = compliance_rate_for(order_count, flagged_count)

        report = AuditReport(
            id=f"AUDIT-{epoch_millis(now)}-{uuid4().hex[:4].upper()}",
            timestamp=now,
            period=audit_period_label(now),
            store_id=store_id,
            total_orders=order_count,
            total_quantity=quantity_totals(orders),
            total_amount=sum(o.total_amount for o in orders),
            flagged_orders=issues,
            risk_score=level,
            compliance_rate=compliance,
            recommendations=build_recommendations(issues, level, compliance, self.policy),
            summary=build_summary(issues, level, compliance, order_count),
            policy_version=self.policy.version,
            average_risk=round(avg_risk, 4),
        )

        logger.info(
            "Audit completed | store=%s risk=%s issues=%d compliance=%.1f%%",
            store_id, level, len(issues), compliance,
        )
        return report
