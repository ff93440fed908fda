"""
Audit rules engine: pure functions that check one order / beneficiary pair
(or a beneficiary's recent order history) against fraud and eligibility
heuristics.

Every rule returns ``AuditIssue | None`` and never raises for bad data.
Rules share no state, so new heuristics can be added without touching the
aggregation in ``pds_audit.audit.orchestrator``.

Policy table (severity, risk score)
-----------------------------------
    eligibility, zero-subsidy card       high      85
    eligibility, soft issues (n)         medium/high  min(n * 25, 90)
    eligibility, unknown beneficiary     critical  100   (orchestrator)
    quota_excess                         high      75
    unusual_pattern, order frequency     medium    60
    unusual_pattern, high-value orders   medium    55
    suspicious_amount, round total       low       40
    suspicious_amount, high for household medium   65
    duplicate                            medium    50

Scores are fixed constants, not learned weights. Thresholds and entitlement
ceilings come from the versioned ``PolicyConfig``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from pds_audit.config import PolicyConfig
from pds_audit.models.audit import BENEFICIARY_LEVEL_ORDER_ID, AuditIssue
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.order import Order
from pds_audit.taxonomy.pds_taxonomy import (
    Commodity,
    IssueType,
    Severity,
    VerificationStatus,
)
from pds_audit.utils.time_utils import utcnow

# (severity, risk_score) per rule outcome
RULE_OUTCOMES: dict[str, tuple[Severity, float]] = {
    "zero_subsidy_card":   (Severity.HIGH,     85.0),
    "unknown_beneficiary": (Severity.CRITICAL, 100.0),
    "quota_excess":        (Severity.HIGH,     75.0),
    "order_frequency":     (Severity.MEDIUM,   60.0),
    "high_value_orders":   (Severity.MEDIUM,   55.0),
    "round_amount":        (Severity.LOW,      40.0),
    "high_amount":         (Severity.MEDIUM,   65.0),
    "duplicate":           (Severity.MEDIUM,   50.0),
}

SOFT_ISSUE_SCORE = 25.0
SOFT_ISSUE_CAP = 90.0

# Order in which commodities are checked against quota ceilings.
_QUOTA_CHECK_ORDER: tuple[Commodity, ...] = (
    Commodity.RICE,
    Commodity.WHEAT,
    Commodity.SUGAR,
    Commodity.DAL,
    Commodity.OIL,
    Commodity.SALT,
    Commodity.TEA,
)


def _issue(
    rule: str,
    order_id: str,
    user_id: str,
    issue_type: IssueType,
    description: str,
    evidence: str,
) -> AuditIssue:
    severity, score = RULE_OUTCOMES[rule]
    return AuditIssue(
        order_id=order_id,
        user_id=user_id,
        issue_type=issue_type,
        severity=severity,
        description=description,
        evidence=evidence,
        risk_score=score,
    )


def _fmt(qty: float) -> str:
    return f"{qty:g}"


# ── Eligibility ───────────────────────────────────────────────────────────────


def unknown_beneficiary_issue(order: Order) -> AuditIssue:
    """Critical finding for an order whose customer has no beneficiary profile."""
    return _issue(
        "unknown_beneficiary",
        order.id,
        order.customer_id,
        IssueType.ELIGIBILITY,
        "Order from unknown beneficiary",
        "Beneficiary profile not found in system",
    )


def check_eligibility(
    profile: BeneficiaryProfile,
    order: Order,
    policy: PolicyConfig,
) -> AuditIssue | None:
    """Check whether the beneficiary may make this subsidized purchase at all.

    A zero-subsidy card tier is a hard violation and is reported on its own.
    Otherwise soft issues accumulate:
      - verification status is not ``verified``;
      - total rice ordered exceeds the tier's household rice ceiling.

    Severity is ``high`` when more than one soft issue fires, else ``medium``;
    risk score is ``min(count * 25, 90)``.
    """
    tier = str(profile.ration_card_type)
    if tier in policy.zero_subsidy_tiers:
        names = ", ".join(i.name for i in order.items) or "none"
        return _issue(
            "zero_subsidy_card",
            order.id,
            profile.user_id,
            IssueType.ELIGIBILITY,
            f"{tier.capitalize()} ration card holder attempting to purchase subsidized items",
            f"Card type: {tier}, Items ordered: {names}",
        )

    problems: list[str] = []

    if profile.verification_status != VerificationStatus.VERIFIED:
        problems.append(
            f"Unverified beneficiary (status: {profile.verification_status})"
        )

    rice_ordered = order.quantity_of(Commodity.RICE)
    rule = policy.rice_eligibility_ceilings.get(tier)
    if rule is not None:
        ceiling = rule.ceiling_for(profile.household_members)
        if rice_ordered > ceiling:
            problems.append(
                f"Rice quantity ({_fmt(rice_ordered)}kg) exceeds household "
                f"entitlement ({_fmt(ceiling)}kg)"
            )

    if not problems:
        return None

    return AuditIssue(
        order_id=order.id,
        user_id=profile.user_id,
        issue_type=IssueType.ELIGIBILITY,
        severity=Severity.HIGH if len(problems) > 1 else Severity.MEDIUM,
        description=f"Eligibility issues: {'; '.join(problems)}",
        evidence=(
            f"Household: {profile.household_members} members, "
            f"Card: {profile.ration_card_type}"
        ),
        risk_score=min(len(problems) * SOFT_ISSUE_SCORE, SOFT_ISSUE_CAP),
    )


# ── Quota ─────────────────────────────────────────────────────────────────────


def monthly_ceiling(
    profile: BeneficiaryProfile,
    commodity: Commodity,
    policy: PolicyConfig,
) -> float | None:
    """Monthly quota ceiling for ``commodity`` under the beneficiary's tier.

    Returns ``None`` when the tier has no ceiling for that commodity.
    """
    tier_rules = policy.quota_ceilings.get(str(profile.ration_card_type), {})
    rule = tier_rules.get(str(commodity))
    if rule is None:
        return None
    return rule.ceiling_for(profile.household_members)


def check_quota_excess(
    profile: BeneficiaryProfile,
    order: Order,
    policy: PolicyConfig,
) -> AuditIssue | None:
    """Flag the first commodity whose ordered quantity exceeds the remaining quota.

    Remaining quota is ``ceiling - already consumed this month``. Zero
    ceilings are skipped: those tiers are caught by ``check_eligibility``.
    """
    requested = order.quantities_by_commodity()

    for commodity in _QUOTA_CHECK_ORDER:
        qty = requested.get(commodity)
        if not qty:
            continue
        ceiling = monthly_ceiling(profile, commodity, policy)
        if not ceiling:
            continue
        used = profile.consumed(commodity)
        remaining = ceiling - used
        if qty > remaining:
            return _issue(
                "quota_excess",
                order.id,
                profile.user_id,
                IssueType.QUOTA_EXCESS,
                (
                    f"Quota exceeded for {commodity}: {_fmt(qty)}kg ordered, "
                    f"only {_fmt(max(remaining, 0.0))}kg remaining"
                ),
                (
                    f"Monthly limit: {_fmt(ceiling)}kg, Used: {_fmt(used)}kg, "
                    f"Remaining: {_fmt(remaining)}kg"
                ),
            )
    return None


# ── Unusual patterns ──────────────────────────────────────────────────────────


def _recent(history: Iterable[Order], lookback_days: int, now: datetime) -> list[Order]:
    cutoff = now - timedelta(days=lookback_days)
    return [o for o in history if o.created_at > cutoff]


def check_order_frequency(
    profile: BeneficiaryProfile,
    history: list[Order],
    policy: PolicyConfig,
    now: datetime | None = None,
) -> AuditIssue | None:
    """Flag more than ``max_orders_in_window`` orders in the trailing window."""
    now = now or utcnow()
    recent = _recent(history, policy.pattern_lookback_days, now)
    if len(recent) <= policy.max_orders_in_window:
        return None
    return _issue(
        "order_frequency",
        BENEFICIARY_LEVEL_ORDER_ID,
        profile.user_id,
        IssueType.UNUSUAL_PATTERN,
        (
            f"Unusually high order frequency: {len(recent)} orders in "
            f"{policy.pattern_lookback_days} days"
        ),
        "Average beneficiary orders: 2-4 per month",
    )


def check_high_value_orders(
    profile: BeneficiaryProfile,
    history: list[Order],
    policy: PolicyConfig,
    now: datetime | None = None,
) -> AuditIssue | None:
    """Flag more than ``max_high_value_orders`` large orders in the trailing window."""
    now = now or utcnow()
    recent = _recent(history, policy.pattern_lookback_days, now)
    large = [o for o in recent if o.total_amount > policy.high_value_threshold]
    if len(large) <= policy.max_high_value_orders:
        return None
    amounts = ", ".join(f"₹{o.total_amount:g}" for o in large)
    return _issue(
        "high_value_orders",
        BENEFICIARY_LEVEL_ORDER_ID,
        profile.user_id,
        IssueType.UNUSUAL_PATTERN,
        (
            f"Multiple large orders detected: {len(large)} orders > "
            f"₹{policy.high_value_threshold:g}"
        ),
        f"Large order amounts: {amounts}",
    )


def check_unusual_patterns(
    profile: BeneficiaryProfile,
    history: list[Order],
    policy: PolicyConfig,
    now: datetime | None = None,
) -> AuditIssue | None:
    """First of the frequency / high-value findings, for single-result callers."""
    return check_order_frequency(profile, history, policy, now) or check_high_value_orders(
        profile, history, policy, now
    )


# ── Amounts ───────────────────────────────────────────────────────────────────


def check_suspicious_amount(
    order: Order,
    profile: BeneficiaryProfile,
    policy: PolicyConfig,
) -> AuditIssue | None:
    """Flag a round-hundred total above the floor, else a total too high for the household."""
    amount = order.total_amount

    unit = policy.round_amount_unit
    if unit > 0 and amount > policy.round_amount_floor and amount % unit == 0:
        names = ", ".join(i.display_name for i in order.items) or "none"
        return _issue(
            "round_amount",
            order.id,
            profile.user_id,
            IssueType.SUSPICIOUS_AMOUNT,
            f"Round number amount: ₹{amount:g} (potential manipulation)",
            f"Items: {names}",
        )

    expected_max = profile.household_members * policy.per_head_amount_ceiling
    if amount > expected_max:
        return _issue(
            "high_amount",
            order.id,
            profile.user_id,
            IssueType.SUSPICIOUS_AMOUNT,
            (
                f"Unusually high order amount: ₹{amount:g} for "
                f"{profile.household_members} member household"
            ),
            f"Expected max: ₹{expected_max:g}",
        )
    return None


# ── Duplicates ────────────────────────────────────────────────────────────────


def item_overlap(order: Order, other: Order) -> int:
    """Number of ``order``'s line items that also appear on ``other``."""
    other_keys = {i.match_key() for i in other.items}
    return sum(1 for i in order.items if i.match_key() in other_keys)


def check_duplicate_order(
    order: Order,
    others: list[Order],
    policy: PolicyConfig,
) -> AuditIssue | None:
    """Flag an order that repeats another order of the same beneficiary.

    ``others`` is the beneficiary's other orders (the candidate itself is
    ignored if present). A match is placed within the duplicate window and
    shares at least ``duplicate_overlap_ratio`` of the smaller order's items.
    """
    if not order.items:
        return None

    window = timedelta(hours=policy.duplicate_window_hours)
    for other in others:
        if other.id == order.id or not other.items:
            continue
        gap = abs(order.created_at - other.created_at)
        if gap >= window:
            continue
        smaller = min(len(order.items), len(other.items))
        if item_overlap(order, other) >= smaller * policy.duplicate_overlap_ratio:
            minutes = round(gap.total_seconds() / 60)
            return _issue(
                "duplicate",
                order.id,
                order.customer_id,
                IssueType.DUPLICATE,
                "Potential duplicate order detected",
                f"Similar order {other.id} placed {minutes} minutes apart",
            )
    return None
