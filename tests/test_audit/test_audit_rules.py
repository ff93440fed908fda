"""
Tests for pds_audit/audit/rules.py.

What we test
------------
check_eligibility():
  - White card is a hard violation (high / 85) reported alone.
  - Unverified status alone is one soft issue (medium / 25).
  - Unverified + rice over the ceiling is two soft issues (high / 50).
  - Pink rice ceiling is flat 35; other tiers are 5 x household.
  - Rice is summed across all rice line items.

check_quota_excess():
  - Remaining quota = ceiling - consumed; excess flags high / 75.
  - Evidence cites limit, used and remaining.
  - Zero ceilings (white) are skipped.
  - Ordering exactly the remaining quota is allowed.

check_order_frequency() / check_high_value_orders():
  - Fire only above the thresholds, counting the trailing 30-day window.
  - Beneficiary-level issues carry order_id "N/A".

check_suspicious_amount():
  - Round-hundred totals above 500 are low / 40; exactly 500 is not.
  - Totals above household x 800 are medium / 65.
  - At most one issue; round-number check wins.

check_duplicate_order():
  - Same items within 24h flag medium / 50 with elapsed minutes.
  - Orders 24h or more apart, or without items, are never duplicates.
"""

from __future__ import annotations

import pytest

from pds_audit.audit import rules
from pds_audit.config import PolicyConfig
from pds_audit.models.audit import BENEFICIARY_LEVEL_ORDER_ID
from pds_audit.models.order import LineItem
from pds_audit.taxonomy.pds_taxonomy import (
    CardTier,
    Commodity,
    IssueType,
    Severity,
    VerificationStatus,
)

from conftest import NOW

POLICY = PolicyConfig()


def _rice(qty: float, name: str = "Premium Rice") -> LineItem:
    return LineItem(name=name, commodity=Commodity.RICE, quantity=qty)


def _sugar(qty: float) -> LineItem:
    return LineItem(name="Sugar", commodity=Commodity.SUGAR, quantity=qty)


# ── Eligibility ───────────────────────────────────────────────────────────────

class TestEligibility:
    def test_white_card_is_hard_violation(self, make_profile, make_order):
        profile = make_profile(card=CardTier.WHITE)
        order = make_order(items=[_rice(1)])
        issue = rules.check_eligibility(profile, order, POLICY)
        assert issue is not None
        assert issue.issue_type == IssueType.ELIGIBILITY
        assert issue.severity == Severity.HIGH
        assert issue.risk_score == pytest.approx(85.0)
        assert issue.order_id == order.id
        assert "White ration card holder" in issue.description

    def test_white_card_not_combined_with_soft_issues(self, make_profile, make_order):
        profile = make_profile(card=CardTier.WHITE, status=VerificationStatus.PENDING)
        issue = rules.check_eligibility(profile, make_order(items=[_rice(100)]), POLICY)
        assert issue.risk_score == pytest.approx(85.0)

    def test_verified_within_ceiling_is_clean(self, make_profile, make_order):
        profile = make_profile(card=CardTier.YELLOW, household=4)
        assert rules.check_eligibility(profile, make_order(items=[_rice(20)]), POLICY) is None

    def test_unverified_is_single_soft_issue(self, make_profile, make_order):
        profile = make_profile(status=VerificationStatus.PENDING)
        issue = rules.check_eligibility(profile, make_order(items=[_rice(5)]), POLICY)
        assert issue.severity == Severity.MEDIUM
        assert issue.risk_score == pytest.approx(25.0)
        assert "Unverified" in issue.description
        assert issue.evidence == "Household: 4 members, Card: yellow"

    def test_two_soft_issues_are_high(self, make_profile, make_order):
        profile = make_profile(household=2, status=VerificationStatus.REJECTED)
        issue = rules.check_eligibility(profile, make_order(items=[_rice(11)]), POLICY)
        assert issue.severity == Severity.HIGH
        assert issue.risk_score == pytest.approx(50.0)

    def test_pink_ceiling_is_flat(self, make_profile, make_order):
        profile = make_profile(card=CardTier.PINK, household=10)
        assert rules.check_eligibility(profile, make_order(items=[_rice(35)]), POLICY) is None
        issue = rules.check_eligibility(profile, make_order(items=[_rice(36)]), POLICY)
        assert "exceeds household entitlement (35kg)" in issue.description

    def test_rice_summed_across_line_items(self, make_profile, make_order):
        profile = make_profile(household=2)  # ceiling 10
        order = make_order(items=[_rice(6, "Sona Masoori Rice"), _rice(6, "Raw Rice")])
        issue = rules.check_eligibility(profile, order, POLICY)
        assert issue is not None
        assert "(12kg)" in issue.description


# ── Quota ─────────────────────────────────────────────────────────────────────

class TestQuotaExcess:
    def test_pink_rice_over_remaining_quota(self, make_profile, make_order):
        profile = make_profile(card=CardTier.PINK, consumed={Commodity.RICE: 10})
        issue = rules.check_quota_excess(profile, make_order(items=[_rice(40)]), POLICY)
        assert issue.issue_type == IssueType.QUOTA_EXCESS
        assert issue.severity == Severity.HIGH
        assert issue.risk_score == pytest.approx(75.0)
        assert issue.evidence == "Monthly limit: 35kg, Used: 10kg, Remaining: 25kg"
        assert issue.description == "Quota exceeded for rice: 40kg ordered, only 25kg remaining"

    def test_exactly_remaining_is_allowed(self, make_profile, make_order):
        profile = make_profile(card=CardTier.PINK, consumed={Commodity.RICE: 10})
        assert rules.check_quota_excess(profile, make_order(items=[_rice(25)]), POLICY) is None

    def test_yellow_sugar_is_per_head(self, make_profile, make_order):
        profile = make_profile(card=CardTier.YELLOW, household=3)  # sugar ceiling 6
        assert rules.check_quota_excess(profile, make_order(items=[_sugar(6)]), POLICY) is None
        issue = rules.check_quota_excess(profile, make_order(items=[_sugar(7)]), POLICY)
        assert "sugar" in issue.description

    def test_white_zero_ceiling_skipped(self, make_profile, make_order):
        profile = make_profile(card=CardTier.WHITE)
        assert rules.check_quota_excess(profile, make_order(items=[_rice(50)]), POLICY) is None

    def test_overdrawn_remaining_reported_as_zero(self, make_profile, make_order):
        profile = make_profile(card=CardTier.BLUE, consumed={Commodity.RICE: 5})
        issue = rules.check_quota_excess(profile, make_order(items=[_rice(1)]), POLICY)
        assert "only 0kg remaining" in issue.description
        assert issue.evidence.endswith("Remaining: -2kg")

    def test_untracked_commodity_ignored(self, make_profile, make_order):
        oil = LineItem(name="Palm Oil", commodity=Commodity.OIL, quantity=50, unit="L")
        assert rules.check_quota_excess(make_profile(), make_order(items=[oil]), POLICY) is None


# ── Unusual patterns ──────────────────────────────────────────────────────────

class TestOrderFrequency:
    def test_ten_orders_is_fine(self, make_profile, make_order):
        history = [make_order(hours_ago=24 * i) for i in range(10)]
        assert rules.check_order_frequency(make_profile(), history, POLICY, NOW) is None

    def test_eleven_orders_flagged(self, make_profile, make_order):
        history = [make_order(hours_ago=24 * i + 1) for i in range(11)]
        issue = rules.check_order_frequency(make_profile(), history, POLICY, NOW)
        assert issue.issue_type == IssueType.UNUSUAL_PATTERN
        assert issue.order_id == BENEFICIARY_LEVEL_ORDER_ID
        assert issue.risk_score == pytest.approx(60.0)
        assert "11 orders in 30 days" in issue.description

    def test_orders_outside_window_not_counted(self, make_profile, make_order):
        history = [make_order(hours_ago=1) for _ in range(10)]
        history.append(make_order(hours_ago=24 * 31))
        assert rules.check_order_frequency(make_profile(), history, POLICY, NOW) is None


class TestHighValueOrders:
    def test_three_large_orders_flagged(self, make_profile, make_order):
        history = [make_order(total_amount=2500, hours_ago=i + 1) for i in range(3)]
        issue = rules.check_high_value_orders(make_profile(), history, POLICY, NOW)
        assert issue.severity == Severity.MEDIUM
        assert issue.risk_score == pytest.approx(55.0)
        assert issue.order_id == BENEFICIARY_LEVEL_ORDER_ID

    def test_threshold_is_exclusive(self, make_profile, make_order):
        history = [make_order(total_amount=2000, hours_ago=i + 1) for i in range(5)]
        assert rules.check_high_value_orders(make_profile(), history, POLICY, NOW) is None

    def test_fused_form_prefers_frequency(self, make_profile, make_order):
        history = [make_order(total_amount=2500, hours_ago=i + 1) for i in range(11)]
        issue = rules.check_unusual_patterns(make_profile(), history, POLICY, NOW)
        assert issue.risk_score == pytest.approx(60.0)


# ── Amounts ───────────────────────────────────────────────────────────────────

class TestSuspiciousAmount:
    def test_round_amount_above_floor(self, make_profile, make_order):
        issue = rules.check_suspicious_amount(make_order(total_amount=600), make_profile(), POLICY)
        assert issue.severity == Severity.LOW
        assert issue.risk_score == pytest.approx(40.0)
        assert issue.evidence == "Items: Premium Rice (5kg)"

    def test_floor_is_exclusive(self, make_profile, make_order):
        assert rules.check_suspicious_amount(
            make_order(total_amount=500), make_profile(), POLICY
        ) is None

    def test_high_for_household(self, make_profile, make_order):
        issue = rules.check_suspicious_amount(
            make_order(total_amount=3250), make_profile(household=4), POLICY
        )
        assert issue.severity == Severity.MEDIUM
        assert issue.risk_score == pytest.approx(65.0)
        assert "Expected max: ₹3200" in issue.evidence

    def test_round_and_high_yields_only_round(self, make_profile, make_order):
        issue = rules.check_suspicious_amount(
            make_order(total_amount=5000), make_profile(household=1), POLICY
        )
        assert issue.risk_score == pytest.approx(40.0)


# ── Duplicates ────────────────────────────────────────────────────────────────

class TestDuplicateOrder:
    def test_same_items_thirty_minutes_apart(self, make_order):
        first = make_order(order_id="A", hours_ago=1.0)
        second = make_order(order_id="B", hours_ago=0.5)
        issue = rules.check_duplicate_order(second, [first], POLICY)
        assert issue.issue_type == IssueType.DUPLICATE
        assert issue.risk_score == pytest.approx(50.0)
        assert issue.order_id == "B"
        assert issue.evidence == "Similar order A placed 30 minutes apart"

    def test_self_is_ignored(self, make_order):
        order = make_order()
        assert rules.check_duplicate_order(order, [order], POLICY) is None

    def test_outside_window(self, make_order):
        first = make_order(hours_ago=25)
        second = make_order(hours_ago=1)
        assert rules.check_duplicate_order(second, [first], POLICY) is None

    def test_empty_orders_never_duplicate(self, make_order):
        first = make_order(items=[])
        second = make_order(items=[])
        assert rules.check_duplicate_order(second, [first], POLICY) is None

    def test_partial_overlap_below_ratio(self, make_order, make_item):
        a = [make_item(), make_item(name="Sugar", commodity=Commodity.SUGAR, quantity=1)]
        b = [make_item(), make_item(name="Atta", commodity=Commodity.WHEAT, quantity=5)]
        assert rules.check_duplicate_order(make_order(items=b), [make_order(items=a)], POLICY) is None

    def test_overlap_uses_smaller_order(self, make_order, make_item):
        small = [make_item()]
        large = [make_item(), make_item(name="Tea", commodity=Commodity.TEA, quantity=1)]
        issue = rules.check_duplicate_order(
            make_order(items=large), [make_order(items=small)], POLICY
        )
        assert issue is not None
