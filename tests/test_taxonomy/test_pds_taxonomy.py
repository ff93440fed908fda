"""Tests for pds_audit.taxonomy.pds_taxonomy."""

from __future__ import annotations

import pytest

from pds_audit.taxonomy.pds_taxonomy import (
    AUDIT_QUANTITY_BUCKETS,
    CARD_TIER_CATEGORY,
    CardTier,
    Commodity,
    RiskLevel,
    audit_bucket,
)


class TestCommodity:
    def test_values_are_lowercase_codes(self):
        assert all(c.value == c.value.lower() for c in Commodity)

    def test_str_is_code(self):
        assert str(Commodity.RICE) == "rice"
        assert Commodity("wheat") is Commodity.WHEAT


class TestAuditBucket:
    @pytest.mark.parametrize(
        "commodity, bucket",
        [
            (Commodity.RICE, "rice"),
            (Commodity.WHEAT, "wheat"),
            (Commodity.SUGAR, "sugar"),
            (Commodity.DAL, "other"),
            (Commodity.TEA, "other"),
            (Commodity.OTHER, "other"),
        ],
    )
    def test_buckets(self, commodity, bucket):
        assert audit_bucket(commodity) == bucket
        assert bucket in AUDIT_QUANTITY_BUCKETS


class TestCardTiers:
    def test_every_tier_has_category(self):
        assert set(CARD_TIER_CATEGORY) == set(CardTier)

    def test_priority_order(self):
        assert list(CardTier) == [CardTier.PINK, CardTier.YELLOW, CardTier.BLUE, CardTier.WHITE]


def test_risk_levels_cover_dashboard_keys():
    assert [str(r) for r in RiskLevel] == ["low", "medium", "high", "critical"]
