"""
PDS taxonomy: commodities, ration-card tiers, and audit/forecast labels.

Dimensions:
  - ``Commodity``          — the *what*: which subsidized good a line item is.
  - ``CardTier``           — the *who*: the beneficiary's ration-card tier.
  - ``IssueType`` / ``Severity`` / ``RiskLevel`` — audit finding labels.
  - ``PredictionBasis`` / ``StockRisk`` / ``StoreRisk`` — forecast labels.

Commodity codes are assigned once, at ingestion time. Nothing downstream
classifies an item by looking at its display name.

This module has NO imports from any other ``pds_audit`` package.
"""

from enum import StrEnum


class Commodity(StrEnum):
    """Commodity code attached to every order line item."""

    RICE = "rice"
    WHEAT = "wheat"
    SUGAR = "sugar"
    DAL = "dal"
    OIL = "oil"
    SALT = "salt"
    TEA = "tea"
    OTHER = "other"
    """Anything outside the tracked ration basket."""


class CardTier(StrEnum):
    """Ration-card tier, highest priority first."""

    PINK = "pink"
    """Antyodaya Anna Yojana (AAY): poorest households, flat household entitlement."""

    YELLOW = "yellow"
    """Priority household (PHH): per-member entitlement."""

    BLUE = "blue"
    """Non-priority, subsidized (APL): small flat entitlement."""

    WHITE = "white"
    """Non-priority, non-subsidized: no subsidized entitlement."""


class VerificationStatus(StrEnum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class IssueType(StrEnum):
    """Kind of audit finding."""

    ELIGIBILITY = "eligibility"
    QUOTA_EXCESS = "quota_excess"
    UNUSUAL_PATTERN = "unusual_pattern"
    DUPLICATE = "duplicate"
    SUSPICIOUS_AMOUNT = "suspicious_amount"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(StrEnum):
    """Overall risk level of an audit report."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PredictionBasis(StrEnum):
    """Which kind of signal dominated a demand forecast."""

    HISTORICAL = "historical"
    SEASONAL = "seasonal"
    TREND = "trend"
    EXTERNAL_FACTORS = "external_factors"


class StockRisk(StrEnum):
    """On-hand stock compared to forecast demand."""

    UNDERSTOCK = "understock"
    OPTIMAL = "optimal"
    OVERSTOCK = "overstock"


class StoreRisk(StrEnum):
    """Overall store-level stocking risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Card tier → central-scheme beneficiary category.
CARD_TIER_CATEGORY: dict[CardTier, str] = {
    CardTier.PINK: "AAY",
    CardTier.YELLOW: "PHH",
    CardTier.BLUE: "APL",
    CardTier.WHITE: "NON_PRIORITY",
}

# Buckets used for audit-report quantity totals.
AUDIT_QUANTITY_BUCKETS: tuple[str, ...] = ("rice", "wheat", "sugar", "other")


def audit_bucket(commodity: Commodity) -> str:
    """Map a commodity to its audit-report quantity bucket."""
    value = str(commodity)
    return value if value in AUDIT_QUANTITY_BUCKETS else "other"
