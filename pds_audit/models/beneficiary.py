"""
Beneficiary profile model.

Profiles are mutated by the external verification workflow; the audit
engine treats them as read-only snapshots.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pds_audit.taxonomy.pds_taxonomy import (
    CARD_TIER_CATEGORY,
    CardTier,
    Commodity,
    VerificationStatus,
)


class BeneficiaryProfile(BaseModel):
    """Snapshot of a registered ration-card holder.

    Attributes:
        user_id: Beneficiary identifier (matches ``Order.customer_id``).
        ration_card_type: Card tier.
        household_members: Number of people on the card (>= 1).
        monthly_income: Declared monthly household income, if known.
        address: Registered address.
        verification_status: Outcome of document verification so far.
        last_order_date: UTC datetime of the most recent order, if any.
        total_orders_this_month: Orders placed so far this month.
        total_quantity_this_month: Quantity already drawn this month, per commodity.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    ration_card_type: CardTier
    household_members: int = 1
    monthly_income: Optional[float] = None
    address: str = ""
    verification_status: VerificationStatus = VerificationStatus.PENDING
    last_order_date: Optional[datetime] = None
    total_orders_this_month: int = 0
    total_quantity_this_month: dict[Commodity, float] = {}

    @field_validator("household_members")
    @classmethod
    def validate_household(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"household_members must be >= 1, got {v}.")
        return v

    @property
    def beneficiary_category(self) -> str:
        """Central-scheme category for the card tier (AAY, PHH, APL, NON_PRIORITY)."""
        return CARD_TIER_CATEGORY[self.ration_card_type]

    def consumed(self, commodity: Commodity) -> float:
        return self.total_quantity_this_month.get(commodity, 0.0)
