"""
Order and line-item models.

``LineItem`` is the explicit, tagged schema for one ordered commodity. The
commodity code is set when the order is ingested; legacy display strings
such as ``"Premium Rice (10kg)"`` are converted at the boundary by
``pds_audit.ingestion.legacy_items`` and never parsed again downstream.

``Order`` is immutable once created. The audit engine only reads orders.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from pds_audit.taxonomy.pds_taxonomy import Commodity

ItemUnit = Literal["kg", "L", "pkt", "unit"]


class LineItem(BaseModel):
    """One commodity line on an order.

    Attributes:
        name: Product display name, e.g. ``"Premium Rice"``.
        commodity: Commodity code assigned at ingestion.
        quantity: Ordered quantity in ``unit``.
        unit: Unit of measure.
        unit_price: Price per unit (0 for free-grain schemes).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    commodity: Commodity
    quantity: float
    unit: ItemUnit = "kg"
    unit_price: float = 0.0

    @field_validator("quantity", "unit_price")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Value must be non-negative, got {v}.")
        return v

    @property
    def display_name(self) -> str:
        """Legacy display form, e.g. ``"Premium Rice (10kg)"``."""
        qty = int(self.quantity) if float(self.quantity).is_integer() else self.quantity
        return f"{self.name} ({qty}{self.unit})"

    def match_key(self) -> tuple[str, float, str]:
        """Identity used when comparing two orders for duplicate items."""
        return (self.name.strip().lower(), float(self.quantity), self.unit)


class Order(BaseModel):
    """A beneficiary order placed at a ration store.

    Attributes:
        id: Order identifier.
        customer_id: Beneficiary (user) identifier.
        items: Ordered line items.
        total_amount: Billed total in rupees.
        created_at: UTC datetime the order was placed.
        store_id: Store the order was placed at.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    items: list[LineItem] = []
    total_amount: float = 0.0
    created_at: datetime
    store_id: str

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def quantity_of(self, commodity: Commodity) -> float:
        """Total ordered quantity of one commodity across all line items."""
        return sum(i.quantity for i in self.items if i.commodity == commodity)

    def quantities_by_commodity(self) -> dict[Commodity, float]:
        """Total ordered quantity per commodity, in first-seen order."""
        totals: dict[Commodity, float] = {}
        for item in self.items:
            totals[item.commodity] = totals.get(item.commodity, 0.0) + item.quantity
        return totals
