"""
Snapshot loader: JSON file → validated models → data store.

Snapshot layout (every key optional)::

    {
      "stores":         [{"store_id": "S1", "name": "...", "latitude": 12.9,
                          "longitude": 77.6, "district": "..."}],
      "beneficiaries":  [{"user_id": "U1", "ration_card_type": "pink", ...}],
      "orders":         [{"id": "O1", "customer_id": "U1", "store_id": "S1",
                          "created_at": "2026-10-01T09:30:00Z",
                          "total_amount": 0,
                          "items": ["Premium Rice (10kg)",
                                    {"name": "Sugar", "commodity": "sugar",
                                     "quantity": 1}]}],
      "demand_history": [{"store_id": "S1", "item_id": "rice",
                          "period": "2026-09", "actual_demand": 410}],
      "stock":          [{"store_id": "S1", "item_id": "rice", "quantity": 380}]
    }

Order items may be legacy display strings or structured line items; strings
go through ``parse_legacy_item``.

Validation rules
----------------
- Duplicate order ids are rejected.
- Duplicate (store_id, item_id, period) demand points are rejected.
- Every record must validate against its pydantic model.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from pds_audit.db.store import SqliteDataStore
from pds_audit.ingestion.legacy_items import parse_legacy_order
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.demand import HistoricalDemandPoint, StoreInfo
from pds_audit.models.order import Order
from pds_audit.store.memory import InMemoryDataStore

logger = logging.getLogger(__name__)

SeedableStore = Union[InMemoryDataStore, SqliteDataStore]


@dataclass
class Snapshot:
    """Validated snapshot contents, ready to import."""

    stores: list[StoreInfo] = field(default_factory=list)
    beneficiaries: list[BeneficiaryProfile] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    demand: dict[tuple[str, str], list[HistoricalDemandPoint]] = field(default_factory=dict)
    stock: list[tuple[str, str, float]] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "stores": len(self.stores),
            "beneficiaries": len(self.beneficiaries),
            "orders": len(self.orders),
            "demand_points": sum(len(v) for v in self.demand.values()),
            "stock_levels": len(self.stock),
        }


def parse_snapshot(raw: dict[str, Any]) -> Snapshot:
    """Validate a decoded snapshot dict.

    Raises:
        ValueError: On duplicate ids or invalid records.
        KeyError: If a record lacks a required key.
    """
    snapshot = Snapshot(
        stores=[StoreInfo.model_validate(s) for s in raw.get("stores", [])],
        beneficiaries=[
            BeneficiaryProfile.model_validate(b) for b in raw.get("beneficiaries", [])
        ],
    )

    seen_orders: set[str] = set()
    for i, rec in enumerate(raw.get("orders", [])):
        order = parse_legacy_order(rec)
        if order.id in seen_orders:
            raise ValueError(f"Duplicate order id '{order.id}' at index {i}.")
        seen_orders.add(order.id)
        snapshot.orders.append(order)

    demand: dict[tuple[str, str], list[HistoricalDemandPoint]] = defaultdict(list)
    seen_points: set[tuple[str, str, str]] = set()
    for i, rec in enumerate(raw.get("demand_history", [])):
        key = (str(rec["store_id"]), str(rec["item_id"]), str(rec["period"]))
        if key in seen_points:
            raise ValueError(f"Duplicate demand point {key} at index {i}.")
        seen_points.add(key)
        demand[key[:2]].append(
            HistoricalDemandPoint(
                period=key[2],
                actual_demand=rec["actual_demand"],
                factors=rec.get("factors", []),
            )
        )
    snapshot.demand = dict(demand)

    snapshot.stock = [
        (str(s["store_id"]), str(s["item_id"]), float(s["quantity"]))
        for s in raw.get("stock", [])
    ]
    return snapshot


def load_snapshot(path: Path) -> Snapshot:
    """Read and validate a snapshot JSON file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the JSON is invalid or a record fails validation.
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Snapshot {path} must contain a JSON object.")
    return parse_snapshot(raw)


def import_snapshot(store: SeedableStore, snapshot: Snapshot) -> dict[str, int]:
    """Write ``snapshot`` into ``store``; returns per-section counts.

    Stores are written first so order and demand rows can reference them.
    """
    for info in snapshot.stores:
        store.add_store(info)
    store.add_beneficiaries(snapshot.beneficiaries)
    store.add_orders(snapshot.orders)
    for (store_id, item_id), points in snapshot.demand.items():
        store.add_demand_history(store_id, item_id, points)
    for store_id, item_id, quantity in snapshot.stock:
        store.set_stock(store_id, item_id, quantity)

    counts = snapshot.counts()
    logger.info("Snapshot imported | %s", ", ".join(f"{k}={v}" for k, v in counts.items()))
    return counts
