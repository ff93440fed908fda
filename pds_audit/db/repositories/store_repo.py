"""
Repositories for store master data and on-hand stock levels.
"""

from __future__ import annotations

from typing import Optional

from pds_audit.db.repositories.base import BaseRepository
from pds_audit.models.demand import StoreInfo


class StoreRepository(BaseRepository):
    """Read/write access to ``stores`` and ``stock_levels``."""

    def upsert(self, info: StoreInfo) -> None:
        self.execute(
            """
            INSERT INTO stores (store_id, name, latitude, longitude, district)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(store_id) DO UPDATE SET
                name = excluded.name,
                latitude = excluded.latitude,
                longitude = excluded.longitude,
                district = excluded.district;
            """,
            (info.store_id, info.name, info.latitude, info.longitude, info.district),
        )

    def get(self, store_id: str) -> Optional[StoreInfo]:
        row = self.fetchone(
            "SELECT store_id, name, latitude, longitude, district "
            "FROM stores WHERE store_id = ?;",
            (store_id,),
        )
        if row is None:
            return None
        return StoreInfo(
            store_id=row["store_id"],
            name=row["name"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            district=row["district"],
        )

    def set_stock(self, store_id: str, item_id: str, quantity: float) -> None:
        self.execute(
            """
            INSERT INTO stock_levels (store_id, item_id, quantity)
            VALUES (?, ?, ?)
            ON CONFLICT(store_id, item_id) DO UPDATE SET
                quantity = excluded.quantity,
                updated_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (store_id, item_id, quantity),
        )

    def get_stock(self, store_id: str, item_id: str) -> float:
        """On-hand quantity, 0.0 when no stock level is recorded."""
        row = self.fetchone(
            "SELECT quantity FROM stock_levels WHERE store_id = ? AND item_id = ?;",
            (store_id, item_id),
        )
        return float(row["quantity"]) if row is not None else 0.0
