"""
Repository for orders. Line items are stored as a JSON array on the order row.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from pds_audit.db.repositories.base import BaseRepository
from pds_audit.models.order import LineItem, Order


class OrderRepository(BaseRepository):
    """Read/write access to ``orders``.

    Timestamps are stored as UTC ISO-8601 strings, which sort
    chronologically as text.
    """

    def insert(self, order: Order) -> None:
        self.execute(
            """
            INSERT OR REPLACE INTO orders (
                order_id, customer_id, store_id, total_amount, created_at, items_json
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            _order_params(order),
        )

    def insert_many(self, orders: list[Order]) -> int:
        """Insert or replace ``orders``; returns the number written."""
        if not orders:
            return 0
        self.executemany(
            """
            INSERT OR REPLACE INTO orders (
                order_id, customer_id, store_id, total_amount, created_at, items_json
            ) VALUES (?, ?, ?, ?, ?, ?);
            """,
            [_order_params(o) for o in orders],
        )
        return len(orders)

    def get_by_store(self, store_id: str, since: Optional[datetime] = None) -> list[Order]:
        """Orders placed at ``store_id``, oldest first."""
        if since is None:
            rows = self.fetchall(
                "SELECT * FROM orders WHERE store_id = ? ORDER BY created_at, order_id;",
                (store_id,),
            )
        else:
            rows = self.fetchall(
                """
                SELECT * FROM orders
                WHERE store_id = ? AND created_at >= ?
                ORDER BY created_at, order_id;
                """,
                (store_id, _ts(since)),
            )
        return [_row_to_order(r) for r in rows]

    def get_by_customer(self, customer_id: str, since: datetime) -> list[Order]:
        """The customer's orders at any store since ``since``, oldest first."""
        rows = self.fetchall(
            """
            SELECT * FROM orders
            WHERE customer_id = ? AND created_at >= ?
            ORDER BY created_at, order_id;
            """,
            (customer_id, _ts(since)),
        )
        return [_row_to_order(r) for r in rows]


def _ts(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def _order_params(order: Order) -> tuple:
    items = [item.model_dump(mode="json") for item in order.items]
    return (
        order.id,
        order.customer_id,
        order.store_id,
        order.total_amount,
        _ts(order.created_at),
        json.dumps(items),
    )


def _row_to_order(row: sqlite3.Row) -> Order:
    return Order(
        id=row["order_id"],
        customer_id=row["customer_id"],
        store_id=row["store_id"],
        total_amount=row["total_amount"],
        created_at=datetime.fromisoformat(row["created_at"]),
        items=[LineItem(**item) for item in json.loads(row["items_json"])],
    )
