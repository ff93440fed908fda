"""
Repository for monthly demand history.
"""

from __future__ import annotations

import json

from pds_audit.db.repositories.base import BaseRepository
from pds_audit.models.demand import HistoricalDemandPoint


class DemandHistoryRepository(BaseRepository):
    """Read/write access to ``demand_history``."""

    def upsert(self, store_id: str, item_id: str, point: HistoricalDemandPoint) -> None:
        self.execute(
            """
            INSERT OR REPLACE INTO demand_history (
                store_id, item_id, period, actual_demand, factors_json
            ) VALUES (?, ?, ?, ?, ?);
            """,
            (store_id, item_id, point.period, point.actual_demand, json.dumps(point.factors)),
        )

    def get_recent(self, store_id: str, item_id: str, months: int) -> list[HistoricalDemandPoint]:
        """The ``months`` most recent points, returned oldest first."""
        if months <= 0:
            return []
        rows = self.fetchall(
            """
            SELECT period, actual_demand, factors_json FROM demand_history
            WHERE store_id = ? AND item_id = ?
            ORDER BY period DESC
            LIMIT ?;
            """,
            (store_id, item_id, months),
        )
        return [
            HistoricalDemandPoint(
                period=r["period"],
                actual_demand=r["actual_demand"],
                factors=json.loads(r["factors_json"]),
            )
            for r in reversed(rows)
        ]
