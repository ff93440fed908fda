"""
In-memory ``DataStore`` adapter.

Useful for tests and for embedding the engine in another process that
already holds its data. All state lives in plain dicts guarded by one
``threading.Lock``; the report history append and the cap-and-evict step
happen under the same lock.

Usage::

    store = InMemoryDataStore()
    store.add_store(StoreInfo(store_id="S1", name="Ward 4 FPS", ...))
    store.add_orders(orders)
    store.add_beneficiaries(profiles)
    service = AuditService(store, config)
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Callable, Iterable

from pds_audit.exceptions import StoreNotFoundError
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.demand import HistoricalDemandPoint, StoreInfo
from pds_audit.models.order import Order
from pds_audit.store.base import (
    DEFAULT_HISTORY_CAP,
    DataStore,
    Report,
    ReportKind,
    report_kind,
)
from pds_audit.utils.time_utils import utcnow


class InMemoryDataStore(DataStore):
    """Thread-safe dict-backed data store.

    Args:
        history_cap: Reports retained per kind (oldest evicted first).
        clock: Returns "now" for trailing-window queries; injectable for tests.
    """

    def __init__(
        self,
        history_cap: int = DEFAULT_HISTORY_CAP,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._history_cap = history_cap
        self._orders: list[Order] = []
        self._beneficiaries: dict[str, BeneficiaryProfile] = {}
        self._demand: dict[tuple[str, str], list[HistoricalDemandPoint]] = defaultdict(list)
        self._stock: dict[tuple[str, str], float] = {}
        self._stores: dict[str, StoreInfo] = {}
        self._reports: dict[str, deque[Report]] = {
            "audit": deque(maxlen=history_cap),
            "demand": deque(maxlen=history_cap),
        }

    # ── Seeding ───────────────────────────────────────────────────────────────

    def add_orders(self, orders: Iterable[Order]) -> None:
        with self._lock:
            self._orders.extend(orders)
            self._orders.sort(key=lambda o: o.created_at)

    def add_beneficiaries(self, profiles: Iterable[BeneficiaryProfile]) -> None:
        with self._lock:
            for p in profiles:
                self._beneficiaries[p.user_id] = p

    def add_store(self, info: StoreInfo) -> None:
        with self._lock:
            self._stores[info.store_id] = info

    def add_demand_history(
        self, store_id: str, item_id: str, points: Iterable[HistoricalDemandPoint]
    ) -> None:
        with self._lock:
            series = self._demand[(store_id, item_id)]
            series.extend(points)
            series.sort(key=lambda p: p.period)

    def set_stock(self, store_id: str, item_id: str, quantity: float) -> None:
        with self._lock:
            self._stock[(store_id, item_id)] = quantity

    # ── DataStore ─────────────────────────────────────────────────────────────

    def fetch_orders(self, store_id: str, since: datetime | None = None) -> list[Order]:
        with self._lock:
            return [
                o for o in self._orders
                if o.store_id == store_id and (since is None or o.created_at >= since)
            ]

    def fetch_beneficiary(self, user_id: str) -> BeneficiaryProfile | None:
        with self._lock:
            return self._beneficiaries.get(user_id)

    def fetch_order_history(self, user_id: str, within_days: int) -> list[Order]:
        cutoff = self._clock() - timedelta(days=within_days)
        with self._lock:
            return [
                o for o in self._orders
                if o.customer_id == user_id and o.created_at >= cutoff
            ]

    def fetch_demand_history(
        self, store_id: str, item_id: str, months: int
    ) -> list[HistoricalDemandPoint]:
        if months <= 0:
            return []
        with self._lock:
            return list(self._demand.get((store_id, item_id), [])[-months:])

    def fetch_current_stock(self, store_id: str, item_id: str) -> float:
        with self._lock:
            return self._stock.get((store_id, item_id), 0.0)

    def fetch_store_info(self, store_id: str) -> StoreInfo:
        with self._lock:
            info = self._stores.get(store_id)
        if info is None:
            raise StoreNotFoundError(store_id)
        return info

    def append_report(self, report: Report) -> None:
        kind = report_kind(report)
        with self._lock:
            # deque(maxlen=...) drops the oldest entry on overflow
            self._reports[kind].append(report)

    def fetch_reports(self, kind: ReportKind, store_id: str | None = None) -> list[Report]:
        with self._lock:
            history = list(self._reports[kind])
        if store_id is None:
            return history
        return [r for r in history if r.store_id == store_id]
