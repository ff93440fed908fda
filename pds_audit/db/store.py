"""
SQLite-backed ``DataStore``.

Each call opens its own connection through ``get_connection()``, so the
store can be shared between threads (the report aggregator's worker pool)
without sharing a ``sqlite3.Connection``. ``append_report`` inserts the new
report and evicts the overflow inside the same connection, so both happen
in one transaction.

Usage::

    store = SqliteDataStore.from_config(config.database)
    store.initialize()
    service = AuditService(store, config)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Generator

from pds_audit.config import DatabaseConfig
from pds_audit.db.connection import get_connection
from pds_audit.db.repositories.beneficiary_repo import BeneficiaryRepository
from pds_audit.db.repositories.demand_repo import DemandHistoryRepository
from pds_audit.db.repositories.order_repo import OrderRepository
from pds_audit.db.repositories.report_repo import ReportRepository
from pds_audit.db.repositories.store_repo import StoreRepository
from pds_audit.db.schema import apply_schema
from pds_audit.exceptions import StoreError, StoreNotFoundError
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

logger = logging.getLogger(__name__)


class SqliteDataStore(DataStore):
    """``DataStore`` over the schema in ``pds_audit.db.schema``.

    ``sqlite3.Error`` raised while reading or writing is re-raised as
    ``StoreError``.

    Args:
        db_path: SQLite file path (``":memory:"`` is not useful here since
            every call opens a fresh connection).
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: Lock wait before failing.
        history_cap: Reports retained per kind.
        clock: Returns "now" for trailing-window queries.
    """

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        history_cap: int = DEFAULT_HISTORY_CAP,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.history_cap = history_cap
        self._clock = clock

    @classmethod
    def from_config(
        cls, db: DatabaseConfig, history_cap: int = DEFAULT_HISTORY_CAP
    ) -> "SqliteDataStore":
        return cls(
            db_path=db.db_path,
            wal_mode=db.wal_mode,
            busy_timeout_ms=db.busy_timeout_ms,
            history_cap=history_cap,
        )

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            with get_connection(self.db_path, self.wal_mode, self.busy_timeout_ms) as conn:
                yield conn
        except sqlite3.Error as exc:
            raise StoreError(f"SQLite store {self.db_path!r} failed: {exc}") from exc

    def initialize(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self._connect() as conn:
            apply_schema(conn)

    # ── Seeding ───────────────────────────────────────────────────────────────

    def add_store(self, info: StoreInfo) -> None:
        with self._connect() as conn:
            StoreRepository(conn).upsert(info)

    def add_beneficiaries(self, profiles: list[BeneficiaryProfile]) -> None:
        with self._connect() as conn:
            repo = BeneficiaryRepository(conn)
            for p in profiles:
                repo.upsert(p)

    def add_orders(self, orders: list[Order]) -> int:
        with self._connect() as conn:
            return OrderRepository(conn).insert_many(orders)

    def add_demand_history(
        self, store_id: str, item_id: str, points: list[HistoricalDemandPoint]
    ) -> None:
        with self._connect() as conn:
            repo = DemandHistoryRepository(conn)
            for point in points:
                repo.upsert(store_id, item_id, point)

    def set_stock(self, store_id: str, item_id: str, quantity: float) -> None:
        with self._connect() as conn:
            StoreRepository(conn).set_stock(store_id, item_id, quantity)

    # ── DataStore ─────────────────────────────────────────────────────────────

    def fetch_orders(self, store_id: str, since: datetime | None = None) -> list[Order]:
        with self._connect() as conn:
            return OrderRepository(conn).get_by_store(store_id, since)

    def fetch_beneficiary(self, user_id: str) -> BeneficiaryProfile | None:
        with self._connect() as conn:
            return BeneficiaryRepository(conn).get(user_id)

    def fetch_order_history(self, user_id: str, within_days: int) -> list[Order]:
        since = self._clock() - timedelta(days=within_days)
        with self._connect() as conn:
            return OrderRepository(conn).get_by_customer(user_id, since)

    def fetch_demand_history(
        self, store_id: str, item_id: str, months: int
    ) -> list[HistoricalDemandPoint]:
        with self._connect() as conn:
            return DemandHistoryRepository(conn).get_recent(store_id, item_id, months)

    def fetch_current_stock(self, store_id: str, item_id: str) -> float:
        with self._connect() as conn:
            return StoreRepository(conn).get_stock(store_id, item_id)

    def fetch_store_info(self, store_id: str) -> StoreInfo:
        with self._connect() as conn:
            info = StoreRepository(conn).get(store_id)
        if info is None:
            raise StoreNotFoundError(store_id)
        return info

    def append_report(self, report: Report) -> None:
        kind = report_kind(report)
        with self._connect() as conn:
            repo = ReportRepository(conn)
            repo.append(report)
            evicted = repo.evict_oldest(kind, self.history_cap)
        if evicted:
            logger.debug("Evicted %d old %s report(s)", evicted, kind)

    def fetch_reports(self, kind: ReportKind, store_id: str | None = None) -> list[Report]:
        with self._connect() as conn:
            return ReportRepository(conn).get_all(kind, store_id)
