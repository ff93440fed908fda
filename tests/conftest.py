"""
Shared pytest fixtures for the PDS audit test suite.

Provides:
  - ``in_memory_db``: a fresh in-memory SQLite connection with the schema applied.
  - ``NOW``: fixed reference time used by audits and forecasts.
  - ``make_order`` / ``make_profile`` / ``make_item``: model factories.
  - ``memory_store``: an empty ``InMemoryDataStore`` pinned to ``NOW``.
  - ``make_audit_report``: empty-batch audit reports with chosen timestamps.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator

import pytest

from pds_audit.audit.orchestrator import AuditOrchestrator
from pds_audit.config import PolicyConfig
from pds_audit.db.schema import apply_schema
from pds_audit.models.audit import AuditReport
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.demand import HistoricalDemandPoint, StoreInfo
from pds_audit.models.order import LineItem, Order
from pds_audit.store.memory import InMemoryDataStore
from pds_audit.taxonomy.pds_taxonomy import CardTier, Commodity, VerificationStatus

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Fresh in-memory SQLite connection with the full schema; FK enforcement ON."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_item() -> Callable[..., LineItem]:
    def _make(
        name: str = "Premium Rice",
        commodity: Commodity = Commodity.RICE,
        quantity: float = 5.0,
        unit: str = "kg",
    ) -> LineItem:
        return LineItem(name=name, commodity=commodity, quantity=quantity, unit=unit)

    return _make


@pytest.fixture
def make_order(make_item) -> Callable[..., Order]:
    """Factory for orders placed at store S1 shortly before ``NOW``."""
    counter = {"n": 0}

    def _make(
        customer_id: str = "U1",
        items: list[LineItem] | None = None,
        total_amount: float = 150.0,
        hours_ago: float = 1.0,
        order_id: str | None = None,
        store_id: str = "S1",
    ) -> Order:
        counter["n"] += 1
        return Order(
            id=order_id or f"O{counter['n']}",
            customer_id=customer_id,
            items=[make_item()] if items is None else items,
            total_amount=total_amount,
            created_at=NOW - timedelta(hours=hours_ago),
            store_id=store_id,
        )

    return _make


@pytest.fixture
def make_profile() -> Callable[..., BeneficiaryProfile]:
    """Factory for verified beneficiaries with nothing drawn this month."""

    def _make(
        user_id: str = "U1",
        card: CardTier = CardTier.YELLOW,
        household: int = 4,
        status: VerificationStatus = VerificationStatus.VERIFIED,
        consumed: dict[Commodity, float] | None = None,
    ) -> BeneficiaryProfile:
        return BeneficiaryProfile(
            user_id=user_id,
            ration_card_type=card,
            household_members=household,
            address="12 Market Road",
            verification_status=status,
            total_quantity_this_month=consumed or {},
        )

    return _make


@pytest.fixture
def store_info() -> StoreInfo:
    return StoreInfo(
        store_id="S1",
        name="Ward 4 Fair Price Shop",
        latitude=12.97159,
        longitude=77.59456,
        district="Bengaluru Urban",
    )


@pytest.fixture
def memory_store(store_info: StoreInfo) -> InMemoryDataStore:
    """In-memory store holding store S1 and no other data; clock fixed at ``NOW``."""
    store = InMemoryDataStore(clock=lambda: NOW)
    store.add_store(store_info)
    return store


def monthly_points(
    values: list[float],
    start_year: int = 2025,
    start_month: int = 10,
) -> list[HistoricalDemandPoint]:
    """Consecutive monthly history points starting at ``start_year-start_month``."""
    points = []
    for i, v in enumerate(values):
        idx = start_year * 12 + start_month - 1 + i
        points.append(
            HistoricalDemandPoint(period=f"{idx // 12:04d}-{idx % 12 + 1:02d}", actual_demand=v)
        )
    return points


@pytest.fixture
def make_audit_report() -> Callable[..., AuditReport]:
    """Factory for empty-batch audit reports stamped ``minutes_ago`` before ``NOW``."""
    orchestrator = AuditOrchestrator(PolicyConfig())

    def _make(store_id: str = "S1", minutes_ago: float = 0.0) -> AuditReport:
        return orchestrator.audit_store_orders(
            store_id, [], [], now=NOW - timedelta(minutes=minutes_ago)
        )

    return _make
