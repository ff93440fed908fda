"""
SQLite schema DDL for the reference data store.

Every statement uses ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Tables:
  1. stores            (no FKs)
  2. beneficiaries     (no FKs)
  3. orders            (→ stores); line items stored as a JSON array
  4. demand_history    (→ stores); one row per (store, item, month)
  5. stock_levels      (→ stores)
  6. report_history    (no FKs); append-only, capped per kind by the store
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_STORES = """
CREATE TABLE IF NOT EXISTS stores (
    store_id    TEXT    PRIMARY KEY,
    name        TEXT    NOT NULL,
    latitude    REAL    NOT NULL,
    longitude   REAL    NOT NULL,
    district    TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_BENEFICIARIES = """
CREATE TABLE IF NOT EXISTS beneficiaries (
    user_id                  TEXT    PRIMARY KEY,
    ration_card_type         TEXT    NOT NULL
        CHECK (ration_card_type IN ('pink', 'yellow', 'blue', 'white')),
    household_members        INTEGER NOT NULL CHECK (household_members >= 1),
    monthly_income           REAL,
    address                  TEXT    NOT NULL DEFAULT '',
    verification_status      TEXT    NOT NULL DEFAULT 'pending'
        CHECK (verification_status IN ('pending', 'verified', 'rejected')),
    last_order_date          TEXT,
    total_orders_this_month  INTEGER NOT NULL DEFAULT 0,
    quantity_this_month_json TEXT    NOT NULL DEFAULT '{}'
);
"""

_DDL_ORDERS = """
CREATE TABLE IF NOT EXISTS orders (
    order_id      TEXT    PRIMARY KEY,
    customer_id   TEXT    NOT NULL,
    store_id      TEXT    NOT NULL REFERENCES stores(store_id),
    total_amount  REAL    NOT NULL DEFAULT 0,
    created_at    TEXT    NOT NULL,
    items_json    TEXT    NOT NULL DEFAULT '[]'
);

CREATE INDEX IF NOT EXISTS idx_orders_store_time
    ON orders (store_id, created_at);

CREATE INDEX IF NOT EXISTS idx_orders_customer_time
    ON orders (customer_id, created_at);
"""

_DDL_DEMAND_HISTORY = """
CREATE TABLE IF NOT EXISTS demand_history (
    store_id       TEXT    NOT NULL REFERENCES stores(store_id),
    item_id        TEXT    NOT NULL,
    period         TEXT    NOT NULL,
    actual_demand  REAL    NOT NULL CHECK (actual_demand >= 0),
    factors_json   TEXT    NOT NULL DEFAULT '[]',
    PRIMARY KEY (store_id, item_id, period)
);
"""

_DDL_STOCK_LEVELS = """
CREATE TABLE IF NOT EXISTS stock_levels (
    store_id    TEXT    NOT NULL REFERENCES stores(store_id),
    item_id     TEXT    NOT NULL,
    quantity    REAL    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    PRIMARY KEY (store_id, item_id)
);
"""

_DDL_REPORT_HISTORY = """
CREATE TABLE IF NOT EXISTS report_history (
    seq          INTEGER PRIMARY KEY AUTOINCREMENT,
    kind         TEXT    NOT NULL CHECK (kind IN ('audit', 'demand')),
    report_id    TEXT    NOT NULL,
    store_id     TEXT    NOT NULL,
    created_at   TEXT    NOT NULL,
    payload_json TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_report_history_kind
    ON report_history (kind, seq);
"""

_ALL_DDL = [
    _DDL_STORES,
    _DDL_BENEFICIARIES,
    _DDL_ORDERS,
    _DDL_DEMAND_HISTORY,
    _DDL_STOCK_LEVELS,
    _DDL_REPORT_HISTORY,
]

ALL_TABLE_NAMES = [
    "stores",
    "beneficiaries",
    "orders",
    "demand_history",
    "stock_levels",
    "report_history",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``. Idempotent."""
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
