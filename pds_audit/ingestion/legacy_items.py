"""
Compatibility parser for legacy order item strings.

Older order records store items as display strings such as
``"Premium Rice (10kg)"`` or ``"Sunflower Oil (1L)"``. This module converts
them into ``LineItem`` objects once, at ingestion time, so the rest of the
engine works only with explicit commodity codes.

Classification matches whole words, so ``"Basmati Ricewood Mat"`` is
``Commodity.OTHER`` rather than rice.

Malformed strings never raise: an item without a ``(<N><unit>)`` suffix is
kept with quantity 0 so audit totals degrade rather than fail.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pds_audit.models.order import LineItem, Order
from pds_audit.taxonomy.pds_taxonomy import Commodity

logger = logging.getLogger(__name__)

_QUANTITY_SUFFIX = re.compile(r"\((\d+(?:\.\d+)?)\s*(kg|l|pkt)\)\s*$", re.IGNORECASE)

# Checked in order; first match wins.
_COMMODITY_KEYWORDS: list[tuple[Commodity, re.Pattern[str]]] = [
    (Commodity.RICE, re.compile(r"\brice\b", re.IGNORECASE)),
    (Commodity.WHEAT, re.compile(r"\b(wheat|atta)\b", re.IGNORECASE)),
    (Commodity.SUGAR, re.compile(r"\bsugar\b", re.IGNORECASE)),
    (Commodity.DAL, re.compile(r"\b(dal|dhal|lentils?|pulses?)\b", re.IGNORECASE)),
    (Commodity.OIL, re.compile(r"\boil\b", re.IGNORECASE)),
    (Commodity.SALT, re.compile(r"\bsalt\b", re.IGNORECASE)),
    (Commodity.TEA, re.compile(r"\btea\b", re.IGNORECASE)),
]

_UNIT_MAP = {"kg": "kg", "l": "L", "pkt": "pkt"}


def classify_commodity(name: str) -> Commodity:
    """Return the commodity code for a product name (whole-word match)."""
    for commodity, pattern in _COMMODITY_KEYWORDS:
        if pattern.search(name):
            return commodity
    return Commodity.OTHER


def parse_legacy_item(text: str) -> LineItem:
    """Convert one legacy display string into a ``LineItem``.

    Args:
        text: e.g. ``"Premium Rice (10kg)"``.

    Returns:
        ``LineItem`` with name, commodity, quantity and unit. Quantity is 0
        when the string carries no parseable quantity suffix.
    """
    text = (text or "").strip()
    match = _QUANTITY_SUFFIX.search(text)
    if match is None:
        logger.debug("Legacy item without quantity suffix: %r", text)
        return LineItem(
            name=text or "unknown",
            commodity=classify_commodity(text),
            quantity=0.0,
            unit="unit",
        )

    name = text[: match.start()].strip() or text
    return LineItem(
        name=name,
        commodity=classify_commodity(name),
        quantity=float(match.group(1)),
        unit=_UNIT_MAP[match.group(2).lower()],
    )


def parse_legacy_order(record: dict[str, Any]) -> Order:
    """Build an ``Order`` from a legacy order dict with string items.

    Structured items (dicts) are passed through unchanged; strings go
    through ``parse_legacy_item``.

    Args:
        record: Dict with ``id``, ``customer_id``, ``items``, ``total_amount``,
            ``created_at`` and ``store_id`` keys.

    Returns:
        Validated ``Order``.
    """
    items: list[LineItem] = []
    for raw in record.get("items") or []:
        if isinstance(raw, str):
            items.append(parse_legacy_item(raw))
        else:
            items.append(LineItem.model_validate(raw))

    return Order(
        id=str(record["id"]),
        customer_id=str(record["customer_id"]),
        items=items,
        total_amount=float(record.get("total_amount") or 0.0),
        created_at=record["created_at"],
        store_id=str(record.get("store_id") or ""),
    )
