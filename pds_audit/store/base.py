"""
Data-store collaborator interface.

The engines never touch storage. ``AuditService`` reads orders,
beneficiaries, demand history, stock and store master data through a
``DataStore`` and writes finished reports back through it.

Report history is append-only and capped per kind: once a kind holds
``history_cap`` reports, appending evicts the oldest.

Two adapters ship with the package:
  - ``pds_audit.store.memory.InMemoryDataStore``  (tests, library use)
  - ``pds_audit.db.store.SqliteDataStore``        (CLI, persistent runs)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Literal, Union

from pds_audit.models.audit import AuditReport
from pds_audit.models.beneficiary import BeneficiaryProfile
from pds_audit.models.demand import HistoricalDemandPoint, StoreDemandReport, StoreInfo
from pds_audit.models.order import Order

ReportKind = Literal["audit", "demand"]
Report = Union[AuditReport, StoreDemandReport]

DEFAULT_HISTORY_CAP = 50


def report_kind(report: Report) -> ReportKind:
    """History bucket a report is stored under."""
    if isinstance(report, AuditReport):
        return "audit"
    if isinstance(report, StoreDemandReport):
        return "demand"
    raise TypeError(f"Unsupported report type: {type(report).__name__}")


class DataStore(ABC):
    """Read-by-filter / append-only storage used by ``AuditService``.

    Implementations raise ``pds_audit.exceptions.StoreError`` (or a
    subclass) when a request cannot be satisfied.
    """

    @abstractmethod
    def fetch_orders(self, store_id: str, since: datetime | None = None) -> list[Order]:
        """Orders placed at ``store_id``, oldest first, optionally since ``since``."""

    @abstractmethod
    def fetch_beneficiary(self, user_id: str) -> BeneficiaryProfile | None:
        """Beneficiary profile, or ``None`` if the user is not registered."""

    @abstractmethod
    def fetch_order_history(self, user_id: str, within_days: int) -> list[Order]:
        """The user's orders across all stores in the trailing ``within_days``."""

    @abstractmethod
    def fetch_demand_history(
        self, store_id: str, item_id: str, months: int
    ) -> list[HistoricalDemandPoint]:
        """Up to ``months`` most recent monthly demand points, oldest first."""

    @abstractmethod
    def fetch_current_stock(self, store_id: str, item_id: str) -> float:
        """On-hand stock of ``item_id``; 0 when nothing is recorded."""

    @abstractmethod
    def fetch_store_info(self, store_id: str) -> StoreInfo:
        """Store master data.

        Raises:
            StoreNotFoundError: If ``store_id`` is unknown.
        """

    @abstractmethod
    def append_report(self, report: Report) -> None:
        """Append ``report`` to its kind's history, evicting the oldest past the cap."""

    @abstractmethod
    def fetch_reports(self, kind: ReportKind, store_id: str | None = None) -> list[Report]:
        """Retained reports of ``kind``, oldest first, optionally for one store."""
