"""
Repository for the append-only report history.

Reports are stored whole as JSON (``model_dump_json``) and rebuilt with
``model_validate_json``; only the columns needed for filtering and
eviction are broken out.
"""

from __future__ import annotations

from typing import Optional

from pds_audit.db.repositories.base import BaseRepository
from pds_audit.models.audit import AuditReport
from pds_audit.models.demand import StoreDemandReport
from pds_audit.store.base import Report, ReportKind, report_kind

_MODEL_BY_KIND: dict[str, type[AuditReport] | type[StoreDemandReport]] = {
    "audit": AuditReport,
    "demand": StoreDemandReport,
}


class ReportRepository(BaseRepository):
    """Read/write access to ``report_history``."""

    def append(self, report: Report) -> None:
        if isinstance(report, AuditReport):
            report_id, created_at = report.id, report.timestamp
        else:
            report_id = f"DEMAND-{report.store_id}-{report.generated_at:%Y%m%dT%H%M%S}"
            created_at = report.generated_at
        self.execute(
            """
            INSERT INTO report_history (kind, report_id, store_id, created_at, payload_json)
            VALUES (?, ?, ?, ?, ?);
            """,
            (
                report_kind(report),
                report_id,
                report.store_id,
                created_at.isoformat(),
                report.model_dump_json(),
            ),
        )

    def evict_oldest(self, kind: ReportKind, keep: int) -> int:
        """Delete all but the newest ``keep`` reports of ``kind``; returns rows deleted."""
        cur = self.execute(
            """
            DELETE FROM report_history
            WHERE kind = ? AND seq NOT IN (
                SELECT seq FROM report_history
                WHERE kind = ?
                ORDER BY seq DESC
                LIMIT ?
            );
            """,
            (kind, kind, keep),
        )
        return cur.rowcount

    def get_all(self, kind: ReportKind, store_id: Optional[str] = None) -> list[Report]:
        """Retained reports of ``kind``, oldest first."""
        model = _MODEL_BY_KIND[kind]
        if store_id is None:
            rows = self.fetchall(
                "SELECT payload_json FROM report_history WHERE kind = ? ORDER BY seq;",
                (kind,),
            )
        else:
            rows = self.fetchall(
                "SELECT payload_json FROM report_history "
                "WHERE kind = ? AND store_id = ? ORDER BY seq;",
                (kind, store_id),
            )
        return [model.model_validate_json(r["payload_json"]) for r in rows]

    def count(self, kind: ReportKind) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) AS n FROM report_history WHERE kind = ?;", (kind,)
        )
        return int(row["n"]) if row is not None else 0
