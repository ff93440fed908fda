"""
Repository for beneficiary profiles.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Optional

from pds_audit.db.repositories.base import BaseRepository
from pds_audit.models.beneficiary import BeneficiaryProfile


class BeneficiaryRepository(BaseRepository):
    """Read/write access to ``beneficiaries``."""

    def upsert(self, profile: BeneficiaryProfile) -> None:
        """Insert or replace a profile snapshot."""
        quantities = {str(k): v for k, v in profile.total_quantity_this_month.items()}
        self.execute(
            """
            INSERT OR REPLACE INTO beneficiaries (
                user_id, ration_card_type, household_members, monthly_income,
                address, verification_status, last_order_date,
                total_orders_this_month, quantity_this_month_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                profile.user_id,
                str(profile.ration_card_type),
                profile.household_members,
                profile.monthly_income,
                profile.address,
                str(profile.verification_status),
                profile.last_order_date.isoformat() if profile.last_order_date else None,
                profile.total_orders_this_month,
                json.dumps(quantities),
            ),
        )

    def get(self, user_id: str) -> Optional[BeneficiaryProfile]:
        row = self.fetchone("SELECT * FROM beneficiaries WHERE user_id = ?;", (user_id,))
        return _row_to_profile(row) if row is not None else None

    def count(self) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM beneficiaries;")
        return int(row["n"]) if row is not None else 0


def _row_to_profile(row: sqlite3.Row) -> BeneficiaryProfile:
    return BeneficiaryProfile(
        user_id=row["user_id"],
        ration_card_type=row["ration_card_type"],
        household_members=row["household_members"],
        monthly_income=row["monthly_income"],
        address=row["address"],
        verification_status=row["verification_status"],
        last_order_date=(
            datetime.fromisoformat(row["last_order_date"]) if row["last_order_date"] else None
        ),
        total_orders_this_month=row["total_orders_this_month"],
        total_quantity_this_month=json.loads(row["quantity_this_month_json"]),
    )
