from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from src.core.supabase import SupabaseClient
from src.models.crm import DuplicateGroupRecord
from src.schemas.revenue_risk import DuplicateEstimateGroup

DUPLICATES_TABLE = "duplicate_at_risk_estimates"
DUPLICATE_COLUMNS = (
    "id,account_id,account_name,division,address,estimate_ids,estimate_numbers,"
    "contract_ends,detected_at,resolved_at,resolved_by,notes"
)


class DuplicateEstimatesRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_groups(self, include_resolved: bool = True) -> List[DuplicateGroupRecord]:
        filters = [] if include_resolved else [("resolved_at", "is.null")]
        rows = self.client.select_all(
            table=DUPLICATES_TABLE,
            select=DUPLICATE_COLUMNS,
            filters=filters,
            order="detected_at.desc",
        )
        return [DuplicateGroupRecord.model_validate(row) for row in rows]

    def insert_groups(
        self, groups: Sequence[DuplicateEstimateGroup], detected_at: datetime
    ) -> List[DuplicateGroupRecord]:
        if not groups:
            return []
        detected = detected_at.astimezone(timezone.utc).isoformat()
        payload = [
            {
                "account_id": group.account_id,
                "account_name": group.account_name,
                "division": group.division,
                "address": group.address,
                "estimate_ids": group.estimate_ids,
                "estimate_numbers": group.estimate_numbers,
                "contract_ends": [
                    value.isoformat() if value else None for value in group.contract_ends
                ],
                "detected_at": detected,
            }
            for group in groups
        ]
        rows = self.client.insert(table=DUPLICATES_TABLE, payload=payload)
        return [DuplicateGroupRecord.model_validate(row) for row in rows]

    def resolve_group(
        self,
        group_id: str,
        resolved_at: datetime,
        resolved_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[DuplicateGroupRecord]:
        payload = {
            "resolved_at": resolved_at.astimezone(timezone.utc).isoformat(),
            "resolved_by": resolved_by,
        }
        if notes is not None:
            payload["notes"] = notes
        rows = self.client.update(
            table=DUPLICATES_TABLE,
            payload=payload,
            filters=[("id", f"eq.{group_id}"), ("resolved_at", "is.null")],
        )
        if not rows:
            return None
        return DuplicateGroupRecord.model_validate(rows[0])

    def get_group(self, group_id: str) -> Optional[DuplicateGroupRecord]:
        rows = self.client.select(
            table=DUPLICATES_TABLE,
            select=DUPLICATE_COLUMNS,
            filters=[("id", f"eq.{group_id}")],
            limit=1,
        )
        if not rows:
            return None
        return DuplicateGroupRecord.model_validate(rows[0])
