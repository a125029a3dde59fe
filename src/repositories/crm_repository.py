from __future__ import annotations

import logging
from typing import Dict, List, Optional

from src.core.supabase import SupabaseClient
from src.models.crm import AccountRecord, EstimateRecord, SnoozeRecord

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = (
    "id,name,archived,annual_revenue,revenue_segment,segment_by_year,"
    "revenue_by_year,last_interaction_date,icp_status"
)
ESTIMATE_COLUMNS = (
    "id,account_id,estimate_number,status,estimate_type,total_price,total_price_with_tax,"
    "estimate_date,contract_start,contract_end,division,address,project_name,"
    "exclude_stats,archived"
)
SNOOZE_COLUMNS = "id,notification_type,related_account_id,snoozed_until"


class CrmRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_accounts(self) -> List[AccountRecord]:
        rows = self.client.select_all(
            table="accounts",
            select=ACCOUNT_COLUMNS,
            filters=[("archived", "eq.false")],
        )
        return [AccountRecord.model_validate(row) for row in rows]

    def list_estimates(self) -> List[EstimateRecord]:
        rows = self.client.select_all(
            table="estimates",
            select=ESTIMATE_COLUMNS,
            filters=[("archived", "eq.false")],
        )
        return [EstimateRecord.model_validate(row) for row in rows]

    def list_snoozes(self) -> List[SnoozeRecord]:
        rows = self.client.select_all(table="notification_snoozes", select=SNOOZE_COLUMNS)
        return [SnoozeRecord.model_validate(row) for row in rows]

    def update_account_segment(
        self,
        account_id: str,
        revenue_segment: str,
        segment_by_year: Optional[Dict[str, str]] = None,
        revenue_by_year: Optional[Dict[str, float]] = None,
    ) -> bool:
        payload: Dict[str, object] = {"revenue_segment": revenue_segment}
        if segment_by_year is not None:
            payload["segment_by_year"] = segment_by_year
        if revenue_by_year is not None:
            payload["revenue_by_year"] = revenue_by_year
        rows = self.client.update(
            table="accounts",
            payload=payload,
            filters=[("id", f"eq.{account_id}")],
        )
        if not rows:
            logger.warning("Segment write-back matched no account %s", account_id)
        return bool(rows)
