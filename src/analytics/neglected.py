from __future__ import annotations

from datetime import date
from typing import List, Sequence

from src.analytics.at_risk import active_snoozed_accounts
from src.analytics.segmentation import DEFAULT_SEGMENT
from src.models.crm import AccountRecord, SnoozeRecord
from src.schemas.revenue_risk import NeglectedAccount
from src.shared.time import days_until

NEGLECTED_SNOOZE_TYPE = "neglected_account"
PRIORITY_SEGMENTS = frozenset({"A", "B"})
PRIORITY_THRESHOLD_DAYS = 30
STANDARD_THRESHOLD_DAYS = 90
EXCLUDED_ICP_STATUS = "na"


def segment_for_year(account: AccountRecord, target_year: int) -> str:
    if account.segment_by_year:
        segment = account.segment_by_year.get(str(target_year))
        if segment:
            return segment
    return account.revenue_segment or DEFAULT_SEGMENT


def detect_neglected_accounts(
    accounts: Sequence[AccountRecord],
    snoozes: Sequence[SnoozeRecord],
    today: date,
    target_year: int,
) -> List[NeglectedAccount]:
    snoozed = active_snoozed_accounts(snoozes, NEGLECTED_SNOOZE_TYPE, today)
    neglected: List[NeglectedAccount] = []
    for account in accounts:
        if account.archived or account.id in snoozed:
            continue
        if (account.icp_status or "").strip().lower() == EXCLUDED_ICP_STATUS:
            continue
        segment = segment_for_year(account, target_year)
        threshold = (
            PRIORITY_THRESHOLD_DAYS if segment in PRIORITY_SEGMENTS else STANDARD_THRESHOLD_DAYS
        )
        if account.last_interaction_date is None:
            days_since = None
        else:
            days_since = -days_until(account.last_interaction_date, today)
            if days_since <= threshold:
                continue
        neglected.append(
            NeglectedAccount(
                account_id=account.id,
                account_name=account.name,
                days_since_interaction=days_since,
                threshold_days=threshold,
                revenue_segment=segment,
            )
        )
    return neglected
