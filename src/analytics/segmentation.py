from __future__ import annotations

from math import isfinite
from typing import Dict, Iterable, Mapping, Sequence

from src.analytics.revenue_attribution import (
    effective_revenue,
    iter_year_contributions,
    normalize_label,
    revenue_by_year,
    total_revenue,
)
from src.models.crm import AccountRecord, EstimateRecord

SEGMENT_A_MIN_PCT = 15.0
SEGMENT_B_MIN_PCT = 5.0
PROJECT_ESTIMATE_TYPE = "standard"
SERVICE_ESTIMATE_TYPE = "service"
DEFAULT_SEGMENT = "C"


def is_project_only(
    account: AccountRecord, estimates: Iterable[EstimateRecord], target_year: int
) -> bool:
    # "Standard" estimates are one-off projects, "Service" ones are recurring.
    types = {
        normalize_label(estimate.estimate_type)
        for estimate, _ in iter_year_contributions(account, estimates, target_year)
    }
    return PROJECT_ESTIMATE_TYPE in types and SERVICE_ESTIMATE_TYPE not in types


def segment_for_share(revenue: float, total: float) -> str:
    if revenue <= 0 or total <= 0 or not isfinite(revenue) or not isfinite(total):
        return DEFAULT_SEGMENT
    pct = revenue / total * 100
    if pct >= SEGMENT_A_MIN_PCT:
        return "A"
    if pct >= SEGMENT_B_MIN_PCT:
        return "B"
    return "C"


def classify_segment(
    account: AccountRecord,
    total: float,
    estimates: Sequence[EstimateRecord],
    target_year: int,
) -> str:
    """Tier for one account in ``target_year``.

    D marks project-only accounts and takes precedence over the revenue
    share; otherwise A is a share of at least 15%, B at least 5%, C the rest
    (including accounts or totals without any revenue signal).
    """
    if is_project_only(account, estimates, target_year):
        return "D"
    return segment_for_share(effective_revenue(account, estimates, target_year), total)


def assign_segments(
    accounts: Sequence[AccountRecord],
    estimates_by_account_id: Mapping[str, Sequence[EstimateRecord]],
    target_year: int,
) -> Dict[str, str]:
    # One denominator per pass so every account is measured against the same snapshot.
    total = total_revenue(accounts, estimates_by_account_id, target_year)
    return {
        account.id: classify_segment(
            account, total, estimates_by_account_id.get(account.id, ()), target_year
        )
        for account in accounts
    }


def segments_by_year(
    accounts: Sequence[AccountRecord],
    estimates_by_account_id: Mapping[str, Sequence[EstimateRecord]],
) -> Dict[str, Dict[str, str]]:
    """Segment per account for every year it has attributed revenue in."""
    revenue_maps = {
        account.id: revenue_by_year(account, estimates_by_account_id.get(account.id, ()))
        for account in accounts
    }
    years = sorted({year for revenue_map in revenue_maps.values() for year in revenue_map})
    result: Dict[str, Dict[str, str]] = {account.id: {} for account in accounts}
    for year in years:
        total = total_revenue(accounts, estimates_by_account_id, year)
        for account in accounts:
            if year not in revenue_maps[account.id]:
                continue
            result[account.id][str(year)] = classify_segment(
                account, total, estimates_by_account_id.get(account.id, ()), year
            )
    return result
