from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set

from src.analytics.duplicates import duplicate_key
from src.analytics.revenue_attribution import group_estimates_by_account, is_eligible
from src.models.crm import AccountRecord, EstimateRecord, SnoozeRecord
from src.schemas.revenue_risk import AtRiskAccount
from src.shared.time import days_until

DAYS_THRESHOLD = 180
RENEWAL_SNOOZE_TYPE = "renewal_reminder"


@dataclass(frozen=True)
class AtRiskCandidate:
    estimate: EstimateRecord
    days_until: int


@dataclass
class AtRiskScan:
    accounts: List[AtRiskAccount] = field(default_factory=list)
    candidates_by_account: Dict[str, List[EstimateRecord]] = field(default_factory=dict)
    account_names: Dict[str, Optional[str]] = field(default_factory=dict)


def active_snoozed_accounts(
    snoozes: Iterable[SnoozeRecord], notification_type: str, today: date
) -> Set[str]:
    start_of_today = datetime.combine(today, time.min, tzinfo=timezone.utc)
    snoozed: Set[str] = set()
    for snooze in snoozes:
        if snooze.notification_type != notification_type or not snooze.related_account_id:
            continue
        if snooze.snoozed_until is not None and snooze.snoozed_until > start_of_today:
            snoozed.add(snooze.related_account_id)
    return snoozed


def has_renewal(
    account_estimates: Sequence[EstimateRecord],
    expiring: EstimateRecord,
    today: date,
    days_threshold: int = DAYS_THRESHOLD,
) -> bool:
    """True when a later won contract for the same division and address already exists."""
    key = duplicate_key(expiring)
    if not all(key) or expiring.contract_end is None:
        return False
    for estimate in account_estimates:
        if estimate.id == expiring.id or not is_eligible(estimate) or estimate.contract_end is None:
            continue
        if duplicate_key(estimate) != key:
            continue
        if estimate.contract_end <= expiring.contract_end:
            continue
        if days_until(estimate.contract_end, today) > days_threshold:
            return True
    return False


def _window_candidates(
    account_estimates: Sequence[EstimateRecord], today: date, days_threshold: int
) -> List[AtRiskCandidate]:
    candidates: List[AtRiskCandidate] = []
    for estimate in account_estimates:
        if not is_eligible(estimate) or estimate.contract_end is None:
            continue
        remaining = days_until(estimate.contract_end, today)
        if 0 <= remaining <= days_threshold:
            candidates.append(AtRiskCandidate(estimate=estimate, days_until=remaining))
    # Soonest first; equal expiries fall back to the lowest estimate id.
    candidates.sort(key=lambda candidate: (candidate.days_until, candidate.estimate.id))
    return candidates


def detect_at_risk(
    accounts: Sequence[AccountRecord],
    estimates: Sequence[EstimateRecord],
    snoozes: Sequence[SnoozeRecord],
    today: date,
    days_threshold: int = DAYS_THRESHOLD,
    exclude_renewed: bool = False,
) -> AtRiskScan:
    """Accounts with a won contract ending within ``days_threshold`` days of ``today``.

    Each account is represented by its soonest-expiring contract. Archived
    accounts and accounts with an active renewal snooze are skipped. The
    per-account candidate lists are kept for duplicate detection.
    """
    estimates_by_account = group_estimates_by_account(estimates)
    snoozed = active_snoozed_accounts(snoozes, RENEWAL_SNOOZE_TYPE, today)
    scan = AtRiskScan()

    for account in accounts:
        if account.archived or account.id in snoozed:
            continue
        account_estimates = estimates_by_account.get(account.id, [])
        candidates = _window_candidates(account_estimates, today, days_threshold)
        if exclude_renewed:
            candidates = [
                candidate
                for candidate in candidates
                if not has_renewal(account_estimates, candidate.estimate, today, days_threshold)
            ]
        if not candidates:
            continue

        representative = candidates[0]
        expiring = representative.estimate
        key = duplicate_key(expiring)
        shared = sum(1 for candidate in candidates if duplicate_key(candidate.estimate) == key)

        scan.candidates_by_account[account.id] = [candidate.estimate for candidate in candidates]
        scan.account_names[account.id] = account.name
        scan.accounts.append(
            AtRiskAccount(
                account_id=account.id,
                account_name=account.name,
                contract_end=expiring.contract_end,
                days_until_renewal=representative.days_until,
                estimate_id=expiring.id,
                estimate_number=expiring.estimate_number,
                division=expiring.division,
                address=expiring.address,
                has_duplicates=shared > 1,
            )
        )

    scan.accounts.sort(key=lambda row: (row.days_until_renewal, row.account_id))
    return scan
