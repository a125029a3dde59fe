from __future__ import annotations

import re
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from src.models.crm import DuplicateGroupRecord, EstimateRecord
from src.schemas.revenue_risk import DuplicateEstimateGroup

_WHITESPACE = re.compile(r"\s+")

GroupSignature = Tuple[Tuple[str, ...], Tuple[str, ...]]


def normalize_division(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.strip().lower()


def normalize_address(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value.strip().lower())


def duplicate_key(estimate: EstimateRecord) -> Tuple[str, str]:
    return normalize_division(estimate.division), normalize_address(estimate.address)


def _sort_key(estimate: EstimateRecord) -> Tuple[str, str]:
    contract_end = estimate.contract_end.isoformat() if estimate.contract_end else ""
    return contract_end, estimate.id


def detect_duplicate_groups(
    candidates_by_account: Mapping[str, Sequence[EstimateRecord]],
    account_names: Optional[Mapping[str, Optional[str]]] = None,
) -> List[DuplicateEstimateGroup]:
    """Group each account's at-risk-window estimates by division and address.

    Every group holding more than one estimate is reported; these usually
    point at the same contract imported twice.
    """
    names = account_names or {}
    groups: List[DuplicateEstimateGroup] = []
    for account_id in sorted(candidates_by_account):
        buckets: Dict[Tuple[str, str], List[EstimateRecord]] = defaultdict(list)
        for estimate in candidates_by_account[account_id]:
            buckets[duplicate_key(estimate)].append(estimate)
        for key in sorted(buckets):
            members = sorted(buckets[key], key=_sort_key)
            if len(members) < 2:
                continue
            groups.append(
                DuplicateEstimateGroup(
                    account_id=account_id,
                    account_name=names.get(account_id),
                    division=members[0].division,
                    address=members[0].address,
                    estimate_ids=[estimate.id for estimate in members],
                    estimate_numbers=[estimate.estimate_number for estimate in members],
                    contract_ends=[estimate.contract_end for estimate in members],
                )
            )
    return groups


def group_signature(group: DuplicateEstimateGroup | DuplicateGroupRecord) -> GroupSignature:
    # Any edit to membership or contract ends yields a new signature.
    return (
        tuple(sorted(group.estimate_ids)),
        tuple(sorted(value.isoformat() if value else "" for value in group.contract_ends)),
    )


def filter_new_groups(
    groups: Iterable[DuplicateEstimateGroup],
    existing: Iterable[DuplicateGroupRecord],
) -> List[DuplicateEstimateGroup]:
    """Drop groups already on record, resolved or not."""
    seen: Set[GroupSignature] = {group_signature(record) for record in existing}
    fresh: List[DuplicateEstimateGroup] = []
    for group in groups:
        signature = group_signature(group)
        if signature in seen:
            continue
        seen.add(signature)
        fresh.append(group)
    return fresh
