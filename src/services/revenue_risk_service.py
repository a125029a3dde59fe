from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel

from src.analytics.at_risk import detect_at_risk
from src.analytics.duplicates import detect_duplicate_groups, filter_new_groups
from src.analytics.neglected import detect_neglected_accounts
from src.analytics.revenue_attribution import (
    effective_revenue,
    group_estimates_by_account,
    revenue_by_year,
    total_revenue,
)
from src.analytics.segmentation import assign_segments, segments_by_year
from src.core.config import get_settings
from src.core.errors import BadRequestError, NotFoundError
from src.models.crm import AccountRecord, DuplicateGroupRecord, EstimateRecord, SnoozeRecord
from src.repositories.crm_repository import CrmRepository
from src.repositories.duplicate_estimates_repository import DuplicateEstimatesRepository
from src.repositories.notification_cache_repository import NotificationCacheRepository
from src.schemas.revenue_risk import (
    AccountSegment,
    AtRiskAccount,
    CachedSnapshotMeta,
    CacheWriteOutcome,
    DuplicateEstimateGroup,
    DuplicateEstimateGroupDetail,
    DuplicateResolveRequest,
    NeglectedAccount,
    RefreshResult,
)
from src.shared.time import utc_now

logger = logging.getLogger(__name__)

CACHE_KEY_AT_RISK = "at-risk-accounts"
CACHE_KEY_DUPLICATES = "duplicate-estimates"
CACHE_KEY_NEGLECTED = "neglected-accounts"
CACHE_KEY_SEGMENTS = "revenue-segments"

ItemT = TypeVar("ItemT", bound=BaseModel)


@dataclass
class EngineOutputs:
    target_year: int
    total_revenue: float
    segments: List[AccountSegment] = field(default_factory=list)
    at_risk: List[AtRiskAccount] = field(default_factory=list)
    duplicates: List[DuplicateEstimateGroup] = field(default_factory=list)
    neglected: List[NeglectedAccount] = field(default_factory=list)


def compute_outputs(
    accounts: Sequence[AccountRecord],
    estimates: Sequence[EstimateRecord],
    snoozes: Sequence[SnoozeRecord],
    target_year: int,
    today: date,
    days_threshold: int = 180,
    exclude_renewed: bool = False,
) -> EngineOutputs:
    """Run every engine stage over one in-memory snapshot. No I/O."""
    estimates_by_account = group_estimates_by_account(estimates)
    segments = assign_segments(accounts, estimates_by_account, target_year)
    yearly = segments_by_year(accounts, estimates_by_account)

    segment_rows: List[AccountSegment] = []
    classified_accounts: List[AccountRecord] = []
    for account in accounts:
        account_estimates = estimates_by_account.get(account.id, ())
        by_year = dict(yearly.get(account.id, {}))
        by_year[str(target_year)] = segments[account.id]
        revenue_map = {
            str(year): round(amount, 2)
            for year, amount in revenue_by_year(account, account_estimates).items()
        }
        segment_rows.append(
            AccountSegment(
                account_id=account.id,
                account_name=account.name,
                target_year=target_year,
                revenue=effective_revenue(account, account_estimates, target_year),
                revenue_segment=segments[account.id],
                segment_by_year=by_year,
                revenue_by_year=revenue_map,
            )
        )
        classified_accounts.append(
            account.model_copy(
                update={"revenue_segment": segments[account.id], "segment_by_year": by_year}
            )
        )

    scan = detect_at_risk(
        accounts,
        estimates,
        snoozes,
        today,
        days_threshold=days_threshold,
        exclude_renewed=exclude_renewed,
    )
    return EngineOutputs(
        target_year=target_year,
        total_revenue=total_revenue(accounts, estimates_by_account, target_year),
        segments=segment_rows,
        at_risk=scan.accounts,
        duplicates=detect_duplicate_groups(scan.candidates_by_account, scan.account_names),
        neglected=detect_neglected_accounts(classified_accounts, snoozes, today, target_year),
    )


class RevenueRiskService:
    def __init__(
        self,
        crm_repository: CrmRepository,
        cache_repository: NotificationCacheRepository,
        duplicates_repository: DuplicateEstimatesRepository,
    ) -> None:
        self.crm_repository = crm_repository
        self.cache_repository = cache_repository
        self.duplicates_repository = duplicates_repository
        self.settings = get_settings()

    @staticmethod
    def _now_utc() -> datetime:
        return utc_now()

    def refresh(
        self,
        target_year: Optional[int] = None,
        today: Optional[date] = None,
        dry_run: bool = False,
    ) -> RefreshResult:
        snapshot_at = self._now_utc()
        as_of = today or date.today()
        year = target_year or as_of.year

        accounts = self.crm_repository.list_accounts()
        estimates = self.crm_repository.list_estimates()
        snoozes = self.crm_repository.list_snoozes()
        logger.info(
            "Refreshing revenue risk snapshot for %s: %s accounts, %s estimates, %s snoozes",
            year,
            len(accounts),
            len(estimates),
            len(snoozes),
        )

        outputs = compute_outputs(
            accounts,
            estimates,
            snoozes,
            target_year=year,
            today=as_of,
            days_threshold=self.settings.at_risk_days_threshold,
            exclude_renewed=self.settings.at_risk_exclude_renewed,
        )
        result = RefreshResult(
            target_year=year,
            as_of_date=as_of,
            snapshot_at=snapshot_at,
            account_count=len(accounts),
            estimate_count=len(estimates),
            total_revenue=outputs.total_revenue,
            segment_counts=dict(Counter(row.revenue_segment for row in outputs.segments)),
            at_risk_count=len(outputs.at_risk),
            duplicate_count=len(outputs.duplicates),
            neglected_count=len(outputs.neglected),
            dry_run=dry_run,
        )
        if dry_run:
            return result

        result.segments_updated = self._write_segments(accounts, outputs.segments)
        result.cache_writes = self._write_caches(outputs, snapshot_at)
        result.duplicate_insert_count = self._register_duplicates(outputs.duplicates, snapshot_at)
        logger.info(
            "Revenue risk snapshot written: %s at-risk, %s duplicate groups (%s new), %s neglected",
            result.at_risk_count,
            result.duplicate_count,
            result.duplicate_insert_count,
            result.neglected_count,
        )
        return result

    def _write_segments(
        self, accounts: Sequence[AccountRecord], segments: Sequence[AccountSegment]
    ) -> int:
        stored = {account.id: account for account in accounts}
        updated = 0
        for row in segments:
            account = stored[row.account_id]
            if (
                account.revenue_segment == row.revenue_segment
                and (account.segment_by_year or {}) == row.segment_by_year
                and (account.revenue_by_year or {}) == row.revenue_by_year
            ):
                continue
            if self.crm_repository.update_account_segment(
                row.account_id, row.revenue_segment, row.segment_by_year, row.revenue_by_year
            ):
                updated += 1
        return updated

    def _write_caches(self, outputs: EngineOutputs, snapshot_at: datetime) -> List[CacheWriteOutcome]:
        expires_at = snapshot_at + timedelta(minutes=self.settings.cache_ttl_minutes)
        snapshot_iso = snapshot_at.astimezone(timezone.utc).isoformat(timespec="microseconds")
        entries: List[Tuple[str, str, Sequence[BaseModel]]] = [
            (CACHE_KEY_AT_RISK, "accounts", outputs.at_risk),
            (CACHE_KEY_DUPLICATES, "groups", outputs.duplicates),
            (CACHE_KEY_NEGLECTED, "accounts", outputs.neglected),
            (CACHE_KEY_SEGMENTS, "segments", outputs.segments),
        ]
        outcomes: List[CacheWriteOutcome] = []
        for cache_key, items_field, items in entries:
            cache_data: Dict[str, Any] = {
                items_field: [item.model_dump(mode="json") for item in items],
                "count": len(items),
                "target_year": outputs.target_year,
                "snapshot_at": snapshot_iso,
                "updated_at": self._now_utc().isoformat(),
            }
            written = self.cache_repository.write_entry(
                cache_key,
                cache_data,
                expires_at,
                compare_and_swap=self.settings.cache_compare_and_swap,
            )
            outcomes.append(
                CacheWriteOutcome(
                    cache_key=cache_key,
                    written=written,
                    count=len(items),
                    expires_at=expires_at if written else None,
                )
            )
        return outcomes

    def _register_duplicates(
        self, groups: Sequence[DuplicateEstimateGroup], detected_at: datetime
    ) -> int:
        if not groups:
            return 0
        try:
            existing = self.duplicates_repository.list_groups(include_resolved=True)
            fresh = filter_new_groups(groups, existing)
            inserted = self.duplicates_repository.insert_groups(fresh, detected_at)
        except httpx.HTTPError:
            # Duplicate tracking is advisory; the cached snapshot is already written.
            logger.exception("Failed to register duplicate estimate groups")
            return 0
        return len(inserted)

    def _read_cache(
        self, cache_key: str, items_field: str, item_type: Type[ItemT]
    ) -> Tuple[List[ItemT], CachedSnapshotMeta]:
        entry = self.cache_repository.get_entry(cache_key)
        if entry is None:
            raise NotFoundError(f"No cached snapshot for {cache_key}; run a refresh first")
        raw_items = entry.cache_data.get(items_field) or []
        items = [item_type.model_validate(item) for item in raw_items]
        snapshot_at = entry.cache_data.get("snapshot_at")
        meta = CachedSnapshotMeta(
            cache_key=cache_key,
            snapshot_at=snapshot_at,
            expires_at=entry.expires_at,
            is_stale=entry.expires_at <= self._now_utc(),
            count=len(items),
        )
        return items, meta

    def get_at_risk_accounts(self) -> Tuple[List[AtRiskAccount], CachedSnapshotMeta]:
        return self._read_cache(CACHE_KEY_AT_RISK, "accounts", AtRiskAccount)

    def get_neglected_accounts(self) -> Tuple[List[NeglectedAccount], CachedSnapshotMeta]:
        return self._read_cache(CACHE_KEY_NEGLECTED, "accounts", NeglectedAccount)

    def get_revenue_segments(self) -> Tuple[List[AccountSegment], CachedSnapshotMeta]:
        return self._read_cache(CACHE_KEY_SEGMENTS, "segments", AccountSegment)

    @staticmethod
    def _to_detail(record: DuplicateGroupRecord) -> DuplicateEstimateGroupDetail:
        return DuplicateEstimateGroupDetail(
            id=record.id,
            account_id=record.account_id or "",
            account_name=record.account_name,
            division=record.division,
            address=record.address,
            estimate_ids=record.estimate_ids,
            estimate_numbers=record.estimate_numbers,
            contract_ends=record.contract_ends,
            status=record.status,
            detected_at=record.detected_at,
            resolved_at=record.resolved_at,
            resolved_by=record.resolved_by,
            notes=record.notes,
        )

    def list_duplicate_groups(
        self, include_resolved: bool = False
    ) -> List[DuplicateEstimateGroupDetail]:
        records = self.duplicates_repository.list_groups(include_resolved=include_resolved)
        return [self._to_detail(record) for record in records]

    def resolve_duplicate_group(
        self, group_id: str, request: DuplicateResolveRequest
    ) -> DuplicateEstimateGroupDetail:
        record = self.duplicates_repository.resolve_group(
            group_id,
            resolved_at=self._now_utc(),
            resolved_by=request.resolved_by,
            notes=request.notes,
        )
        if record is not None:
            return self._to_detail(record)
        if self.duplicates_repository.get_group(group_id) is None:
            raise NotFoundError("Duplicate estimate group not found")
        raise BadRequestError("Duplicate estimate group is already resolved")
