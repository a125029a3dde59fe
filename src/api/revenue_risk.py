from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_revenue_risk_service
from src.core.config import get_settings
from src.schemas.revenue_risk import (
    AccountSegment,
    AtRiskAccount,
    CachedSnapshotMeta,
    DuplicateEstimateGroupDetail,
    DuplicateResolveRequest,
    NeglectedAccount,
)
from src.services.revenue_risk_service import RevenueRiskService
from src.shared.response import Meta, ResponseEnvelope, build_meta, paginate_list

router = APIRouter(tags=["revenue-risk"])


def _snapshot_meta(snapshot: CachedSnapshotMeta, time_window: str) -> Meta:
    return build_meta(
        source=f"notification_cache:{snapshot.cache_key}",
        time_window=time_window,
        is_stale=snapshot.is_stale,
        generated_at=snapshot.snapshot_at,
        expires_at=snapshot.expires_at,
    )


@router.get("/at-risk-accounts")
def at_risk_accounts(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[List[AtRiskAccount]]:
    rows, snapshot = service.get_at_risk_accounts()
    paged, pagination = paginate_list(rows, page, page_size)
    time_window = f"{get_settings().at_risk_days_threshold}d"
    return ResponseEnvelope(
        data=paged, pagination=pagination, meta=_snapshot_meta(snapshot, time_window)
    )


@router.get("/neglected-accounts")
def neglected_accounts(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[List[NeglectedAccount]]:
    rows, snapshot = service.get_neglected_accounts()
    paged, pagination = paginate_list(rows, page, page_size)
    return ResponseEnvelope(
        data=paged, pagination=pagination, meta=_snapshot_meta(snapshot, "point_in_time")
    )


@router.get("/revenue-segments")
def revenue_segments(
    segment: Optional[str] = Query(default=None, pattern="^[ABCDabcd]$"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=100, ge=1, le=1000),
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[List[AccountSegment]]:
    rows, snapshot = service.get_revenue_segments()
    if segment:
        rows = [row for row in rows if row.revenue_segment == segment.upper()]
    paged, pagination = paginate_list(rows, page, page_size)
    time_window = str(rows[0].target_year) if rows else "current_year"
    return ResponseEnvelope(
        data=paged, pagination=pagination, meta=_snapshot_meta(snapshot, time_window)
    )


@router.get("/duplicate-estimates")
def duplicate_estimates(
    include_resolved: bool = Query(default=False),
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[List[DuplicateEstimateGroupDetail]]:
    data = service.list_duplicate_groups(include_resolved=include_resolved)
    return ResponseEnvelope(
        data=data, meta=build_meta("duplicate_at_risk_estimates", "historical")
    )


@router.post("/duplicate-estimates/{group_id}/resolve")
def resolve_duplicate_estimates(
    group_id: str,
    request: DuplicateResolveRequest,
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[DuplicateEstimateGroupDetail]:
    data = service.resolve_duplicate_group(group_id, request)
    return ResponseEnvelope(
        data=data, meta=build_meta("duplicate_at_risk_estimates", "point_in_time")
    )
