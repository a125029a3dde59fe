from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from src.api.dependencies import get_revenue_risk_service
from src.core.config import get_settings
from src.core.errors import BadRequestError, UnauthorizedError
from src.schemas.revenue_risk import RefreshResult
from src.services.revenue_risk_service import RevenueRiskService
from src.shared.response import ResponseEnvelope, build_meta

router = APIRouter(prefix="/admin", tags=["admin"])


def require_refresh_access(
    x_admin_refresh_token: Optional[str] = Header(default=None),
) -> None:
    expected = get_settings().admin_refresh_token
    if not expected:
        raise BadRequestError("Manual cache refresh is disabled")
    if x_admin_refresh_token != expected:
        raise UnauthorizedError("Invalid admin refresh token")


@router.post("/refresh-cache")
def refresh_cache(
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    dry_run: bool = Query(default=False),
    _: None = Depends(require_refresh_access),
    service: RevenueRiskService = Depends(get_revenue_risk_service),
) -> ResponseEnvelope[RefreshResult]:
    result = service.refresh(target_year=year, dry_run=dry_run)
    meta = build_meta(
        source="accounts,estimates,notification_snoozes",
        time_window=str(result.target_year),
        generated_at=result.snapshot_at,
    )
    return ResponseEnvelope(data=result, meta=meta)
