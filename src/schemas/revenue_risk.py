from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import Field

from src.shared.base import BaseSchema


class AtRiskAccount(BaseSchema):
    account_id: str
    account_name: Optional[str] = None
    contract_end: date
    days_until_renewal: int
    estimate_id: str
    estimate_number: Optional[str] = None
    division: Optional[str] = None
    address: Optional[str] = None
    has_duplicates: bool = False


class DuplicateEstimateGroup(BaseSchema):
    account_id: str
    account_name: Optional[str] = None
    division: Optional[str] = None
    address: Optional[str] = None
    estimate_ids: List[str]
    estimate_numbers: List[Optional[str]] = Field(default_factory=list)
    contract_ends: List[Optional[date]] = Field(default_factory=list)


class DuplicateEstimateGroupDetail(DuplicateEstimateGroup):
    id: Optional[str] = None
    status: str = "detected"
    detected_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None


class DuplicateResolveRequest(BaseSchema):
    resolved_by: Optional[str] = None
    notes: Optional[str] = None


class NeglectedAccount(BaseSchema):
    account_id: str
    account_name: Optional[str] = None
    days_since_interaction: Optional[int] = None
    threshold_days: int
    revenue_segment: str


class AccountSegment(BaseSchema):
    account_id: str
    account_name: Optional[str] = None
    target_year: int
    revenue: float
    revenue_segment: str
    segment_by_year: Dict[str, str] = Field(default_factory=dict)
    revenue_by_year: Dict[str, float] = Field(default_factory=dict)


class CacheWriteOutcome(BaseSchema):
    cache_key: str
    written: bool
    count: int
    expires_at: Optional[datetime] = None


class RefreshResult(BaseSchema):
    target_year: int
    as_of_date: date
    snapshot_at: datetime
    account_count: int
    estimate_count: int
    total_revenue: float
    segment_counts: Dict[str, int] = Field(default_factory=dict)
    segments_updated: int = 0
    at_risk_count: int = 0
    duplicate_count: int = 0
    duplicate_insert_count: int = 0
    neglected_count: int = 0
    cache_writes: List[CacheWriteOutcome] = Field(default_factory=list)
    dry_run: bool = False


class CachedSnapshotMeta(BaseSchema):
    cache_key: str
    snapshot_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_stale: bool = False
    count: int = 0
