from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_revenue_risk_service
from src.core.config import get_settings
from src.core.errors import BadRequestError, NotFoundError
from src.main import create_app
from src.schemas.revenue_risk import (
    AccountSegment,
    AtRiskAccount,
    CachedSnapshotMeta,
    DuplicateEstimateGroupDetail,
    DuplicateResolveRequest,
    NeglectedAccount,
    RefreshResult,
)

SNAPSHOT_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _snapshot(cache_key: str, count: int, is_stale: bool = False) -> CachedSnapshotMeta:
    return CachedSnapshotMeta(
        cache_key=cache_key,
        snapshot_at=SNAPSHOT_AT,
        expires_at=SNAPSHOT_AT + timedelta(minutes=5),
        is_stale=is_stale,
        count=count,
    )


class FakeRevenueRiskService:
    def __init__(self) -> None:
        self.refresh_calls: List[Tuple[Optional[int], bool]] = []
        self.groups = {
            "group-1": DuplicateEstimateGroupDetail(
                id="group-1",
                account_id="acct-1",
                account_name="Acme Grounds",
                division="Maintenance",
                address="1 Main St",
                estimate_ids=["est-1", "est-2"],
                estimate_numbers=["E-1", "E-2"],
                contract_ends=[date(2026, 5, 1), date(2026, 5, 1)],
                detected_at=SNAPSHOT_AT,
            )
        }

    def refresh(
        self, target_year: Optional[int] = None, today: Optional[date] = None, dry_run: bool = False
    ) -> RefreshResult:
        _ = today
        self.refresh_calls.append((target_year, dry_run))
        return RefreshResult(
            target_year=target_year or 2026,
            as_of_date=date(2026, 3, 1),
            snapshot_at=SNAPSHOT_AT,
            account_count=2,
            estimate_count=3,
            total_revenue=1000.0,
            segment_counts={"A": 1, "C": 1},
            at_risk_count=1,
            dry_run=dry_run,
        )

    def get_at_risk_accounts(self) -> Tuple[List[AtRiskAccount], CachedSnapshotMeta]:
        rows = [
            AtRiskAccount(
                account_id=f"acct-{index}",
                account_name=f"Account {index}",
                contract_end=date(2026, 4, index),
                days_until_renewal=30 + index,
                estimate_id=f"est-{index}",
                has_duplicates=index == 1,
            )
            for index in range(1, 4)
        ]
        return rows, _snapshot("at-risk-accounts", len(rows), is_stale=True)

    def get_neglected_accounts(self) -> Tuple[List[NeglectedAccount], CachedSnapshotMeta]:
        rows = [
            NeglectedAccount(
                account_id="acct-2",
                account_name="Quiet Co",
                days_since_interaction=None,
                threshold_days=90,
                revenue_segment="C",
            )
        ]
        return rows, _snapshot("neglected-accounts", len(rows))

    def get_revenue_segments(self) -> Tuple[List[AccountSegment], CachedSnapshotMeta]:
        rows = [
            AccountSegment(
                account_id="acct-1",
                target_year=2026,
                revenue=900.0,
                revenue_segment="A",
                segment_by_year={"2026": "A"},
            ),
            AccountSegment(
                account_id="acct-2",
                target_year=2026,
                revenue=100.0,
                revenue_segment="C",
                segment_by_year={"2026": "C"},
            ),
        ]
        return rows, _snapshot("revenue-segments", len(rows))

    def list_duplicate_groups(self, include_resolved: bool = False) -> List[DuplicateEstimateGroupDetail]:
        groups = list(self.groups.values())
        if include_resolved:
            return groups
        return [group for group in groups if group.status != "resolved"]

    def resolve_duplicate_group(
        self, group_id: str, request: DuplicateResolveRequest
    ) -> DuplicateEstimateGroupDetail:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError("Duplicate estimate group not found")
        if group.status == "resolved":
            raise BadRequestError("Duplicate estimate group is already resolved")
        resolved = group.model_copy(
            update={
                "status": "resolved",
                "resolved_at": SNAPSHOT_AT,
                "resolved_by": request.resolved_by,
                "notes": request.notes,
            }
        )
        self.groups[group_id] = resolved
        return resolved


@pytest.fixture()
def fake_service() -> FakeRevenueRiskService:
    return FakeRevenueRiskService()


@pytest.fixture()
def client(fake_service: FakeRevenueRiskService) -> Iterator[TestClient]:
    os.environ["ADMIN_REFRESH_TOKEN"] = "test-token"
    get_settings.cache_clear()
    app = create_app()
    app.dependency_overrides[get_revenue_risk_service] = lambda: fake_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        os.environ.pop("ADMIN_REFRESH_TOKEN", None)
        get_settings.cache_clear()
