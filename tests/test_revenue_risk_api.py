from __future__ import annotations

import os

import httpx
import pytest
from fastapi.testclient import TestClient

from src.core.config import get_settings


def test_refresh_requires_token(client: TestClient, fake_service) -> None:
    response = client.post("/api/v1/admin/refresh-cache")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"

    response = client.post("/api/v1/admin/refresh-cache", headers={"x-admin-refresh-token": "wrong"})
    assert response.status_code == 401
    assert fake_service.refresh_calls == []


def test_refresh_disabled_without_configured_token(client: TestClient) -> None:
    os.environ.pop("ADMIN_REFRESH_TOKEN", None)
    get_settings.cache_clear()
    response = client.post("/api/v1/admin/refresh-cache", headers={"x-admin-refresh-token": "test-token"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_request"


def test_refresh_runs_with_token(client: TestClient, fake_service) -> None:
    response = client.post(
        "/api/v1/admin/refresh-cache?year=2025&dry_run=true",
        headers={"x-admin-refresh-token": "test-token"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["data"]["targetYear"] == 2025
    assert body["data"]["dryRun"] is True
    assert body["data"]["segmentCounts"] == {"A": 1, "C": 1}
    assert body["meta"]["timeWindow"] == "2025"
    assert fake_service.refresh_calls == [(2025, True)]


def test_refresh_rejects_out_of_range_year(client: TestClient) -> None:
    response = client.post(
        "/api/v1/admin/refresh-cache?year=1900",
        headers={"x-admin-refresh-token": "test-token"},
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_at_risk_accounts_paginated(client: TestClient) -> None:
    response = client.get("/api/v1/at-risk-accounts?page=2&page_size=2")
    assert response.status_code == 200
    body = response.json()
    assert [row["accountId"] for row in body["data"]] == ["acct-3"]
    assert body["pagination"] == {"page": 2, "pageSize": 2, "totalItems": 3, "totalPages": 2}
    assert body["meta"]["source"] == "notification_cache:at-risk-accounts"
    assert body["meta"]["timeWindow"] == "180d"
    assert body["meta"]["isStale"] is True
    assert body["meta"]["dataStatus"] == "stale"


def test_neglected_accounts(client: TestClient) -> None:
    response = client.get("/api/v1/neglected-accounts")
    assert response.status_code == 200
    body = response.json()
    assert body["data"][0]["daysSinceInteraction"] is None
    assert body["data"][0]["thresholdDays"] == 90
    assert body["meta"]["dataStatus"] == "fresh"


def test_revenue_segments_filter(client: TestClient) -> None:
    response = client.get("/api/v1/revenue-segments?segment=a")
    assert response.status_code == 200
    body = response.json()
    assert [row["accountId"] for row in body["data"]] == ["acct-1"]
    assert body["data"][0]["segmentByYear"] == {"2026": "A"}
    assert body["meta"]["timeWindow"] == "2026"


def test_revenue_segments_rejects_unknown_segment(client: TestClient) -> None:
    response = client.get("/api/v1/revenue-segments?segment=Z")
    assert response.status_code == 422


def test_duplicate_group_lifecycle(client: TestClient) -> None:
    response = client.get("/api/v1/duplicate-estimates")
    assert response.status_code == 200
    groups = response.json()["data"]
    assert groups[0]["estimateIds"] == ["est-1", "est-2"]
    assert groups[0]["status"] == "detected"

    response = client.post(
        "/api/v1/duplicate-estimates/group-1/resolve",
        json={"resolvedBy": "ops@example.com", "notes": "Imported twice"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "resolved"
    assert response.json()["data"]["resolvedBy"] == "ops@example.com"

    assert client.get("/api/v1/duplicate-estimates").json()["data"] == []
    resolved = client.get("/api/v1/duplicate-estimates?include_resolved=true").json()["data"]
    assert len(resolved) == 1

    response = client.post("/api/v1/duplicate-estimates/group-1/resolve", json={})
    assert response.status_code == 400


def test_resolve_unknown_group(client: TestClient) -> None:
    response = client.post("/api/v1/duplicate-estimates/nope/resolve", json={})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_data_store_failure_maps_to_502(
    client: TestClient, fake_service, monkeypatch: pytest.MonkeyPatch
) -> None:
    def fail() -> None:
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(fake_service, "get_neglected_accounts", fail)
    response = client.get("/api/v1/neglected-accounts")
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "upstream_error"
