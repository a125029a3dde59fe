from __future__ import annotations

from typing import Any, List

from src.analytics.revenue_attribution import group_estimates_by_account
from src.analytics.segmentation import (
    assign_segments,
    classify_segment,
    is_project_only,
    segment_for_share,
    segments_by_year,
)
from src.models.crm import AccountRecord, EstimateRecord


def _estimate(estimate_id: str, account_id: str, price: float, **overrides: Any) -> EstimateRecord:
    payload = {
        "id": estimate_id,
        "account_id": account_id,
        "status": "won",
        "estimate_type": "service",
        "total_price": price,
        "estimate_date": "2025-05-01",
    }
    payload.update(overrides)
    return EstimateRecord.model_validate(payload)


def _accounts(*ids: str) -> List[AccountRecord]:
    return [AccountRecord(id=account_id, name=account_id.title()) for account_id in ids]


def test_share_thresholds_are_inclusive() -> None:
    assert segment_for_share(15, 100) == "A"
    assert segment_for_share(14.99, 100) == "B"
    assert segment_for_share(5, 100) == "B"
    assert segment_for_share(4.99, 100) == "C"


def test_no_revenue_signal_defaults_to_c() -> None:
    assert segment_for_share(0, 0) == "C"
    assert segment_for_share(100, 0) == "C"
    assert segment_for_share(0, 1000) == "C"


def test_assign_segments_uses_one_denominator() -> None:
    accounts = _accounts("a", "b", "c", "d")
    estimates = [
        _estimate("e1", "a", 150),
        _estimate("e2", "b", 50),
        _estimate("e3", "c", 790),
        _estimate("e4", "d", 10),
    ]
    segments = assign_segments(accounts, group_estimates_by_account(estimates), 2025)
    assert segments == {"a": "A", "b": "B", "c": "A", "d": "C"}


def test_project_only_accounts_are_d_regardless_of_share() -> None:
    accounts = _accounts("project", "mixed")
    estimates = [
        _estimate("p1", "project", 5000, estimate_type="Standard"),
        _estimate("m1", "mixed", 300, estimate_type="standard"),
        _estimate("m2", "mixed", 300, estimate_type="service"),
    ]
    grouped = group_estimates_by_account(estimates)

    assert is_project_only(accounts[0], grouped["project"], 2025)
    assert not is_project_only(accounts[1], grouped["mixed"], 2025)
    segments = assign_segments(accounts, grouped, 2025)
    assert segments["project"] == "D"
    assert segments["mixed"] == "B"


def test_project_estimates_outside_target_year_do_not_force_d() -> None:
    account = AccountRecord(id="acct")
    estimates = [
        _estimate("old", "acct", 500, estimate_type="standard", estimate_date="2023-03-01"),
        _estimate("svc", "acct", 500),
    ]
    assert classify_segment(account, 1000, estimates, 2025) == "A"


def test_manual_revenue_participates_in_share() -> None:
    accounts = [AccountRecord(id="manual", annual_revenue=200), AccountRecord(id="est")]
    estimates = [_estimate("e1", "est", 800)]
    segments = assign_segments(accounts, group_estimates_by_account(estimates), 2025)
    assert segments == {"manual": "A", "est": "A"}


def test_assign_segments_is_idempotent() -> None:
    accounts = _accounts("a", "b", "c")
    grouped = group_estimates_by_account(
        [_estimate("e1", "a", 10), _estimate("e2", "b", 70), _estimate("e3", "c", 920)]
    )
    first = assign_segments(accounts, grouped, 2025)
    second = assign_segments(accounts, grouped, 2025)
    assert first == second == {"a": "C", "b": "B", "c": "A"}


def test_raising_revenue_never_lowers_tier() -> None:
    order = {"C": 0, "B": 1, "A": 2}
    previous = "C"
    for revenue in (0, 20, 60, 100, 200, 900):
        segment = segment_for_share(revenue, 1000)
        assert order[segment] >= order[previous]
        previous = segment


def test_segments_by_year_covers_years_with_revenue() -> None:
    accounts = _accounts("a", "b")
    estimates = [
        _estimate("e1", "a", 900, estimate_date="2024-02-01"),
        _estimate("e2", "b", 100, estimate_date="2024-02-01"),
        _estimate("e3", "b", 1000, estimate_date="2025-02-01"),
    ]
    yearly = segments_by_year(accounts, group_estimates_by_account(estimates))
    assert yearly == {
        "a": {"2024": "A"},
        "b": {"2024": "B", "2025": "A"},
    }
