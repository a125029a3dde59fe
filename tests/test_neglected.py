from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from src.analytics.neglected import detect_neglected_accounts, segment_for_year
from src.models.crm import AccountRecord, SnoozeRecord

TODAY = date(2026, 3, 1)


def _account(account_id: str, days_ago: Any, segment: str = "C", **overrides: Any) -> AccountRecord:
    payload = {
        "id": account_id,
        "name": account_id.title(),
        "revenue_segment": segment,
        "last_interaction_date": (
            (TODAY - timedelta(days=days_ago)).isoformat() if days_ago is not None else None
        ),
    }
    payload.update(overrides)
    return AccountRecord.model_validate(payload)


def test_thresholds_depend_on_segment() -> None:
    accounts = [
        _account("a-30", 30, "A"),
        _account("a-31", 31, "A"),
        _account("b-31", 31, "B"),
        _account("c-90", 90, "C"),
        _account("c-91", 91, "C"),
        _account("d-60", 60, "D"),
    ]
    result = detect_neglected_accounts(accounts, [], TODAY, 2026)
    assert [(row.account_id, row.days_since_interaction, row.threshold_days) for row in result] == [
        ("a-31", 31, 30),
        ("b-31", 31, 30),
        ("c-91", 91, 90),
    ]


def test_missing_interaction_counts_as_neglected() -> None:
    result = detect_neglected_accounts([_account("silent", None, "B")], [], TODAY, 2026)
    assert len(result) == 1
    assert result[0].days_since_interaction is None
    assert result[0].threshold_days == 30


def test_excluded_accounts() -> None:
    accounts = [
        _account("na", 400, icp_status=" NA "),
        _account("archived", 400, archived=True),
        _account("snoozed", 400),
        _account("kept", 400, icp_status="fit"),
    ]
    snoozes = [
        SnoozeRecord(
            notification_type="neglected_account",
            related_account_id="snoozed",
            snoozed_until="2026-04-01T00:00:00Z",
        )
    ]
    result = detect_neglected_accounts(accounts, snoozes, TODAY, 2026)
    assert [row.account_id for row in result] == ["kept"]


def test_year_segment_takes_precedence() -> None:
    account = _account("acct", 45, "C", segment_by_year={"2026": "A", "2025": "C"})
    assert segment_for_year(account, 2026) == "A"
    assert segment_for_year(account, 2024) == "C"
    result = detect_neglected_accounts([account], [], TODAY, 2026)
    assert result[0].revenue_segment == "A"
    assert result[0].threshold_days == 30


def test_unclassified_account_uses_default_segment() -> None:
    account = _account("new", 100, segment=None)
    assert segment_for_year(account, 2026) == "C"
