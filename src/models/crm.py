from __future__ import annotations

from datetime import date, datetime
from math import isfinite
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.shared.time import parse_date, parse_timestamp


def _to_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_money(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_flag(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"true", "t", "1", "yes"}
    return bool(value)


class AccountRecord(BaseModel):
    id: str
    name: Optional[str] = None
    archived: bool = False
    annual_revenue: Optional[float] = None
    revenue_segment: Optional[str] = None
    segment_by_year: Optional[Dict[str, str]] = None
    revenue_by_year: Optional[Dict[str, float]] = None
    last_interaction_date: Optional[date] = None
    icp_status: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _to_optional_str(value) or value

    @field_validator("archived", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return _to_flag(value)

    @field_validator("annual_revenue", mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> Optional[float]:
        return _to_money(value)

    @field_validator("last_interaction_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    # Stored jsonb maps may carry null or junk entries; keep only usable ones.
    @field_validator("segment_by_year", mode="before")
    @classmethod
    def _coerce_segment_map(cls, value: Any) -> Optional[Dict[str, str]]:
        if not isinstance(value, dict):
            return None
        return {
            str(year): segment.strip()
            for year, segment in value.items()
            if isinstance(segment, str) and segment.strip()
        }

    @field_validator("revenue_by_year", mode="before")
    @classmethod
    def _coerce_revenue_map(cls, value: Any) -> Optional[Dict[str, float]]:
        if not isinstance(value, dict):
            return None
        cleaned = {str(year): _to_money(amount) for year, amount in value.items()}
        return {
            year: amount
            for year, amount in cleaned.items()
            if amount is not None and isfinite(amount)
        }


class EstimateRecord(BaseModel):
    id: str
    account_id: Optional[str] = None
    estimate_number: Optional[str] = None
    status: Optional[str] = None
    estimate_type: Optional[str] = None
    total_price: Optional[float] = None
    total_price_with_tax: Optional[float] = None
    estimate_date: Optional[date] = None
    contract_start: Optional[date] = None
    contract_end: Optional[date] = None
    division: Optional[str] = None
    address: Optional[str] = None
    project_name: Optional[str] = None
    exclude_stats: bool = False
    archived: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _to_optional_str(value) or value

    @field_validator("account_id", "estimate_number", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> Optional[str]:
        return _to_optional_str(value)

    @field_validator("total_price", "total_price_with_tax", mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> Optional[float]:
        return _to_money(value)

    @field_validator("estimate_date", "contract_start", "contract_end", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    @field_validator("exclude_stats", "archived", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return _to_flag(value)


class SnoozeRecord(BaseModel):
    id: Optional[str] = None
    notification_type: Optional[str] = None
    related_account_id: Optional[str] = None
    snoozed_until: Optional[datetime] = None

    @field_validator("id", "related_account_id", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> Optional[str]:
        return _to_optional_str(value)

    @field_validator("snoozed_until", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)


class DuplicateGroupRecord(BaseModel):
    id: Optional[str] = None
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    division: Optional[str] = None
    address: Optional[str] = None
    estimate_ids: List[str] = Field(default_factory=list)
    estimate_numbers: List[Optional[str]] = Field(default_factory=list)
    contract_ends: List[Optional[date]] = Field(default_factory=list)
    detected_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("estimate_ids", mode="before")
    @classmethod
    def _coerce_id_list(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if _to_optional_str(item)]

    # estimate_numbers and contract_ends are parallel to estimate_ids; blanks keep their slot.
    @field_validator("estimate_numbers", mode="before")
    @classmethod
    def _coerce_number_list(cls, value: Any) -> List[Optional[str]]:
        if not isinstance(value, list):
            return []
        return [_to_optional_str(item) for item in value]

    @field_validator("contract_ends", mode="before")
    @classmethod
    def _coerce_date_list(cls, value: Any) -> List[Optional[date]]:
        if not isinstance(value, list):
            return []
        return [parse_date(item) for item in value]

    @property
    def status(self) -> str:
        return "resolved" if self.resolved_at is not None else "detected"


class CacheEntryRecord(BaseModel):
    cache_key: str
    cache_data: Dict[str, Any] = Field(default_factory=dict)
    expires_at: datetime
    updated_at: Optional[datetime] = None
