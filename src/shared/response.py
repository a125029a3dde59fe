from __future__ import annotations

from datetime import date, datetime
from math import ceil
from typing import Generic, Optional, Sequence, TypeVar

from src.shared.base import BaseSchema


T = TypeVar("T")

CALCULATION_VERSION = "v1"


class Pagination(BaseSchema):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class Meta(BaseSchema):
    as_of_date: str
    source: str
    time_window: str
    calculation_version: str = CALCULATION_VERSION
    data_status: Optional[str] = None
    is_stale: Optional[bool] = None
    generated_at: Optional[str] = None
    expires_at: Optional[str] = None


class ResponseEnvelope(BaseSchema, Generic[T]):
    data: T
    pagination: Optional[Pagination] = None
    meta: Optional[Meta] = None


def build_meta(
    source: str,
    time_window: str,
    *,
    is_stale: Optional[bool] = None,
    generated_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
) -> Meta:
    data_status = None
    if is_stale is not None:
        data_status = "stale" if is_stale else "fresh"
    return Meta(
        as_of_date=date.today().isoformat(),
        source=source,
        time_window=time_window,
        data_status=data_status,
        is_stale=is_stale,
        generated_at=generated_at.isoformat() if generated_at else None,
        expires_at=expires_at.isoformat() if expires_at else None,
    )


def build_pagination(page: int, page_size: int, total_items: int) -> Pagination:
    total_pages = ceil(total_items / page_size) if page_size else 0
    return Pagination(
        page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )


def paginate_list(items: Sequence[T], page: int, page_size: int) -> tuple[list[T], Pagination]:
    pagination = build_pagination(page, page_size, len(items))
    start_index = (page - 1) * page_size
    return list(items[start_index : start_index + page_size]), pagination
