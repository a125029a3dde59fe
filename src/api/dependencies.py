from __future__ import annotations

from functools import lru_cache

from src.repositories.crm_repository import CrmRepository
from src.repositories.duplicate_estimates_repository import DuplicateEstimatesRepository
from src.repositories.notification_cache_repository import NotificationCacheRepository
from src.services.revenue_risk_service import RevenueRiskService


@lru_cache
def get_crm_repository() -> CrmRepository:
    return CrmRepository()


@lru_cache
def get_notification_cache_repository() -> NotificationCacheRepository:
    return NotificationCacheRepository()


@lru_cache
def get_duplicate_estimates_repository() -> DuplicateEstimatesRepository:
    return DuplicateEstimatesRepository()


def get_revenue_risk_service() -> RevenueRiskService:
    return RevenueRiskService(
        crm_repository=get_crm_repository(),
        cache_repository=get_notification_cache_repository(),
        duplicates_repository=get_duplicate_estimates_repository(),
    )
