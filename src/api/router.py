from __future__ import annotations

from fastapi import APIRouter

from src.api.admin import router as admin_router
from src.api.health import router as health_router
from src.api.revenue_risk import router as revenue_risk_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(admin_router)
api_router.include_router(revenue_risk_router)
