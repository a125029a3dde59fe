from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Ignore unrelated env keys so the CRM's shared .env can be reused as-is.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Revenue Risk Engine"
    environment: str = "development"
    api_prefix: str = "/api/v1"
    cors_allow_origins: str = "http://localhost:5173,http://localhost:3000"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    supabase_url: str = Field(..., alias="SUPABASE_URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None, alias="SUPABASE_SERVICE_ROLE_KEY"
    )
    supabase_anon_key: Optional[str] = Field(default=None, alias="SUPABASE_ANON_KEY")
    fetch_page_size: int = Field(default=1000, alias="FETCH_PAGE_SIZE")

    admin_refresh_token: Optional[str] = Field(default=None, alias="ADMIN_REFRESH_TOKEN")
    cache_ttl_minutes: int = Field(default=5, alias="CACHE_TTL_MINUTES")
    cache_compare_and_swap: bool = Field(default=True, alias="CACHE_COMPARE_AND_SWAP")

    at_risk_days_threshold: int = Field(default=180, alias="AT_RISK_DAYS_THRESHOLD")
    at_risk_exclude_renewed: bool = Field(default=False, alias="AT_RISK_EXCLUDE_RENEWED")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    settings = get_settings()
    return [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
