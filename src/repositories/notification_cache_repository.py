from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.core.supabase import SupabaseClient
from src.models.crm import CacheEntryRecord

logger = logging.getLogger(__name__)

CACHE_TABLE = "notification_cache"


class NotificationCacheRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    @staticmethod
    def _to_iso_utc(dt: datetime) -> str:
        return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")

    def get_entry(self, cache_key: str) -> Optional[CacheEntryRecord]:
        rows = self.client.select(
            table=CACHE_TABLE,
            select="cache_key,cache_data,expires_at,updated_at",
            filters=[("cache_key", f"eq.{cache_key}")],
            limit=1,
        )
        if not rows:
            return None
        return CacheEntryRecord.model_validate(rows[0])

    def write_entry(
        self,
        cache_key: str,
        cache_data: Dict[str, Any],
        expires_at: datetime,
        compare_and_swap: bool = True,
    ) -> bool:
        """Store a snapshot; returns False when a newer snapshot is already cached.

        With ``compare_and_swap`` the row is only replaced when its
        ``snapshot_at`` is older than the incoming one, so a slow refresh
        cannot overwrite the result of a refresh that read fresher data.
        """
        payload = {
            "cache_key": cache_key,
            "cache_data": cache_data,
            "expires_at": self._to_iso_utc(expires_at),
        }
        if not compare_and_swap:
            self.client.insert(CACHE_TABLE, payload, upsert=True, on_conflict="cache_key")
            return True

        snapshot_at = str(cache_data["snapshot_at"])
        updated = self.client.update(
            table=CACHE_TABLE,
            payload={"cache_data": cache_data, "expires_at": payload["expires_at"]},
            filters=[
                ("cache_key", f"eq.{cache_key}"),
                ("cache_data->>snapshot_at", f"lt.{snapshot_at}"),
            ],
        )
        if updated:
            return True

        existing = self.get_entry(cache_key)
        if existing is None or existing.cache_data.get("snapshot_at") is None:
            # First write for this key, or a row written before snapshots were versioned.
            self.client.insert(CACHE_TABLE, payload, upsert=True, on_conflict="cache_key")
            return True

        logger.warning(
            "Skipped stale write for %s: cached snapshot %s is not older than %s",
            cache_key,
            existing.cache_data.get("snapshot_at"),
            snapshot_at,
        )
        return False
