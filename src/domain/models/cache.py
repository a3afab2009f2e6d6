"""Cached computation result."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CachedResult(BaseModel):
    """A JSON payload stored under a content-derived cache key.

    Entries are written as whole blobs; an entry past expires_at is stale and
    must be recomputed rather than served.
    """

    model_config = ConfigDict(frozen=True)

    cache_key: str = Field(min_length=1)
    payload: dict[str, Any]
    fetched_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls,
        cache_key: str,
        payload: dict[str, Any],
        ttl_seconds: int,
        now: datetime | None = None,
    ) -> CachedResult:
        fetched_at = now or datetime.now(timezone.utc)
        return cls(
            cache_key=cache_key,
            payload=payload,
            fetched_at=fetched_at,
            expires_at=fetched_at + timedelta(seconds=ttl_seconds),
        )

    def is_stale(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at
