"""SQLAlchemy implementation of ResultCacheRepository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.cache import CachedResult
from src.domain.repositories.cache import ResultCacheRepository
from src.infrastructure.persistence.models.cache import CachedResultRow


class SqlResultCacheRepository(ResultCacheRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_domain(row: CachedResultRow) -> CachedResult:
        return CachedResult(
            cache_key=row.cache_key,
            payload=row.payload,
            fetched_at=row.fetched_at,
            expires_at=row.expires_at,
        )

    async def get(self, cache_key: str) -> CachedResult | None:
        stmt = select(CachedResultRow).where(CachedResultRow.cache_key == cache_key)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return self._to_domain(row) if row else None

    async def put(self, cache_key: str, payload: dict[str, Any], ttl_seconds: int) -> None:
        now = datetime.now(timezone.utc)
        stmt = pg_insert(CachedResultRow).values(
            cache_key=cache_key,
            payload=payload,
            fetched_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key"],
            set_={
                "payload": stmt.excluded.payload,
                "fetched_at": stmt.excluded.fetched_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        await self._session.execute(stmt)
