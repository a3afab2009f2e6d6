"""SQLAlchemy implementation of BarRepository."""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.market_data import Bar
from src.domain.repositories.bars import BarRepository
from src.infrastructure.persistence.models.market_data import MarketDailyBar

# asyncpg caps a statement at 32 767 bind parameters; 10 columns per row.
_UPSERT_CHUNK = 1000


class SqlBarRepository(BarRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_domain(row: MarketDailyBar) -> Bar:
        return Bar(
            ticker=row.ticker,
            bar_date=row.bar_date,
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume,
            vwap=row.vwap,
            transactions=row.transactions,
        )

    async def get_bars(
        self,
        ticker: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Bar]:
        stmt = (
            select(MarketDailyBar)
            .where(MarketDailyBar.ticker == ticker.upper())
            .order_by(MarketDailyBar.bar_date.asc())
        )
        if start is not None:
            stmt = stmt.where(MarketDailyBar.bar_date >= start)
        if end is not None:
            stmt = stmt.where(MarketDailyBar.bar_date <= end)
        result = await self._session.execute(stmt)
        return [self._to_domain(row) for row in result.scalars()]

    async def get_latest_date(self, ticker: str) -> date | None:
        stmt = select(func.max(MarketDailyBar.bar_date)).where(
            MarketDailyBar.ticker == ticker.upper()
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def bulk_upsert(self, bars: list[Bar]) -> int:
        if not bars:
            return 0
        written = 0
        for offset in range(0, len(bars), _UPSERT_CHUNK):
            values = [
                {
                    "ticker": b.ticker,
                    "bar_date": b.bar_date,
                    "open": b.open,
                    "high": b.high,
                    "low": b.low,
                    "close": b.close,
                    "volume": b.volume,
                    "vwap": b.vwap,
                    "transactions": b.transactions,
                }
                for b in bars[offset : offset + _UPSERT_CHUNK]
            ]
            stmt = pg_insert(MarketDailyBar).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["ticker", "bar_date"],
                set_={
                    "open": stmt.excluded.open,
                    "high": stmt.excluded.high,
                    "low": stmt.excluded.low,
                    "close": stmt.excluded.close,
                    "volume": stmt.excluded.volume,
                    "vwap": stmt.excluded.vwap,
                    "transactions": stmt.excluded.transactions,
                    "pulled_at": func.now(),
                },
            )
            result = await self._session.execute(stmt)
            written += result.rowcount
        return written
