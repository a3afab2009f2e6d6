"""SQLAlchemy implementation of CorrelationRepository."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.models.correlation import CorrelationEntry, CorrelationMatrix
from src.domain.repositories.correlations import CorrelationRepository
from src.infrastructure.persistence.models.correlations import TickerCorrelation


class SqlCorrelationRepository(CorrelationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _to_domain(row: TickerCorrelation) -> CorrelationEntry:
        return CorrelationEntry(
            ticker_a=row.ticker_a,
            ticker_b=row.ticker_b,
            corr=row.corr,
            observations=row.observations,
        )

    async def upsert(self, matrix: CorrelationMatrix) -> int:
        if not matrix.entries:
            return 0
        values = [
            {
                "ticker_a": e.ticker_a,
                "ticker_b": e.ticker_b,
                "period_days": matrix.period_days,
                "corr": e.corr,
                "observations": e.observations,
                "min_observations": matrix.min_observations,
                "computed_at": matrix.computed_at,
            }
            for e in matrix.entries
        ]
        stmt = pg_insert(TickerCorrelation).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["ticker_a", "ticker_b", "period_days"],
            set_={
                "corr": stmt.excluded.corr,
                "observations": stmt.excluded.observations,
                "min_observations": stmt.excluded.min_observations,
                "computed_at": stmt.excluded.computed_at,
            },
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def get_matrix(
        self,
        period_days: int,
        tickers: list[str] | None = None,
    ) -> CorrelationMatrix | None:
        stmt = (
            select(TickerCorrelation)
            .where(TickerCorrelation.period_days == period_days)
            .order_by(TickerCorrelation.ticker_a, TickerCorrelation.ticker_b)
        )
        if tickers is not None:
            wanted = [t.upper() for t in tickers]
            stmt = stmt.where(
                TickerCorrelation.ticker_a.in_(wanted),
                TickerCorrelation.ticker_b.in_(wanted),
            )
        result = await self._session.execute(stmt)
        rows = list(result.scalars())
        if not rows:
            return None

        if tickers is not None:
            universe = list(dict.fromkeys(t.upper() for t in tickers))
        else:
            universe = sorted({r.ticker_a for r in rows} | {r.ticker_b for r in rows})
        return CorrelationMatrix(
            period_days=period_days,
            min_observations=min(r.min_observations for r in rows),
            tickers=universe,
            entries=[self._to_domain(r) for r in rows],
            computed_at=max(r.computed_at for r in rows),
        )
