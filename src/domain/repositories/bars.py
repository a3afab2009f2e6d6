"""Bar repository interface.

BarRepository is a specialised time-series interface — daily bars have no
meaningful single-entity CRUD lifecycle.  They are ingested in bulk by the
sync job and queried by ticker + date range.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from src.domain.models.market_data import Bar


class BarRepository(ABC):
    """Read/write interface for daily OHLCV bars."""

    @abstractmethod
    async def get_bars(
        self,
        ticker: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Bar]:
        """Return bars for one ticker in ascending date order.

        start and end are inclusive.  When omitted the full stored history
        is returned.
        """

    @abstractmethod
    async def get_latest_date(self, ticker: str) -> date | None:
        """Return the most recent bar_date stored for the ticker, or None."""

    @abstractmethod
    async def bulk_upsert(self, bars: list[Bar]) -> int:
        """Insert bars, updating existing (ticker, bar_date) rows.

        Returns the number of rows affected.
        """
