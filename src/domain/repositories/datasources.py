"""Market data source strategy.

A MarketDataSource is where the engine gets bars from.  The live source reads
bars that the sync job has written into the bar store; the synthetic source
generates a seeded random walk for demos and tests.  The engine never knows
which one it holds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from src.domain.models.market_data import Bar


class MarketDataSource(ABC):
    """Read-only provider of daily bars."""

    @abstractmethod
    async def fetch_bars(self, ticker: str, start: date, end: date) -> list[Bar]:
        """Return bars for the ticker in [start, end], ascending by date.

        Raises UpstreamFetchError when the provider cannot be reached.  An
        empty list means the provider has no bars for the range.
        """

    @property
    def is_live(self) -> bool:
        return False
