"""Correlation repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models.correlation import CorrelationMatrix


class CorrelationRepository(ABC):
    """Persistence of pairwise correlations keyed by (ticker_a, ticker_b, period_days)."""

    @abstractmethod
    async def upsert(self, matrix: CorrelationMatrix) -> int:
        """Write every entry of the matrix, replacing existing pairs.

        Returns the number of pairs written.
        """

    @abstractmethod
    async def get_matrix(
        self,
        period_days: int,
        tickers: list[str] | None = None,
    ) -> CorrelationMatrix | None:
        """Return the stored matrix for the lookback period.

        When tickers is given only pairs with both sides in the list are
        returned.  None when nothing is stored for the period.
        """
