"""Correlation service: pairwise Pearson correlations of daily returns.

Each pair is aligned on exact date matches (inner join) before the
coefficient is computed, so tickers with different coverage are compared
only where both traded.  Pairs below the overlap floor are reported as
skipped instead of being stored with a low-confidence value.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from itertools import combinations

import numpy as np
import pandas as pd

from src.domain.models.correlation import CorrelationEntry, CorrelationMatrix, SkippedPair
from src.domain.models.market_data import ReturnSeries
from src.domain.services.cancellation import AbortCheck, raise_if_aborted

logger = logging.getLogger(__name__)

DEFAULT_MIN_OBSERVATIONS = 20
DEFAULT_MAX_TICKERS = 50
_ZERO_VARIANCE = 1e-14


class CorrelationService:
    """Pure computation service for correlation matrices.

    The ticker universe is capped at max_tickers to bound the O(N²) pair
    count.  Truncation keeps the first max_tickers in input order; the rest
    are logged and listed in CorrelationMatrix.excluded_tickers.
    """

    def compute_matrix(
        self,
        series: Sequence[ReturnSeries],
        lookback: int,
        min_observations: int = DEFAULT_MIN_OBSERVATIONS,
        max_tickers: int = DEFAULT_MAX_TICKERS,
        excluded: Mapping[str, str] | None = None,
        should_abort: AbortCheck | None = None,
    ) -> CorrelationMatrix:
        """Correlate every unordered pair of tickers.

        Args:
            series: one ReturnSeries per ticker; duplicates keep the first.
            lookback: number of most recent observations used per ticker.
            min_observations: overlap floor below which a pair is skipped.
            max_tickers: cap on the number of tickers paired.
            excluded: tickers already dropped upstream (fetch failure, no
                data), carried into the result.
            should_abort: polled before every pair.

        Raises:
            ComputationAbortedError: should_abort fired.
        """
        excluded_tickers: dict[str, str] = dict(excluded or {})
        unique: dict[str, ReturnSeries] = {}
        for s in series:
            unique.setdefault(s.ticker, s)

        tickers, truncated = self.truncate(list(unique), max_tickers)
        excluded_tickers.update(truncated)

        windows = {t: unique[t].tail(lookback).to_series() for t in tickers}
        entries: list[CorrelationEntry] = []
        skipped: list[SkippedPair] = []

        for a, b in combinations(tickers, 2):
            raise_if_aborted(should_abort, "correlation")
            joined = pd.concat({a: windows[a], b: windows[b]}, axis=1, join="inner").dropna()
            n = len(joined)
            if n < min_observations:
                skipped.append(
                    SkippedPair(
                        ticker_a=min(a, b),
                        ticker_b=max(a, b),
                        observations=n,
                        reason=f"{n} overlapping observations (minimum {min_observations})",
                    )
                )
                continue
            corr = self.pearson(joined[a].to_numpy(), joined[b].to_numpy())
            if corr is None:
                skipped.append(
                    SkippedPair(
                        ticker_a=min(a, b),
                        ticker_b=max(a, b),
                        observations=n,
                        reason="zero variance",
                    )
                )
                continue
            entries.append(CorrelationEntry(ticker_a=a, ticker_b=b, corr=corr, observations=n))

        logger.info(
            "Computed %d correlations over %d tickers (%d pairs skipped)",
            len(entries),
            len(tickers),
            len(skipped),
        )
        return CorrelationMatrix(
            period_days=lookback,
            min_observations=min_observations,
            tickers=tickers,
            entries=entries,
            skipped_pairs=skipped,
            excluded_tickers=excluded_tickers,
        )

    @staticmethod
    def truncate(tickers: Sequence[str], max_tickers: int) -> tuple[list[str], dict[str, str]]:
        """Keep the first max_tickers unique tickers; map the rest to the reason."""
        unique = list(dict.fromkeys(tickers))
        kept, dropped = unique[:max_tickers], unique[max_tickers:]
        if dropped:
            logger.warning(
                "Correlation universe truncated to %d tickers; excluded: %s",
                max_tickers,
                ", ".join(dropped),
            )
        return kept, {t: f"universe truncated to {max_tickers} tickers" for t in dropped}

    @staticmethod
    def pearson(x: np.ndarray, y: np.ndarray) -> float | None:
        """Pearson coefficient clipped to [−1, 1]; None if either side is constant."""
        if len(x) != len(y):
            raise ValueError(f"Arrays differ in length ({len(x)} vs {len(y)})")
        if len(x) < 2 or np.var(x) < _ZERO_VARIANCE or np.var(y) < _ZERO_VARIANCE:
            return None
        corr = float(np.corrcoef(x, y)[0, 1])
        return float(np.clip(corr, -1.0, 1.0))
