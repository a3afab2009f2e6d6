"""Return series service: per-ticker returns, date alignment, portfolio returns.

Missing-bar policy: a date on which any constituent has no bar is dropped
from the combined series.  Returns are computed from the aligned closes, so
every portfolio return spans the same interval for every asset (a gap in one
ticker's history turns into a multi-day return for all of them).
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, timedelta

import numpy as np
import pandas as pd

from src.domain.errors import InsufficientDataError
from src.domain.models.enums import RebalanceFrequency, ReturnType
from src.domain.models.market_data import Bar, ReturnPoint, ReturnSeries
from src.domain.models.portfolio import (
    AssetContribution,
    PortfolioAllocation,
    PortfolioReturnSeries,
)

_CALENDAR_DAYS_PER_TRADING_DAY = 365.0 / 252.0
_CALENDAR_SLACK_DAYS = 7


def calendar_span(trading_days: int) -> timedelta:
    """Calendar window expected to hold at least `trading_days` sessions."""
    return timedelta(
        days=math.ceil(trading_days * _CALENDAR_DAYS_PER_TRADING_DAY) + _CALENDAR_SLACK_DAYS
    )


class ReturnSeriesService:
    """Pure computation service turning bars into return series.

    Responsibilities (single, focused):
    - Convert one ticker's bars to a ReturnSeries (simple and log).
    - Convert a price DataFrame to a return DataFrame.
    - Align several tickers' closes on their common dates.
    - Combine asset returns into portfolio returns and attribute them.

    The class is stateless and deterministic; all inputs are passed per-call.
    """

    def build_return_series(self, ticker: str, bars: list[Bar]) -> ReturnSeries:
        """Build the return series for one ticker.

        Bars are sorted by date first; the first bar yields no return, so N
        bars give N − 1 points.

        Raises:
            InsufficientDataError: bars is empty.
            ValueError: two bars share a date.
        """
        if not bars:
            raise InsufficientDataError(
                "No bars for the requested range", ticker=ticker, calculation="returns"
            )
        closes = self.closes(bars)
        if closes.index.has_duplicates:
            dup = closes.index[closes.index.duplicated()][0]
            raise ValueError(f"{ticker}: duplicate bar for {dup}")

        simple = closes / closes.shift(1) - 1
        log = np.log(closes / closes.shift(1))
        points = [
            ReturnPoint(bar_date=d, simple_return=float(s), log_return=float(lg))
            for d, s, lg in zip(closes.index[1:], simple.iloc[1:], log.iloc[1:])
        ]
        return ReturnSeries(ticker=ticker.upper(), points=points)

    def closes(self, bars: list[Bar]) -> pd.Series:
        """Closing prices indexed by bar_date, ascending."""
        ordered = sorted(bars, key=lambda b: b.bar_date)
        return pd.Series(
            [b.close for b in ordered],
            index=pd.Index([b.bar_date for b in ordered], name="bar_date"),
            dtype=float,
        )

    def compute_returns(
        self,
        prices: pd.DataFrame,
        return_type: ReturnType = ReturnType.SIMPLE,
    ) -> pd.DataFrame:
        """Compute simple or log returns from a price DataFrame.

          Simple: r_{i,t} = P_{i,t} / P_{i,t-1} - 1
          Log:    r_{i,t} = ln(P_{i,t} / P_{i,t-1})

        The first row is always dropped because there is no prior period.

        Args:
            prices: DataFrame with tickers as columns and dates as index.
            return_type: ReturnType.SIMPLE or ReturnType.LOG.
        """
        if return_type == ReturnType.SIMPLE:
            returns = prices / prices.shift(1) - 1
        elif return_type == ReturnType.LOG:
            returns = np.log(prices / prices.shift(1))
        else:
            raise ValueError(f"Unsupported return type: {return_type!r}")
        return returns.iloc[1:]

    def align_closes(
        self,
        bars_by_ticker: Mapping[str, list[Bar]],
        start: date | None = None,
        end: date | None = None,
    ) -> pd.DataFrame:
        """Closes of every ticker on the dates all of them traded.

        Columns keep the mapping's order.  start / end only annotate errors.

        Raises:
            InsufficientDataError: a ticker has no bars, or the tickers share
                fewer than two dates.
        """
        columns: dict[str, pd.Series] = {}
        for ticker, bars in bars_by_ticker.items():
            if not bars:
                raise InsufficientDataError(
                    "No bars for the requested range",
                    ticker=ticker,
                    start=start,
                    end=end,
                    calculation="alignment",
                )
            columns[ticker] = self.closes(bars)

        aligned = pd.concat(columns, axis=1, join="inner").sort_index()
        if len(aligned) < 2:
            raise InsufficientDataError(
                f"Tickers share {len(aligned)} trading date(s); at least 2 are needed",
                start=start,
                end=end,
                calculation="alignment",
            )
        return aligned

    def weight_path(
        self,
        asset_returns: pd.DataFrame,
        weights: Mapping[str, float],
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> pd.DataFrame:
        """Weights held over each return period, tickers as columns.

        Holdings start at the target weights.  After each period they drift
        to w_i (1 + r_i) / (1 + r_p), unless the period's close was the last
        of its rebalance period, in which case they reset to the target.

        Raises:
            ValueError: a weighted ticker has no returns.
        """
        missing = [t for t in weights if t not in asset_returns.columns]
        if missing:
            raise ValueError(f"No returns for weighted ticker(s): {', '.join(missing)}")
        target = pd.Series(weights, dtype=float)
        returns = asset_returns[target.index].to_numpy(dtype=float)
        if rebalance == RebalanceFrequency.DAILY:
            held = np.tile(target.to_numpy(), (len(returns), 1))
            return pd.DataFrame(held, index=asset_returns.index, columns=target.index)

        periods = [self._rebalance_period(d, rebalance) for d in asset_returns.index]
        held = np.empty_like(returns)
        current = target.to_numpy().copy()
        for t, r in enumerate(returns):
            if t > 0 and periods[t] != periods[t - 1]:
                current = target.to_numpy().copy()
            held[t] = current
            growth = current * (1.0 + r)
            total = growth.sum()
            current = growth / total if total > 0 else current
        return pd.DataFrame(held, index=asset_returns.index, columns=target.index)

    def portfolio_returns(
        self,
        asset_returns: pd.DataFrame,
        weights: Mapping[str, float],
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> PortfolioReturnSeries:
        """Combine asset returns: r_p,t = Σ_i w_i,t · r_i,t.

        With daily rebalancing w_i,t is the target weight on every day; other
        schedules let the weights drift between rebalance dates (see
        weight_path).

        Args:
            asset_returns: aligned returns, tickers as columns.
            weights: ticker → target weight as a fraction of 1.0.
            rebalance: rebalancing schedule.
        """
        held = self.weight_path(asset_returns, weights, rebalance)
        combined = (held.to_numpy() * asset_returns[held.columns].to_numpy()).sum(axis=1)
        series = pd.Series(combined, index=asset_returns.index, name="portfolio")
        return PortfolioReturnSeries.from_series(series)

    def contributions(
        self,
        asset_returns: pd.DataFrame,
        weights: Mapping[str, float],
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> list[AssetContribution]:
        """Per-asset attribution of the compounded portfolio return.

        contribution_i = Σ_t w_i,t · r_i,t · G_{t-1}, with w_i,t the weight
        held over day t and G_{t-1} the portfolio growth factor before day t
        (G_0 = 1).  Since Σ_i w_i,t r_i,t = r_p,t, the contributions add up to
        Π(1 + r_p) − 1.  weight is the target weight in percent.
        """
        held = self.weight_path(asset_returns, weights, rebalance)
        frame = asset_returns[held.columns]
        w_t = held.to_numpy()
        port = (w_t * frame.to_numpy()).sum(axis=1)
        growth_before = np.concatenate(([1.0], np.cumprod(1.0 + port)[:-1]))

        result: list[AssetContribution] = []
        for i, ticker in enumerate(held.columns):
            r = frame[ticker].to_numpy()
            result.append(
                AssetContribution(
                    ticker=str(ticker),
                    weight=float(weights[ticker]) * 100.0,
                    asset_return=float(np.prod(1.0 + r) - 1.0),
                    contribution=float(np.sum(w_t[:, i] * r * growth_before)),
                )
            )
        return result

    def validate_allocation(self, allocation: PortfolioAllocation) -> None:
        """Raise AllocationError unless the allocation sums to 100 ± 0.1."""
        allocation.ensure_valid()

    @staticmethod
    def _rebalance_period(day: date | pd.Timestamp, rebalance: RebalanceFrequency) -> tuple:
        if rebalance == RebalanceFrequency.NONE:
            return ()
        if rebalance == RebalanceFrequency.WEEKLY:
            iso = day.isocalendar()
            return (iso[0], iso[1])
        if rebalance == RebalanceFrequency.MONTHLY:
            return (day.year, day.month)
        raise ValueError(f"Unsupported rebalance frequency: {rebalance!r}")
