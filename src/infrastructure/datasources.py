"""Concrete market data sources and the configuration-driven selector.

RepositoryBarSource — live path: bars the sync job wrote into the store.
SyntheticBarSource  — seeded geometric random walk on business days; the
                      same (seed, ticker) always yields the same bars.
"""

from __future__ import annotations

import logging
import zlib
from datetime import date

import numpy as np
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from src.domain.errors import UpstreamFetchError
from src.domain.models.config import EngineConfig
from src.domain.models.market_data import Bar
from src.domain.repositories.bars import BarRepository
from src.domain.repositories.datasources import MarketDataSource

logger = logging.getLogger(__name__)

_ANCHOR = date(2000, 1, 3)
_HORIZON = date(2035, 12, 31)


class RepositoryBarSource(MarketDataSource):
    """Reads bars from the bar store; storage failures become UpstreamFetchError."""

    def __init__(self, bars: BarRepository) -> None:
        self._bars = bars

    @property
    def is_live(self) -> bool:
        return True

    async def fetch_bars(self, ticker: str, start: date, end: date) -> list[Bar]:
        try:
            return await self._bars.get_bars(ticker, start, end)
        except SQLAlchemyError as exc:
            raise UpstreamFetchError(
                f"Bar store query failed: {exc}", ticker=ticker, start=start, end=end
            ) from exc


class SyntheticBarSource(MarketDataSource):
    """Seeded random-walk bars for demos, tests and the live-data kill switch.

    Each ticker's walk starts on a fixed anchor date and is generated once
    per instance, so any requested range is a slice of the same path.
    """

    def __init__(self, seed: int = 42) -> None:
        self._seed = seed
        self._frames: dict[str, pd.DataFrame] = {}

    async def fetch_bars(self, ticker: str, start: date, end: date) -> list[Bar]:
        symbol = ticker.strip().upper()
        frame = self._frame(symbol, end)
        window = frame.loc[(frame.index >= pd.Timestamp(start)) & (frame.index <= pd.Timestamp(end))]
        return [
            Bar(
                ticker=symbol,
                bar_date=ts.date(),
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=int(row.volume),
            )
            for ts, row in zip(window.index, window.itertuples(index=False))
        ]

    def _frame(self, ticker: str, end: date) -> pd.DataFrame:
        frame = self._frames.get(ticker)
        if frame is None or frame.index[-1].date() < min(end, _HORIZON):
            frame = self._generate(ticker, max(end, _HORIZON))
            self._frames[ticker] = frame
        return frame

    def _generate(self, ticker: str, end: date) -> pd.DataFrame:
        days = pd.bdate_range(_ANCHOR, end)
        n = len(days)
        rng = np.random.default_rng([self._seed, zlib.crc32(ticker.encode("utf-8"))])

        start_price = rng.uniform(20.0, 300.0)
        drift = rng.uniform(0.0001, 0.0006)
        vol = rng.uniform(0.006, 0.02)
        log_returns = rng.normal(drift - vol**2 / 2.0, vol, size=n)
        close = start_price * np.exp(np.cumsum(log_returns))
        prev_close = np.concatenate(([start_price], close[:-1]))
        open_ = prev_close * np.exp(rng.normal(0.0, vol / 4.0, size=n))
        high = np.maximum(open_, close) * (1.0 + np.abs(rng.normal(0.0, vol / 2.0, size=n)))
        low = np.minimum(open_, close) * np.exp(-np.abs(rng.normal(0.0, vol / 2.0, size=n)))
        volume = rng.integers(100_000, 5_000_000, size=n)

        logger.debug("Generated %d synthetic bars for %s (seed=%d)", n, ticker, self._seed)
        return pd.DataFrame(
            {"open": open_, "high": high, "low": low, "close": close, "volume": volume},
            index=days,
        )


def build_data_source(
    config: EngineConfig,
    bars: BarRepository | None = None,
) -> MarketDataSource:
    """Pick the bar source from configuration.

    live_data_enabled=False always yields the synthetic source, whatever
    repositories are available.
    """
    if not config.live_data_enabled:
        logger.info("Live data disabled; using synthetic bars (seed=%d)", config.synthetic_seed)
        return SyntheticBarSource(config.synthetic_seed)
    if bars is None:
        raise ValueError("Live data is enabled but no bar repository was supplied")
    return RepositoryBarSource(bars)
