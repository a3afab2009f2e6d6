"""Market data domain models.

Bar          — one trading day's OHLCV record for one ticker.
ReturnPoint  — a simple / log return observation derived from two consecutive bars.
ReturnSeries — the ordered return observations for one ticker.

All are immutable value objects (no identity beyond their natural key).
"""

from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Bar(BaseModel):
    """Daily OHLCV bar for one ticker.

    The natural key is (ticker, bar_date).  Prices must be strictly positive
    and consistent: high ≥ max(open, close) and low ≤ min(open, close).
    vwap and transactions are optional vendor extras.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str = Field(min_length=1)
    bar_date: date
    open: float = Field(gt=0.0)
    high: float = Field(gt=0.0)
    low: float = Field(gt=0.0)
    close: float = Field(gt=0.0)
    volume: int = Field(ge=0)
    vwap: float | None = Field(default=None, gt=0.0)
    transactions: int | None = Field(default=None, ge=0)

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def _ohlc_consistent(self) -> Bar:
        if self.high < max(self.open, self.close):
            raise ValueError(
                f"high ({self.high}) must be ≥ max(open, close) on {self.bar_date}"
            )
        if self.low > min(self.open, self.close):
            raise ValueError(
                f"low ({self.low}) must be ≤ min(open, close) on {self.bar_date}"
            )
        return self


class ReturnPoint(BaseModel):
    """Return observation for one ticker at one date.

    simple_return = close_t / close_{t-1} − 1
    log_return    = ln(close_t / close_{t-1})
    """

    model_config = ConfigDict(frozen=True)

    bar_date: date
    simple_return: float
    log_return: float


class ReturnSeries(BaseModel):
    """Ordered return observations for one ticker.

    The first bar of a range has no prior close, so a series built from N
    bars holds N − 1 points.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    points: list[ReturnPoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _dates_strictly_increasing(self) -> ReturnSeries:
        for prev, cur in zip(self.points, self.points[1:]):
            if cur.bar_date <= prev.bar_date:
                raise ValueError(
                    f"{self.ticker}: return dates must be strictly increasing "
                    f"({prev.bar_date} then {cur.bar_date})"
                )
        return self

    def __len__(self) -> int:
        return len(self.points)

    @property
    def dates(self) -> list[date]:
        return [p.bar_date for p in self.points]

    def simple_returns(self) -> np.ndarray:
        return np.array([p.simple_return for p in self.points], dtype=float)

    def log_returns(self) -> np.ndarray:
        return np.array([p.log_return for p in self.points], dtype=float)

    def to_series(self, log: bool = False) -> pd.Series:
        """Return a pandas Series indexed by date, named after the ticker."""
        values = self.log_returns() if log else self.simple_returns()
        return pd.Series(values, index=pd.Index(self.dates, name="bar_date"), name=self.ticker)

    def tail(self, n: int) -> ReturnSeries:
        """The most recent n observations (all of them when n ≥ len)."""
        return ReturnSeries(ticker=self.ticker, points=self.points[-n:] if n > 0 else [])
