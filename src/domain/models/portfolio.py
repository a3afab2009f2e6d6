"""Portfolio domain models.

AllocationEntry        — one (ticker, weight %) pair
PortfolioAllocation    — the full allocation; validated explicitly before a run
PortfolioReturnPoint   — one combined daily portfolio return
PortfolioReturnSeries  — ordered portfolio returns on the aligned date index
EquityPoint            — one point of the compounded equity curve
AssetContribution      — per-asset share of the portfolio total return
"""

from __future__ import annotations

from datetime import date

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.domain.errors import AllocationError

WEIGHT_TOTAL = 100.0
WEIGHT_TOLERANCE = 0.1  # percentage points
_FLOAT_SLACK = 1e-9


class AllocationEntry(BaseModel):
    """A ticker and its target weight, expressed in percent (0–100)."""

    model_config = ConfigDict(frozen=True)

    ticker: str = Field(min_length=1)
    weight: float

    @field_validator("ticker")
    @classmethod
    def _normalize_ticker(cls, value: str) -> str:
        return value.strip().upper()


class PortfolioAllocation(BaseModel):
    """Set of (ticker, weight) pairs.

    Weights are NOT validated on construction: an allocation being edited in
    a form is allowed to be incomplete.  ensure_valid() enforces the run-time
    invariants and raises AllocationError; weights are never normalised.
    """

    model_config = ConfigDict(frozen=True)

    entries: list[AllocationEntry]

    @classmethod
    def from_weights(cls, weights: dict[str, float]) -> PortfolioAllocation:
        return cls(
            entries=[AllocationEntry(ticker=t, weight=w) for t, w in weights.items()]
        )

    @property
    def tickers(self) -> list[str]:
        return [e.ticker for e in self.entries]

    @property
    def total_weight(self) -> float:
        return float(sum(e.weight for e in self.entries))

    def fractions(self) -> dict[str, float]:
        """Ticker → weight as a fraction of 1.0."""
        return {e.ticker: e.weight / WEIGHT_TOTAL for e in self.entries}

    def ensure_valid(self, tolerance: float = WEIGHT_TOLERANCE) -> None:
        """Raise AllocationError unless the allocation can be backtested.

        Rules: at least one entry, no duplicate tickers, no negative weight,
        and weights summing to 100 within ±tolerance percentage points.
        """
        if not self.entries:
            raise AllocationError("Allocation has no assets", calculation="allocation")
        seen: set[str] = set()
        for entry in self.entries:
            if entry.ticker in seen:
                raise AllocationError(
                    "Ticker appears more than once in the allocation",
                    ticker=entry.ticker,
                    calculation="allocation",
                )
            seen.add(entry.ticker)
            if entry.weight < 0:
                raise AllocationError(
                    f"Weight must be non-negative (got {entry.weight})",
                    ticker=entry.ticker,
                    calculation="allocation",
                )
        total = self.total_weight
        if abs(total - WEIGHT_TOTAL) > tolerance + _FLOAT_SLACK:
            raise AllocationError(
                f"Allocations must sum to 100% (current: {total:.2f}%)",
                calculation="allocation",
            )

    def canonical(self) -> list[tuple[str, float]]:
        """Sorted (ticker, weight) pairs; stable input for cache keys."""
        return sorted((e.ticker, round(e.weight, 10)) for e in self.entries)


class PortfolioReturnPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    bar_date: date
    ret: float


class PortfolioReturnSeries(BaseModel):
    """Daily portfolio returns r_p,t = Σ w_i · r_i,t on the aligned date index."""

    model_config = ConfigDict(frozen=True)

    points: list[PortfolioReturnPoint] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def dates(self) -> list[date]:
        return [p.bar_date for p in self.points]

    def values(self) -> np.ndarray:
        return np.array([p.ret for p in self.points], dtype=float)

    def to_series(self) -> pd.Series:
        return pd.Series(
            self.values(), index=pd.Index(self.dates, name="bar_date"), name="portfolio"
        )

    @classmethod
    def from_series(cls, series: pd.Series) -> PortfolioReturnSeries:
        return cls(
            points=[
                PortfolioReturnPoint(bar_date=_as_date(idx), ret=float(val))
                for idx, val in series.items()
            ]
        )


class EquityPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    bar_date: date
    value: float


class AssetContribution(BaseModel):
    """Per-asset attribution of the portfolio total return.

    asset_return — the asset's own compounded return over the aligned dates
    contribution — Σ_t w_i · r_i,t · G_{t-1}, where G is the portfolio growth
                   factor before day t; contributions sum to the portfolio
                   total return exactly.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    weight: float
    asset_return: float
    contribution: float


def _as_date(value: object) -> date:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()
