"""Correlation domain models.

A CorrelationMatrix holds pairwise Pearson coefficients between tickers'
daily returns, stored as the upper triangle only (ticker_a < ticker_b by
lexicographic order).  Pairs with too little overlapping history are not
stored; they are reported in skipped_pairs instead.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CorrelationEntry(BaseModel):
    """One off-diagonal cell of the correlation matrix.

    Storage invariant: ticker_a < ticker_b.  The constructor canonicalises
    the order so callers don't need to pre-sort.  observations is the
    number of dates both tickers have a return for.
    """

    model_config = ConfigDict(frozen=True)

    ticker_a: str
    ticker_b: str
    corr: float = Field(ge=-1.0, le=1.0)
    observations: int = Field(ge=0)

    @model_validator(mode="before")
    @classmethod
    def _canonicalize_order(cls, data: dict[str, object]) -> dict[str, object]:
        """Ensure ticker_a ≤ ticker_b so only the upper triangle is stored."""
        if not isinstance(data, dict):
            return data
        a = data.get("ticker_a")
        b = data.get("ticker_b")
        if a is not None and b is not None and str(a) > str(b):
            data = dict(data)
            data["ticker_a"], data["ticker_b"] = b, a
        return data

    @property
    def pair(self) -> tuple[str, str]:
        return self.ticker_a, self.ticker_b


class SkippedPair(BaseModel):
    """A pair left out of the matrix and why (insufficient overlap, zero variance)."""

    model_config = ConfigDict(frozen=True)

    ticker_a: str
    ticker_b: str
    observations: int = Field(ge=0)
    reason: str


class CorrelationMatrix(BaseModel):
    """Pairwise correlations over a lookback window.

    period_days      — lookback window (observations) the coefficients cover
    min_observations — overlap floor below which a pair is omitted
    excluded_tickers — tickers dropped before pairing, with the reason
                       (universe truncation, fetch failure, no data)
    """

    model_config = ConfigDict(frozen=True)

    period_days: int = Field(gt=0)
    min_observations: int = Field(gt=1)
    tickers: list[str] = Field(default_factory=list)
    entries: list[CorrelationEntry] = Field(default_factory=list)
    skipped_pairs: list[SkippedPair] = Field(default_factory=list)
    excluded_tickers: dict[str, str] = Field(default_factory=dict)
    computed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _one_entry_per_pair(self) -> CorrelationMatrix:
        pairs = [e.pair for e in self.entries]
        if len(pairs) != len(set(pairs)):
            raise ValueError("CorrelationMatrix holds duplicate entries for a pair")
        return self

    def get_correlation(self, ticker_i: str, ticker_j: str) -> float | None:
        """Return corr(i, j), checking both orderings; 1.0 on the diagonal.

        None when the pair was skipped or is unknown.
        """
        if ticker_i == ticker_j:
            return 1.0 if ticker_i in self.tickers else None
        a, b = min(ticker_i, ticker_j), max(ticker_i, ticker_j)
        for entry in self.entries:
            if entry.ticker_a == a and entry.ticker_b == b:
                return entry.corr
        return None

    def to_dense(self) -> list[list[float | None]]:
        """Square matrix over self.tickers; None where a pair is missing."""
        return [
            [self.get_correlation(ti, tj) for tj in self.tickers]
            for ti in self.tickers
        ]
