"""Backtest domain models.

PerformanceMetrics — return / risk / risk-adjusted statistics for one run
DrawdownEpisode    — one peak → trough → (recovery) episode of the equity curve
DrawdownAnalysis   — worst, current and typical drawdown behaviour
BacktestResult     — the immutable, fully assembled output of a backtest run

Non-computable statistics are None and are listed in
PerformanceMetrics.unavailable with the reason; they are never coerced to 0.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import RebalanceFrequency
from .portfolio import AssetContribution, EquityPoint, PortfolioAllocation


class PerformanceMetrics(BaseModel):
    """Aggregate statistics of a portfolio return series.

    Return figures are fractions (0.12 = 12 %) except alpha, which is
    reported in annualised percentage points (1.5 = 1.5 %).
    var_95 / cvar_95 are historical one-day loss fractions.  With r sorted
    ascending and k = ⌊0.05 · N⌋:
      VaR_95  = −r_(k)
      CVaR_95 = −mean(r_(0) … r_(max(k,1)−1))
    parametric_var_95 = −(μ − z_0.95 · σ) of the daily returns (normal fit).
    omega_ratio is Σ gains / Σ losses around a zero threshold, plus one.
    tail_ratio is the mean of the top 5 % of returns over the magnitude of
    the mean of the bottom 5 %.
    """

    model_config = ConfigDict(frozen=True)

    observations: int = Field(ge=0)
    risk_free_rate: float
    total_return: float | None = None
    annualized_return: float | None = None
    volatility: float | None = Field(default=None, ge=0.0)
    downside_deviation: float | None = Field(default=None, ge=0.0)
    sharpe_ratio: float | None = None
    sortino_ratio: float | None = None
    calmar_ratio: float | None = None
    beta: float | None = None
    alpha: float | None = None
    tracking_error: float | None = Field(default=None, ge=0.0)
    information_ratio: float | None = None
    benchmark_return: float | None = None
    benchmark_annualized_return: float | None = None
    var_95: float | None = None
    cvar_95: float | None = None
    skewness: float | None = None
    kurtosis: float | None = None
    parametric_var_95: float | None = None
    omega_ratio: float | None = Field(default=None, ge=0.0)
    tail_ratio: float | None = None
    treynor_ratio: float | None = None
    unavailable: dict[str, str] = Field(default_factory=dict)

    def is_computable(self, metric: str) -> bool:
        return metric not in self.unavailable and getattr(self, metric) is not None


class DrawdownEpisode(BaseModel):
    """One drawdown episode.

    recovery_date / recovery_days are None while the episode is still open
    at the end of the series.  recovery_days counts observations from the
    trough to the first value back at or above the prior peak.
    """

    model_config = ConfigDict(frozen=True)

    peak_date: date
    trough_date: date
    recovery_date: date | None = None
    depth: float = Field(le=0.0)
    recovery_days: int | None = Field(default=None, ge=0)

    @property
    def is_recovered(self) -> bool:
        return self.recovery_date is not None


class DrawdownAnalysis(BaseModel):
    """Drawdown statistics of an equity curve (DD_t = V_t / max(V_u≤t) − 1 ≤ 0).

    current_drawdown is always ≥ max_drawdown: the worst drawdown is the
    running minimum of the series up to and including the last point.
    avg_recovery_days averages completed episodes only and is None when no
    episode has recovered.  ulcer_index is the root-mean-square of DD_t
    (a fraction).  series holds DD_t for every point of the curve.
    """

    model_config = ConfigDict(frozen=True)

    max_drawdown: float = Field(le=0.0)
    current_drawdown: float = Field(le=0.0)
    peak_date: date | None = None
    trough_date: date | None = None
    recovery_date: date | None = None
    avg_recovery_days: float | None = Field(default=None, ge=0.0)
    ulcer_index: float = Field(default=0.0, ge=0.0)
    episodes: list[DrawdownEpisode] = Field(default_factory=list)
    series: list[EquityPoint] = Field(default_factory=list)

    @model_validator(mode="after")
    def _current_within_max(self) -> DrawdownAnalysis:
        if self.current_drawdown < self.max_drawdown - 1e-12:
            raise ValueError(
                f"current_drawdown ({self.current_drawdown}) cannot be deeper "
                f"than max_drawdown ({self.max_drawdown})"
            )
        return self


class BacktestResult(BaseModel):
    """Immutable output of one backtest run, consumed for display / export.

    start_date / end_date are the first and last dates of the aligned equity
    curve, which may be narrower than the requested range when the
    constituents' histories do not fully overlap.
    """

    model_config = ConfigDict(frozen=True)

    allocation: PortfolioAllocation
    rebalance: RebalanceFrequency = RebalanceFrequency.DAILY
    requested_start: date
    requested_end: date
    start_date: date
    end_date: date
    initial_capital: float = Field(gt=0.0)
    final_value: float
    metrics: PerformanceMetrics
    drawdown: DrawdownAnalysis
    contributions: list[AssetContribution] = Field(default_factory=list)
    equity_curve: list[EquityPoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cache_key: str | None = None
    from_cache: bool = False

    @property
    def max_drawdown(self) -> float:
        return self.drawdown.max_drawdown
