"""Performance metrics service.

Computes return, risk and risk-adjusted statistics of a daily portfolio
return series, optionally against a benchmark series.

Conventions:
  - volatility uses the sample standard deviation (N − 1).
  - downside deviation averages min(r, 0)² over ALL periods, not only the
    negative ones.
  - alpha is reported in annualised percentage points.
  - A statistic that cannot be computed is None and its name is mapped to
    the reason in PerformanceMetrics.unavailable.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy import stats

from src.domain.models.backtest import PerformanceMetrics
from src.domain.models.config import DEFAULT_RISK_FREE_RATE, TRADING_DAYS_PER_YEAR
from src.domain.models.portfolio import PortfolioReturnSeries

logger = logging.getLogger(__name__)

_ZERO_TOL = 1e-12
_VAR_CONFIDENCE = 0.95
_TAIL_SHARE = 0.05
_TAIL_MIN_OBSERVATIONS = 20

_RATIOS = (
    "sharpe_ratio",
    "sortino_ratio",
    "calmar_ratio",
    "volatility",
    "downside_deviation",
    "var_95",
    "cvar_95",
    "skewness",
    "kurtosis",
    "parametric_var_95",
    "omega_ratio",
    "tail_ratio",
)
_BENCHMARK_FIELDS = (
    "beta",
    "treynor_ratio",
    "alpha",
    "tracking_error",
    "information_ratio",
    "benchmark_return",
    "benchmark_annualized_return",
)


class PerformanceService:
    """Pure computation service for portfolio performance statistics.

    The class is stateless; risk-free rate and annualisation factor are
    passed per-call.
    """

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    def compute(
        self,
        returns: PortfolioReturnSeries | pd.Series,
        benchmark: pd.Series | None = None,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
        periods_per_year: int = TRADING_DAYS_PER_YEAR,
        max_drawdown: float | None = None,
        relative_returns: pd.Series | None = None,
    ) -> PerformanceMetrics:
        """Compute the full metrics block.

        Args:
            returns: daily portfolio returns indexed by date.
            benchmark: daily benchmark returns indexed by date; inner-joined
                with returns before beta / alpha / tracking error.
            risk_free_rate: annual risk-free rate as a fraction.
            periods_per_year: annualisation factor m.
            max_drawdown: worst drawdown of the equity curve (≤ 0); derived
                from returns when omitted.
            relative_returns: portfolio returns measured over the same
                intervals as benchmark (both taken between dates on which the
                portfolio and the benchmark were priced).  Relative metrics
                pair these with benchmark instead of returns.
        """
        series = returns.to_series() if isinstance(returns, PortfolioReturnSeries) else returns
        r = series.to_numpy(dtype=float)
        n = len(r)
        values: dict[str, float | None] = {}
        unavailable: dict[str, str] = {}

        if n == 0:
            for name in ("total_return", "annualized_return", *_RATIOS, *_BENCHMARK_FIELDS):
                unavailable[name] = "no return observations"
            return PerformanceMetrics(
                observations=0, risk_free_rate=risk_free_rate, unavailable=unavailable
            )

        total = self.total_return(r)
        ann = self.annualized_return(r, periods_per_year)
        values["total_return"] = total
        values["annualized_return"] = ann

        if n < 2:
            for name in (*_RATIOS, *_BENCHMARK_FIELDS):
                unavailable[name] = "requires at least 2 return observations"
        else:
            self._risk_block(r, ann, risk_free_rate, periods_per_year, max_drawdown, values, unavailable)
            self._distribution_block(r, values, unavailable)
            if benchmark is None:
                for name in _BENCHMARK_FIELDS:
                    unavailable[name] = "no benchmark supplied"
            else:
                paired = series if relative_returns is None else relative_returns
                self._benchmark_block(
                    paired, benchmark, risk_free_rate, periods_per_year, values, unavailable
                )

        return PerformanceMetrics(
            observations=n,
            risk_free_rate=risk_free_rate,
            unavailable=unavailable,
            **{k: v for k, v in values.items() if k not in unavailable},
        )

    # ------------------------------------------------------------------ #
    # Scalar statistics                                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def total_return(r: np.ndarray) -> float:
        """Π(1 + r_t) − 1."""
        return float(np.prod(1.0 + r) - 1.0)

    @staticmethod
    def annualized_return(r: np.ndarray, periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
        """CAGR = (1 + TR)^(m / N) − 1; −1 when the portfolio was wiped out."""
        growth = float(np.prod(1.0 + r))
        if growth <= 0.0:
            return -1.0
        return growth ** (periods_per_year / len(r)) - 1.0

    @staticmethod
    def volatility(r: np.ndarray, periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
        """Sample standard deviation × √m; exactly 0 for a constant series."""
        sd = float(np.std(r, ddof=1))
        if sd < _ZERO_TOL:
            return 0.0
        return sd * np.sqrt(periods_per_year)

    @staticmethod
    def downside_deviation(r: np.ndarray, periods_per_year: int = TRADING_DAYS_PER_YEAR) -> float:
        """√(mean(min(r, 0)²) × m) over all periods."""
        downside = np.minimum(r, 0.0)
        return float(np.sqrt(np.mean(downside**2) * periods_per_year))

    @staticmethod
    def max_drawdown(r: np.ndarray) -> float:
        """Worst peak-to-trough decline of the compounded curve, ≤ 0."""
        curve = np.concatenate(([1.0], np.cumprod(1.0 + r)))
        running_peak = np.maximum.accumulate(curve)
        return float(np.min(curve / running_peak - 1.0))

    @staticmethod
    def beta(portfolio: np.ndarray, benchmark: np.ndarray) -> float | None:
        """Cov(p, b) / Var(b) with sample moments; None when Var(b) is zero."""
        if len(benchmark) < 2:
            return None
        var_b = float(np.var(benchmark, ddof=1))
        if var_b < _ZERO_TOL**2:
            return None
        return float(np.cov(portfolio, benchmark, ddof=1)[0, 1]) / var_b

    @staticmethod
    def parametric_var(r: np.ndarray, confidence: float = _VAR_CONFIDENCE) -> float:
        """One-day normal VaR as a positive loss fraction: −(μ − z · σ)."""
        z = float(stats.norm.ppf(confidence))
        return -(float(np.mean(r)) - z * float(np.std(r, ddof=1)))

    @staticmethod
    def omega_ratio(r: np.ndarray, threshold: float = 0.0) -> float | None:
        """1 + Σ(r − τ)⁺ / Σ(τ − r)⁺; None when no return falls below τ."""
        gains = float(np.sum(np.clip(r - threshold, 0.0, None)))
        losses = float(np.sum(np.clip(threshold - r, 0.0, None)))
        if losses < _ZERO_TOL:
            return None
        return 1.0 + gains / losses

    @staticmethod
    def tail_ratio(r: np.ndarray) -> float | None:
        """Mean of the top 5 % of returns over |mean of the bottom 5 %|.

        None when the bottom tail averages to zero.
        """
        ordered = np.sort(r)
        cutoff = max(1, int(np.floor(len(ordered) * _TAIL_SHARE)))
        avg_loss = abs(float(np.mean(ordered[:cutoff])))
        if avg_loss < _ZERO_TOL:
            return None
        return float(np.mean(ordered[-cutoff:])) / avg_loss

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    def _risk_block(
        self,
        r: np.ndarray,
        ann: float,
        rf: float,
        m: int,
        max_drawdown: float | None,
        values: dict[str, float | None],
        unavailable: dict[str, str],
    ) -> None:
        vol = self.volatility(r, m)
        values["volatility"] = vol
        if vol == 0.0:
            unavailable["sharpe_ratio"] = "volatility is zero"
        else:
            values["sharpe_ratio"] = (ann - rf) / vol

        dd = self.downside_deviation(r, m)
        values["downside_deviation"] = dd
        if dd < _ZERO_TOL:
            unavailable["sortino_ratio"] = "no negative returns (downside deviation is zero)"
        else:
            values["sortino_ratio"] = (ann - rf) / dd

        mdd = self.max_drawdown(r) if max_drawdown is None else max_drawdown
        if abs(mdd) < _ZERO_TOL:
            unavailable["calmar_ratio"] = "max drawdown is zero"
        else:
            values["calmar_ratio"] = ann / abs(mdd)

    def _distribution_block(
        self,
        r: np.ndarray,
        values: dict[str, float | None],
        unavailable: dict[str, str],
    ) -> None:
        ordered = np.sort(r)
        k = int(np.floor(len(ordered) * (1.0 - _VAR_CONFIDENCE)))
        values["var_95"] = float(-ordered[k])
        values["cvar_95"] = float(-np.mean(ordered[: max(k, 1)]))
        values["parametric_var_95"] = self.parametric_var(r)

        omega = self.omega_ratio(r)
        if omega is None:
            unavailable["omega_ratio"] = "no returns below zero"
        else:
            values["omega_ratio"] = omega

        if len(r) < _TAIL_MIN_OBSERVATIONS:
            unavailable["tail_ratio"] = (
                f"requires at least {_TAIL_MIN_OBSERVATIONS} return observations"
            )
        else:
            tail = self.tail_ratio(r)
            if tail is None:
                unavailable["tail_ratio"] = "bottom tail averages to zero"
            else:
                values["tail_ratio"] = tail

        if float(np.std(r)) < _ZERO_TOL:
            unavailable["skewness"] = "returns have zero variance"
            unavailable["kurtosis"] = "returns have zero variance"
            return
        if len(r) < 3:
            unavailable["skewness"] = "requires at least 3 return observations"
        else:
            values["skewness"] = float(stats.skew(r, bias=False))
        if len(r) < 4:
            unavailable["kurtosis"] = "requires at least 4 return observations"
        else:
            values["kurtosis"] = float(stats.kurtosis(r, fisher=True, bias=False))

    def _benchmark_block(
        self,
        portfolio: pd.Series,
        benchmark: pd.Series,
        rf: float,
        m: int,
        values: dict[str, float | None],
        unavailable: dict[str, str],
    ) -> None:
        joined = pd.concat(
            {"portfolio": portfolio, "benchmark": benchmark}, axis=1, join="inner"
        ).dropna()
        if len(joined) < 2:
            logger.warning(
                "Benchmark overlaps the portfolio on %d date(s); relative metrics skipped",
                len(joined),
            )
            for name in _BENCHMARK_FIELDS:
                unavailable[name] = "fewer than 2 dates overlap the benchmark"
            return

        p = joined["portfolio"].to_numpy()
        b = joined["benchmark"].to_numpy()
        values["benchmark_return"] = self.total_return(b)
        bench_ann = self.annualized_return(b, m)
        values["benchmark_annualized_return"] = bench_ann

        beta = self.beta(p, b)
        if beta is None:
            for name in ("beta", "alpha", "treynor_ratio"):
                unavailable[name] = "benchmark variance is zero"
        else:
            port_ann = self.annualized_return(p, m)
            values["beta"] = beta
            values["alpha"] = (port_ann - (rf + beta * (bench_ann - rf))) * 100.0
            if abs(beta) < _ZERO_TOL:
                unavailable["treynor_ratio"] = "beta is zero"
            else:
                values["treynor_ratio"] = (port_ann - rf) / beta

        active = p - b
        te = self.volatility(active, m)
        values["tracking_error"] = te
        if te == 0.0:
            unavailable["information_ratio"] = "tracking error is zero"
        else:
            values["information_ratio"] = float(np.mean(active)) * m / te
