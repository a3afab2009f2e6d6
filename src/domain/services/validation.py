"""Data-quality checks for bars, computed metrics and correlation matrices.

These checks never raise on bad data: they grade it and report the issues
so callers can surface them as warnings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date

import numpy as np
import pandas as pd

from src.domain.models.backtest import PerformanceMetrics
from src.domain.models.enums import DataQuality
from src.domain.models.market_data import Bar
from src.domain.models.portfolio import AssetContribution
from src.domain.models.validation import (
    CorrelationValidationResult,
    DataValidationResult,
    MetricsValidationResult,
)

logger = logging.getLogger(__name__)

BAR_COLUMNS = ("bar_date", "open", "high", "low", "close", "volume")

# Penalties subtracted from a quality score of 100.  Per-bar penalties are
# scaled by the share of offending bars.
_PRICE_PENALTY = 30.0
_VOLUME_PENALTY = 20.0
_OHLC_PENALTY = 25.0
_ORDER_PENALTY = 15.0
_COVERAGE_PENALTY = 10.0
_STALE_PENALTY = 20.0

_MIN_COVERAGE = 0.8
_STALE_UNIQUE_SHARE = 0.1
_STALE_MIN_BARS = 10

# Realistic ranges per metric; alpha is in percentage points and max
# drawdown is checked as a magnitude.  The volatility floor admits
# short-duration bond and cash-like portfolios.
METRIC_RANGES: dict[str, tuple[float, float]] = {
    "annualized_return": (-0.9, 5.0),
    "volatility": (0.005, 1.0),
    "sharpe_ratio": (-2.0, 4.0),
    "sortino_ratio": (-3.0, 6.0),
    "max_drawdown": (0.0, 1.0),
    "calmar_ratio": (-5.0, 10.0),
    "beta": (-2.0, 3.0),
    "alpha": (-50.0, 50.0),
}
_RETURN_TOLERANCE = 0.001
_MATRIX_TOLERANCE = 1e-4


class DataValidationService:
    """Stateless validators mirroring the study-data quality checks."""

    # ------------------------------------------------------------------ #
    # Bars                                                                 #
    # ------------------------------------------------------------------ #

    def validate_bars(
        self,
        ticker: str,
        bars: Sequence[Bar] | pd.DataFrame,
        expected_start: date | None = None,
        expected_end: date | None = None,
    ) -> DataValidationResult:
        """Grade one ticker's bars.

        Accepts Bar models or a raw DataFrame with BAR_COLUMNS, so upstream
        rows can be checked before they are turned into Bars.  Coverage is
        checked against a rough count of expected trading days (5 of every
        7 calendar days) when both range bounds are given.
        """
        frame = bars if isinstance(bars, pd.DataFrame) else self.bars_frame(bars)
        n = len(frame)
        if n == 0:
            return DataValidationResult(
                ticker=ticker,
                is_valid=False,
                issues=["No data provided"],
                bar_count=0,
                expected_bars=self._expected_bars(expected_start, expected_end),
                coverage=0.0,
                quality_score=0.0,
                data_quality=DataQuality.LOW,
            )

        issues: list[str] = []
        warnings: list[str] = []
        score = 100.0
        o, h, lo, c = (frame[col].to_numpy(dtype=float) for col in ("open", "high", "low", "close"))

        bad_prices = int(np.sum((o <= 0) | (h <= 0) | (lo <= 0) | (c <= 0)))
        if bad_prices:
            issues.append(f"{bad_prices} bars with non-positive prices")
            score -= bad_prices / n * _PRICE_PENALTY

        bad_volumes = int(np.sum(frame["volume"].to_numpy(dtype=float) < 0))
        if bad_volumes:
            issues.append(f"{bad_volumes} bars with negative volume")
            score -= bad_volumes / n * _VOLUME_PENALTY

        bad_ohlc = int(np.sum((h < lo) | (h < o) | (h < c) | (lo > o) | (lo > c)))
        if bad_ohlc:
            issues.append(f"{bad_ohlc} bars with invalid OHLC relationships")
            score -= bad_ohlc / n * _OHLC_PENALTY

        dates = pd.to_datetime(frame["bar_date"])
        out_of_order = int(np.sum(dates.diff().dt.days.iloc[1:].to_numpy() <= 0))
        if out_of_order:
            issues.append(f"{out_of_order} dates out of order")
            score -= _ORDER_PENALTY

        expected = self._expected_bars(expected_start, expected_end)
        coverage = n / expected if expected else 1.0
        if expected_start is not None and expected_end is not None:
            first, last = dates.min().date(), dates.max().date()
            if first < expected_start:
                warnings.append(f"Data starts before expected range: {first}")
            if last > expected_end:
                warnings.append(f"Data ends after expected range: {last}")
            if expected and coverage < _MIN_COVERAGE:
                issues.append(f"Low data coverage: {coverage:.1%} of expected trading days")
                score -= _COVERAGE_PENALTY

        if n > _STALE_MIN_BARS and len(np.unique(c)) < n * _STALE_UNIQUE_SHARE:
            issues.append("Suspiciously low price variation - possible stale data")
            score -= _STALE_PENALTY

        score = max(score, 0.0)
        result = DataValidationResult(
            ticker=ticker,
            is_valid=not issues,
            issues=issues,
            warnings=warnings,
            bar_count=n,
            expected_bars=expected,
            coverage=coverage,
            quality_score=score,
            data_quality=self.grade(score),
        )
        logger.debug(
            "%s: valid=%s quality=%s issues=%d",
            ticker,
            result.is_valid,
            result.data_quality.value,
            len(issues),
        )
        return result

    @staticmethod
    def bars_frame(bars: Sequence[Bar]) -> pd.DataFrame:
        """Bars as a DataFrame with BAR_COLUMNS, in the given order."""
        return pd.DataFrame(
            [[getattr(b, col) for col in BAR_COLUMNS] for b in bars],
            columns=list(BAR_COLUMNS),
        )

    @staticmethod
    def grade(score: float) -> DataQuality:
        if score >= 90:
            return DataQuality.HIGH
        if score >= 70:
            return DataQuality.MEDIUM
        return DataQuality.LOW

    @staticmethod
    def _expected_bars(start: date | None, end: date | None) -> int:
        if start is None or end is None:
            return 0
        return max((end - start).days * 5 // 7, 0)

    # ------------------------------------------------------------------ #
    # Metrics                                                              #
    # ------------------------------------------------------------------ #

    def validate_metrics(
        self,
        metrics: PerformanceMetrics,
        max_drawdown: float | None = None,
        contributions: Sequence[AssetContribution] = (),
        ranges: Mapping[str, tuple[float, float]] | None = None,
    ) -> MetricsValidationResult:
        """Flag metrics outside realistic ranges.

        ranges overrides entries of METRIC_RANGES (or adds bounds for other
        PerformanceMetrics fields).  When contributions are given, their sum
        must match total_return within 0.1 percentage point.  Metrics that
        are None are not checked.
        """
        bounds = {**METRIC_RANGES, **(ranges or {})}
        issues: list[str] = []
        observed: dict[str, float | None] = {
            name: getattr(metrics, name, None) for name in bounds
        }
        observed["max_drawdown"] = abs(max_drawdown) if max_drawdown is not None else None

        for name, (low, high) in bounds.items():
            value = observed[name]
            if value is not None and not low <= value <= high:
                issues.append(f"{name} ({value:.4f}) outside realistic range [{low}, {high}]")

        if contributions and metrics.total_return is not None:
            attributed = sum(c.contribution for c in contributions)
            discrepancy = abs(attributed - metrics.total_return)
            if discrepancy > _RETURN_TOLERANCE:
                issues.append(
                    f"Portfolio return ({metrics.total_return:.2%}) doesn't match the sum "
                    f"of asset contributions ({attributed:.2%})"
                )

        return MetricsValidationResult(
            is_valid=not issues,
            issues=issues,
            warnings=[f"{name}: {reason}" for name, reason in metrics.unavailable.items()],
        )

    # ------------------------------------------------------------------ #
    # Correlation matrices                                                 #
    # ------------------------------------------------------------------ #

    def validate_correlation_matrix(
        self,
        matrix: Sequence[Sequence[float | None]],
        tickers: Sequence[str] | None = None,
    ) -> CorrelationValidationResult:
        """Check a dense matrix is square, unit-diagonal, symmetric and in [−1, 1].

        None cells (skipped pairs) are not checked.
        """
        n = len(matrix)
        if n == 0:
            return CorrelationValidationResult(is_valid=False, issues=["Empty correlation matrix"])
        for i, row in enumerate(matrix):
            if len(row) != n:
                return CorrelationValidationResult(
                    is_valid=False, issues=[f"Row {i} has incorrect length"]
                )

        def label(i: int) -> str:
            return tickers[i] if tickers is not None and i < len(tickers) else f"index {i}"

        issues: list[str] = []
        for i in range(n):
            diag = matrix[i][i]
            if diag is None or abs(diag - 1.0) > _MATRIX_TOLERANCE:
                issues.append(f"Diagonal value at {label(i)} is {diag}, expected 1.0")

        for i in range(n):
            for j in range(i + 1, n):
                upper, lower = matrix[i][j], matrix[j][i]
                if upper is None or lower is None:
                    if (upper is None) != (lower is None):
                        issues.append(f"Matrix not symmetric at ({label(i)}, {label(j)})")
                    continue
                if abs(upper - lower) > _MATRIX_TOLERANCE:
                    issues.append(
                        f"Matrix not symmetric at ({label(i)}, {label(j)}): "
                        f"{upper:.4f} vs {lower:.4f}"
                    )
                if not -1.0 <= upper <= 1.0:
                    issues.append(
                        f"Correlation at ({label(i)}, {label(j)}) = {upper:.4f} outside [-1, 1]"
                    )

        return CorrelationValidationResult(is_valid=not issues, issues=issues)
