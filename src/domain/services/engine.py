"""Backtest engine: the async facade over the numeric services.

    run_backtest
        → cache lookup (SHA-256 of the canonical request)
        → _load_bars             (every weighted ticker is required)
        → ReturnSeriesService    (align closes → asset / portfolio returns)
        → DrawdownService        (equity curve → drawdown analysis)
        → PerformanceService     (metrics, benchmark-relative when available)
        → DataValidationService  (quality warnings)
        → cache write
    compute_correlations  → per-ticker isolated fetch → CorrelationService
    run_stress_tests      → beta / rate duration estimate → ScenarioService (+ historical replay)
    run_monte_carlo       → history window → MonteCarloService

Numeric work is synchronous; only bar, cache and correlation I/O is awaited.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

import numpy as np
import pandas as pd

from src.domain.errors import InsufficientDataError, QuantEngineError, UpstreamFetchError
from src.domain.models.backtest import BacktestResult
from src.domain.models.config import EngineConfig
from src.domain.models.correlation import CorrelationMatrix
from src.domain.models.enums import (
    CovMethod,
    DataQuality,
    RebalanceFrequency,
    ScenarioKind,
    SimulationMethod,
)
from src.domain.models.market_data import Bar, ReturnSeries
from src.domain.models.portfolio import EquityPoint, PortfolioAllocation, PortfolioReturnSeries
from src.domain.models.scenarios import (
    DistributionSummary,
    ScenarioDefinition,
    ScenarioResult,
    default_scenarios,
)
from src.domain.repositories.cache import ResultCacheRepository
from src.domain.repositories.correlations import CorrelationRepository
from src.domain.repositories.datasources import MarketDataSource
from src.domain.services.batching import fetch_in_batches
from src.domain.services.cancellation import deadline
from src.domain.services.correlation import CorrelationService
from src.domain.services.drawdown import DrawdownService
from src.domain.services.metrics import PerformanceService
from src.domain.services.monte_carlo import MonteCarloService
from src.domain.services.returns import ReturnSeriesService, calendar_span
from src.domain.services.scenarios import ScenarioService
from src.domain.services.validation import DataValidationService

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_CAPITAL = 10_000.0


@dataclass(frozen=True)
class _PortfolioHistory:
    """Aligned closes and returns of an allocation over one window."""

    closes: pd.DataFrame
    asset_returns: pd.DataFrame
    portfolio: PortfolioReturnSeries
    dropped_dates: int


class BacktestEngine:
    """Entry point used by the presentation layer.

    All collaborators are injected.  cache and correlations are optional:
    without a cache every run is computed, without a correlation store
    matrices are returned but not persisted.
    """

    def __init__(
        self,
        source: MarketDataSource,
        config: EngineConfig | None = None,
        cache: ResultCacheRepository | None = None,
        correlations: CorrelationRepository | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._source = source
        self._config = config or EngineConfig()
        self._cache = cache
        self._correlation_store = correlations
        self._today = today
        self._returns = ReturnSeriesService()
        self._metrics = PerformanceService()
        self._drawdown = DrawdownService()
        self._correlation = CorrelationService()
        self._scenarios = ScenarioService()
        self._monte_carlo = MonteCarloService(
            trading_days_per_year=self._config.trading_days_per_year,
            chunk_size=self._config.monte_carlo_chunk_size,
        )
        self._validation = DataValidationService()

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------ #
    # Backtest                                                             #
    # ------------------------------------------------------------------ #

    async def run_backtest(
        self,
        allocation: PortfolioAllocation,
        start_date: date,
        end_date: date,
        initial_capital: float = DEFAULT_INITIAL_CAPITAL,
        risk_free_rate: float | None = None,
        benchmark: str | None = None,
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> BacktestResult:
        """Backtest an allocation held to its target weights on a rebalance schedule.

        rebalance=DAILY resets holdings to the targets every day; WEEKLY and
        MONTHLY let them drift between period ends; NONE is buy-and-hold.
        benchmark defaults to EngineConfig.benchmark_ticker; when its bars
        cannot be loaded the relative metrics are marked unavailable and a
        warning is attached.  Relative metrics pair portfolio and benchmark
        returns between dates on which both were priced.

        Raises:
            AllocationError: weights are invalid.
            InsufficientDataError: a ticker has no bars or the tickers share
                fewer than two dates.
            UpstreamFetchError: the data source failed for a ticker.
        """
        allocation.ensure_valid()
        if end_date <= start_date:
            raise ValueError(f"end_date ({end_date}) must be after start_date ({start_date})")
        if initial_capital <= 0:
            raise ValueError(f"initial_capital must be positive (got {initial_capital})")
        rf = self._config.risk_free_rate if risk_free_rate is None else risk_free_rate
        benchmark = (benchmark or self._config.benchmark_ticker or "").upper() or None

        key = self.cache_key(
            allocation, start_date, end_date, initial_capital, rf, benchmark, rebalance
        )
        cached = await self._cached(key)
        if cached is not None:
            return cached

        logger.info(
            "Backtest %s from %s to %s", ",".join(allocation.tickers), start_date, end_date
        )
        warnings: list[str] = []
        bars = await self._load_bars(allocation.tickers, start_date, end_date)
        for ticker, ticker_bars in bars.items():
            check = self._validation.validate_bars(ticker, ticker_bars, start_date, end_date)
            if check.data_quality != DataQuality.HIGH:
                warnings.append(
                    f"{ticker}: {check.data_quality.value} data quality ({'; '.join(check.issues)})"
                )

        history = self._history(allocation, bars, start_date, end_date, rebalance)
        if history.dropped_dates:
            warnings.append(
                f"{history.dropped_dates} date(s) dropped where not every ticker had a bar"
            )
        base_date = history.closes.index[0]
        curve = self._drawdown.equity_curve(history.portfolio, initial_capital, base_date)
        drawdown = self._drawdown.analyze(curve)

        paired = await self._paired_returns(benchmark, curve, start_date, end_date, warnings)
        metrics = self._metrics.compute(
            history.portfolio,
            benchmark=None if paired is None else paired[1],
            relative_returns=None if paired is None else paired[0],
            risk_free_rate=rf,
            periods_per_year=self._config.trading_days_per_year,
            max_drawdown=drawdown.max_drawdown,
        )
        contributions = self._returns.contributions(
            history.asset_returns, allocation.fractions(), rebalance
        )
        metrics_check = self._validation.validate_metrics(
            metrics, drawdown.max_drawdown, contributions, self._config.metric_ranges
        )
        warnings.extend(metrics_check.issues)

        result = BacktestResult(
            allocation=allocation,
            rebalance=rebalance,
            requested_start=start_date,
            requested_end=end_date,
            start_date=base_date,
            end_date=curve[-1].bar_date,
            initial_capital=initial_capital,
            final_value=curve[-1].value,
            metrics=metrics,
            drawdown=drawdown,
            contributions=contributions,
            equity_curve=curve,
            warnings=warnings,
            cache_key=key,
        )
        await self._store(key, result)
        return result

    @staticmethod
    def cache_key(
        allocation: PortfolioAllocation,
        start_date: date,
        end_date: date,
        initial_capital: float,
        risk_free_rate: float,
        benchmark: str | None = None,
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> str:
        """SHA-256 over the canonical JSON of everything that shapes a result.

        Ticker order does not matter: the allocation is sorted first.
        """
        request = {
            "allocation": allocation.canonical(),
            "start": start_date.isoformat(),
            "end": end_date.isoformat(),
            "capital": round(float(initial_capital), 6),
            "risk_free_rate": round(float(risk_free_rate), 10),
            "benchmark": benchmark,
            "rebalance": RebalanceFrequency(rebalance).value,
        }
        blob = json.dumps(request, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------ #
    # Correlations                                                         #
    # ------------------------------------------------------------------ #

    async def compute_correlations(
        self,
        tickers: Sequence[str],
        lookback_days: int | None = None,
        end_date: date | None = None,
        timeout: float | None = None,
    ) -> CorrelationMatrix:
        """Pairwise correlations over the most recent lookback_days returns.

        Tickers that fail to load are excluded with the reason instead of
        failing the whole matrix.  The matrix is persisted when a
        correlation store is configured.

        Raises:
            ComputationAbortedError: timeout elapsed before all pairs were done.
        """
        lookback = lookback_days or self._config.correlation_lookback_days
        end = end_date or self._today()
        start = end - calendar_span(lookback)
        kept, excluded = self._correlation.truncate(
            [t.strip().upper() for t in tickers], self._config.max_correlation_tickers
        )

        fetched = await fetch_in_batches(
            kept,
            lambda t: self._source.fetch_bars(t, start, end),
            batch_size=self._config.sync_batch_size,
            pause_seconds=0.0,
        )
        series: list[ReturnSeries] = []
        for ticker, outcome in fetched:
            if isinstance(outcome, Exception):
                excluded[ticker] = f"fetch failed: {outcome}"
                continue
            if len(outcome) < 2:
                excluded[ticker] = "no bars in the lookback window"
                continue
            series.append(self._returns.build_return_series(ticker, outcome))

        matrix = self._correlation.compute_matrix(
            series,
            lookback=lookback,
            min_observations=self._config.min_correlation_observations,
            max_tickers=self._config.max_correlation_tickers,
            excluded=excluded,
            should_abort=deadline(timeout),
        )
        if self._correlation_store is not None and matrix.entries:
            await self._correlation_store.upsert(matrix)
        return matrix

    # ------------------------------------------------------------------ #
    # Scenarios                                                            #
    # ------------------------------------------------------------------ #

    async def run_stress_tests(
        self,
        allocation: PortfolioAllocation,
        capital: float = DEFAULT_INITIAL_CAPITAL,
        benchmark: str | None = None,
        as_of: date | None = None,
        scenarios: Sequence[ScenarioDefinition] | None = None,
        rate_duration: float | None = None,
    ) -> list[ScenarioResult]:
        """Apply each scenario's shocks to the allocation.

        Both exposures are estimated over the year before as_of:
          beta          — regression on the benchmark; 1.0 when not possible
          rate_duration — beta to EngineConfig.rate_proxy_ticker times
                          EngineConfig.rate_proxy_duration; 0 (rate shocks
                          ignored) when not possible
        Each fallback is noted on every result.  An explicit rate_duration
        overrides the estimate.  Historical scenarios are also replayed on
        real bars when the window can be loaded.
        """
        allocation.ensure_valid()
        as_of = as_of or self._today()
        benchmark = (benchmark or self._config.benchmark_ticker or "").upper() or None
        beta, rate_estimate, notes = await self._exposures(
            allocation, benchmark, as_of, estimate_duration=rate_duration is None
        )
        if rate_duration is None:
            rate_duration = rate_estimate

        chosen = list(scenarios) if scenarios is not None else default_scenarios()
        results = self._scenarios.run_stress_tests(chosen, capital, beta, rate_duration, notes)
        return [
            await self._replay(allocation, result, scenario)
            for result, scenario in zip(results, chosen)
        ]

    async def run_monte_carlo(
        self,
        allocation: PortfolioAllocation,
        num_paths: int = 10_000,
        horizon_days: int = 252,
        random_seed: int | None = None,
        method: SimulationMethod = SimulationMethod.BOOTSTRAP,
        history_days: int = 756,
        as_of: date | None = None,
        initial_value: float = DEFAULT_INITIAL_CAPITAL,
        cov_method: CovMethod = CovMethod.SAMPLE,
        timeout: float | None = None,
    ) -> DistributionSummary:
        """Simulate forward portfolio values from the last history_days returns.

        The same random_seed and history always give the same summary.

        Raises:
            DegenerateInputError: constant history or a singular covariance.
            ComputationAbortedError: timeout elapsed between chunks.
        """
        allocation.ensure_valid()
        end = as_of or self._today()
        start = end - calendar_span(history_days)
        bars = await self._load_bars(allocation.tickers, start, end)
        history = self._history(allocation, bars, start, end)

        asset_returns = history.asset_returns.tail(history_days)
        fractions = allocation.fractions()
        weights = np.array([fractions[t] for t in asset_returns.columns])
        portfolio = asset_returns.to_numpy() @ weights

        return self._monte_carlo.simulate(
            method,
            np.random.default_rng(random_seed),
            num_paths=num_paths,
            horizon_days=horizon_days,
            initial_value=initial_value,
            portfolio_returns=portfolio,
            asset_returns=asset_returns,
            weights=weights,
            cov_method=cov_method,
            seed=random_seed,
            should_abort=deadline(timeout),
        )

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    async def _load_bars(
        self, tickers: Sequence[str], start: date, end: date
    ) -> dict[str, list[Bar]]:
        """Bars for every ticker; any failure or empty range is fatal."""
        fetched = await fetch_in_batches(
            list(tickers),
            lambda t: self._source.fetch_bars(t, start, end),
            batch_size=self._config.sync_batch_size,
            pause_seconds=0.0,
        )
        bars: dict[str, list[Bar]] = {}
        for ticker, outcome in fetched:
            if isinstance(outcome, QuantEngineError):
                raise outcome
            if isinstance(outcome, Exception):
                raise UpstreamFetchError(
                    f"Bar source failed: {outcome}", ticker=ticker, start=start, end=end
                ) from outcome
            if not outcome:
                raise InsufficientDataError(
                    "No bars for the requested range",
                    ticker=ticker,
                    start=start,
                    end=end,
                    calculation="backtest",
                )
            bars[ticker] = outcome
        return bars

    def _history(
        self,
        allocation: PortfolioAllocation,
        bars: dict[str, list[Bar]],
        start: date,
        end: date,
        rebalance: RebalanceFrequency = RebalanceFrequency.DAILY,
    ) -> _PortfolioHistory:
        closes = self._returns.align_closes(bars, start, end)
        all_dates = set().union(*({b.bar_date for b in tb} for tb in bars.values()))
        asset_returns = self._returns.compute_returns(closes)
        portfolio = self._returns.portfolio_returns(
            asset_returns, allocation.fractions(), rebalance
        )
        return _PortfolioHistory(
            closes=closes,
            asset_returns=asset_returns,
            portfolio=portfolio,
            dropped_dates=len(all_dates) - len(closes),
        )

    async def _paired_returns(
        self,
        benchmark: str | None,
        curve: list[EquityPoint],
        start: date,
        end: date,
        warnings: list[str],
    ) -> tuple[pd.Series, pd.Series] | None:
        """(portfolio, benchmark) returns on shared dates, or None with a warning."""
        if benchmark is None:
            return None
        try:
            return await self._relative_to(benchmark, curve, start, end, warnings)
        except QuantEngineError as exc:
            logger.warning("Benchmark %s unavailable: %s", benchmark, exc)
            warnings.append(f"Benchmark {benchmark} unavailable: {exc.message}")
            return None

    async def _relative_to(
        self,
        ticker: str,
        curve: list[EquityPoint],
        start: date,
        end: date,
        warnings: list[str] | None = None,
    ) -> tuple[pd.Series, pd.Series]:
        """Returns of the equity curve and of ticker between dates priced in both.

        A date missing from either side widens the neighbouring return
        interval on both sides instead of misaligning them.

        Raises:
            InsufficientDataError: ticker has no bars or shares fewer than
                two dates with the curve.
        """
        bars = await self._source.fetch_bars(ticker, start, end)
        if not bars:
            raise InsufficientDataError(
                "No bars for the range",
                ticker=ticker,
                start=start,
                end=end,
                calculation="relative metrics",
            )
        values = pd.Series(
            [p.value for p in curve],
            index=pd.Index([p.bar_date for p in curve], name="bar_date"),
            dtype=float,
        )
        joined = pd.concat(
            {"portfolio": values, "reference": self._returns.closes(bars)},
            axis=1,
            join="inner",
        ).dropna()
        if len(joined) < 2:
            raise InsufficientDataError(
                f"{ticker} overlaps fewer than 2 portfolio dates",
                ticker=ticker,
                start=start,
                end=end,
                calculation="relative metrics",
            )
        excluded = len(values) - len(joined)
        if excluded and warnings is not None:
            warnings.append(
                f"{excluded} portfolio date(s) without a {ticker} bar excluded from relative metrics"
            )
        returns = self._returns.compute_returns(joined)
        return returns["portfolio"], returns["reference"]

    async def _exposures(
        self,
        allocation: PortfolioAllocation,
        benchmark: str | None,
        as_of: date,
        estimate_duration: bool = True,
    ) -> tuple[float, float, list[str]]:
        """(beta, rate duration, notes) over the year before as_of.

        Beta falls back to 1.0 and the duration to 0.0, each with a note.
        """
        start = as_of - calendar_span(self._config.trading_days_per_year)
        proxy = self._config.rate_proxy_ticker if estimate_duration else None
        curve: list[EquityPoint] | None = None
        history_error = ""
        if benchmark is not None or proxy is not None:
            try:
                bars = await self._load_bars(allocation.tickers, start, as_of)
                history = self._history(allocation, bars, start, as_of)
                curve = self._drawdown.equity_curve(history.portfolio, 1.0, history.closes.index[0])
            except QuantEngineError as exc:
                history_error = exc.message

        notes: list[str] = []
        beta, reason = None, "no benchmark configured"
        if benchmark is not None:
            beta, reason = await self._sensitivity(benchmark, curve, history_error, start, as_of)
        if beta is None:
            logger.warning("Beta unavailable (%s); assuming market beta of 1.0", reason)
            notes.append(f"Beta unavailable ({reason}); assumed market beta of 1.0")
            beta = 1.0

        duration = 0.0
        if estimate_duration:
            proxy_beta, reason = None, "no rate proxy configured"
            if proxy is not None:
                proxy_beta, reason = await self._sensitivity(
                    proxy, curve, history_error, start, as_of
                )
            if proxy_beta is None:
                logger.warning("Rate sensitivity unavailable (%s); rate shocks ignored", reason)
                notes.append(f"Rate sensitivity unavailable ({reason}); rate shocks not applied")
            else:
                duration = proxy_beta * self._config.rate_proxy_duration
        return beta, duration, notes

    async def _sensitivity(
        self,
        ticker: str,
        curve: list[EquityPoint] | None,
        history_error: str,
        start: date,
        end: date,
    ) -> tuple[float | None, str]:
        """Beta of the equity curve to ticker, or (None, reason)."""
        if curve is None:
            return None, history_error
        try:
            portfolio, reference = await self._relative_to(ticker, curve, start, end)
        except QuantEngineError as exc:
            return None, exc.message
        if len(reference) < 2:
            return None, f"fewer than 2 returns overlap {ticker}"
        beta = self._metrics.beta(portfolio.to_numpy(), reference.to_numpy())
        if beta is None:
            return None, f"{ticker} variance is zero"
        return beta, ""

    async def _replay(
        self,
        allocation: PortfolioAllocation,
        result: ScenarioResult,
        scenario: ScenarioDefinition,
    ) -> ScenarioResult:
        if (
            scenario.kind != ScenarioKind.HISTORICAL
            or scenario.start_date is None
            or scenario.end_date is None
        ):
            return result
        try:
            bars = await self._load_bars(allocation.tickers, scenario.start_date, scenario.end_date)
            history = self._history(allocation, bars, scenario.start_date, scenario.end_date)
        except QuantEngineError as exc:
            logger.info("No historical replay for %s: %s", scenario.name, exc)
            return result.model_copy(
                update={"notes": [*result.notes, f"Historical replay unavailable: {exc.message}"]}
            )
        return self._scenarios.replay(
            result, history.portfolio.values(), history.asset_returns, allocation.fractions()
        )

    async def _cached(self, key: str) -> BacktestResult | None:
        if self._cache is None or self._config.cache_ttl_seconds == 0:
            return None
        entry = await self._cache.get(key)
        if entry is None or entry.is_stale():
            return None
        logger.info("Backtest cache hit %s", key[:12])
        result = BacktestResult.model_validate(entry.payload)
        return result.model_copy(update={"from_cache": True})

    async def _store(self, key: str, result: BacktestResult) -> None:
        if self._cache is None or self._config.cache_ttl_seconds == 0:
            return
        payload: dict[str, Any] = result.model_dump(mode="json")
        await self._cache.put(key, payload, self._config.cache_ttl_seconds)
