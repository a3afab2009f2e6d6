"""Bar synchronisation job.

Pulls daily bars from an upstream source into the bar store, ticker by
ticker, respecting the upstream rate limit:

    sync
        → fetch_in_batches      (batch_size concurrent calls, paced batches)
            → _sync_ticker      (incremental start → fetch → upsert)
        → _refresh_correlations (multi-ticker syncs only)

One ticker's failure is recorded on its outcome and never aborts the rest.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime, timedelta, timezone

from src.domain.errors import QuantEngineError
from src.domain.models.config import EngineConfig
from src.domain.models.correlation import CorrelationMatrix
from src.domain.models.sync import SyncResult, TickerSyncOutcome
from src.domain.repositories.bars import BarRepository
from src.domain.repositories.correlations import CorrelationRepository
from src.domain.repositories.datasources import MarketDataSource
from src.domain.services.batching import fetch_in_batches
from src.domain.services.correlation import CorrelationService
from src.domain.services.returns import ReturnSeriesService, calendar_span

logger = logging.getLogger(__name__)

DEFAULT_HISTORY = timedelta(days=365 * 5)


class BarSyncService:
    """Async job writing upstream bars into the bar store.

    Collaborators are injected; sleep is injectable so tests can observe the
    pacing without waiting.
    """

    def __init__(
        self,
        bars: BarRepository,
        upstream: MarketDataSource,
        config: EngineConfig,
        correlations: CorrelationRepository | None = None,
        returns_service: ReturnSeriesService | None = None,
        correlation_service: CorrelationService | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._bars = bars
        self._upstream = upstream
        self._config = config
        self._correlations = correlations
        self._returns = returns_service or ReturnSeriesService()
        self._correlation = correlation_service or CorrelationService()
        self._sleep = sleep
        self._today = today

    async def sync(
        self,
        tickers: Sequence[str],
        start: date | None = None,
        end: date | None = None,
        force_refresh: bool = False,
    ) -> SyncResult:
        """Sync every ticker and, for several tickers, refresh correlations.

        Without force_refresh each ticker resumes the day after its latest
        stored bar; start is used for tickers with no stored history
        (default: five years before end).
        """
        started_at = datetime.now(timezone.utc)
        end = end or self._today()
        start = start or end - DEFAULT_HISTORY
        symbols = list(dict.fromkeys(t.strip().upper() for t in tickers))
        logger.info("Syncing %d tickers up to %s", len(symbols), end)

        async def _sync(ticker: str) -> TickerSyncOutcome:
            return await self._sync_ticker(ticker, start, end, force_refresh)

        fetched = await fetch_in_batches(
            symbols,
            _sync,
            batch_size=self._config.sync_batch_size,
            pause_seconds=self._config.sync_batch_pause,
            sleep=self._sleep,
        )

        outcomes: list[TickerSyncOutcome] = []
        warnings: list[str] = []
        for ticker, outcome in fetched:
            if isinstance(outcome, Exception):
                warnings.append(f"{ticker}: sync failed ({outcome})")
                outcomes.append(TickerSyncOutcome(ticker=ticker, error=str(outcome)))
            else:
                outcomes.append(outcome)

        correlations_updated = 0
        succeeded = [o.ticker for o in outcomes if o.succeeded]
        if self._correlations is not None and len(succeeded) > 1:
            try:
                correlations_updated = await self._refresh_correlations(succeeded, end)
            except Exception as exc:
                logger.exception("Correlation refresh after sync failed")
                warnings.append(f"Correlation refresh failed: {exc}")

        status = SyncResult.status_for(outcomes)
        logger.info(
            "Sync %s: %d/%d tickers, %d correlations",
            status.value,
            len(succeeded),
            len(outcomes),
            correlations_updated,
        )
        return SyncResult(
            status=status,
            outcomes=outcomes,
            correlations_updated=correlations_updated,
            warnings=warnings,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    async def _sync_ticker(
        self,
        ticker: str,
        start: date,
        end: date,
        force_refresh: bool,
    ) -> TickerSyncOutcome:
        fetch_start = start
        if not force_refresh:
            latest = await self._bars.get_latest_date(ticker)
            if latest is not None:
                fetch_start = latest + timedelta(days=1)
        if fetch_start > end:
            logger.debug("%s is up to date (latest bar before %s)", ticker, fetch_start)
            return TickerSyncOutcome(ticker=ticker, start_date=fetch_start, end_date=end)

        bars = await self._upstream.fetch_bars(ticker, fetch_start, end)
        written = await self._bars.bulk_upsert(bars) if bars else 0
        return TickerSyncOutcome(
            ticker=ticker, start_date=fetch_start, end_date=end, bars_written=written
        )

    async def _refresh_correlations(self, tickers: list[str], end: date) -> int:
        lookback = self._config.correlation_lookback_days
        kept, excluded = self._correlation.truncate(
            tickers, self._config.max_correlation_tickers
        )
        window_start = end - calendar_span(lookback)

        series = []
        for ticker in kept:
            bars = await self._bars.get_bars(ticker, window_start, end)
            try:
                series.append(self._returns.build_return_series(ticker, bars))
            except QuantEngineError as exc:
                excluded[ticker] = str(exc)

        matrix: CorrelationMatrix = self._correlation.compute_matrix(
            series,
            lookback=lookback,
            min_observations=self._config.min_correlation_observations,
            max_tickers=self._config.max_correlation_tickers,
            excluded=excluded,
        )
        if not matrix.entries:
            return 0
        return await self._correlations.upsert(matrix)
