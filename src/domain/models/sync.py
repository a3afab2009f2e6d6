"""Bar synchronisation result models."""

from __future__ import annotations

from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .enums import SyncStatus


class TickerSyncOutcome(BaseModel):
    """What happened to one ticker during a sync.

    error is None on success.  start_date is the first date requested; it is
    the day after the latest stored bar for incremental syncs.
    """

    model_config = ConfigDict(frozen=True)

    ticker: str
    start_date: date | None = None
    end_date: date | None = None
    bars_written: int = Field(default=0, ge=0)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SyncResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SyncStatus
    outcomes: list[TickerSyncOutcome] = Field(default_factory=list)
    correlations_updated: int = Field(default=0, ge=0)
    warnings: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def bars_written(self) -> int:
        return sum(o.bars_written for o in self.outcomes)

    @property
    def failed_tickers(self) -> list[str]:
        return [o.ticker for o in self.outcomes if not o.succeeded]

    @staticmethod
    def status_for(outcomes: list[TickerSyncOutcome]) -> SyncStatus:
        """COMPLETED when every ticker succeeded, FAILED when none did."""
        succeeded = sum(1 for o in outcomes if o.succeeded)
        if succeeded == len(outcomes):
            return SyncStatus.COMPLETED
        if succeeded == 0:
            return SyncStatus.FAILED
        return SyncStatus.PARTIAL
