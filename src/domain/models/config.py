"""Engine configuration.

EngineConfig is injected into BacktestEngine and the services it drives.
It is a plain frozen model so tests can build one directly; environment
loading lives in src/infrastructure/database.py (Settings.engine_config()).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_RISK_FREE_RATE = 0.05
TRADING_DAYS_PER_YEAR = 252


class EngineConfig(BaseModel):
    """Tunable knobs of the backtest engine.

    live_data_enabled   — False forces the seeded synthetic bar source
                          (kill switch for the live data path)
    synthetic_seed      — seed of the synthetic bar source
    benchmark_ticker    — default benchmark for beta / alpha / stress tests
    cache_ttl_seconds   — lifetime of cached backtest results; 0 disables caching
    rate_proxy_ticker   — treasury fund whose returns proxy interest-rate moves
    rate_proxy_duration — effective duration (years) of the rate proxy; the
                          portfolio's rate duration is its beta to the proxy
                          times this figure
    metric_ranges       — per-metric (low, high) bounds overriding the
                          realistic ranges used for backtest warnings
    """

    model_config = ConfigDict(frozen=True)

    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    trading_days_per_year: int = Field(default=TRADING_DAYS_PER_YEAR, gt=0)
    min_correlation_observations: int = Field(default=20, gt=1)
    max_correlation_tickers: int = Field(default=50, gt=1)
    correlation_lookback_days: int = Field(default=252, gt=1)
    sync_batch_size: int = Field(default=5, gt=0)
    sync_batch_pause: float = Field(default=1.2, ge=0.0)
    cache_ttl_seconds: int = Field(default=3600, ge=0)
    live_data_enabled: bool = True
    synthetic_seed: int = 42
    benchmark_ticker: str | None = "SPY"
    rate_proxy_ticker: str | None = "IEF"
    rate_proxy_duration: float = Field(default=7.5, gt=0.0)
    monte_carlo_chunk_size: int = Field(default=1000, gt=0)
    metric_ranges: dict[str, tuple[float, float]] = Field(default_factory=dict)
