"""Domain model package.

All domain objects are pure Python / Pydantic models with no ORM or
infrastructure dependencies.  Import from this package to avoid coupling
application code to individual module paths.
"""

from .backtest import BacktestResult, DrawdownAnalysis, DrawdownEpisode, PerformanceMetrics
from .cache import CachedResult
from .config import EngineConfig
from .correlation import CorrelationEntry, CorrelationMatrix, SkippedPair
from .enums import (
    CovMethod,
    DataQuality,
    Frequency,
    RebalanceFrequency,
    ReturnType,
    ScenarioKind,
    SimulationMethod,
    SyncStatus,
)
from .market_data import Bar, ReturnPoint, ReturnSeries
from .portfolio import (
    AllocationEntry,
    AssetContribution,
    EquityPoint,
    PortfolioAllocation,
    PortfolioReturnPoint,
    PortfolioReturnSeries,
)
from .scenarios import (
    AssetStressOutcome,
    DistributionSummary,
    PercentileBand,
    ScenarioDefinition,
    ScenarioResult,
    default_scenarios,
)
from .sync import SyncResult, TickerSyncOutcome
from .validation import (
    CorrelationValidationResult,
    DataValidationResult,
    MetricsValidationResult,
)

__all__ = [
    # enums
    "CovMethod",
    "DataQuality",
    "Frequency",
    "RebalanceFrequency",
    "ReturnType",
    "ScenarioKind",
    "SimulationMethod",
    "SyncStatus",
    # config
    "EngineConfig",
    # market data
    "Bar",
    "ReturnPoint",
    "ReturnSeries",
    # portfolio
    "AllocationEntry",
    "PortfolioAllocation",
    "PortfolioReturnPoint",
    "PortfolioReturnSeries",
    "EquityPoint",
    "AssetContribution",
    # backtest
    "PerformanceMetrics",
    "DrawdownEpisode",
    "DrawdownAnalysis",
    "BacktestResult",
    # correlation
    "CorrelationEntry",
    "CorrelationMatrix",
    "SkippedPair",
    # scenarios
    "ScenarioDefinition",
    "ScenarioResult",
    "AssetStressOutcome",
    "PercentileBand",
    "DistributionSummary",
    "default_scenarios",
    # sync / cache
    "SyncResult",
    "TickerSyncOutcome",
    "CachedResult",
    # validation
    "DataValidationResult",
    "MetricsValidationResult",
    "CorrelationValidationResult",
]
