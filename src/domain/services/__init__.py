"""Domain services package."""

from .correlation import CorrelationService
from .drawdown import DrawdownService
from .engine import BacktestEngine
from .metrics import PerformanceService
from .monte_carlo import MonteCarloService
from .returns import ReturnSeriesService
from .scenarios import ScenarioService
from .sync import BarSyncService
from .validation import DataValidationService

__all__ = [
    "BacktestEngine",
    "BarSyncService",
    "CorrelationService",
    "DataValidationService",
    "DrawdownService",
    "MonteCarloService",
    "PerformanceService",
    "ReturnSeriesService",
    "ScenarioService",
]
