"""Domain enumerations for the backtest engine.

All string-valued enums use str mixin so they serialize cleanly to JSON
and remain comparable to plain strings (Pydantic default behaviour).
"""

from enum import Enum


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        """Standard annualisation factor for this frequency."""
        return {
            Frequency.DAILY: 252,
            Frequency.WEEKLY: 52,
            Frequency.MONTHLY: 12,
        }[self]


class ReturnType(str, Enum):
    SIMPLE = "simple"
    LOG = "log"


class RebalanceFrequency(str, Enum):
    """When a backtest resets holdings to the target weights.

    NONE is buy-and-hold: weights drift with prices for the whole run.
    WEEKLY / MONTHLY rebalance at the last close of each calendar week /
    month, so weights drift in between.
    """

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class CovMethod(str, Enum):
    """Covariance matrix (Σ) estimation method used by parametric simulation."""

    SAMPLE = "sample"
    LEDOIT_WOLF = "ledoit_wolf"


class SimulationMethod(str, Enum):
    """How Monte Carlo paths draw their daily returns.

    BOOTSTRAP   — resample observed portfolio returns with replacement.
    PARAMETRIC  — normal draws from the fitted portfolio mean / volatility.
    MULTI_ASSET — correlated normal draws per asset (Cholesky of Σ),
                  combined with the allocation weights.
    """

    BOOTSTRAP = "bootstrap"
    PARAMETRIC = "parametric"
    MULTI_ASSET = "multi_asset"


class ScenarioKind(str, Enum):
    HISTORICAL = "historical"
    HYPOTHETICAL = "hypothetical"


class DataQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
