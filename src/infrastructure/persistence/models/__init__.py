"""ORM model registry — imports all layer modules so every mapper class is
registered with Base.metadata before Alembic or SQLAlchemy runs.
"""

from src.infrastructure.persistence.models.market_data import MarketDailyBar
from src.infrastructure.persistence.models.correlations import TickerCorrelation
from src.infrastructure.persistence.models.cache import CachedResultRow

__all__ = [
    # Market data
    "MarketDailyBar",
    # Correlations
    "TickerCorrelation",
    # Cache
    "CachedResultRow",
]
