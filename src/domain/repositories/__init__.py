"""Domain repository interfaces.

All abstractions are defined here with abc.ABC and @abstractmethod.
Concrete implementations live in src/infrastructure/ and are wired at the
application boundary via dependency injection.

Import from this package rather than individual modules to avoid coupling
services to specific repository module paths.
"""

from .bars import BarRepository
from .cache import ResultCacheRepository
from .correlations import CorrelationRepository
from .datasources import MarketDataSource

__all__ = [
    "BarRepository",
    "CorrelationRepository",
    "ResultCacheRepository",
    "MarketDataSource",
]
