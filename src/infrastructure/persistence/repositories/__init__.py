"""Concrete SQLAlchemy repository implementations.

Exports all SqlRepository classes and the get_repositories() factory function
for wiring at the application boundary.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from .bars import SqlBarRepository
from .cache import SqlResultCacheRepository
from .correlations import SqlCorrelationRepository


@dataclass
class Repositories:
    """All repository instances bound to a single AsyncSession."""

    bars: SqlBarRepository
    correlations: SqlCorrelationRepository
    cache: SqlResultCacheRepository


def get_repositories(session: AsyncSession) -> Repositories:
    """Construct all repositories bound to the given session.

        async with AsyncSessionLocal() as session:
            async with session.begin():
                repos = get_repositories(session)
                bars = await repos.bars.get_bars("VTI", start, end)
    """
    return Repositories(
        bars=SqlBarRepository(session),
        correlations=SqlCorrelationRepository(session),
        cache=SqlResultCacheRepository(session),
    )


__all__ = [
    "SqlBarRepository",
    "SqlCorrelationRepository",
    "SqlResultCacheRepository",
    "Repositories",
    "get_repositories",
]
