"""Tests for the get_repositories() DI factory."""

from unittest.mock import AsyncMock

from src.infrastructure.persistence.repositories import (
    Repositories,
    SqlBarRepository,
    SqlCorrelationRepository,
    SqlResultCacheRepository,
    get_repositories,
)


def _repos():
    return get_repositories(AsyncMock())


def test_get_repositories_returns_repositories_instance():
    assert isinstance(_repos(), Repositories)


def test_repositories_bars_is_correct_type():
    assert isinstance(_repos().bars, SqlBarRepository)


def test_repositories_correlations_is_correct_type():
    assert isinstance(_repos().correlations, SqlCorrelationRepository)


def test_repositories_cache_is_correct_type():
    assert isinstance(_repos().cache, SqlResultCacheRepository)


def test_repositories_dataclass_has_three_fields():
    assert len(Repositories.__dataclass_fields__) == 3
