"""Tests for src/domain/repositories/bars.py."""

import asyncio
import pytest

from src.domain.repositories.bars import BarRepository


def _concrete() -> BarRepository:
    class _Impl(BarRepository):
        async def get_bars(self, ticker, start=None, end=None): return []
        async def get_latest_date(self, ticker): return None
        async def bulk_upsert(self, bars): return len(bars)

    return _Impl()


def test_bar_repository_is_abstract():
    with pytest.raises(TypeError):
        BarRepository()  # type: ignore[abstract]


def test_bar_repository_concrete_instantiates():
    assert _concrete() is not None


def test_bar_repository_bulk_upsert_returns_count():
    result = asyncio.run(_concrete().bulk_upsert(["a", "b", "c"]))
    assert result == 3


def test_bar_repository_get_latest_date_none_when_empty():
    result = asyncio.run(_concrete().get_latest_date("VTI"))
    assert result is None


def test_bar_repository_missing_method_is_abstract():
    class _Partial(BarRepository):
        async def get_bars(self, ticker, start=None, end=None): return []

    with pytest.raises(TypeError):
        _Partial()  # type: ignore[abstract]
