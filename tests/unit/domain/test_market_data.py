"""Tests for src/domain/models/market_data.py."""

import pytest
from datetime import date
from pydantic import ValidationError

from src.domain.models.market_data import Bar, ReturnPoint, ReturnSeries


def _bar(**overrides) -> Bar:
    defaults = dict(
        ticker="spy",
        bar_date=date(2024, 1, 2),
        open=470.0,
        high=475.0,
        low=468.0,
        close=472.5,
        volume=1_000_000,
    )
    defaults.update(overrides)
    return Bar(**defaults)


def _series(*days: int) -> ReturnSeries:
    return ReturnSeries(
        ticker="SPY",
        points=[
            ReturnPoint(bar_date=date(2024, 1, d), simple_return=0.01 * d, log_return=0.0)
            for d in days
        ],
    )


# --- Bar ---

def test_bar_ticker_is_uppercased():
    assert _bar().ticker == "SPY"


def test_bar_vwap_defaults_to_none():
    assert _bar().vwap is None


def test_bar_zero_close_raises():
    with pytest.raises(ValidationError):
        _bar(close=0.0)


def test_bar_negative_volume_raises():
    with pytest.raises(ValidationError):
        _bar(volume=-1)


def test_bar_high_below_close_raises():
    with pytest.raises(ValidationError, match="high"):
        _bar(high=471.0)


def test_bar_low_above_open_raises():
    with pytest.raises(ValidationError, match="low"):
        _bar(low=471.0)


def test_bar_is_frozen():
    bar = _bar()
    with pytest.raises(ValidationError):
        bar.close = 500.0  # type: ignore[misc]


# --- ReturnSeries ---

def test_return_series_len():
    assert len(_series(2, 3, 4)) == 3


def test_return_series_out_of_order_raises():
    with pytest.raises(ValidationError, match="strictly increasing"):
        _series(3, 2)


def test_return_series_duplicate_date_raises():
    with pytest.raises(ValidationError):
        _series(2, 2)


def test_return_series_to_series_is_date_indexed():
    s = _series(2, 3).to_series()
    assert list(s.index) == [date(2024, 1, 2), date(2024, 1, 3)]
    assert s.name == "SPY"


def test_return_series_tail_keeps_latest():
    assert _series(2, 3, 4).tail(2).dates == [date(2024, 1, 3), date(2024, 1, 4)]


def test_return_series_tail_longer_than_series():
    assert len(_series(2, 3).tail(10)) == 2


def test_return_series_tail_zero_is_empty():
    assert len(_series(2, 3).tail(0)) == 0


def test_return_series_simple_returns_array():
    assert _series(2, 3).simple_returns().tolist() == pytest.approx([0.02, 0.03])
