"""Unit tests for DrawdownService."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pytest

from src.domain.errors import InsufficientDataError
from src.domain.models.portfolio import EquityPoint, PortfolioReturnPoint, PortfolioReturnSeries
from src.domain.services.drawdown import DrawdownService

_START = date(2024, 1, 1)


def _day(i: int) -> date:
    return _START + timedelta(days=i)


def _curve(values: list[float]) -> list[EquityPoint]:
    return [EquityPoint(bar_date=_day(i), value=v) for i, v in enumerate(values)]


def _returns(values: list[float]) -> PortfolioReturnSeries:
    return PortfolioReturnSeries(
        points=[PortfolioReturnPoint(bar_date=_day(i + 1), ret=r) for i, r in enumerate(values)]
    )


@pytest.fixture
def svc() -> DrawdownService:
    return DrawdownService()


# --- equity_curve ---

def test_equity_curve_starts_at_initial_capital(svc):
    curve = svc.equity_curve(_returns([0.1, -0.1]), 1000.0, _START)
    assert curve[0] == EquityPoint(bar_date=_START, value=1000.0)


def test_equity_curve_compounds(svc):
    curve = svc.equity_curve(_returns([0.1, -0.1]), 1000.0, _START)
    assert [p.value for p in curve] == pytest.approx([1000.0, 1100.0, 990.0])


def test_equity_curve_final_value_matches_total_return(svc):
    r = [0.01, 0.02, -0.015, 0.005]
    curve = svc.equity_curve(_returns(r), 10_000.0, _START)
    assert curve[-1].value == pytest.approx(10_000.0 * np.prod(1 + np.array(r)))


def test_equity_curve_rejects_non_positive_capital(svc):
    with pytest.raises(ValueError, match="initial_capital"):
        svc.equity_curve(_returns([0.1]), 0.0, _START)


# --- analyze ---

def test_max_drawdown_reference_curve(svc):
    result = svc.analyze(_curve([100, 110, 105, 95, 90, 100, 85, 95]))
    assert result.max_drawdown == pytest.approx(85 / 110 - 1)
    assert result.max_drawdown == pytest.approx(-0.22727, abs=1e-5)


def test_reference_curve_peak_and_trough_dates(svc):
    result = svc.analyze(_curve([100, 110, 105, 95, 90, 100, 85, 95]))
    assert result.peak_date == _day(1)
    assert result.trough_date == _day(6)
    assert result.recovery_date is None


def test_reference_curve_current_drawdown(svc):
    result = svc.analyze(_curve([100, 110, 105, 95, 90, 100, 85, 95]))
    assert result.current_drawdown == pytest.approx(95 / 110 - 1)


def test_reference_curve_single_open_episode(svc):
    result = svc.analyze(_curve([100, 110, 105, 95, 90, 100, 85, 95]))
    assert len(result.episodes) == 1
    assert result.episodes[0].is_recovered is False
    assert result.avg_recovery_days is None


def test_monotonic_curve_has_no_drawdown(svc):
    result = svc.analyze(_curve([100, 101, 102, 103]))
    assert result.max_drawdown == 0.0
    assert result.current_drawdown == 0.0
    assert result.episodes == []
    assert result.peak_date is None
    assert result.ulcer_index == 0.0


def test_recovered_episode_counts_observations_from_trough(svc):
    result = svc.analyze(_curve([100, 90, 95, 100, 105]))
    episode = result.episodes[0]
    assert episode.recovery_date == _day(3)
    assert episode.recovery_days == 2
    assert result.avg_recovery_days == 2.0


def test_worst_of_several_episodes_selected(svc):
    result = svc.analyze(_curve([100, 90, 100, 80, 100]))
    assert len(result.episodes) == 2
    assert result.max_drawdown == pytest.approx(-0.2)
    assert result.peak_date == _day(2)
    assert result.avg_recovery_days == 1.0


def test_current_never_deeper_than_max(svc):
    result = svc.analyze(_curve([100, 120, 60, 70, 50]))
    assert result.current_drawdown >= result.max_drawdown


def test_ulcer_index_is_rms_of_drawdowns(svc):
    result = svc.analyze(_curve([100, 90]))
    assert result.ulcer_index == pytest.approx(np.sqrt(0.005))


def test_drawdown_series_covers_every_point(svc):
    curve = _curve([100, 90, 95, 100])
    result = svc.analyze(curve)
    assert [p.bar_date for p in result.series] == [p.bar_date for p in curve]
    assert result.series[1].value == pytest.approx(-0.1)


def test_empty_curve_raises(svc):
    with pytest.raises(InsufficientDataError):
        svc.analyze([])
