"""Unit tests for ReturnSeriesService.

Test layout:
  - build_return_series
  - compute_returns
  - align_closes (missing-bar policy)
  - portfolio_returns / contributions
  - weight_path (rebalance schedules)
"""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from src.domain.errors import AllocationError, InsufficientDataError
from src.domain.models.enums import RebalanceFrequency, ReturnType
from src.domain.models.market_data import Bar
from src.domain.models.portfolio import PortfolioAllocation
from src.domain.services.returns import ReturnSeriesService, calendar_span


# ═══════════════════════════════════════════════════════════════════════════ #
# Helpers                                                                      #
# ═══════════════════════════════════════════════════════════════════════════ #


def _bar(ticker: str, day: date, close: float) -> Bar:
    return Bar(
        ticker=ticker, bar_date=day, open=close, high=close, low=close, close=close, volume=1000
    )


def _bars(ticker: str, closes: list[float], skip: tuple[int, ...] = ()) -> list[Bar]:
    start = date(2024, 1, 1)
    return [
        _bar(ticker, start + timedelta(days=i), c)
        for i, c in enumerate(closes)
        if i not in skip
    ]


@pytest.fixture
def svc() -> ReturnSeriesService:
    return ReturnSeriesService()


# ═══════════════════════════════════════════════════════════════════════════ #
# build_return_series                                                          #
# ═══════════════════════════════════════════════════════════════════════════ #


def test_first_return_matches_price_ratio(svc):
    series = svc.build_return_series("VTI", _bars("VTI", [100.0, 100.573]))
    assert series.points[0].simple_return == pytest.approx(0.00573)


def test_log_return_is_log_of_ratio(svc):
    series = svc.build_return_series("VTI", _bars("VTI", [100.0, 110.0]))
    assert series.points[0].log_return == pytest.approx(np.log(1.1))


def test_n_bars_give_n_minus_one_points(svc):
    assert len(svc.build_return_series("VTI", _bars("VTI", [1.0, 2.0, 3.0, 4.0]))) == 3


def test_single_bar_gives_empty_series(svc):
    assert len(svc.build_return_series("VTI", _bars("VTI", [1.0]))) == 0


def test_unsorted_bars_are_sorted(svc):
    bars = list(reversed(_bars("VTI", [100.0, 110.0, 99.0])))
    series = svc.build_return_series("VTI", bars)
    assert series.points[0].bar_date == date(2024, 1, 2)
    assert series.points[0].simple_return == pytest.approx(0.1)


def test_empty_bars_raise_insufficient_data(svc):
    with pytest.raises(InsufficientDataError) as exc_info:
        svc.build_return_series("VTI", [])
    assert exc_info.value.ticker == "VTI"


def test_duplicate_dates_raise(svc):
    bars = _bars("VTI", [100.0, 101.0]) + [_bar("VTI", date(2024, 1, 2), 102.0)]
    with pytest.raises(ValueError, match="duplicate"):
        svc.build_return_series("VTI", bars)


# ═══════════════════════════════════════════════════════════════════════════ #
# compute_returns                                                              #
# ═══════════════════════════════════════════════════════════════════════════ #


def test_compute_returns_drops_first_row(svc):
    prices = pd.DataFrame({"A": [100.0, 110.0, 121.0]})
    assert len(svc.compute_returns(prices)) == 2


def test_compute_returns_simple(svc):
    prices = pd.DataFrame({"A": [100.0, 110.0, 121.0]})
    assert svc.compute_returns(prices)["A"].tolist() == pytest.approx([0.1, 0.1])


def test_compute_returns_log(svc):
    prices = pd.DataFrame({"A": [100.0, 110.0]})
    result = svc.compute_returns(prices, ReturnType.LOG)
    assert result["A"].iloc[0] == pytest.approx(np.log(1.1))


def test_compute_returns_unknown_type_raises(svc):
    with pytest.raises(ValueError, match="Unsupported"):
        svc.compute_returns(pd.DataFrame({"A": [1.0, 2.0]}), "weird")  # type: ignore[arg-type]


# ═══════════════════════════════════════════════════════════════════════════ #
# align_closes                                                                 #
# ═══════════════════════════════════════════════════════════════════════════ #


def test_align_closes_keeps_common_dates_only(svc):
    aligned = svc.align_closes(
        {
            "A": _bars("A", [100.0, 110.0, 121.0, 133.1]),
            "B": _bars("B", [50.0, 55.0, 60.5, 66.55], skip=(2,)),
        }
    )
    assert list(aligned.index) == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4)]


def test_returns_after_gap_span_the_gap_for_every_asset(svc):
    aligned = svc.align_closes(
        {
            "A": _bars("A", [100.0, 110.0, 121.0, 133.1]),
            "B": _bars("B", [50.0, 55.0, 60.5, 66.55], skip=(2,)),
        }
    )
    returns = svc.compute_returns(aligned)
    # 2024-01-04 return is measured against 2024-01-02 for both tickers.
    assert returns.loc[date(2024, 1, 4), "A"] == pytest.approx(133.1 / 110.0 - 1)
    assert returns.loc[date(2024, 1, 4), "B"] == pytest.approx(66.55 / 55.0 - 1)


def test_align_closes_keeps_mapping_column_order(svc):
    aligned = svc.align_closes({"B": _bars("B", [1.0, 2.0]), "A": _bars("A", [1.0, 2.0])})
    assert list(aligned.columns) == ["B", "A"]


def test_align_closes_empty_ticker_raises(svc):
    with pytest.raises(InsufficientDataError) as exc_info:
        svc.align_closes({"A": _bars("A", [1.0, 2.0]), "B": []})
    assert exc_info.value.ticker == "B"


def test_align_closes_single_common_date_raises(svc):
    with pytest.raises(InsufficientDataError, match="share 1 trading date"):
        svc.align_closes(
            {"A": _bars("A", [1.0, 2.0]), "B": _bars("B", [1.0, 2.0, 3.0], skip=(0,))}
        )


# ═══════════════════════════════════════════════════════════════════════════ #
# portfolio_returns / contributions                                            #
# ═══════════════════════════════════════════════════════════════════════════ #


@pytest.fixture
def asset_returns() -> pd.DataFrame:
    idx = [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]
    return pd.DataFrame({"A": [0.10, -0.05, 0.02], "B": [0.00, 0.04, -0.01]}, index=idx)


def test_portfolio_returns_weighted_sum(svc, asset_returns):
    port = svc.portfolio_returns(asset_returns, {"A": 0.6, "B": 0.4})
    assert port.values().tolist() == pytest.approx([0.06, -0.014, 0.008])


def test_portfolio_returns_three_assets():
    returns = pd.DataFrame(
        {"VTI": [0.0082], "BND": [0.0012], "GLD": [0.0045]}, index=[date(2024, 1, 2)]
    )
    port = ReturnSeriesService().portfolio_returns(returns, {"VTI": 0.6, "BND": 0.3, "GLD": 0.1})
    assert port.values()[0] == pytest.approx(0.00573, abs=1e-12)


def test_portfolio_returns_keep_dates(svc, asset_returns):
    port = svc.portfolio_returns(asset_returns, {"A": 0.5, "B": 0.5})
    assert port.dates == list(asset_returns.index)


def test_portfolio_returns_missing_ticker_raises(svc, asset_returns):
    with pytest.raises(ValueError, match="C"):
        svc.portfolio_returns(asset_returns, {"A": 0.5, "C": 0.5})


def test_contributions_sum_to_total_return(svc, asset_returns):
    weights = {"A": 0.6, "B": 0.4}
    contributions = svc.contributions(asset_returns, weights)
    total = float(np.prod(1.0 + svc.portfolio_returns(asset_returns, weights).values()) - 1.0)
    assert sum(c.contribution for c in contributions) == pytest.approx(total)


def test_contributions_report_weight_in_percent(svc, asset_returns):
    contributions = svc.contributions(asset_returns, {"A": 0.6, "B": 0.4})
    assert [c.weight for c in contributions] == pytest.approx([60.0, 40.0])


def test_contributions_asset_return_is_compounded(svc, asset_returns):
    a = svc.contributions(asset_returns, {"A": 0.6, "B": 0.4})[0]
    assert a.asset_return == pytest.approx(1.10 * 0.95 * 1.02 - 1)


def test_contributions_sum_to_total_return_when_drifting(svc, asset_returns):
    weights = {"A": 0.6, "B": 0.4}
    contributions = svc.contributions(asset_returns, weights, RebalanceFrequency.NONE)
    port = svc.portfolio_returns(asset_returns, weights, RebalanceFrequency.NONE)
    total = float(np.prod(1.0 + port.values()) - 1.0)
    assert sum(c.contribution for c in contributions) == pytest.approx(total)
    assert [c.weight for c in contributions] == pytest.approx([60.0, 40.0])


def test_validate_allocation_delegates(svc):
    with pytest.raises(AllocationError):
        svc.validate_allocation(PortfolioAllocation.from_weights({"A": 50.0}))


def test_calendar_span_covers_a_year_of_sessions():
    assert calendar_span(252) == timedelta(days=372)


# ═══════════════════════════════════════════════════════════════════════════ #
# weight_path                                                                  #
# ═══════════════════════════════════════════════════════════════════════════ #

# Thursday, Friday, then the following Monday.
_WEEK_TURN = [date(2024, 1, 4), date(2024, 1, 5), date(2024, 1, 8)]
_MONTH_TURN = [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)]


def _rising_and_flat(index: list[date]) -> pd.DataFrame:
    return pd.DataFrame({"A": [0.10, 0.10, 0.10], "B": [0.0, 0.0, 0.0]}, index=index)


_HALF_HALF = {"A": 0.5, "B": 0.5}


def test_daily_rebalance_holds_target_weights(svc):
    port = svc.portfolio_returns(_rising_and_flat(_WEEK_TURN), _HALF_HALF, RebalanceFrequency.DAILY)
    assert port.values().tolist() == pytest.approx([0.05, 0.05, 0.05])


def test_buy_and_hold_lets_weights_drift(svc):
    port = svc.portfolio_returns(_rising_and_flat(_WEEK_TURN), _HALF_HALF, RebalanceFrequency.NONE)
    assert port.values().tolist() == pytest.approx([0.05, 0.055 / 1.05, 0.0605 / 1.105])


def test_buy_and_hold_matches_holding_growth(svc):
    port = svc.portfolio_returns(_rising_and_flat(_WEEK_TURN), _HALF_HALF, RebalanceFrequency.NONE)
    # 0.5 in A grows to 0.5 * 1.1^3, 0.5 in B stays flat.
    assert float(np.prod(1.0 + port.values())) == pytest.approx(0.5 * 1.1**3 + 0.5)


def test_weekly_rebalance_resets_after_week_end(svc):
    port = svc.portfolio_returns(_rising_and_flat(_WEEK_TURN), _HALF_HALF, RebalanceFrequency.WEEKLY)
    assert port.values().tolist() == pytest.approx([0.05, 0.055 / 1.05, 0.05])


def test_monthly_rebalance_drifts_within_month(svc):
    returns = _rising_and_flat(_WEEK_TURN)
    monthly = svc.portfolio_returns(returns, _HALF_HALF, RebalanceFrequency.MONTHLY)
    held = svc.portfolio_returns(returns, _HALF_HALF, RebalanceFrequency.NONE)
    assert monthly.values().tolist() == pytest.approx(held.values().tolist())


def test_monthly_rebalance_resets_after_month_end(svc):
    port = svc.portfolio_returns(
        _rising_and_flat(_MONTH_TURN), _HALF_HALF, RebalanceFrequency.MONTHLY
    )
    assert port.values().tolist() == pytest.approx([0.05, 0.055 / 1.05, 0.05])


def test_weight_path_rows_sum_to_one(svc):
    held = svc.weight_path(_rising_and_flat(_WEEK_TURN), _HALF_HALF, RebalanceFrequency.NONE)
    assert held.sum(axis=1).tolist() == pytest.approx([1.0, 1.0, 1.0])
    assert held.loc[date(2024, 1, 5), "A"] == pytest.approx(0.55 / 1.05)


def test_weight_path_missing_ticker_raises(svc):
    with pytest.raises(ValueError, match="C"):
        svc.weight_path(_rising_and_flat(_WEEK_TURN), {"A": 0.5, "C": 0.5})
