"""Unit tests for DataValidationService."""

from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from src.domain.models.backtest import PerformanceMetrics
from src.domain.models.enums import DataQuality
from src.domain.models.market_data import Bar
from src.domain.models.portfolio import AssetContribution
from src.domain.services.validation import DataValidationService

_START = date(2024, 1, 1)
_END = date(2024, 3, 29)


def _bars(n: int | None = None, flat: bool = False) -> list[Bar]:
    days = pd.bdate_range(_START, _END)
    if n is not None:
        days = days[:n]
    result = []
    for i, ts in enumerate(days):
        close = 100.0 if flat else 100.0 + i
        result.append(
            Bar(
                ticker="VTI",
                bar_date=ts.date(),
                open=close,
                high=close + 1,
                low=close - 1,
                close=close,
                volume=1000,
            )
        )
    return result


def _frame(**overrides) -> pd.DataFrame:
    frame = DataValidationService.bars_frame(_bars())
    for column, (row, value) in overrides.items():
        frame.loc[row, column] = value
    return frame


@pytest.fixture
def svc() -> DataValidationService:
    return DataValidationService()


# --- validate_bars ---

def test_clean_bars_are_high_quality(svc):
    result = svc.validate_bars("VTI", _bars(), _START, _END)
    assert result.is_valid is True
    assert result.quality_score == 100.0
    assert result.data_quality == DataQuality.HIGH


def test_empty_bars_are_invalid(svc):
    result = svc.validate_bars("VTI", [], _START, _END)
    assert result.is_valid is False
    assert result.issues == ["No data provided"]
    assert result.data_quality == DataQuality.LOW


def test_non_positive_price_flagged(svc):
    result = svc.validate_bars("VTI", _frame(close=(3, 0.0)))
    assert any("non-positive prices" in i for i in result.issues)
    assert result.quality_score < 100.0


def test_negative_volume_flagged(svc):
    result = svc.validate_bars("VTI", _frame(volume=(0, -5)))
    assert any("negative volume" in i for i in result.issues)


def test_invalid_ohlc_flagged(svc):
    result = svc.validate_bars("VTI", _frame(high=(2, 1.0)))
    assert any("invalid OHLC" in i for i in result.issues)


def test_out_of_order_dates_flagged(svc):
    frame = _frame()
    frame.loc[5, "bar_date"] = date(2023, 12, 1)
    result = svc.validate_bars("VTI", frame)
    assert any("out of order" in i for i in result.issues)
    assert result.quality_score == pytest.approx(85.0)


def test_low_coverage_flagged(svc):
    result = svc.validate_bars("VTI", _bars(n=20), _START, _END)
    assert any("Low data coverage" in i for i in result.issues)
    assert result.is_valid is False
    assert result.quality_score == pytest.approx(90.0)


def test_stale_prices_flagged(svc):
    result = svc.validate_bars("VTI", _bars(flat=True), _START, _END)
    assert any("stale" in i for i in result.issues)
    assert result.data_quality == DataQuality.MEDIUM


def test_data_outside_expected_range_warns(svc):
    result = svc.validate_bars("VTI", _bars(), date(2024, 2, 1), _END)
    assert any("starts before" in w for w in result.warnings)


def test_coverage_without_range_is_one(svc):
    assert svc.validate_bars("VTI", _bars()).coverage == 1.0


@pytest.mark.parametrize(
    "score, grade",
    [(100.0, DataQuality.HIGH), (90.0, DataQuality.HIGH), (89.9, DataQuality.MEDIUM),
     (70.0, DataQuality.MEDIUM), (69.9, DataQuality.LOW)],
)
def test_grade_boundaries(score, grade):
    assert DataValidationService.grade(score) == grade


# --- validate_metrics ---

def _metrics(**overrides) -> PerformanceMetrics:
    defaults = dict(
        observations=252,
        risk_free_rate=0.05,
        total_return=0.10,
        annualized_return=0.10,
        volatility=0.15,
        sharpe_ratio=0.33,
    )
    defaults.update(overrides)
    return PerformanceMetrics(**defaults)


def test_realistic_metrics_pass(svc):
    assert svc.validate_metrics(_metrics(), max_drawdown=-0.2).is_valid is True


def test_unrealistic_sharpe_flagged(svc):
    result = svc.validate_metrics(_metrics(sharpe_ratio=10.0))
    assert any(i.startswith("sharpe_ratio") for i in result.issues)


def test_drawdown_checked_as_magnitude(svc):
    assert svc.validate_metrics(_metrics(), max_drawdown=-0.5).is_valid is True


def test_alpha_range_in_percentage_points(svc):
    assert svc.validate_metrics(_metrics(alpha=12.0)).is_valid is True
    assert svc.validate_metrics(_metrics(alpha=75.0)).is_valid is False


def test_bond_like_volatility_passes(svc):
    result = svc.validate_metrics(_metrics(volatility=0.03, sharpe_ratio=-0.5))
    assert result.is_valid is True


def test_near_zero_volatility_flagged(svc):
    result = svc.validate_metrics(_metrics(volatility=0.001))
    assert any(i.startswith("volatility") for i in result.issues)


def test_custom_ranges_override_defaults(svc):
    tight = {"volatility": (0.20, 0.50)}
    result = svc.validate_metrics(_metrics(volatility=0.15), ranges=tight)
    assert result.issues == ["volatility (0.1500) outside realistic range [0.2, 0.5]"]


def test_custom_ranges_add_bounds(svc):
    result = svc.validate_metrics(_metrics(omega_ratio=9.0), ranges={"omega_ratio": (0.0, 5.0)})
    assert any(i.startswith("omega_ratio") for i in result.issues)
    assert svc.validate_metrics(_metrics(omega_ratio=9.0)).is_valid is True


def test_contribution_mismatch_flagged(svc):
    contributions = [
        AssetContribution(ticker="A", weight=50.0, asset_return=0.1, contribution=0.02),
        AssetContribution(ticker="B", weight=50.0, asset_return=0.1, contribution=0.02),
    ]
    result = svc.validate_metrics(_metrics(), contributions=contributions)
    assert any("contributions" in i for i in result.issues)


def test_matching_contributions_pass(svc):
    contributions = [
        AssetContribution(ticker="A", weight=50.0, asset_return=0.1, contribution=0.06),
        AssetContribution(ticker="B", weight=50.0, asset_return=0.1, contribution=0.04),
    ]
    assert svc.validate_metrics(_metrics(), contributions=contributions).is_valid is True


def test_unavailable_metrics_become_warnings(svc):
    result = svc.validate_metrics(_metrics(unavailable={"beta": "no benchmark supplied"}))
    assert result.warnings == ["beta: no benchmark supplied"]


# --- validate_correlation_matrix ---

def test_valid_matrix(svc):
    assert svc.validate_correlation_matrix([[1.0, 0.3], [0.3, 1.0]]).is_valid is True


def test_empty_matrix_invalid(svc):
    assert svc.validate_correlation_matrix([]).issues == ["Empty correlation matrix"]


def test_ragged_matrix_invalid(svc):
    result = svc.validate_correlation_matrix([[1.0, 0.3], [0.3]])
    assert result.issues == ["Row 1 has incorrect length"]


def test_bad_diagonal_flagged(svc):
    result = svc.validate_correlation_matrix([[0.9, 0.3], [0.3, 1.0]], ["A", "B"])
    assert any("Diagonal value at A" in i for i in result.issues)


def test_asymmetric_matrix_flagged(svc):
    result = svc.validate_correlation_matrix([[1.0, 0.3], [0.5, 1.0]])
    assert any("not symmetric" in i for i in result.issues)


def test_out_of_range_flagged(svc):
    result = svc.validate_correlation_matrix([[1.0, 1.5], [1.5, 1.0]])
    assert any("outside [-1, 1]" in i for i in result.issues)


def test_missing_pairs_symmetric_is_valid(svc):
    assert svc.validate_correlation_matrix([[1.0, None], [None, 1.0]]).is_valid is True
