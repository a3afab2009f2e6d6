"""Tests for src/domain/models/scenarios.py."""

import pytest
from datetime import date
from pydantic import ValidationError

from src.domain.models.enums import ScenarioKind, SimulationMethod
from src.domain.models.scenarios import (
    AssetStressOutcome,
    DistributionSummary,
    ScenarioDefinition,
    ScenarioResult,
    default_scenarios,
)


# --- ScenarioDefinition ---

def test_hypothetical_scenario_needs_no_window():
    s = ScenarioDefinition(name="Crash", kind=ScenarioKind.HYPOTHETICAL, equity_shock=-0.3)
    assert s.start_date is None


def test_historical_scenario_without_window_raises():
    with pytest.raises(ValidationError, match="start_date and end_date"):
        ScenarioDefinition(name="GFC", kind=ScenarioKind.HISTORICAL, equity_shock=-0.5)


def test_historical_scenario_reversed_window_raises():
    with pytest.raises(ValidationError, match="after start_date"):
        ScenarioDefinition(
            name="GFC",
            kind=ScenarioKind.HISTORICAL,
            equity_shock=-0.5,
            start_date=date(2009, 3, 9),
            end_date=date(2007, 10, 9),
        )


def test_equity_shock_below_minus_one_raises():
    with pytest.raises(ValidationError):
        ScenarioDefinition(name="X", kind=ScenarioKind.HYPOTHETICAL, equity_shock=-1.5)


def test_equity_crash_factory_name():
    assert ScenarioDefinition.equity_crash(-0.30).name == "Market Crash -30%"


def test_rate_spike_factory_shocks():
    s = ScenarioDefinition.rate_spike(200.0)
    assert s.name == "Rate Spike +200bps"
    assert s.rate_shock_bps == 200.0
    assert s.equity_shock == -0.15


# --- default_scenarios ---

def test_default_scenarios_count():
    assert len(default_scenarios()) == 7


def test_default_scenarios_names_unique():
    names = [s.name for s in default_scenarios()]
    assert len(names) == len(set(names))


def test_default_covid_scenario():
    covid = next(s for s in default_scenarios() if s.name == "COVID Crash (2020)")
    assert covid.equity_shock == pytest.approx(-0.339)
    assert covid.start_date == date(2020, 2, 19)
    assert covid.market_recovery_days == 103


def test_default_historical_scenarios_have_recovery():
    historical = [s for s in default_scenarios() if s.kind == ScenarioKind.HISTORICAL]
    assert len(historical) == 4
    assert all(s.market_recovery_days is not None for s in historical)


# --- ScenarioResult ---

def test_scenario_result_positive_realized_drawdown_raises():
    with pytest.raises(ValidationError):
        ScenarioResult(
            scenario_name="X",
            kind=ScenarioKind.HYPOTHETICAL,
            market_move_pct=-10.0,
            portfolio_impact_pct=-10.0,
            dollar_impact=-1000.0,
            beta=1.0,
            recovery_estimate="months",
            realized_drawdown_pct=5.0,
        )


def test_asset_stress_outcome_positive_drawdown_raises():
    with pytest.raises(ValidationError):
        AssetStressOutcome(ticker="VTI", weight=60.0, return_pct=5.0, drawdown_pct=1.0)


def test_scenario_result_breakdown_defaults_empty():
    result = ScenarioResult(
        scenario_name="X",
        kind=ScenarioKind.HYPOTHETICAL,
        market_move_pct=-10.0,
        portfolio_impact_pct=-10.0,
        dollar_impact=-1000.0,
        beta=1.0,
        recovery_estimate="months",
    )
    assert result.asset_breakdown == []

# --- DistributionSummary ---

def test_distribution_summary_median_property():
    summary = DistributionSummary(
        method=SimulationMethod.BOOTSTRAP,
        num_paths=100,
        horizon_days=252,
        initial_value=10_000.0,
        daily_mean=0.0004,
        daily_volatility=0.01,
        terminal_percentiles={5: 8000.0, 25: 9500.0, 50: 10_500.0, 75: 11_500.0, 95: 13_000.0},
        mean_terminal_value=10_600.0,
        probability_of_loss=0.35,
    )
    assert summary.median_terminal_value == 10_500.0


def test_distribution_summary_probability_above_one_raises():
    with pytest.raises(ValidationError):
        DistributionSummary(
            method=SimulationMethod.PARAMETRIC,
            num_paths=100,
            horizon_days=252,
            initial_value=10_000.0,
            daily_mean=0.0,
            daily_volatility=0.01,
            terminal_percentiles={50: 10_000.0},
            mean_terminal_value=10_000.0,
            probability_of_loss=1.2,
        )
