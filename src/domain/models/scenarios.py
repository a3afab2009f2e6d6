"""Scenario analysis domain models.

ScenarioDefinition  — a named set of factor shocks (equity %, rates bps)
ScenarioResult      — estimated portfolio impact of one scenario
AssetStressOutcome  — one asset's realised return and drawdown in a stress window
PercentileBand      — Monte Carlo percentiles of portfolio value at one horizon
DistributionSummary — terminal-value distribution of a Monte Carlo run
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import ScenarioKind, SimulationMethod


class ScenarioDefinition(BaseModel):
    """A named stress scenario expressed as factor shocks.

    equity_shock          — broad equity market move, as a fraction (-0.34 = −34 %)
    rate_shock_bps        — parallel shift in interest rates, in basis points
    start_date / end_date — peak-to-trough window of a historical episode;
                            required for HISTORICAL scenarios
    market_recovery_days  — trading days the market needed to regain its
                            prior peak after the trough; None if unknown

    Example:
        ScenarioDefinition(
            name="Equity Crash -30%",
            kind=ScenarioKind.HYPOTHETICAL,
            equity_shock=-0.30,
        )
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    kind: ScenarioKind
    equity_shock: float = Field(ge=-1.0)
    rate_shock_bps: float = 0.0
    start_date: date | None = None
    end_date: date | None = None
    market_recovery_days: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _window_required_for_historical(self) -> ScenarioDefinition:
        if self.kind == ScenarioKind.HISTORICAL:
            if self.start_date is None or self.end_date is None:
                raise ValueError(
                    f"Historical scenario {self.name!r} needs start_date and end_date"
                )
            if self.end_date <= self.start_date:
                raise ValueError(
                    f"Scenario {self.name!r}: end_date must be after start_date"
                )
        return self

    @classmethod
    def equity_crash(cls, equity_shock: float = -0.30) -> ScenarioDefinition:
        return cls(
            name=f"Market Crash {equity_shock:.0%}",
            description=f"Hypothetical {abs(equity_shock):.0%} market decline",
            kind=ScenarioKind.HYPOTHETICAL,
            equity_shock=equity_shock,
        )

    @classmethod
    def rate_spike(cls, rate_shock_bps: float = 200.0) -> ScenarioDefinition:
        return cls(
            name=f"Rate Spike +{rate_shock_bps:.0f}bps",
            description="Sharp interest rate increase with an equity sell-off",
            kind=ScenarioKind.HYPOTHETICAL,
            equity_shock=-0.15,
            rate_shock_bps=rate_shock_bps,
        )


def default_scenarios() -> list[ScenarioDefinition]:
    """The built-in historical and hypothetical stress scenarios."""
    return [
        ScenarioDefinition(
            name="2008 Financial Crisis",
            description="Global financial crisis, S&P 500 peak to trough",
            kind=ScenarioKind.HISTORICAL,
            equity_shock=-0.568,
            rate_shock_bps=-150.0,
            start_date=date(2007, 10, 9),
            end_date=date(2009, 3, 9),
            market_recovery_days=1022,
        ),
        ScenarioDefinition(
            name="COVID Crash (2020)",
            description="Rapid market selloff followed by V-shaped recovery",
            kind=ScenarioKind.HISTORICAL,
            equity_shock=-0.339,
            rate_shock_bps=-80.0,
            start_date=date(2020, 2, 19),
            end_date=date(2020, 3, 23),
            market_recovery_days=103,
        ),
        ScenarioDefinition(
            name="2022 Bear Market",
            description="Rate hikes caused prolonged decline in growth stocks",
            kind=ScenarioKind.HISTORICAL,
            equity_shock=-0.254,
            rate_shock_bps=230.0,
            start_date=date(2022, 1, 3),
            end_date=date(2022, 10, 12),
            market_recovery_days=318,
        ),
        ScenarioDefinition(
            name="2023 Banking Crisis",
            description="SVB / regional banking crisis",
            kind=ScenarioKind.HISTORICAL,
            equity_shock=-0.046,
            rate_shock_bps=-50.0,
            start_date=date(2023, 3, 1),
            end_date=date(2023, 3, 15),
            market_recovery_days=25,
        ),
        ScenarioDefinition.equity_crash(-0.30),
        ScenarioDefinition(
            name="Flash Crash -10%",
            description="Hypothetical flash crash",
            kind=ScenarioKind.HYPOTHETICAL,
            equity_shock=-0.10,
        ),
        ScenarioDefinition.rate_spike(200.0),
    ]


class AssetStressOutcome(BaseModel):
    """Realised behaviour of one holding inside a historical stress window (percent)."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    weight: float
    return_pct: float
    drawdown_pct: float = Field(le=0.0)


class ScenarioResult(BaseModel):
    """Estimated impact of a scenario on the current allocation.

    portfolio_impact_pct — estimated portfolio move in percent (-20.4 = −20.4 %)
    dollar_impact        — impact_pct applied to the supplied capital (signed)
    recovery_days        — market recovery scaled by the portfolio's relative
                           impact; None when the scenario carries no history
    recovery_estimate    — qualitative label for the presentation layer
    realized_return_pct / realized_drawdown_pct
                         — outcome of replaying the historical window on real
                           bars; None when the window was not replayed
    asset_breakdown      — per-holding realised return / drawdown of the replay
    """

    model_config = ConfigDict(frozen=True)

    scenario_name: str
    kind: ScenarioKind
    description: str = ""
    market_move_pct: float
    portfolio_impact_pct: float
    dollar_impact: float
    beta: float
    rate_duration: float = 0.0
    recovery_days: int | None = Field(default=None, ge=0)
    recovery_estimate: str
    realized_return_pct: float | None = None
    realized_drawdown_pct: float | None = Field(default=None, le=0.0)
    asset_breakdown: list[AssetStressOutcome] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class PercentileBand(BaseModel):
    """Portfolio value percentiles across all simulated paths at one horizon."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=0)
    p5: float
    p25: float
    p50: float
    p75: float
    p95: float


class DistributionSummary(BaseModel):
    """Terminal-value distribution of a Monte Carlo simulation.

    terminal_percentiles maps percentile (5, 25, 50, 75, 95) → terminal value.
    probability_of_loss is the share of paths ending below initial_value.
    bands hold the same percentiles at each yearly checkpoint and at the
    horizon, for fan charts.
    """

    model_config = ConfigDict(frozen=True)

    method: SimulationMethod
    num_paths: int = Field(gt=0)
    horizon_days: int = Field(gt=0)
    seed: int | None = None
    initial_value: float = Field(gt=0.0)
    daily_mean: float
    daily_volatility: float = Field(ge=0.0)
    terminal_percentiles: dict[int, float]
    mean_terminal_value: float
    probability_of_loss: float = Field(ge=0.0, le=1.0)
    bands: list[PercentileBand] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def median_terminal_value(self) -> float:
        return self.terminal_percentiles[50]
