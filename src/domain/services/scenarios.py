"""Stress-test service.

A stress test is a deterministic lookup-and-scale: each scenario's factor
shocks are applied to the portfolio's exposures.

  impact = β · equity_shock − D · rate_shock_bps / 10 000

where β is the portfolio's beta to the equity market and D its rate
duration (years).  Historical recovery times are scaled by how hard the
portfolio is hit relative to the market.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd

from src.domain.models.enums import ScenarioKind
from src.domain.models.scenarios import AssetStressOutcome, ScenarioDefinition, ScenarioResult
from src.domain.services.metrics import PerformanceService

logger = logging.getLogger(__name__)

_BPS = 10_000.0
_MAX_LOSS_PCT = -100.0

# (upper bound on recovery trading days, label)
_RECOVERY_BUCKETS: tuple[tuple[int, str], ...] = (
    (21, "under 1 month"),
    (126, "1-6 months"),
    (252, "6-12 months"),
    (504, "1-2 years"),
)
# (upper bound on |impact %|, label) for scenarios without recovery history
_SEVERITY_BUCKETS: tuple[tuple[float, str], ...] = (
    (5.0, "weeks"),
    (15.0, "months"),
    (30.0, "1-2 years"),
)


class ScenarioService:
    """Pure computation service for stress scenarios.

    The class is stateless; exposures are passed per-call.
    """

    def run_stress_tests(
        self,
        scenarios: Sequence[ScenarioDefinition],
        capital: float,
        beta: float,
        rate_duration: float = 0.0,
        notes: Sequence[str] = (),
    ) -> list[ScenarioResult]:
        return [self.apply(s, capital, beta, rate_duration, notes) for s in scenarios]

    def apply(
        self,
        scenario: ScenarioDefinition,
        capital: float,
        beta: float,
        rate_duration: float = 0.0,
        notes: Sequence[str] = (),
    ) -> ScenarioResult:
        """Estimate the scenario's impact on a portfolio with the given exposures.

        Losses are floored at −100 %.  recovery_days scales the market's
        historical recovery by |impact| / |market move| and is None for
        scenarios without a recorded recovery.
        """
        impact = beta * scenario.equity_shock - rate_duration * scenario.rate_shock_bps / _BPS
        impact_pct = max(impact * 100.0, _MAX_LOSS_PCT)
        market_pct = scenario.equity_shock * 100.0

        recovery_days: int | None = None
        if scenario.market_recovery_days is not None and impact_pct < 0:
            scale = abs(impact_pct) / abs(market_pct) if market_pct else 1.0
            recovery_days = int(round(scenario.market_recovery_days * scale))

        return ScenarioResult(
            scenario_name=scenario.name,
            kind=scenario.kind,
            description=scenario.description,
            market_move_pct=market_pct,
            portfolio_impact_pct=impact_pct,
            dollar_impact=capital * impact_pct / 100.0,
            beta=beta,
            rate_duration=rate_duration,
            recovery_days=recovery_days,
            recovery_estimate=self.recovery_estimate(impact_pct, recovery_days),
            notes=list(notes),
        )

    def replay(
        self,
        result: ScenarioResult,
        window_returns: np.ndarray,
        asset_returns: pd.DataFrame | None = None,
        weights: Mapping[str, float] | None = None,
    ) -> ScenarioResult:
        """Attach the realised outcome of a historical window to a result.

        window_returns are the portfolio's daily returns inside the
        scenario window.  When asset_returns (tickers as columns) are given,
        each holding's own return and max drawdown over the window are
        reported too; weights (fractions) label the breakdown.
        """
        if result.kind != ScenarioKind.HISTORICAL:
            raise ValueError(f"Scenario {result.scenario_name!r} has no historical window")
        if len(window_returns) == 0:
            return result
        realised = PerformanceService.total_return(window_returns) * 100.0
        drawdown = PerformanceService.max_drawdown(window_returns) * 100.0
        logger.info(
            "Replayed %s: realised %.2f%% vs estimated %.2f%%",
            result.scenario_name,
            realised,
            result.portfolio_impact_pct,
        )
        breakdown: list[AssetStressOutcome] = []
        if asset_returns is not None:
            weights = weights or {}
            for ticker in asset_returns.columns:
                r = asset_returns[ticker].to_numpy(dtype=float)
                breakdown.append(
                    AssetStressOutcome(
                        ticker=str(ticker),
                        weight=float(weights.get(ticker, 0.0)) * 100.0,
                        return_pct=PerformanceService.total_return(r) * 100.0,
                        drawdown_pct=PerformanceService.max_drawdown(r) * 100.0,
                    )
                )
        return result.model_copy(
            update={
                "realized_return_pct": realised,
                "realized_drawdown_pct": drawdown,
                "asset_breakdown": breakdown,
            }
        )

    @staticmethod
    def recovery_estimate(impact_pct: float, recovery_days: int | None) -> str:
        """Qualitative recovery label for display."""
        if impact_pct >= 0:
            return "no recovery needed"
        if recovery_days is not None:
            for bound, label in _RECOVERY_BUCKETS:
                if recovery_days <= bound:
                    return label
            return "over 2 years"
        for bound, label in _SEVERITY_BUCKETS:
            if abs(impact_pct) <= bound:
                return label
        return "over 2 years"
