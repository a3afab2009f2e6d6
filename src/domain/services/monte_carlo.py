"""Monte Carlo simulation of forward portfolio value paths.

Methods:
  BOOTSTRAP   — resample observed daily portfolio returns with replacement.
  PARAMETRIC  — draw daily returns from N(μ, σ) fitted to the portfolio.
  MULTI_ASSET — draw correlated asset returns r = μ + L·z, where L is the
                Cholesky factor of the asset covariance (sample or
                Ledoit-Wolf), then combine them with the allocation weights.

All randomness comes from the numpy Generator passed in, so a fixed seed
reproduces the summary exactly.  Paths are simulated in chunks and the
abort check is polled between chunks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np
import pandas as pd
from sklearn.covariance import LedoitWolf

from src.domain.errors import DegenerateInputError
from src.domain.models.enums import CovMethod, SimulationMethod
from src.domain.models.scenarios import DistributionSummary, PercentileBand
from src.domain.services.cancellation import AbortCheck, raise_if_aborted

logger = logging.getLogger(__name__)

PERCENTILES = (5, 25, 50, 75, 95)
_ZERO_VARIANCE = 1e-14


class MonteCarloService:
    """Pure computation service for Monte Carlo outcome distributions."""

    def __init__(self, trading_days_per_year: int = 252, chunk_size: int = 1000) -> None:
        self._year = trading_days_per_year
        self._chunk_size = chunk_size

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    def simulate(
        self,
        method: SimulationMethod,
        rng: np.random.Generator,
        num_paths: int,
        horizon_days: int,
        initial_value: float,
        portfolio_returns: np.ndarray,
        asset_returns: pd.DataFrame | None = None,
        weights: np.ndarray | None = None,
        cov_method: CovMethod = CovMethod.SAMPLE,
        seed: int | None = None,
        should_abort: AbortCheck | None = None,
    ) -> DistributionSummary:
        """Simulate num_paths paths of horizon_days and summarise them.

        Args:
            method: how daily returns are drawn.
            rng: source of all randomness.
            portfolio_returns: historical daily portfolio returns.
            asset_returns: historical daily asset returns (MULTI_ASSET only),
                tickers as columns in the same order as weights.
            weights: asset weights as fractions (MULTI_ASSET only).
            seed: recorded on the summary; does not seed rng.

        Raises:
            DegenerateInputError: empty or constant history, or a covariance
                matrix that is not positive definite.
            ComputationAbortedError: should_abort fired between chunks.
        """
        if num_paths < 1 or horizon_days < 1:
            raise ValueError("num_paths and horizon_days must be positive")
        history = np.asarray(portfolio_returns, dtype=float)
        if len(history) < 2:
            raise DegenerateInputError(
                "At least 2 historical returns are needed to simulate",
                calculation="monte_carlo",
            )
        mean = float(np.mean(history))
        vol = float(np.std(history, ddof=1))
        if vol**2 < _ZERO_VARIANCE:
            raise DegenerateInputError(
                "Historical returns have zero variance", calculation="monte_carlo"
            )

        draw = self._drawer(method, rng, history, mean, vol, asset_returns, weights, cov_method)
        checkpoints = self.checkpoints(horizon_days)
        values = np.empty((num_paths, len(checkpoints)))

        for start in range(0, num_paths, self._chunk_size):
            raise_if_aborted(should_abort, "monte_carlo")
            size = min(self._chunk_size, num_paths - start)
            daily = np.maximum(draw(size, horizon_days), -1.0)
            growth = np.cumprod(1.0 + daily, axis=1)
            values[start : start + size] = initial_value * growth[:, [d - 1 for d in checkpoints]]

        terminal = values[:, -1]
        logger.info(
            "Simulated %d %s paths over %d days", num_paths, method.value, horizon_days
        )
        return DistributionSummary(
            method=method,
            num_paths=num_paths,
            horizon_days=horizon_days,
            seed=seed,
            initial_value=initial_value,
            daily_mean=mean,
            daily_volatility=vol,
            terminal_percentiles={
                p: float(v) for p, v in zip(PERCENTILES, np.percentile(terminal, PERCENTILES))
            },
            mean_terminal_value=float(np.mean(terminal)),
            probability_of_loss=float(np.mean(terminal < initial_value)),
            bands=[self._band(day, values[:, i]) for i, day in enumerate(checkpoints)],
        )

    def checkpoints(self, horizon_days: int) -> list[int]:
        """Yearly checkpoints before the horizon, then the horizon itself."""
        days = list(range(self._year, horizon_days, self._year))
        days.append(horizon_days)
        return days

    def covariance(self, asset_returns: pd.DataFrame, method: CovMethod) -> np.ndarray:
        """Daily covariance of asset returns (sample N − 1, or Ledoit-Wolf)."""
        if method == CovMethod.SAMPLE:
            return asset_returns.cov().to_numpy()
        if method == CovMethod.LEDOIT_WOLF:
            lw = LedoitWolf()
            lw.fit(asset_returns.to_numpy())
            return lw.covariance_
        raise ValueError(f"Unknown covariance method: {method!r}")

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    def _drawer(
        self,
        method: SimulationMethod,
        rng: np.random.Generator,
        history: np.ndarray,
        mean: float,
        vol: float,
        asset_returns: pd.DataFrame | None,
        weights: np.ndarray | None,
        cov_method: CovMethod,
    ) -> Callable[[int, int], np.ndarray]:
        """Return draw(paths, days) → array of simulated daily portfolio returns."""
        if method == SimulationMethod.BOOTSTRAP:
            return lambda paths, days: rng.choice(history, size=(paths, days), replace=True)
        if method == SimulationMethod.PARAMETRIC:
            return lambda paths, days: rng.normal(mean, vol, size=(paths, days))
        if method == SimulationMethod.MULTI_ASSET:
            if asset_returns is None or weights is None:
                raise ValueError("MULTI_ASSET simulation needs asset_returns and weights")
            if asset_returns.shape[1] != len(weights):
                raise ValueError("asset_returns columns and weights differ in length")
            mu = asset_returns.mean().to_numpy()
            chol = self._cholesky(self.covariance(asset_returns, cov_method))
            w = np.asarray(weights, dtype=float)

            def _draw(paths: int, days: int) -> np.ndarray:
                z = rng.standard_normal(size=(paths, days, len(mu)))
                return (mu + z @ chol.T) @ w

            return _draw
        raise ValueError(f"Unsupported simulation method: {method!r}")

    @staticmethod
    def _band(day: int, values: np.ndarray) -> PercentileBand:
        p5, p25, p50, p75, p95 = (float(v) for v in np.percentile(values, PERCENTILES))
        return PercentileBand(day=day, p5=p5, p25=p25, p50=p50, p75=p75, p95=p95)

    @staticmethod
    def _cholesky(cov: np.ndarray) -> np.ndarray:
        if not np.all(np.isfinite(cov)):
            raise DegenerateInputError(
                "Covariance matrix contains non-finite values", calculation="monte_carlo"
            )
        try:
            return np.linalg.cholesky(cov)
        except np.linalg.LinAlgError as exc:
            raise DegenerateInputError(
                "Covariance matrix is not positive definite", calculation="monte_carlo"
            ) from exc
