"""Drawdown service: equity curve compounding and drawdown analysis."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import numpy as np

from src.domain.errors import InsufficientDataError
from src.domain.models.backtest import DrawdownAnalysis, DrawdownEpisode
from src.domain.models.portfolio import EquityPoint, PortfolioReturnSeries


@dataclass
class _OpenEpisode:
    """Mutable state of the episode being walked; frozen into a DrawdownEpisode."""

    peak_date: date
    peak_value: float
    trough_date: date
    trough_value: float
    trough_index: int

    @property
    def depth(self) -> float:
        return self.trough_value / self.peak_value - 1.0

    def close(self, recovery_date: date | None, recovery_index: int | None) -> DrawdownEpisode:
        return DrawdownEpisode(
            peak_date=self.peak_date,
            trough_date=self.trough_date,
            recovery_date=recovery_date,
            depth=min(self.depth, 0.0),
            recovery_days=(
                None if recovery_index is None else recovery_index - self.trough_index
            ),
        )


class DrawdownService:
    """Pure computation service for equity curves and drawdowns.

    The class is stateless; all inputs are passed per-call.
    """

    def equity_curve(
        self,
        returns: PortfolioReturnSeries,
        initial_capital: float,
        base_date: date,
    ) -> list[EquityPoint]:
        """Compound returns from initial_capital.

        The curve starts with (base_date, initial_capital), the last close
        before the first return, so the final value equals
        initial_capital × (1 + total_return).
        """
        if initial_capital <= 0:
            raise ValueError(f"initial_capital must be positive (got {initial_capital})")
        values = initial_capital * np.cumprod(1.0 + returns.values())
        curve = [EquityPoint(bar_date=base_date, value=float(initial_capital))]
        curve.extend(
            EquityPoint(bar_date=d, value=float(v)) for d, v in zip(returns.dates, values)
        )
        return curve

    def analyze(self, curve: list[EquityPoint]) -> DrawdownAnalysis:
        """Single forward pass over the curve tracking the running peak.

        Episodes run from a peak to the first value back at or above it;
        recovery_days counts observations from the trough to that value.
        An episode still open at the end of the curve is reported but left
        out of avg_recovery_days.
        """
        if not curve:
            raise InsufficientDataError("Equity curve is empty", calculation="drawdown")

        peak_value = curve[0].value
        peak_date = curve[0].bar_date
        open_episode: _OpenEpisode | None = None
        episodes: list[DrawdownEpisode] = []
        drawdowns: list[EquityPoint] = [EquityPoint(bar_date=peak_date, value=0.0)]

        for index, point in enumerate(curve[1:], start=1):
            if point.value >= peak_value:
                if open_episode is not None:
                    episodes.append(open_episode.close(point.bar_date, index))
                    open_episode = None
                peak_value, peak_date = point.value, point.bar_date
                drawdowns.append(EquityPoint(bar_date=point.bar_date, value=0.0))
                continue

            drawdowns.append(
                EquityPoint(bar_date=point.bar_date, value=point.value / peak_value - 1.0)
            )
            if open_episode is None:
                open_episode = _OpenEpisode(
                    peak_date=peak_date,
                    peak_value=peak_value,
                    trough_date=point.bar_date,
                    trough_value=point.value,
                    trough_index=index,
                )
            elif point.value < open_episode.trough_value:
                open_episode.trough_date = point.bar_date
                open_episode.trough_value = point.value
                open_episode.trough_index = index

        if open_episode is not None:
            episodes.append(open_episode.close(None, None))

        dd = np.array([p.value for p in drawdowns])
        recovered = [e.recovery_days for e in episodes if e.recovery_days is not None]
        worst = min(episodes, key=lambda e: e.depth) if episodes else None

        return DrawdownAnalysis(
            max_drawdown=float(dd.min()),
            current_drawdown=float(dd[-1]),
            peak_date=worst.peak_date if worst else None,
            trough_date=worst.trough_date if worst else None,
            recovery_date=worst.recovery_date if worst else None,
            avg_recovery_days=float(np.mean(recovered)) if recovered else None,
            ulcer_index=float(np.sqrt(np.mean(dd**2))),
            episodes=episodes,
            series=drawdowns,
        )
