"""Typed failures raised by the backtest engine.

Every error carries enough context (ticker, date range, calculation) for a
presentation layer to render a precise message without parsing strings.
"""

from __future__ import annotations

from datetime import date


class QuantEngineError(Exception):
    """Base class for all engine failures."""

    def __init__(
        self,
        message: str,
        *,
        ticker: str | None = None,
        start: date | None = None,
        end: date | None = None,
        calculation: str | None = None,
    ) -> None:
        self.message = message
        self.ticker = ticker
        self.start = start
        self.end = end
        self.calculation = calculation
        super().__init__(self._render())

    def _render(self) -> str:
        context: list[str] = []
        if self.calculation is not None:
            context.append(f"calculation={self.calculation}")
        if self.ticker is not None:
            context.append(f"ticker={self.ticker}")
        if self.start is not None or self.end is not None:
            context.append(f"range={self.start}..{self.end}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class InsufficientDataError(QuantEngineError):
    """Too few bars or overlapping observations to compute a statistic."""


class AllocationError(QuantEngineError):
    """Portfolio weights are invalid (negative, duplicated, or not summing to 100)."""


class DegenerateInputError(QuantEngineError):
    """Zero variance, a singular covariance matrix, or similar degenerate input."""


class UpstreamFetchError(QuantEngineError):
    """The bar source could not deliver data for a ticker."""


class ComputationAbortedError(QuantEngineError):
    """A long-running computation was stopped by its abort check or timeout."""
