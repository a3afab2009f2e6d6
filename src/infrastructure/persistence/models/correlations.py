"""Correlation ORM model: ticker_correlations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Double, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class TickerCorrelation(Base):
    """Pearson correlation of two tickers' daily returns over a lookback.

    Composite PK: (ticker_a, ticker_b, period_days).
    Upper triangle only: ticker_a < ticker_b is enforced by a check constraint.
    """

    __tablename__ = "ticker_correlations"
    __table_args__ = (
        CheckConstraint("ticker_a < ticker_b", name="ck_ticker_correlations_ordering"),
        CheckConstraint("corr BETWEEN -1 AND 1", name="ck_ticker_correlations_range"),
    )

    ticker_a: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    ticker_b: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    period_days: Mapped[int] = mapped_column(Integer, primary_key=True, nullable=False)
    corr: Mapped[float] = mapped_column(Double, nullable=False)
    observations: Mapped[int] = mapped_column(Integer, nullable=False)
    min_observations: Mapped[int] = mapped_column(Integer, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
