"""Market data ORM model: market_daily_bars."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, Double, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base


class MarketDailyBar(Base):
    """Daily OHLCV bar for a ticker, written by the sync job.

    Composite PK: (ticker, bar_date).
    pulled_at records when the row was last fetched — supports audit.
    """

    __tablename__ = "market_daily_bars"
    __table_args__ = (
        CheckConstraint(
            "open > 0 AND high > 0 AND low > 0 AND close > 0",
            name="ck_market_daily_bars_positive_prices",
        ),
        CheckConstraint("volume >= 0", name="ck_market_daily_bars_volume"),
        Index("ix_market_daily_bars_date", "bar_date"),
    )

    ticker: Mapped[str] = mapped_column(Text, primary_key=True, nullable=False)
    bar_date: Mapped[date] = mapped_column(Date, primary_key=True, nullable=False)
    open: Mapped[float] = mapped_column(Double, nullable=False)
    high: Mapped[float] = mapped_column(Double, nullable=False)
    low: Mapped[float] = mapped_column(Double, nullable=False)
    close: Mapped[float] = mapped_column(Double, nullable=False)
    volume: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vwap: Mapped[Optional[float]] = mapped_column(Double, nullable=True)
    transactions: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    pulled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
