"""Initial schema — market data, correlations, result cache.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ------------------------------------------------------------------ #
    # 1. MARKET DATA                                                       #
    # ------------------------------------------------------------------ #

    op.create_table(
        "market_daily_bars",
        sa.Column("ticker", sa.Text, primary_key=True, nullable=False),
        sa.Column("bar_date", sa.Date, primary_key=True, nullable=False),
        sa.Column("open", sa.Double, nullable=False),
        sa.Column("high", sa.Double, nullable=False),
        sa.Column("low", sa.Double, nullable=False),
        sa.Column("close", sa.Double, nullable=False),
        sa.Column("volume", sa.BigInteger, nullable=False),
        sa.Column("vwap", sa.Double, nullable=True),
        sa.Column("transactions", sa.BigInteger, nullable=True),
        sa.Column(
            "pulled_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "open > 0 AND high > 0 AND low > 0 AND close > 0",
            name="ck_market_daily_bars_positive_prices",
        ),
        sa.CheckConstraint("volume >= 0", name="ck_market_daily_bars_volume"),
    )
    op.create_index("ix_market_daily_bars_date", "market_daily_bars", ["bar_date"])

    # ------------------------------------------------------------------ #
    # 2. CORRELATIONS                                                      #
    # ------------------------------------------------------------------ #

    op.create_table(
        "ticker_correlations",
        sa.Column("ticker_a", sa.Text, primary_key=True, nullable=False),
        sa.Column("ticker_b", sa.Text, primary_key=True, nullable=False),
        sa.Column("period_days", sa.Integer, primary_key=True, nullable=False),
        sa.Column("corr", sa.Double, nullable=False),
        sa.Column("observations", sa.Integer, nullable=False),
        sa.Column("min_observations", sa.Integer, nullable=False),
        sa.Column(
            "computed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint("ticker_a < ticker_b", name="ck_ticker_correlations_ordering"),
        sa.CheckConstraint("corr BETWEEN -1 AND 1", name="ck_ticker_correlations_range"),
    )

    # ------------------------------------------------------------------ #
    # 3. RESULT CACHE                                                      #
    # ------------------------------------------------------------------ #

    op.create_table(
        "cached_results",
        sa.Column("cache_key", sa.Text, primary_key=True),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_cached_results_expires_at", "cached_results", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_cached_results_expires_at", table_name="cached_results")
    op.drop_table("cached_results")
    op.drop_table("ticker_correlations")
    op.drop_index("ix_market_daily_bars_date", table_name="market_daily_bars")
    op.drop_table("market_daily_bars")
