"""Tests for src/domain/models/portfolio.py."""

from datetime import date

import pandas as pd
import pytest

from src.domain.errors import AllocationError
from src.domain.models.portfolio import (
    AllocationEntry,
    PortfolioAllocation,
    PortfolioReturnSeries,
)


# --- AllocationEntry ---

def test_allocation_entry_normalizes_ticker():
    assert AllocationEntry(ticker=" vti ", weight=50.0).ticker == "VTI"


# --- PortfolioAllocation.ensure_valid ---

def test_ensure_valid_accepts_exact_hundred():
    PortfolioAllocation.from_weights({"VTI": 60.0, "BND": 40.0}).ensure_valid()


def test_ensure_valid_accepts_lower_tolerance_edge():
    PortfolioAllocation.from_weights({"VTI": 59.9, "BND": 40.0}).ensure_valid()


def test_ensure_valid_accepts_upper_tolerance_edge():
    PortfolioAllocation.from_weights({"VTI": 60.1, "BND": 40.0}).ensure_valid()


def test_ensure_valid_rejects_eighty():
    alloc = PortfolioAllocation.from_weights({"VTI": 50.0, "BND": 30.0})
    with pytest.raises(AllocationError, match="80.00"):
        alloc.ensure_valid()


def test_ensure_valid_rejects_one_twenty():
    alloc = PortfolioAllocation.from_weights({"VTI": 70.0, "BND": 50.0})
    with pytest.raises(AllocationError, match="120.00"):
        alloc.ensure_valid()


def test_ensure_valid_rejects_empty():
    with pytest.raises(AllocationError, match="no assets"):
        PortfolioAllocation(entries=[]).ensure_valid()


def test_ensure_valid_rejects_negative_weight():
    alloc = PortfolioAllocation.from_weights({"VTI": 110.0, "BND": -10.0})
    with pytest.raises(AllocationError) as exc_info:
        alloc.ensure_valid()
    assert exc_info.value.ticker == "BND"


def test_ensure_valid_rejects_duplicate_ticker():
    alloc = PortfolioAllocation(
        entries=[
            AllocationEntry(ticker="VTI", weight=50.0),
            AllocationEntry(ticker="vti", weight=50.0),
        ]
    )
    with pytest.raises(AllocationError, match="more than once"):
        alloc.ensure_valid()


def test_construction_does_not_validate_weights():
    assert PortfolioAllocation.from_weights({"VTI": 10.0}).total_weight == 10.0


def test_weights_are_never_normalised():
    alloc = PortfolioAllocation.from_weights({"VTI": 60.05, "BND": 40.0})
    assert alloc.fractions()["VTI"] == pytest.approx(0.6005)


# --- Helpers ---

def test_fractions_divide_by_hundred():
    alloc = PortfolioAllocation.from_weights({"VTI": 60.0, "BND": 40.0})
    assert alloc.fractions() == pytest.approx({"VTI": 0.6, "BND": 0.4})


def test_tickers_keep_input_order():
    alloc = PortfolioAllocation.from_weights({"BND": 40.0, "VTI": 60.0})
    assert alloc.tickers == ["BND", "VTI"]


def test_canonical_is_order_independent():
    a = PortfolioAllocation.from_weights({"BND": 40.0, "VTI": 60.0})
    b = PortfolioAllocation.from_weights({"VTI": 60.0, "BND": 40.0})
    assert a.canonical() == b.canonical()


# --- PortfolioReturnSeries ---

def test_portfolio_series_from_timestamp_index():
    s = pd.Series([0.01, -0.02], index=pd.to_datetime(["2024-01-02", "2024-01-03"]))
    series = PortfolioReturnSeries.from_series(s)
    assert series.dates == [date(2024, 1, 2), date(2024, 1, 3)]


def test_portfolio_series_values_roundtrip():
    s = pd.Series([0.01, -0.02], index=[date(2024, 1, 2), date(2024, 1, 3)])
    assert PortfolioReturnSeries.from_series(s).values().tolist() == pytest.approx([0.01, -0.02])
